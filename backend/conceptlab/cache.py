import threading
import time
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

SWEEP_INTERVAL_SECONDS = 60

from sqlalchemy.orm import sessionmaker

from conceptlab.db.models import Base, CacheEntry


class CacheBackend(ABC):
    """String key -> string value store with per-entry expiry."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass


class InMemoryCache(CacheBackend):
    """
    Process-local cache.

    - expiry is checked lazily on read
    - set() sweeps every expired entry at most once per sweep interval
    - one lock guards the whole dict, so each entry is replaced atomically
    """

    def __init__(self, clock=time.time, sweep_interval: float = SWEEP_INTERVAL_SECONDS):
        self._lock = threading.Lock()
        self._items: Dict[str, Tuple[str, float]] = {}
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            value, expires_at = item
            if expires_at <= self._clock():
                del self._items[key]
                return None
            return value

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        now = self._clock()
        if now >= self._next_sweep:
            self.sweep_expired()
        with self._lock:
            self._items[key] = (value, now + ttl_seconds)

    def delete(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def sweep_expired(self) -> int:
        now = self._clock()
        with self._lock:
            self._next_sweep = now + self._sweep_interval
            expired = [k for k, (_, exp) in self._items.items() if exp <= now]
            for k in expired:
                del self._items[k]
        return len(expired)


class SqlCache(CacheBackend):
    """Cache shared between processes through the ``cache_entries`` table."""

    def __init__(
        self,
        engine,
        clock=time.time,
        create_tables: bool = True,
        sweep_interval: float = SWEEP_INTERVAL_SECONDS,
    ):
        if create_tables:
            Base.metadata.create_all(engine)
        self.Session = sessionmaker(bind=engine)
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval

    def get(self, key: str) -> Optional[str]:
        session = self.Session()
        try:
            entry = session.get(CacheEntry, key)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                session.delete(entry)
                session.commit()
                return None
            return entry.value
        finally:
            session.close()

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        now = self._clock()
        if now >= self._next_sweep:
            self.sweep_expired()
        session = self.Session()
        try:
            # merge selects then inserts or updates; a concurrent insert of the
            # same key raises IntegrityError, which the gateway logs as a cache failure
            session.merge(
                CacheEntry(key=key, value=value, expires_at=now + ttl_seconds)
            )
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def delete(self, key: str) -> None:
        session = self.Session()
        try:
            session.query(CacheEntry).filter(CacheEntry.key == key).delete()
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def sweep_expired(self) -> int:
        now = self._clock()
        self._next_sweep = now + self._sweep_interval
        session = self.Session()
        try:
            removed = (
                session.query(CacheEntry)
                .filter(CacheEntry.expires_at <= now)
                .delete(synchronize_session=False)
            )
            session.commit()
            return removed
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


def build_cache(kind: str, engine=None) -> CacheBackend:
    if kind == "sql":
        if engine is None:
            from conceptlab.db.session import engine as default_engine
            engine = default_engine
        return SqlCache(engine)
    return InMemoryCache()
