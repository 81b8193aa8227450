import pytest
from sqlalchemy import func, select

from conceptlab.cache import InMemoryCache, SqlCache, build_cache
from conceptlab.db.interaction_log import InteractionRecord, SqlInteractionLog
from conceptlab.db.models import CacheEntry
from conceptlab.db.session import make_engine


@pytest.fixture
def engine(tmp_path):
    return make_engine(f"sqlite:///{tmp_path / 'conceptlab.db'}")


class Clock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.mark.parametrize("backend", ["memory", "sql"])
class TestCacheBackends:
    def make(self, backend, engine, clock):
        if backend == "memory":
            return InMemoryCache(clock=clock)
        return SqlCache(engine, clock=clock)

    def test_set_get_delete(self, backend, engine):
        cache = self.make(backend, engine, Clock())
        cache.set("k", "v", 10)
        assert cache.get("k") == "v"

        cache.set("k", "v2", 10)
        assert cache.get("k") == "v2"

        cache.delete("k")
        assert cache.get("k") is None
        cache.delete("k")

    def test_expiry(self, backend, engine):
        clock = Clock()
        cache = self.make(backend, engine, clock)
        cache.set("k", "v", 10)

        clock.now += 9
        assert cache.get("k") == "v"
        clock.now += 1
        assert cache.get("k") is None


def test_sweep_expired():
    clock = Clock()
    cache = InMemoryCache(clock=clock)
    cache.set("a", "1", 5)
    cache.set("b", "2", 50)
    clock.now += 10
    assert cache.sweep_expired() == 1
    assert cache.get("b") == "2"


def test_memory_cache_sweeps_expired_entries_on_write():
    clock = Clock()
    cache = InMemoryCache(clock=clock)
    for i in range(1000):
        cache.set(f"k{i}", "v", 3600)

    clock.now += 10000
    cache.set("fresh", "v", 3600)

    assert len(cache._items) == 1
    assert cache.get("fresh") == "v"


def test_sql_cache_sweeps_expired_rows_on_write(engine):
    clock = Clock()
    cache = SqlCache(engine, clock=clock)
    for i in range(20):
        cache.set(f"k{i}", "v", 3600)

    clock.now += 10000
    cache.set("fresh", "v", 3600)

    with engine.connect() as conn:
        assert conn.execute(select(func.count()).select_from(CacheEntry)).scalar_one() == 1
    assert cache.get("fresh") == "v"


def test_no_sweep_inside_interval():
    clock = Clock()
    cache = InMemoryCache(clock=clock, sweep_interval=60)
    cache.set("a", "1", 5)
    clock.now += 10
    cache.set("b", "2", 5)
    assert len(cache._items) == 2


def test_build_cache(engine):
    assert isinstance(build_cache("memory"), InMemoryCache)
    assert isinstance(build_cache("sql", engine), SqlCache)


def test_sql_interaction_log(engine):
    log = SqlInteractionLog(engine)
    for kind, tokens in [("graph_validation", 10), ("graph_validation", 20), ("concept_synthesis", 5)]:
        log.append(
            InteractionRecord(
                user_id="u1",
                concept_id=None,
                interaction_type=kind,
                prompt="p",
                response="r",
                tokens_used=tokens,
                duration_ms=12,
            )
        )

    stats = log.usage_stats("u1")
    assert stats.total_interactions == 3
    assert stats.total_tokens == 35
    assert stats.interaction_types == {"graph_validation": 2, "concept_synthesis": 1}
    assert log.usage_stats("nobody").total_interactions == 0
