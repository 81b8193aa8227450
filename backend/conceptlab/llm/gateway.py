import hashlib
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional

from conceptlab.cache import CacheBackend
from conceptlab.db.interaction_log import InteractionLog, InteractionRecord
from conceptlab.errors import ModelRequestFailed
from conceptlab.inference.base import ModelClient, ModelRequest
from conceptlab.ir.operations import OperationKind

logger = logging.getLogger(__name__)

CACHE_PREFIX = "claude:"


@dataclass(frozen=True)
class Completion:
    text: str
    tokens_used: int
    cached: bool = False


def cache_key(prompt: str, max_tokens: int, temperature: float) -> str:
    """Content-addressed key over everything that shapes the answer."""
    material = json.dumps([prompt, max_tokens, temperature], ensure_ascii=False)
    return CACHE_PREFIX + hashlib.sha256(material.encode("utf-8")).hexdigest()


class ModelGateway:
    """
    Single entry point for model calls.

    cache hit  -> cached text and token count, no call, no interaction log
    cache miss -> one call, cache write (ttl), one interaction record

    Misses on the same key are serialized through a per-key lock so a
    racing caller finds the first caller's entry instead of calling again.
    """

    def __init__(
        self,
        client: ModelClient,
        cache: Optional[CacheBackend] = None,
        interaction_log: Optional[InteractionLog] = None,
        cache_ttl: int = 3600,
        default_max_tokens: int = 4000,
        default_temperature: float = 0.7,
    ):
        self.client = client
        self.cache = cache
        self.interaction_log = interaction_log
        self.cache_ttl = cache_ttl
        self.default_max_tokens = default_max_tokens
        self.default_temperature = default_temperature

        self._locks_guard = threading.Lock()
        self._key_locks: Dict[str, threading.Lock] = {}
        self._key_waiters: Dict[str, int] = {}

    # --------------------------------------------------------
    # Cache boundary (failures degrade to "miss")
    # --------------------------------------------------------

    def _check_cache(self, key: str) -> Optional[Completion]:
        if self.cache is None:
            return None
        try:
            raw = self.cache.get(key)
        except Exception as e:
            logger.error("[ModelGateway] Cache check error: %s", e)
            return None
        if not raw:
            return None
        try:
            data = json.loads(raw)
            completion = Completion(
                text=data["response"],
                tokens_used=int(data["tokensUsed"]),
                cached=True,
            )
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("[ModelGateway] Discarding unreadable cache entry %s: %s", key, e)
            return None
        logger.debug("[ModelGateway] Cache hit for %s", key)
        return completion

    def _store_cache(self, key: str, completion: Completion) -> None:
        if self.cache is None:
            return
        payload = json.dumps(
            {"response": completion.text, "tokensUsed": completion.tokens_used},
            ensure_ascii=False,
        )
        try:
            self.cache.set(key, payload, self.cache_ttl)
            logger.debug("[ModelGateway] Cached response for %s", key)
        except Exception as e:
            logger.error("[ModelGateway] Cache save error: %s", e)

    # --------------------------------------------------------
    # Interaction log boundary (best effort)
    # --------------------------------------------------------

    def _log_interaction(self, record: InteractionRecord) -> None:
        if self.interaction_log is None:
            return
        try:
            self.interaction_log.append(record)
            logger.info(
                "[ModelGateway] Logged %s interaction for user %s",
                record.interaction_type,
                record.user_id,
            )
        except Exception as e:
            logger.error("[ModelGateway] Failed to log interaction: %s", e)

    # --------------------------------------------------------
    # Per-key locking
    # --------------------------------------------------------

    def _acquire_key(self, key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._key_locks.setdefault(key, threading.Lock())
            self._key_waiters[key] = self._key_waiters.get(key, 0) + 1
        lock.acquire()
        return lock

    def _release_key(self, key: str, lock: threading.Lock) -> None:
        lock.release()
        with self._locks_guard:
            self._key_waiters[key] -= 1
            if self._key_waiters[key] == 0:
                del self._key_waiters[key]
                del self._key_locks[key]

    # --------------------------------------------------------
    # Public API
    # --------------------------------------------------------

    def complete(
        self,
        user_id: str,
        concept_id: Optional[str],
        operation_kind: OperationKind | str,
        prompt: str,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        use_cache: bool = True,
        system_prompt: Optional[str] = None,
    ) -> Completion:
        kind = OperationKind(operation_kind)
        max_tokens = self.default_max_tokens if max_tokens is None else max_tokens
        temperature = self.default_temperature if temperature is None else temperature

        if not use_cache:
            return self._call(user_id, concept_id, kind, prompt, max_tokens, temperature, system_prompt)

        key = cache_key(prompt, max_tokens, temperature)
        cached = self._check_cache(key)
        if cached is not None:
            return cached

        lock = self._acquire_key(key)
        try:
            # another caller may have filled the entry while we waited
            cached = self._check_cache(key)
            if cached is not None:
                return cached
            completion = self._call(
                user_id, concept_id, kind, prompt, max_tokens, temperature, system_prompt
            )
            self._store_cache(key, completion)
            return completion
        finally:
            self._release_key(key, lock)

    def _call(
        self,
        user_id: str,
        concept_id: Optional[str],
        kind: OperationKind,
        prompt: str,
        max_tokens: int,
        temperature: float,
        system_prompt: Optional[str],
    ) -> Completion:
        request = ModelRequest(
            prompt=prompt,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system_prompt,
        )

        started = time.monotonic()
        try:
            response = self.client.complete(request)
        except ModelRequestFailed as e:
            logger.error("[ModelGateway] Model API error: %s", e)
            raise
        except Exception as e:
            logger.error("[ModelGateway] Model API error: %s", e)
            raise ModelRequestFailed(e) from e
        duration_ms = int((time.monotonic() - started) * 1000)

        completion = Completion(text=response.content, tokens_used=response.tokens_used)

        self._log_interaction(
            InteractionRecord(
                user_id=user_id,
                concept_id=concept_id,
                interaction_type=kind.value,
                prompt=prompt,
                response=completion.text,
                tokens_used=completion.tokens_used,
                duration_ms=duration_ms,
            )
        )
        return completion
