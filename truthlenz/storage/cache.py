from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

from tenacity import retry, stop_after_attempt, wait_fixed

from truthlenz.models.types import MEDIA_KINDS, CacheEntry
from truthlenz.storage.database import Database

logger = logging.getLogger(__name__)


def stored_input_for(kind: str, canonical: str, limit: int = 1000) -> str:
    """Describe the cached input without ever storing a media blob."""
    if kind in MEDIA_KINDS:
        return f"[Media: {kind}]"
    return canonical[:limit]


class ResultCache:
    """Advisory verdict cache keyed by fingerprint.

    Every failure degrades to a miss (on read) or a no-op (on write); the
    caller never sees a storage exception. Hit counting runs on a background
    worker so a hit returns without waiting for the write.
    """

    def __init__(
        self,
        database: Database | None,
        enabled: bool = True,
        input_limit: int = 1000,
    ) -> None:
        self._database = database
        self._enabled = enabled and database is not None
        self._input_limit = input_limit
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cache-hits")

    @property
    def enabled(self) -> bool:
        return self._enabled

    def get(self, fingerprint: str) -> CacheEntry | None:
        if not self._enabled:
            return None
        try:
            entry = self._database.get_cached(fingerprint)
        except Exception as exc:
            logger.warning("Cache lookup failed, recomputing: %s", exc)
            return None

        if entry is not None:
            logger.info("Cache hit for %s", fingerprint[:12])
            self._record_hit(fingerprint)
        return entry

    def put(self, fingerprint: str, kind: str, canonical: str, result: dict[str, Any]) -> None:
        if not self._enabled:
            return
        try:
            self._database.store_cached(
                fingerprint,
                kind,
                stored_input_for(kind, canonical, self._input_limit),
                result,
            )
        except Exception as exc:
            logger.warning("Cache store failed for %s: %s", fingerprint[:12], exc)

    def _record_hit(self, fingerprint: str) -> Future | None:
        try:
            future = self._executor.submit(self._increment_hit, fingerprint)
        except RuntimeError as exc:
            logger.warning("Hit counter not scheduled: %s", exc)
            return None
        future.add_done_callback(self._log_hit_failure)
        return future

    @retry(stop=stop_after_attempt(3), wait=wait_fixed(0.2), reraise=True)
    def _increment_hit(self, fingerprint: str) -> None:
        self._database.increment_cache_hit(fingerprint)

    @staticmethod
    def _log_hit_failure(future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.warning("Failed to increment cache hit count: %s", exc)

    def close(self) -> None:
        """Wait for pending hit-count writes and stop the worker."""
        self._executor.shutdown(wait=True)
