"""
Two-tier cache for canonical card lookups.

SessionCache outlives orchestrator runs and is owned by the application.
LookupCache lives for a single run and memoizes in-flight lookups so
concurrent duplicates share one network call.
"""

import asyncio
import collections
import logging
import pathlib
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import orjson

from .. import constants
from ..models import CachedResult, EnrichmentStatus, LookupRequest, LookupResult

LOGGER = logging.getLogger(__name__)


class SessionCache:
    """
    Cross-run cache of canonical results and not-found markers.
    Entries are immutable once written; the oldest are evicted first.
    """

    def __init__(
        self,
        max_entries: int = 1000,
        expiry_hours: float = 24.0,
        timer: Callable[[], float] = time.time,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = max_entries
        self.expiry_seconds = expiry_hours * 3600
        self._timer = timer
        self._entries: "collections.OrderedDict[str, CachedResult]" = (
            collections.OrderedDict()
        )
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def _is_expired(self, entry: CachedResult) -> bool:
        return self.expiry_seconds > 0 and (
            self._timer() - entry.fetched_at >= self.expiry_seconds
        )

    def get(self, key: str) -> Optional[CachedResult]:
        """
        Look up a key, dropping it if expired
        :param key: Cache key
        :return: Cached result or None on miss
        """
        entry = self._entries.get(key)
        if entry is not None and self._is_expired(entry):
            LOGGER.debug(f"Session cache entry expired for {key}")
            del self._entries[key]
            entry = None

        if entry is None:
            self.misses += 1
            return None

        self.hits += 1
        return entry

    def put(self, key: str, card: Optional[Dict[str, Any]]) -> CachedResult:
        """
        Write a result for a key. An existing live entry wins over the new one.
        :param key: Cache key
        :param card: Canonical card data, or None for a not-found marker
        :return: The entry now stored for the key
        """
        existing = self._entries.get(key)
        if existing is not None and not self._is_expired(existing):
            return existing

        entry = CachedResult(key=key, card=card, fetched_at=self._timer())
        self._store(entry)
        return entry

    def _store(self, entry: CachedResult) -> None:
        self._entries.pop(entry.key, None)
        while len(self._entries) >= self.max_entries:
            evicted_key, _ = self._entries.popitem(last=False)
            LOGGER.debug(f"Session cache full, evicted {evicted_key}")
        self._entries[entry.key] = entry

    def clear(self) -> None:
        """
        Drop every entry and reset counters
        """
        self._entries.clear()
        self.hits = 0
        self.misses = 0
        LOGGER.info("Session cache cleared")

    def _to_json(self) -> bytes:
        return orjson.dumps(
            {
                "version": constants.SESSION_CACHE_VERSION,
                "entries": [
                    {
                        "key": entry.key,
                        "card": dict(entry.card) if entry.card is not None else None,
                        "fetched_at": entry.fetched_at,
                    }
                    for entry in self._entries.values()
                ],
            }
        )

    def stats(self) -> Dict[str, Any]:
        """
        Entry count and approximate in-memory footprint
        :return: Statistics dictionary
        """
        size_bytes = len(self._to_json())
        return {
            "entries": len(self._entries),
            "found": sum(1 for entry in self._entries.values() if entry.found),
            "approximate_size_bytes": size_bytes,
            "total_size_kb": round(size_bytes / 1024, 1),
            "max_entries": self.max_entries,
            "hits": self.hits,
            "misses": self.misses,
        }

    def save(self, path: Union[str, pathlib.Path]) -> None:
        """
        Persist the cache so a later session can reuse it
        :param path: Destination JSON file
        """
        path = pathlib.Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self._to_json())
        LOGGER.info(f"Saved {len(self._entries)} session cache entries to {path}")

    def load(self, path: Union[str, pathlib.Path]) -> int:
        """
        Load entries saved by save(). Files of another version, or that
        cannot be parsed, are ignored.
        :param path: Source JSON file
        :return: Number of live entries loaded
        """
        path = pathlib.Path(path)
        if not path.is_file():
            return 0

        try:
            content = orjson.loads(path.read_bytes())
        except orjson.JSONDecodeError as error:
            LOGGER.warning(f"Unable to parse session cache {path}, ignoring: {error}")
            return 0

        if not isinstance(content, dict) or content.get("version") != constants.SESSION_CACHE_VERSION:
            LOGGER.warning(f"Session cache {path} has an outdated version, ignoring")
            return 0

        loaded = 0
        for raw in content.get("entries", []):
            entry = CachedResult(
                key=raw["key"], card=raw.get("card"), fetched_at=float(raw["fetched_at"])
            )
            if self._is_expired(entry):
                continue
            self._store(entry)
            loaded += 1

        LOGGER.info(f"Loaded {loaded} session cache entries from {path}")
        return loaded


def result_from_cache(entry: CachedResult) -> LookupResult:
    """
    Turn a cached entry into a lookup outcome
    :param entry: Cached result
    :return: Lookup result flagged as served from cache
    """
    if entry.found:
        return LookupResult(
            status=EnrichmentStatus.ENRICHED,
            note="Resolved from cache",
            card=entry.card,
            from_cache=True,
        )
    return LookupResult(
        status=EnrichmentStatus.NOT_FOUND,
        note="No card data found (cached)",
        from_cache=True,
    )


class LookupCache:
    """
    Per-run read-through cache in front of the session cache
    """

    def __init__(self, session_cache: SessionCache) -> None:
        self.session_cache = session_cache
        self._lookups: Dict[str, "asyncio.Future[LookupResult]"] = {}
        self.hits = 0
        self.network_lookups = 0

    def __len__(self) -> int:
        return len(self._lookups)

    async def resolve(
        self,
        request: LookupRequest,
        loader: Callable[[LookupRequest], Awaitable[LookupResult]],
    ) -> LookupResult:
        """
        Resolve a request, fetching through the loader only on a miss in both tiers
        :param request: Lookup request
        :param loader: Coroutine that performs the network lookup
        :return: Lookup result
        """
        pending = self._lookups.get(request.key)
        if pending is not None:
            self.hits += 1
            result = await pending
            return result

        cached = self.session_cache.get(request.key)
        if cached is not None:
            self.hits += 1
            result = result_from_cache(cached)
            future: "asyncio.Future[LookupResult]" = (
                asyncio.get_running_loop().create_future()
            )
            future.set_result(result)
            self._lookups[request.key] = future
            return result

        future = asyncio.get_running_loop().create_future()
        self._lookups[request.key] = future
        self.network_lookups += 1
        try:
            result = await loader(request)
        except Exception as error:
            LOGGER.warning(f"Lookup for {request.display_name} raised: {error!r}")
            result = LookupResult(
                status=EnrichmentStatus.FAILED,
                note=f"Unexpected error: {error}",
            )

        if result.status == EnrichmentStatus.ENRICHED and result.card is not None:
            self.session_cache.put(request.key, dict(result.card))
        elif result.status == EnrichmentStatus.NOT_FOUND:
            self.session_cache.put(request.key, None)

        future.set_result(result)
        return result

    def clear(self) -> None:
        """
        Forget every lookup of this run
        """
        self._lookups.clear()
        self.hits = 0
        self.network_lookups = 0
