"""
Batch driver of the enrichment pipeline.

Normalize -> per unique lookup: cache -> scheduler -> retry -> fetch -> merge
into every record sharing the lookup -> ordered output plus a report.
The output always has exactly as many records as the input, in input order.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from .. import constants
from ..models import BatchReport, EnrichmentStatus, ImportRecord, LookupRequest, LookupResult
from ..providers.abstract import AbstractProvider
from .cache import LookupCache, SessionCache
from .clock import Clock, SystemClock
from .merger import apply_result
from .normalizer import plan_lookups
from .retry import RetryController, RetryPolicy
from .scheduler import RateLimiter, RequestScheduler
from .settings import EnrichmentSettings

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, Dict[str, Any]], None]


@dataclass
class EnrichmentBatch:
    """Enriched records, index aligned with the input, plus the run report."""

    records: List[ImportRecord]
    report: BatchReport

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[ImportRecord]:
        return iter(self.records)

    def __getitem__(self, index: int) -> ImportRecord:
        return self.records[index]


class BatchOrchestrator:
    """
    Enriches lists of import records against a card-data provider.

    The session cache is owned by the caller and may be shared between
    orchestrators; everything else lives for a single run.
    """

    def __init__(
        self,
        provider: AbstractProvider,
        session_cache: Optional[SessionCache] = None,
        settings: Optional[EnrichmentSettings] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.provider = provider
        self.settings = settings or EnrichmentSettings()
        if session_cache is None:
            session_cache = SessionCache(
                max_entries=self.settings.cache_max_entries,
                expiry_hours=self.settings.cache_expiry_hours,
            )
        self.session_cache = session_cache
        self.clock = clock or SystemClock()
        self._lookup_cache: Optional[LookupCache] = None
        self._scheduler: Optional[RequestScheduler] = None

    async def enrich(
        self,
        records: Sequence[Any],
        progress_callback: Optional[ProgressCallback] = None,
        chunk_size: Optional[int] = None,
        max_concurrency: Optional[int] = None,
    ) -> EnrichmentBatch:
        """
        Fill in missing canonical fields on every record
        :param records: ImportRecords or mappings from a format parser
        :param progress_callback: Called with (processed, total, stats) after each chunk
        :param chunk_size: Override of the configured chunk size
        :param max_concurrency: Override of the configured concurrency ceiling
        :return: Enriched records in input order, and the run report
        """
        settings = self.settings.with_overrides(
            chunk_size=chunk_size, max_concurrency=max_concurrency
        )
        started = self.clock.now()

        plan = plan_lookups(records, settings.skip_complete)
        total = len(plan.records)

        limiter = RateLimiter(settings.min_interval, self.clock)
        retry_controller = RetryController(RetryPolicy.from_settings(settings), self.clock)
        scheduler = self._scheduler = RequestScheduler(
            limiter, settings.max_concurrency, retry_controller
        )
        lookup_cache = self._lookup_cache = LookupCache(self.session_cache)

        for index in plan.complete:
            plan.records[index].mark(
                EnrichmentStatus.ENRICHED, "Already complete, no lookup needed"
            )
        processed = len(plan.malformed) + len(plan.complete)

        requests = plan.requests
        chunks = [
            requests[start : start + settings.chunk_size]
            for start in range(0, len(requests), settings.chunk_size)
        ]
        LOGGER.info(
            f"Enriching {total} records: {len(requests)} unique lookups "
            f"in {len(chunks)} chunks"
        )

        for chunk_number, chunk in enumerate(chunks, start=1):
            results = await asyncio.gather(
                *(
                    self._resolve(request, lookup_cache, scheduler, limiter)
                    for request in chunk
                ),
                return_exceptions=True,
            )

            for request, result in zip(chunk, results):
                if isinstance(result, BaseException):
                    if not isinstance(result, Exception):
                        raise result
                    LOGGER.warning(f"Lookup for {request.display_name} raised: {result!r}")
                    result = LookupResult(
                        status=EnrichmentStatus.FAILED, note=f"Unexpected error: {result}"
                    )
                for index in plan.groups[request.key].indices:
                    apply_result(
                        plan.records[index], result, settings.keep_scryfall_json
                    )
                    processed += 1

            if chunk_number < len(chunks):
                self._notify(
                    progress_callback,
                    processed,
                    total,
                    {
                        "chunk": chunk_number,
                        "chunks": len(chunks),
                        "cache_hits": lookup_cache.hits,
                        "network_lookups": lookup_cache.network_lookups,
                    },
                )
                if settings.chunk_pause > 0:
                    await self.clock.sleep(settings.chunk_pause)

        report = self._build_report(plan.records, lookup_cache, retry_controller)
        report.unique_lookups = len(requests)
        report.elapsed_seconds = self.clock.now() - started

        self._notify(progress_callback, processed, total, report.as_dict())
        LOGGER.info(report.summary())
        return EnrichmentBatch(records=list(plan.records), report=report)

    def enrich_sync(
        self,
        records: Sequence[Any],
        progress_callback: Optional[ProgressCallback] = None,
        chunk_size: Optional[int] = None,
        max_concurrency: Optional[int] = None,
    ) -> EnrichmentBatch:
        """Sync wrapper for non-async contexts."""
        return asyncio.run(
            self.enrich(records, progress_callback, chunk_size, max_concurrency)
        )

    async def _resolve(
        self,
        request: LookupRequest,
        lookup_cache: LookupCache,
        scheduler: RequestScheduler,
        limiter: RateLimiter,
    ) -> LookupResult:
        async def load(lookup: LookupRequest) -> LookupResult:
            return await scheduler.submit(
                lookup.key,
                lookup.display_name,
                lambda: self.provider.fetch_card(lookup, limiter.acquire),
            )

        return await lookup_cache.resolve(request, load)

    @staticmethod
    def _build_report(
        records: List[ImportRecord],
        lookup_cache: LookupCache,
        retry_controller: RetryController,
    ) -> BatchReport:
        report = BatchReport(
            total=len(records),
            cache_hits=lookup_cache.hits,
            network_lookups=lookup_cache.network_lookups,
            retries=retry_controller.retries,
        )
        for record in records:
            status = record.enrichment_status
            if status == EnrichmentStatus.ENRICHED:
                report.succeeded += 1
            elif status == EnrichmentStatus.NOT_FOUND:
                report.not_found += 1
                name = record.name or "?"
                if (
                    name not in report.not_found_examples
                    and len(report.not_found_examples) < constants.NOT_FOUND_EXAMPLE_LIMIT
                ):
                    report.not_found_examples.append(name)
            elif status == EnrichmentStatus.MALFORMED:
                report.malformed += 1
            else:
                report.failed += 1
        return report

    @staticmethod
    def _notify(
        progress_callback: Optional[ProgressCallback],
        processed: int,
        total: int,
        stats: Dict[str, Any],
    ) -> None:
        if progress_callback is None:
            return
        try:
            progress_callback(processed, total, stats)
        except Exception:
            LOGGER.exception("Progress callback raised, continuing")

    def cache_stats(self) -> Dict[str, Any]:
        """
        Session cache statistics plus the size of the current run's memo
        :return: Statistics dictionary
        """
        stats = self.session_cache.stats()
        stats["run_lookups"] = (
            len(self._lookup_cache) if self._lookup_cache is not None else 0
        )
        return stats

    def reset(self) -> None:
        """
        Clear both cache tiers and any lookups still pending
        """
        if self._scheduler is not None:
            self._scheduler.reset()
        if self._lookup_cache is not None:
            self._lookup_cache.clear()
        self.session_cache.clear()
