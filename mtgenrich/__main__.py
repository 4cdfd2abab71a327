"""
MTGEnrich Main Executor
"""

import argparse
import asyncio
import logging
import pathlib
import traceback
from typing import Any, Dict

from mtgenrich.utils import init_logger

init_logger()
LOGGER: logging.Logger = logging.getLogger(__name__)


def log_progress(processed: int, total: int, stats: Dict[str, Any]) -> None:
    """
    Progress callback for command line runs
    :param processed: Records resolved so far
    :param total: Records in the batch
    :param stats: Extra statistics from the orchestrator
    """
    LOGGER.info(
        f"  Progress: {processed}/{total} records "
        f"({stats.get('cache_hits', 0)} cache hits, "
        f"{stats.get('network_lookups', 0)} network lookups)"
    )


async def enrich_file(args: argparse.Namespace) -> int:
    """
    Enrich the records of one input file and write them back out
    :param args: Parsed command line arguments
    :return: Number of records that could not be enriched
    """
    from mtgenrich.enrichment import BatchOrchestrator, EnrichmentSettings, SessionCache
    from mtgenrich.providers import ScryfallClient
    from mtgenrich.utils import load_records, write_records

    settings = EnrichmentSettings.from_config().with_overrides(
        chunk_size=args.chunk_size,
        max_concurrency=args.concurrency,
        cache_file=args.cache_file,
    )
    if args.no_skip_complete:
        settings = settings.with_overrides(skip_complete=False)
    if args.keep_scryfall_json:
        settings = settings.with_overrides(keep_scryfall_json=True)

    session_cache = SessionCache(
        max_entries=settings.cache_max_entries,
        expiry_hours=settings.cache_expiry_hours,
    )
    if settings.cache_file:
        session_cache.load(settings.cache_file)

    input_path = pathlib.Path(args.input)
    records = load_records(input_path)
    output_path = (
        pathlib.Path(args.output)
        if args.output
        else input_path.with_suffix(".enriched.json")
    )

    async with ScryfallClient(
        api_url=settings.api_url,
        user_agent=settings.user_agent,
        timeout=settings.request_timeout,
    ) as client:
        orchestrator = BatchOrchestrator(client, session_cache, settings)
        batch = await orchestrator.enrich(records, progress_callback=log_progress)

    write_records(output_path, batch.records, args.pretty)
    if settings.cache_file:
        session_cache.save(settings.cache_file)

    LOGGER.info(batch.report.summary())
    return batch.report.failed + batch.report.malformed


def main() -> None:
    """
    MTGEnrich safe main call
    """
    from mtgenrich.arg_parser import parse_args
    from mtgenrich.enrich_config import EnrichConfig

    args = parse_args()
    LOGGER.info(f"Starting MTGEnrich {EnrichConfig().mtgenrich_version}")

    try:
        unresolved = asyncio.run(enrich_file(args))
        if unresolved:
            LOGGER.warning(f"{unresolved} records could not be enriched")
    except Exception as error:
        LOGGER.fatal(f"Exception caught: {error} {traceback.format_exc()}")
        raise


if __name__ == "__main__":
    main()
