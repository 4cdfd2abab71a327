"""
MTGEnrich Arg Parser to determine what actions to take
"""

import argparse
import logging
import os
from typing import List, Optional

LOGGER = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments from user to determine how to spawn up
    MTGEnrich and complete the request.
    :param argv: Arguments to parse, defaults to sys.argv
    :return: Namespace of requests
    """
    parser = argparse.ArgumentParser("mtgenrich")

    parser.add_argument(
        "--input",
        "-i",
        type=str,
        required=True,
        metavar="FILE",
        help="JSON file holding an array of import records.",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=str,
        metavar="FILE",
        help="Where to write the enriched records. Defaults to <input>.enriched.json.",
    )
    parser.add_argument(
        "--pretty",
        "-p",
        action="store_true",
        help="When dumping JSON files, prettify the contents instead of minifying them.",
    )
    parser.add_argument(
        "--chunk-size",
        "-c",
        type=int,
        metavar="N",
        help="Unique lookups processed per chunk, overriding the configured value.",
    )
    parser.add_argument(
        "--concurrency",
        "-j",
        type=int,
        metavar="N",
        help="Maximum lookups in flight at once, overriding the configured value.",
    )
    parser.add_argument(
        "--cache-file",
        type=str,
        metavar="FILE",
        help="Load the session cache from, and save it back to, this file.",
    )
    parser.add_argument(
        "--no-skip-complete",
        action="store_true",
        help="Look up records even when they already carry every essential field.",
    )
    parser.add_argument(
        "--keep-scryfall-json",
        action="store_true",
        help="Store the whole Scryfall card object on each enriched record.",
    )
    parser.add_argument(
        "--use-envvars",
        action="store_true",
        help="Use environment variables over parser flags for tuning options",
    )

    parsed_args = parser.parse_args(argv)

    if parsed_args.use_envvars:
        LOGGER.info("Using environment variables over parser flags")
        if os.environ.get("CHUNK_SIZE"):
            parsed_args.chunk_size = int(os.environ["CHUNK_SIZE"])
        if os.environ.get("CONCURRENCY"):
            parsed_args.concurrency = int(os.environ["CONCURRENCY"])
        parsed_args.cache_file = os.environ.get("CACHE_FILE", parsed_args.cache_file)
        parsed_args.pretty = bool(os.environ.get("PRETTY", parsed_args.pretty))

    return parsed_args
