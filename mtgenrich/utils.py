"""
MTGEnrich simple utilities
"""

import logging
import os
import pathlib
import time
from typing import Any, Dict, List, Sequence, Union

import orjson

from . import constants
from .models import ImportRecord

LOGGER = logging.getLogger(__name__)


def init_logger() -> None:
    """
    Initialize the main system logger
    """
    constants.LOG_PATH.mkdir(parents=True, exist_ok=True)

    start_time = time.strftime("%Y-%m-%d_%H.%M.%S")

    logging.basicConfig(
        level=(
            logging.DEBUG
            if os.environ.get("MTGENRICH_DEBUG", "").lower() in ["true", "1"]
            else logging.INFO
        ),
        format="[%(levelname)s] %(asctime)s: %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(
                str(constants.LOG_PATH.joinpath(f"mtgenrich_{start_time}.log"))
            ),
        ],
    )
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def load_records(file_path: Union[str, pathlib.Path]) -> List[Dict[str, Any]]:
    """
    Read import records a structured-data parser left on disk
    :param file_path: JSON file holding an array of records
    :return: Raw records
    """
    content = orjson.loads(pathlib.Path(file_path).read_bytes())
    if isinstance(content, dict) and isinstance(content.get("cards"), list):
        content = content["cards"]
    if not isinstance(content, list):
        raise ValueError(f"{file_path} does not contain a list of records")
    return content


def write_records(
    file_path: Union[str, pathlib.Path],
    records: Sequence[ImportRecord],
    pretty_print: bool = False,
) -> None:
    """
    Dump enriched records out to a JSON file
    :param file_path: Destination file
    :param records: Enriched records
    :param pretty_print: Indent the output
    """
    file_path = pathlib.Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    options = orjson.OPT_INDENT_2 if pretty_print else 0
    file_path.write_bytes(
        orjson.dumps([record.to_dict() for record in records], option=options)
    )
    LOGGER.info(f"Wrote {len(records)} records to {file_path}")
