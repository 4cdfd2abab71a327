"""
MTGEnrich Constants that cannot be changed and are hardcoded intentionally
"""

import os
import pathlib
from typing import Tuple

TOP_LEVEL_DIR: pathlib.Path = pathlib.Path(__file__).resolve().parent.parent
RESOURCE_PATH: pathlib.Path = TOP_LEVEL_DIR.joinpath("mtgenrich").joinpath("resources")
CONFIG_PATH: pathlib.Path = RESOURCE_PATH.joinpath("mtgenrich.properties")
ENV_OUT_PATH: pathlib.Path = (
    pathlib.Path(os.environ.get("MTGENRICH_OUTPUT_PATH", TOP_LEVEL_DIR))
    .expanduser()
    .resolve()
)

LOG_PATH: pathlib.Path = ENV_OUT_PATH.joinpath("mtgenrich_logs")

SCRYFALL_API_URL: str = "https://api.scryfall.com"
DEFAULT_USER_AGENT: str = "MTGEnrich/1.0 (+https://github.com/mtgenrich/mtgenrich)"

# Session cache file layout version, bump to invalidate persisted caches
SESSION_CACHE_VERSION: int = 1

# Fields copied from a canonical card onto an import record when missing
ENRICHABLE_FIELDS: Tuple[str, ...] = (
    "type_line",
    "color_identity",
    "colors",
    "set_name",
    "mana_cost",
    "cmc",
    "rarity",
    "oracle_text",
    "power",
    "toughness",
    "loyalty",
    "set",
    "collector_number",
    "oracle_id",
    "image_uris",
    "prices",
)

# Canonical field name -> import record field name, for fields that are renamed
RENAMED_FIELDS: Tuple[Tuple[str, str], ...] = (("id", "scryfall_id"),)

# A record carrying all of these is considered complete and skips the lookup
ESSENTIAL_FIELDS: Tuple[str, ...] = (
    "type_line",
    "color_identity",
    "set_name",
    "mana_cost",
    "cmc",
)

NOT_FOUND_EXAMPLE_LIMIT: int = 5

# Optional field holding the whole canonical card, for consumers that need more
SOURCE_PAYLOAD_FIELD: str = "scryfall_json"
