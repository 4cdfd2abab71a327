"""Utility functions for Scryfall provider HTTP configuration."""

import logging
from typing import Optional

from ... import constants
from ...enrich_config import EnrichConfig

LOGGER = logging.getLogger(__name__)


def build_http_header(user_agent: Optional[str] = None) -> dict[str, str]:
    """
    Construct the headers Scryfall asks every client to send
    :param user_agent: Client identification, defaults to the configured one
    :return: HTTP headers
    """
    if user_agent is None:
        if not EnrichConfig().has_option("Scryfall", "user_agent"):
            LOGGER.warning("Scryfall user_agent not configured. Using default identification")
        user_agent = EnrichConfig().get(
            "Scryfall", "user_agent", constants.DEFAULT_USER_AGENT
        )

    return {
        "User-Agent": user_agent,
        "Accept": "application/json",
    }


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """
    Read a Retry-After header given in seconds
    :param value: Raw header value
    :return: Seconds to wait, or None if absent or unreadable
    """
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        LOGGER.debug(f"Ignoring non-numeric Retry-After: {value}")
        return None
    return max(0.0, seconds)
