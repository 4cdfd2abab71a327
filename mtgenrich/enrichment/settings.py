"""Tunables for one enrichment pipeline."""

from dataclasses import dataclass, replace
from typing import Any, Optional

from .. import constants
from ..enrich_config import EnrichConfig


@dataclass(frozen=True)
class EnrichmentSettings:
    """
    Rate, concurrency, retry and chunking configuration.
    Defaults match the shipped mtgenrich.properties.
    """

    max_requests_per_second: float = 10.0
    max_concurrency: int = 4
    max_attempts: int = 4
    base_delay: float = 0.5
    backoff_multiplier: float = 2.0
    max_delay: float = 10.0
    chunk_size: int = 50
    chunk_pause: float = 0.15
    skip_complete: bool = True
    keep_scryfall_json: bool = False
    cache_max_entries: int = 1000
    cache_expiry_hours: float = 24.0
    cache_file: Optional[str] = None
    api_url: str = constants.SCRYFALL_API_URL
    user_agent: str = constants.DEFAULT_USER_AGENT
    request_timeout: float = 30.0

    def __post_init__(self) -> None:
        if self.max_requests_per_second <= 0:
            raise ValueError("max_requests_per_second must be > 0")
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0 or self.max_delay < 0 or self.chunk_pause < 0:
            raise ValueError("delays must be >= 0")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be >= 1")
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")

    @property
    def min_interval(self) -> float:
        """Minimum spacing between request starts, in seconds."""
        return 1.0 / self.max_requests_per_second

    def with_overrides(self, **overrides: Any) -> "EnrichmentSettings":
        """
        Copy of these settings with some values replaced, ignoring None
        :param overrides: Field name -> new value
        :return: New settings
        """
        return replace(
            self, **{key: value for key, value in overrides.items() if value is not None}
        )

    @classmethod
    def from_config(cls) -> "EnrichmentSettings":
        """
        Build settings from the loaded properties file, falling back to defaults
        :return: Settings
        """
        config = EnrichConfig()
        defaults = cls()
        return cls(
            max_requests_per_second=config.get_float(
                "Enrichment", "max_requests_per_second", defaults.max_requests_per_second
            ),
            max_concurrency=config.get_int(
                "Enrichment", "max_concurrency", defaults.max_concurrency
            ),
            max_attempts=config.get_int("Enrichment", "max_attempts", defaults.max_attempts),
            base_delay=config.get_float("Enrichment", "base_delay", defaults.base_delay),
            backoff_multiplier=config.get_float(
                "Enrichment", "backoff_multiplier", defaults.backoff_multiplier
            ),
            max_delay=config.get_float("Enrichment", "max_delay", defaults.max_delay),
            chunk_size=config.get_int("Enrichment", "chunk_size", defaults.chunk_size),
            chunk_pause=config.get_float("Enrichment", "chunk_pause", defaults.chunk_pause),
            skip_complete=config.get_boolean(
                "Enrichment", "skip_complete", defaults.skip_complete
            ),
            keep_scryfall_json=config.get_boolean(
                "Enrichment", "keep_scryfall_json", defaults.keep_scryfall_json
            ),
            cache_max_entries=config.get_int(
                "Cache", "max_entries", defaults.cache_max_entries
            ),
            cache_expiry_hours=config.get_float(
                "Cache", "expiry_hours", defaults.cache_expiry_hours
            ),
            cache_file=config.get("Cache", "cache_file") or None,
            api_url=config.get("Scryfall", "api_url", defaults.api_url),
            user_agent=config.get("Scryfall", "user_agent", defaults.user_agent),
            request_timeout=config.get_float(
                "Scryfall", "timeout", defaults.request_timeout
            ),
        )
