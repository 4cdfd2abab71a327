"""Pydantic and dataclass models shared by the enrichment pipeline."""

import datetime
import enum
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator


class EnrichmentStatus(str, enum.Enum):
    """Terminal outcome attached to every processed record."""

    ENRICHED = "enriched"
    NOT_FOUND = "not_found"
    FAILED = "failed"
    MALFORMED = "malformed"


class ImportRecord(BaseModel):
    """
    Partially-specified card entry produced by an upstream format parser.

    Any key the parser emits beyond the declared fields is kept as an extra
    attribute, which is also where canonical fields land after enrichment.
    """

    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    quantity: int = 1
    set: Optional[str] = None
    collector_number: Optional[str] = None

    enrichment_status: Optional[EnrichmentStatus] = None
    enrichment_note: Optional[str] = None
    enrichment_attempts: int = 0
    enriched_at: Optional[datetime.datetime] = None

    @field_validator("name", "set", "collector_number", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        """Parsers hand us collector numbers as ints often enough."""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @classmethod
    def parse(cls, raw: Any) -> Tuple["ImportRecord", Optional[str]]:
        """
        Validate an ImportRecord or a plain mapping from a parser.
        Mappings that fail validation are kept as-is.
        :param raw: Record or mapping
        :return: The record, and why it is invalid (None when it is valid)
        """
        if isinstance(raw, ImportRecord):
            return raw, None
        if not isinstance(raw, Mapping):
            return cls.model_construct(), f"Unsupported record type {type(raw).__name__}"
        try:
            return cls.model_validate(dict(raw)), None
        except ValidationError as error:
            return (
                cls.model_construct(**dict(raw)),
                f"Invalid record: {error.error_count()} validation error(s)",
            )

    @classmethod
    def coerce(cls, raw: Any) -> "ImportRecord":
        """
        Like parse(), but tags invalid records malformed instead of reporting why
        :param raw: Record or mapping
        :return: ImportRecord
        """
        record, problem = cls.parse(raw)
        if problem is not None:
            record.mark(EnrichmentStatus.MALFORMED, problem)
        return record

    def mark(
        self, status: EnrichmentStatus, note: str, attempts: Optional[int] = None
    ) -> None:
        """
        Attach the outcome tag to this record
        :param status: Terminal status
        :param note: Human readable explanation
        :param attempts: Number of network attempts, if any were made
        """
        self.enrichment_status = status
        self.enrichment_note = note
        if attempts is not None:
            self.enrichment_attempts = attempts
        self.enriched_at = datetime.datetime.now(datetime.timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-compatible dict, skipping unset optional fields."""
        return self.model_dump(mode="json", exclude_none=True)


@dataclass(frozen=True)
class LookupRequest:
    """The representative of one CacheKey group, as sent to the card service."""

    key: str
    name: Optional[str] = None
    set_code: Optional[str] = None
    collector_number: Optional[str] = None
    raw_collector_number: Optional[str] = None

    @property
    def has_printing(self) -> bool:
        """Is this request addressed by set + collector number?"""
        return bool(self.set_code and self.collector_number)

    @property
    def display_name(self) -> str:
        """Name to show in logs and reports."""
        if self.name:
            return self.name
        return f"{self.set_code}/{self.raw_collector_number or self.collector_number}"


@dataclass(frozen=True)
class CachedResult:
    """
    Canonical metadata for one CacheKey, or a permanent not-found marker.
    Never carries a quantity.
    """

    key: str
    card: Optional[Mapping[str, Any]]
    fetched_at: float

    def __post_init__(self) -> None:
        if self.card is not None and not isinstance(self.card, MappingProxyType):
            object.__setattr__(self, "card", MappingProxyType(dict(self.card)))

    @property
    def found(self) -> bool:
        """False for not-found markers."""
        return self.card is not None


@dataclass(frozen=True)
class LookupResult:
    """Outcome of resolving one CacheKey."""

    status: EnrichmentStatus
    note: str
    attempts: int = 0
    card: Optional[Mapping[str, Any]] = None
    from_cache: bool = False


@dataclass
class BatchReport:
    """Aggregate statistics of one orchestrator run."""

    total: int = 0
    succeeded: int = 0
    not_found: int = 0
    failed: int = 0
    malformed: int = 0
    cache_hits: int = 0
    network_lookups: int = 0
    retries: int = 0
    unique_lookups: int = 0
    elapsed_seconds: float = 0.0
    not_found_examples: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        """Stats handed to progress callbacks and the CLI."""
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "not_found": self.not_found,
            "failed": self.failed,
            "malformed": self.malformed,
            "cache_hits": self.cache_hits,
            "network_lookups": self.network_lookups,
            "retries": self.retries,
            "unique_lookups": self.unique_lookups,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "not_found_examples": list(self.not_found_examples),
        }

    def summary(self) -> str:
        """
        Human readable one-paragraph summary, suitable for direct display
        :return: Summary text
        """
        parts = [f"Enriched {self.succeeded} of {self.total} cards"]
        if self.not_found:
            examples = ", ".join(self.not_found_examples)
            parts.append(f"{self.not_found} not found ({examples})")
        if self.failed:
            parts.append(f"{self.failed} failed")
        if self.malformed:
            parts.append(f"{self.malformed} malformed")
        parts.append(f"{self.cache_hits} cache hits")
        return "; ".join(parts) + f" in {self.elapsed_seconds:.1f}s"
