"""
Identity keys for import records, and collapsing of duplicate lookups
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .. import constants
from ..models import EnrichmentStatus, ImportRecord, LookupRequest

LOGGER = logging.getLogger(__name__)

_COLLECTOR_NUMBER_REGEX = re.compile(r"^0*(\d+)(.*)$")


def normalize_name(name: Optional[str]) -> str:
    """
    Case and whitespace insensitive form of a card name
    :param name: Raw name
    :return: Normalized name, empty if nothing usable
    """
    if not name:
        return ""
    return " ".join(name.split()).casefold()


def normalize_set_code(set_code: Optional[str]) -> str:
    """
    Scryfall set codes are lower case
    :param set_code: Raw set code (Ex: LEA, " m19 ")
    :return: Normalized set code
    """
    if not set_code:
        return ""
    return "".join(set_code.split()).lower()


def normalize_collector_number(collector_number: Optional[str]) -> str:
    """
    Collector number without padding, so "001" and "1" share a key
    :param collector_number: Raw collector number (Ex: "001", "12a")
    :return: Normalized collector number
    """
    if not collector_number:
        return ""
    cleaned = "".join(str(collector_number).split()).lower()
    match = _COLLECTOR_NUMBER_REGEX.match(cleaned)
    if match:
        return f"{int(match.group(1))}{match.group(2)}"
    return cleaned


def build_cache_key(record: ImportRecord) -> Optional[str]:
    """
    Deterministic identity of a record.
    Set + collector number when both exist, otherwise the name.
    :param record: Import record
    :return: Cache key, or None if the record cannot be looked up
    """
    set_code = normalize_set_code(record.set)
    collector_number = normalize_collector_number(record.collector_number)
    if set_code and collector_number:
        return f"{set_code}:{collector_number}"

    name = normalize_name(record.name)
    if name:
        return f"name:{name}"

    return None


def build_lookup_request(key: str, record: ImportRecord) -> LookupRequest:
    """
    Describe a record to the card service
    :param key: Cache key of the record
    :param record: Representative record of the group
    :return: Lookup request
    """
    raw_number = (record.collector_number or "").strip() or None
    set_code = normalize_set_code(record.set) or None
    collector_number = normalize_collector_number(record.collector_number) or None
    if key.startswith("name:"):
        set_code = collector_number = raw_number = None

    return LookupRequest(
        key=key,
        name=" ".join(record.name.split()) if record.name else None,
        set_code=set_code,
        collector_number=collector_number,
        raw_collector_number=raw_number,
    )


def _has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def is_complete(record: ImportRecord) -> bool:
    """
    Does the record already carry every essential canonical field?
    :param record: Import record
    :return: True if no lookup is needed
    """
    return all(
        _has_value(getattr(record, field_name, None))
        for field_name in constants.ESSENTIAL_FIELDS
    )


@dataclass
class LookupGroup:
    """Records that resolve from the same lookup."""

    request: LookupRequest
    indices: List[int] = field(default_factory=list)


@dataclass
class DeduplicationPlan:
    """Where every input record goes before the network stage."""

    records: List[ImportRecord]
    groups: Dict[str, LookupGroup] = field(default_factory=dict)
    malformed: List[int] = field(default_factory=list)
    complete: List[int] = field(default_factory=list)

    @property
    def requests(self) -> List[LookupRequest]:
        """Unique lookups, in order of first appearance."""
        return [group.request for group in self.groups.values()]


def plan_lookups(
    raw_records: Sequence[Any], skip_complete: bool = True
) -> DeduplicationPlan:
    """
    Compute a key per record and group records sharing a key
    :param raw_records: ImportRecords or mappings from a format parser
    :param skip_complete: Resolve already-complete records without a lookup
    :return: Plan covering every input index exactly once
    """
    parsed = [ImportRecord.parse(raw) for raw in raw_records]
    plan = DeduplicationPlan(records=[record for record, _ in parsed])

    # Tags left over from an earlier run are ignored, only this validation counts
    for index, (record, problem) in enumerate(parsed):
        if problem is not None:
            record.mark(EnrichmentStatus.MALFORMED, problem)
            plan.malformed.append(index)
            continue

        key = build_cache_key(record)
        if key is None:
            record.mark(
                EnrichmentStatus.MALFORMED,
                "Record has neither a name nor a set and collector number",
            )
            plan.malformed.append(index)
            continue

        if skip_complete and is_complete(record):
            plan.complete.append(index)
            continue

        group = plan.groups.get(key)
        if group is None:
            group = plan.groups[key] = LookupGroup(build_lookup_request(key, record))
        group.indices.append(index)

    LOGGER.debug(
        f"Planned {len(plan.groups)} unique lookups for {len(plan.records)} records "
        f"({len(plan.malformed)} malformed, {len(plan.complete)} already complete)"
    )
    return plan
