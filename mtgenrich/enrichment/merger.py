"""
Fill import records in from canonical card data
"""

import copy
from typing import Any, Mapping, Optional

from .. import constants
from ..models import EnrichmentStatus, ImportRecord, LookupResult


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def merge_card_data(
    record: ImportRecord, card: Mapping[str, Any], keep_payload: bool = False
) -> int:
    """
    Copy canonical fields the record lacks. Present fields are never touched.
    :param record: Import record, modified in place
    :param card: Canonical card data
    :param keep_payload: Also store the whole card under scryfall_json
    :return: Number of fields filled in
    """
    filled = 0
    field_pairs = [(name, name) for name in constants.ENRICHABLE_FIELDS]
    field_pairs.extend(constants.RENAMED_FIELDS)

    for source_field, target_field in field_pairs:
        canonical_value = card.get(source_field)
        if canonical_value is None:
            continue
        if not _is_empty(getattr(record, target_field, None)):
            continue
        setattr(record, target_field, copy.deepcopy(canonical_value))
        filled += 1

    payload_field = constants.SOURCE_PAYLOAD_FIELD
    if keep_payload and _is_empty(getattr(record, payload_field, None)):
        setattr(record, payload_field, copy.deepcopy(dict(card)))
        filled += 1

    return filled


def apply_result(
    record: ImportRecord, result: Optional[LookupResult], keep_payload: bool = False
) -> ImportRecord:
    """
    Merge a lookup result into a record and tag it with the outcome.
    Records without canonical data come back unmodified apart from the tag.
    :param record: Import record, modified in place
    :param result: Lookup result, None if the lookup never produced one
    :param keep_payload: Also store the whole card under scryfall_json
    :return: The same record
    """
    if result is None:
        record.mark(
            EnrichmentStatus.FAILED,
            "Lookup did not produce a result",
            attempts=record.enrichment_attempts,
        )
        return record

    if result.status == EnrichmentStatus.ENRICHED and result.card is not None:
        filled = merge_card_data(record, result.card, keep_payload)
        record.mark(
            EnrichmentStatus.ENRICHED,
            f"{result.note} ({filled} fields filled)",
            attempts=result.attempts,
        )
        return record

    record.mark(result.status, result.note, attempts=result.attempts)
    return record
