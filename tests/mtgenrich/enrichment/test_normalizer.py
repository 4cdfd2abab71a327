"""Test cache keys and duplicate collapsing."""

from mtgenrich.enrichment.normalizer import (
    build_cache_key,
    is_complete,
    normalize_collector_number,
    plan_lookups,
)
from mtgenrich.models import EnrichmentStatus, ImportRecord


class TestCacheKey:
    """Test deterministic identity keys."""

    def test_printing_key_when_set_and_number_present(self):
        record = ImportRecord(name="Sol Ring", set="LEA", collector_number="1")
        assert build_cache_key(record) == "lea:1"

    def test_name_key_when_printing_incomplete(self):
        record = ImportRecord(name="Sol Ring", set="LEA")
        assert build_cache_key(record) == "name:sol ring"

    def test_case_and_whitespace_insensitive(self):
        """Equivalent records always produce the same key."""
        assert build_cache_key(ImportRecord(name="  sol   RING ")) == build_cache_key(
            ImportRecord(name="Sol Ring")
        )
        assert build_cache_key(
            ImportRecord(name="x", set=" lea ", collector_number=" 001 ")
        ) == build_cache_key(ImportRecord(name="y", set="LEA", collector_number="1"))

    def test_no_identity_gives_no_key(self):
        assert build_cache_key(ImportRecord(quantity=2)) is None
        assert build_cache_key(ImportRecord(name="   ")) is None

    def test_collector_number_normalization(self):
        assert normalize_collector_number("001") == "1"
        assert normalize_collector_number("012a") == "12a"
        assert normalize_collector_number("0") == "0"
        assert normalize_collector_number("★5") == "★5"
        assert normalize_collector_number("GR12") == "gr12"

    def test_integer_collector_number_is_accepted(self):
        record = ImportRecord.coerce({"name": "Sol Ring", "set": "lea", "collector_number": 1})
        assert record.collector_number == "1"
        assert build_cache_key(record) == "lea:1"


class TestPlanLookups:
    """Test grouping of records into unique lookups."""

    def test_duplicates_share_one_lookup(self):
        plan = plan_lookups(
            [
                {"name": "Sol Ring", "set": "lea", "collector_number": "1"},
                {"name": "Lightning Bolt"},
                {"name": "sol ring", "set": "LEA", "collector_number": "1", "quantity": 3},
            ]
        )
        assert [request.key for request in plan.requests] == ["lea:1", "name:lightning bolt"]
        assert plan.groups["lea:1"].indices == [0, 2]
        assert plan.groups["name:lightning bolt"].indices == [1]

    def test_representative_is_first_record(self):
        plan = plan_lookups([{"name": "Sol  Ring"}, {"name": "SOL RING"}])
        assert plan.requests[0].name == "Sol Ring"

    def test_name_request_drops_printing(self):
        plan = plan_lookups([{"name": "Sol Ring", "set": "lea"}])
        request = plan.requests[0]
        assert request.set_code is None
        assert request.collector_number is None
        assert not request.has_printing

    def test_printing_request_keeps_raw_number(self):
        plan = plan_lookups([{"name": "Sol Ring", "set": "LEA", "collector_number": "001"}])
        request = plan.requests[0]
        assert request.set_code == "lea"
        assert request.collector_number == "1"
        assert request.raw_collector_number == "001"

    def test_malformed_records_are_rejected_without_lookup(self):
        plan = plan_lookups([{"quantity": 4}, {"name": "Sol Ring"}])
        assert plan.malformed == [0]
        assert plan.records[0].enrichment_status == EnrichmentStatus.MALFORMED
        assert len(plan.requests) == 1

    def test_invalid_mapping_is_malformed(self):
        plan = plan_lookups([{"name": "Sol Ring", "quantity": "lots"}])
        assert plan.malformed == [0]
        assert plan.records[0].name == "Sol Ring"
        assert plan.records[0].enrichment_status == EnrichmentStatus.MALFORMED

    def test_complete_records_skip_lookup(self):
        complete = {
            "name": "Sol Ring",
            "type_line": "Artifact",
            "color_identity": [],
            "set_name": "Limited Edition Alpha",
            "mana_cost": "{1}",
            "cmc": 1,
        }
        assert is_complete(ImportRecord.coerce(complete))

        plan = plan_lookups([complete])
        assert plan.complete == [0]
        assert not plan.requests

        plan = plan_lookups([complete], skip_complete=False)
        assert plan.complete == []
        assert len(plan.requests) == 1

    def test_every_index_is_covered_once(self):
        raw = [{"name": "A"}, {}, {"name": "a"}, {"name": "B", "set": "x", "collector_number": "2"}]
        plan = plan_lookups(raw)
        covered = sorted(
            [index for group in plan.groups.values() for index in group.indices]
            + plan.malformed
            + plan.complete
        )
        assert covered == list(range(len(raw)))

    def test_stale_malformed_tag_is_ignored(self):
        """Only this run's validation decides whether a record is malformed."""
        plan = plan_lookups([{"name": "Sol Ring", "enrichment_status": "malformed"}])
        assert plan.malformed == []
        assert [request.key for request in plan.requests] == ["name:sol ring"]

    def test_repaired_record_is_planned_again(self):
        record = ImportRecord(quantity=2)
        assert plan_lookups([record]).malformed == [0]

        record.name = "Sol Ring"
        plan = plan_lookups([record])
        assert plan.malformed == []
        assert plan.groups["name:sol ring"].indices == [0]
