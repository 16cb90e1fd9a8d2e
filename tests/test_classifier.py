"""
Tests for routing precedence and the classification mapper.
"""

import pytest

from mailsort.models import AutoAction, Classification, Importance, RawRecord, Routing
from mailsort.routing.classifier import classify, map_record, suggested_filename
from mailsort.routing.rules import DEFAULT_RULES, URGENCY_FALLBACK_NOTE, RoutingRules, resolve_routing


class TestRoutingRules:
    """Test address and name tables."""

    @pytest.mark.parametrize(
        "address,expected",
        [
            ("10 Uist Wynd, Ayr, KA7 4GF", Routing.FORWARD_TO_AYR),
            ("Somewhere, ka7 4gf", Routing.FORWARD_TO_AYR),
            ("12 High Street, Ayr", Routing.FORWARD_TO_AYR),
            ("Flat 5 Old School Court, London N17 6LY", Routing.FORWARD_TO_OZ),
            ("3 Fayre Lane, Leeds", Routing.UNKNOWN),
            (None, Routing.UNKNOWN),
        ],
    )
    def test_route_by_address(self, address, expected):
        assert DEFAULT_RULES.route_by_address(address) == expected

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Mr Arvind Dougall", Routing.FORWARD_TO_AYR),
            ("MOLLY DOUGALL", Routing.FORWARD_TO_AYR),
            ("Nishant Dougall", Routing.FORWARD_TO_OZ),
            ("Arvind & Nishant Dougall", Routing.UNKNOWN),
            ("The Occupier", Routing.UNKNOWN),
        ],
    )
    def test_route_by_name(self, name, expected):
        assert DEFAULT_RULES.route_by_name(name) == expected

    def test_custom_tables(self):
        rules = RoutingRules(primary_names=frozenset({"Ada"}), secondary_names=frozenset())
        assert rules.route_by_name("Ada Lovelace") == Routing.FORWARD_TO_AYR
        assert rules.route_by_name("Nishant") == Routing.UNKNOWN


class TestResolveRouting:
    """Test the upstream precedence chain."""

    def test_address_beats_name(self):
        record = RawRecord(delivery_address="10 Uist Wynd", recipient_name="Nishant Dougall")
        decision = resolve_routing(record)
        assert decision.routing == Routing.FORWARD_TO_AYR
        assert decision.source == "address"

    def test_name_beats_service_routing(self):
        record = RawRecord(recipient_name="Nishant Dougall", routing="forward_to_ayr")
        decision = resolve_routing(record)
        assert decision.routing == Routing.FORWARD_TO_OZ
        assert decision.source == "name"

    def test_service_routing_used_when_rules_are_silent(self):
        record = RawRecord(recipient_name="The Occupier", routing="forward_to_oz")
        assert resolve_routing(record).routing == Routing.FORWARD_TO_OZ

    def test_urgency_fallback(self):
        record = RawRecord(
            recipient_name="The Occupier",
            importance="HIGH_FORWARD",
            document_type="Council Tax Bill",
            reasoning="Demand for payment.",
        )
        decision = resolve_routing(record)
        assert decision.routing == Routing.FORWARD_TO_AYR
        assert decision.source == "urgency"
        assert decision.reasoning == f"Demand for payment. {URGENCY_FALLBACK_NOTE}"

    def test_urgency_fallback_needs_keyword(self):
        record = RawRecord(importance="CRITICAL_FORWARD", document_type="Birthday card")
        assert resolve_routing(record).routing == Routing.UNKNOWN

    def test_urgency_fallback_needs_importance(self):
        record = RawRecord(importance="ROUTINE_OPTIONAL", document_type="Invoice")
        assert resolve_routing(record).routing == Routing.UNKNOWN


class TestClassify:
    """Test the classification ladder."""

    @pytest.mark.parametrize(
        "routing,action,importance,expected",
        [
            (Routing.FORWARD_TO_AYR, None, None, Classification.FORWARD_PRIMARY),
            (Routing.FORWARD_TO_OZ, AutoAction.ARCHIVE_DIGITAL, None, Classification.FORWARD_SECONDARY),
            (Routing.UNKNOWN, AutoAction.ARCHIVE_DIGITAL, Importance.DIGITAL_ONLY, Classification.DIGITAL_STORE),
            (Routing.UNKNOWN, None, Importance.DIGITAL_ONLY, Classification.SHRED),
            (Routing.UNKNOWN, AutoAction.HUMAN_REVIEW_QUEUE, Importance.ROUTINE_OPTIONAL, Classification.UNDETERMINED),
            (Routing.UNKNOWN, None, None, Classification.UNDETERMINED),
        ],
    )
    def test_ladder(self, routing, action, importance, expected):
        assert classify(routing, action, importance) == expected

    @pytest.mark.parametrize("importance", [Importance.HIGH_FORWARD, Importance.CRITICAL_FORWARD])
    def test_urgent_mail_is_escalated(self, importance):
        assert classify(Routing.UNKNOWN, None, importance) == Classification.DIGITAL_STORE_ACTION
        assert (
            classify(Routing.UNKNOWN, AutoAction.ARCHIVE_DIGITAL, importance)
            == Classification.DIGITAL_STORE_ACTION
        )

    def test_escalation_never_unforwards(self):
        assert classify(Routing.FORWARD_TO_OZ, None, Importance.CRITICAL_FORWARD) == Classification.FORWARD_SECONDARY

    def test_deterministic(self):
        args = (Routing.UNKNOWN, AutoAction.ARCHIVE_DIGITAL, Importance.ROUTINE_OPTIONAL)
        assert {classify(*args) for _ in range(10)} == {Classification.DIGITAL_STORE}


class TestSuggestedFilename:
    """Test suggested filename composition."""

    def test_full_filename(self):
        name = suggested_filename("2025-07-08", "HMRC", "Arvind Dougall", Classification.FORWARD_PRIMARY)
        assert name == "20250708_[HMRC]_[Arvind Dougall]_[FWD-AYR]"

    def test_placeholders(self):
        name = suggested_filename(None, "", None, Classification.UNDETERMINED)
        assert name == "00000000_[Unknown]_[Unknown]_[TBC]"

    def test_path_separators_are_replaced(self):
        name = suggested_filename("2025-01-02", "A/B Ltd", "C\\D", Classification.SHRED)
        assert name == "20250102_[A-B Ltd]_[C-D]_[SHRED]"


class TestMapRecord:
    """Test end-to-end mapping of raw records."""

    def test_secondary_depot_scenario(self):
        record = RawRecord(
            ukpostbox_ref="5 5 1 2 3",
            recipient_name="Nishant Dougall",
            delivery_address="Flat 5 Old School Court, London, N17 6LY",
            sender="Santander",
            date_on_document="2025-06-30",
            importance="ROUTINE_OPTIONAL",
        )
        result = map_record(record, "scan.pdf")

        assert result.routing == Routing.FORWARD_TO_OZ
        assert result.classification == Classification.FORWARD_SECONDARY
        assert result.canonical_item_id == "55123"
        assert result.raw_reference_text == "5 5 1 2 3"
        assert result.suggested_filename == "20250630_[Santander]_[Nishant Dougall]_[FWD-OZ]"

    def test_filename_reference_wins(self):
        record = RawRecord(ukpostbox_ref="11111", delivery_address="10 Uist Wynd")
        result = map_record(record, "96279_080725-01.pdf")
        assert result.canonical_item_id == "96279"
        assert result.routing == Routing.FORWARD_TO_AYR
        assert result.classification == Classification.FORWARD_PRIMARY

    def test_record_filename_used_when_none_given(self):
        record = RawRecord(filename="77777_scan.pdf")
        assert map_record(record).canonical_item_id == "77777"

    def test_digital_only_unknown_is_shred(self):
        record = RawRecord(sender="Pizza Palace", importance="DIGITAL_ONLY", routing="unknown")
        result = map_record(record, "flyer.pdf")
        assert result.classification == Classification.SHRED
        assert not result.needs_review

    def test_undetermined_needs_review(self):
        result = map_record(RawRecord(), "blank.pdf")
        assert result.classification == Classification.UNDETERMINED
        assert result.needs_review
        assert result.canonical_item_id.startswith("GEN-")

    def test_urgent_fallback_reasoning_carried(self):
        record = RawRecord(importance="HIGH_FORWARD", document_type="Legal notice")
        result = map_record(record, "x.pdf")
        assert result.classification == Classification.FORWARD_PRIMARY
        assert URGENCY_FALLBACK_NOTE in result.reasoning
