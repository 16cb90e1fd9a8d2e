"""
Upstream routing precedence.

Routing is decided before classification, in strict order:

1. destination address match (two disjoint address sets),
2. recipient first-name match,
3. the routing the extraction service reported itself,
4. urgency fallback for unresolved high-importance bills, tax and legal mail,
5. ``unknown``.

An address match always beats a name match, even when they disagree.
"""

import re
from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Tuple

from mailsort.models import Importance, RawRecord, Routing

URGENCY_FALLBACK_NOTE = "[Fallback: High Importance document routed to Ayr]"


def _word_pattern(terms: FrozenSet[str]) -> Optional["re.Pattern[str]"]:
    if not terms:
        return None
    alternatives = "|".join(re.escape(term) for term in sorted(terms, key=len, reverse=True))
    return re.compile(rf"\b(?:{alternatives})\b", re.IGNORECASE)


@dataclass(frozen=True)
class RoutingRules:
    """Address, name and keyword tables for the two forwarding depots."""

    primary_addresses: FrozenSet[str] = frozenset({"10 Uist Wynd", "KA7 4GF"})
    primary_address_words: FrozenSet[str] = frozenset({"Ayr"})
    secondary_addresses: FrozenSet[str] = frozenset({"Flat 5 Old School Court", "N17 6LY"})
    primary_names: FrozenSet[str] = frozenset({"Arvind", "Ashima", "Molly"})
    secondary_names: FrozenSet[str] = frozenset({"Nishant"})
    urgency_keywords: Tuple[str, ...] = ("bill", "tax", "invoice", "demand", "legal", "notice")
    urgency_destination: Routing = Routing.FORWARD_TO_AYR

    _primary_word_re: Optional["re.Pattern[str]"] = field(init=False, repr=False, compare=False, default=None)
    _primary_name_re: Optional["re.Pattern[str]"] = field(init=False, repr=False, compare=False, default=None)
    _secondary_name_re: Optional["re.Pattern[str]"] = field(init=False, repr=False, compare=False, default=None)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_primary_word_re", _word_pattern(self.primary_address_words))
        object.__setattr__(self, "_primary_name_re", _word_pattern(self.primary_names))
        object.__setattr__(self, "_secondary_name_re", _word_pattern(self.secondary_names))

    def route_by_address(self, address: Optional[str]) -> Routing:
        if not address:
            return Routing.UNKNOWN
        lowered = address.lower()
        # Secondary is checked first: its markers are flat-level and more specific than the town name
        if any(marker.lower() in lowered for marker in self.secondary_addresses):
            return Routing.FORWARD_TO_OZ
        if any(marker.lower() in lowered for marker in self.primary_addresses):
            return Routing.FORWARD_TO_AYR
        if self._primary_word_re and self._primary_word_re.search(address):
            return Routing.FORWARD_TO_AYR
        return Routing.UNKNOWN

    def route_by_name(self, recipient: Optional[str]) -> Routing:
        if not recipient:
            return Routing.UNKNOWN
        primary = bool(self._primary_name_re and self._primary_name_re.search(recipient))
        secondary = bool(self._secondary_name_re and self._secondary_name_re.search(recipient))
        if primary and secondary:
            # Joint addressees pointing at both depots: leave it to review
            return Routing.UNKNOWN
        if primary:
            return Routing.FORWARD_TO_AYR
        if secondary:
            return Routing.FORWARD_TO_OZ
        return Routing.UNKNOWN

    def is_urgent_document(self, document_type: Optional[str], importance: Optional[Importance]) -> bool:
        if importance is None or not importance.is_urgent:
            return False
        lowered = (document_type or "").lower()
        return any(keyword in lowered for keyword in self.urgency_keywords)


DEFAULT_RULES = RoutingRules()


@dataclass(frozen=True)
class RoutingDecision:
    routing: Routing
    source: str
    reasoning: Optional[str]


def resolve_routing(record: RawRecord, rules: RoutingRules = DEFAULT_RULES) -> RoutingDecision:
    """
    Decide the forwarding destination for one raw record.

    Returns the routing, which rule produced it ("address", "name",
    "service", "urgency" or "default"), and the reasoning text with any
    fallback note appended.
    """
    reasoning = record.reasoning

    routing = rules.route_by_address(record.delivery_address)
    if routing != Routing.UNKNOWN:
        return RoutingDecision(routing, "address", reasoning)

    routing = rules.route_by_name(record.recipient_name)
    if routing != Routing.UNKNOWN:
        return RoutingDecision(routing, "name", reasoning)

    if record.routing != Routing.UNKNOWN:
        return RoutingDecision(record.routing, "service", reasoning)

    if rules.is_urgent_document(record.document_type, record.importance):
        note = f"{reasoning} {URGENCY_FALLBACK_NOTE}" if reasoning else URGENCY_FALLBACK_NOTE
        return RoutingDecision(rules.urgency_destination, "urgency", note)

    return RoutingDecision(Routing.UNKNOWN, "default", reasoning)
