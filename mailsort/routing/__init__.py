"""
Routing and classification rules.

Pure functions that turn a raw extraction record into a forwarding
decision, a final classification and a canonical item ID.
"""

from mailsort.routing.classifier import classify, map_record, suggested_filename
from mailsort.routing.identifiers import (
    generate_item_id,
    normalize_reference,
    reconcile_item_id,
    reference_from_filename,
)
from mailsort.routing.rules import DEFAULT_RULES, RoutingRules, resolve_routing

__all__ = [
    "DEFAULT_RULES",
    "RoutingRules",
    "classify",
    "generate_item_id",
    "map_record",
    "normalize_reference",
    "reconcile_item_id",
    "reference_from_filename",
    "resolve_routing",
    "suggested_filename",
]
