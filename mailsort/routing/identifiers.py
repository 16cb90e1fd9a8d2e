"""
Canonical item ID reconciliation.

The mailbox provider stamps every scan with a short numeric reference. The
model reads it off the page (often with OCR-split digits) and the provider
usually embeds it in the filename too; the filename wins whenever it has
one. IDs starting with ``GEN-`` were synthesized and are not stable across
runs.
"""

import re
import secrets
import string
from typing import Any, Optional

GENERATED_PREFIX = "GEN-"

PLACEHOLDER_REFERENCES = frozenset(
    {"null", "none", "n/a", "unknown", "", "unknown_ref", "undefined", "ref", "id"}
)

MIN_COMPACT_LENGTH = 4
MAX_COMPACT_LENGTH = 9

_QUOTES_RE = re.compile(r"['\"]")
_DIGITS_AND_SPACES_RE = re.compile(r"^[\d\s]+$")
_WHITESPACE_RE = re.compile(r"\s")
_FILENAME_RUN_RE = re.compile(r"\d{5,9}")

_GENERATED_ALPHABET = string.ascii_uppercase + string.digits


def normalize_reference(value: Any) -> Optional[str]:
    """Clean a model-provided reference; ``None`` when it carries no ID."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        value = str(value)
    if not isinstance(value, str):
        return None

    sanitized = _QUOTES_RE.sub("", value).strip()

    if _DIGITS_AND_SPACES_RE.match(sanitized):
        compacted = _WHITESPACE_RE.sub("", sanitized)
        if MIN_COMPACT_LENGTH <= len(compacted) <= MAX_COMPACT_LENGTH:
            sanitized = compacted

    if sanitized.lower() in PLACEHOLDER_REFERENCES:
        return None
    return sanitized


def reference_from_filename(filename: Optional[str]) -> Optional[str]:
    """Pick the reference embedded in a filename, preferring 5-7 digit runs."""
    if not filename:
        return None
    candidates = _FILENAME_RUN_RE.findall(filename)
    if not candidates:
        return None
    for candidate in candidates:
        if 5 <= len(candidate) <= 7:
            return candidate
    # Longer runs are often dates, but still better than nothing
    return candidates[0]


def generate_item_id() -> str:
    """Synthesize a fresh, visibly non-authentic ID. Not deterministic."""
    token = "".join(secrets.choice(_GENERATED_ALPHABET) for _ in range(6))
    return f"{GENERATED_PREFIX}{token}"


def is_generated(item_id: str) -> bool:
    return item_id.startswith(GENERATED_PREFIX)


def reconcile_item_id(reference: Any, filename: Optional[str]) -> str:
    """
    Resolve the canonical item ID for one record.

    Order: filename digits, then the cleaned model reference, then a
    synthesized ``GEN-`` token.
    """
    from_filename = reference_from_filename(filename)
    if from_filename:
        return from_filename

    cleaned = normalize_reference(reference)
    if cleaned:
        return cleaned

    return generate_item_id()
