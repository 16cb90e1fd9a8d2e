"""
Classification mapper: raw extraction record -> routing decision.

Everything here is a pure function of its inputs. The only non-repeatable
output is a synthesized ``GEN-`` item id, produced when neither the
filename nor the model yields a reference.
"""

from typing import Optional

from mailsort.models import (
    AnalysisResult,
    AutoAction,
    Classification,
    Importance,
    RawRecord,
    Routing,
)
from mailsort.routing.identifiers import reconcile_item_id
from mailsort.routing.rules import DEFAULT_RULES, RoutingRules, resolve_routing

MISSING_DATE = "00000000"
MISSING_NAME = "Unknown"


def classify(
    routing: Routing,
    auto_action: Optional[AutoAction],
    importance: Optional[Importance],
) -> Classification:
    """Apply the priority ladder; first match wins, then the urgency override."""
    if routing == Routing.FORWARD_TO_AYR:
        classification = Classification.FORWARD_PRIMARY
    elif routing == Routing.FORWARD_TO_OZ:
        classification = Classification.FORWARD_SECONDARY
    elif auto_action == AutoAction.ARCHIVE_DIGITAL:
        classification = Classification.DIGITAL_STORE
    elif importance == Importance.DIGITAL_ONLY:
        classification = Classification.SHRED
    else:
        classification = Classification.UNDETERMINED

    # Urgent mail never stays in a passive bucket, but never un-forwards either
    if importance is not None and importance.is_urgent and not classification.is_forwarding:
        classification = Classification.DIGITAL_STORE_ACTION

    return classification


def _filename_part(value: Optional[str]) -> str:
    value = (value or "").strip()
    if not value:
        return MISSING_NAME
    return value.replace("/", "-").replace("\\", "-")


def suggested_filename(
    date_on_document: Optional[str],
    sender: Optional[str],
    recipient_name: Optional[str],
    classification: Classification,
) -> str:
    """``{date}_[{sender}]_[{recipient}]_[{code}]``, with fixed placeholders."""
    date = (date_on_document or "").strip().replace("-", "") or MISSING_DATE
    return (
        f"{_filename_part(date)}"
        f"_[{_filename_part(sender)}]"
        f"_[{_filename_part(recipient_name)}]"
        f"_[{classification.code}]"
    )


def map_record(
    record: RawRecord,
    filename: Optional[str] = None,
    rules: RoutingRules = DEFAULT_RULES,
) -> AnalysisResult:
    """
    Turn one raw record into an analysed result.

    Args:
        record: Record as returned by the extraction service
        filename: Name of the source file, used for ID reconciliation
        rules: Routing tables

    Returns:
        Result with all derived fields filled in
    """
    decision = resolve_routing(record, rules)
    classification = classify(decision.routing, record.auto_action, record.importance)

    return AnalysisResult(
        recipient_name=record.recipient_name,
        delivery_address=record.delivery_address,
        sender=record.sender,
        document_type=record.document_type,
        date_on_document=record.date_on_document,
        account_or_reference=record.account_or_reference,
        raw_reference_text=record.ukpostbox_ref,
        confidence=record.confidence,
        reasoning=decision.reasoning,
        source_file_id=record.drive_file_id,
        routing=decision.routing,
        importance=record.importance,
        auto_action=record.auto_action,
        classification=classification,
        canonical_item_id=reconcile_item_id(record.ukpostbox_ref, filename or record.filename),
        suggested_filename=suggested_filename(
            record.date_on_document, record.sender, record.recipient_name, classification
        ),
    )
