"""Grouping of results by classification and forwarding request text."""

from typing import Dict, Iterable, List, Sequence

from mailsort.models import AnalysisResult, Classification, WorkItem, WorkItemStatus

# Display order of the summary groups
GROUP_ORDER = [
    Classification.FORWARD_PRIMARY,
    Classification.FORWARD_SECONDARY,
    Classification.DIGITAL_STORE_ACTION,
    Classification.DIGITAL_STORE,
    Classification.SHRED,
    Classification.UNDETERMINED,
]

FORWARDING_TITLES = {
    Classification.FORWARD_PRIMARY: "Forward to Ayr (Dad's Mail)",
    Classification.FORWARD_SECONDARY: "Forward to Australia (Essentials)",
}


def grouped_results(items: Iterable[WorkItem]) -> Dict[Classification, List[AnalysisResult]]:
    """Bucket the results of finished items by classification, keeping queue order."""
    groups: Dict[Classification, List[AnalysisResult]] = {c: [] for c in GROUP_ORDER}
    for item in items:
        if item.status not in (WorkItemStatus.SUCCEEDED, WorkItemStatus.NEEDS_REVIEW):
            continue
        for result in item.results or []:
            groups[result.classification].append(result)
    return groups


def build_forwarding_request(title: str, results: Sequence[AnalysisResult]) -> str:
    """Compose the request message listing item ids to hand to the mail service."""
    if not results:
        return ""
    lines = "\n".join(
        f"- Item ID: {r.canonical_item_id} ({r.recipient_name or 'Unknown'})" for r in results
    )
    return f"REQUEST: {title}\n\nPlease process the following items:\n{lines}\n\nThank you."


def search_ids(results: Sequence[AnalysisResult]) -> str:
    """Comma-separated item ids, ready to paste into the mail service's search box."""
    return ", ".join(r.canonical_item_id for r in results)
