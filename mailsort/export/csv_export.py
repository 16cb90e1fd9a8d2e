"""CSV export of analysis results."""

import csv
from pathlib import Path
from typing import Dict, Iterable, List, Tuple, Union

from mailsort.models import AnalysisResult, WorkItem
from mailsort.utils.errors import ExportError
from mailsort.utils.logging import get_logger

logger = get_logger(__name__)

CSV_COLUMNS = [
    "Item ID",
    "Date",
    "Sender",
    "Recipient",
    "Classification",
    "Address",
    "Reason",
    "Suggested Filename",
]


def result_row(result: AnalysisResult) -> Dict[str, str]:
    """Flatten one result into a CSV row keyed by column name."""
    return {
        "Item ID": result.canonical_item_id,
        "Date": result.date_on_document or "",
        "Sender": result.sender or "",
        "Recipient": result.recipient_name or "",
        "Classification": result.classification.label,
        "Address": result.delivery_address or "",
        "Reason": result.reasoning or "",
        "Suggested Filename": result.suggested_filename,
    }


def write_csv(
    results: Iterable[Union[AnalysisResult, Tuple[WorkItem, AnalysisResult]]],
    path: Union[str, Path],
) -> int:
    """
    Write results to a CSV file with a fixed header.

    Accepts bare results or the ``(item, result)`` pairs returned by
    ``QueueStore.results()``.

    Returns:
        Number of data rows written
    """
    rows: List[Dict[str, str]] = []
    for entry in results:
        result = entry[1] if isinstance(entry, tuple) else entry
        rows.append(result_row(result))

    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS)
            writer.writeheader()
            writer.writerows(rows)
    except OSError as e:
        raise ExportError(f"Could not write CSV to {path}: {e}", {"path": str(path)}) from e

    logger.info(f"Exported {len(rows)} result(s) to {path}")
    return len(rows)
