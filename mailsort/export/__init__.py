"""Result export: CSV, summaries and archiving to storage."""

from mailsort.export.archive import archive_description, archive_filename, archive_result
from mailsort.export.csv_export import CSV_COLUMNS, result_row, write_csv
from mailsort.export.summary import (
    FORWARDING_TITLES,
    GROUP_ORDER,
    build_forwarding_request,
    grouped_results,
    search_ids,
)

__all__ = [
    "CSV_COLUMNS",
    "FORWARDING_TITLES",
    "GROUP_ORDER",
    "archive_description",
    "archive_filename",
    "archive_result",
    "build_forwarding_request",
    "grouped_results",
    "result_row",
    "search_ids",
    "write_csv",
]
