"""
Tests for CSV export, result grouping and archiving.
"""

import csv

import pytest

from conftest import MemorySource, remote_item
from mailsort.export import (
    CSV_COLUMNS,
    archive_result,
    build_forwarding_request,
    grouped_results,
    search_ids,
    write_csv,
)
from mailsort.export.archive import archive_filename
from mailsort.models import AnalysisResult, Classification


def result(item_id="96279", classification=Classification.FORWARD_PRIMARY, **fields) -> AnalysisResult:
    return AnalysisResult(
        canonical_item_id=item_id,
        classification=classification,
        suggested_filename=f"20250708_[HMRC]_[Arvind]_[{classification.code}]",
        **fields,
    )


class TestWriteCsv:
    """Test the CSV export."""

    def test_header_and_rows(self, tmp_path):
        path = tmp_path / "out" / "results.csv"
        rows = [
            result(
                sender="HMRC",
                recipient_name="Arvind Dougall",
                date_on_document="2025-07-08",
                delivery_address="10 Uist Wynd",
                reasoning="Tax, forward",
            ),
            result("55123", Classification.SHRED),
        ]

        assert write_csv(rows, path) == 2

        with path.open(newline="", encoding="utf-8") as f:
            data = list(csv.reader(f))
        assert data[0] == CSV_COLUMNS
        assert data[1] == [
            "96279",
            "2025-07-08",
            "HMRC",
            "Arvind Dougall",
            Classification.FORWARD_PRIMARY.label,
            "10 Uist Wynd",
            "Tax, forward",
            "20250708_[HMRC]_[Arvind]_[FWD-AYR]",
        ]
        assert data[2][0] == "55123"
        assert data[2][2] == ""

    def test_accepts_store_pairs(self, tmp_path):
        item = remote_item("a")
        path = tmp_path / "results.csv"
        assert write_csv([(item, result())], path) == 1


class TestSummary:
    """Test grouping and forwarding requests."""

    def test_grouped_results(self):
        done = remote_item("a").start_analysis("x").complete(
            [result("1"), result("2", Classification.SHRED)]
        )
        review = remote_item("b").start_analysis("x").complete([result("3", Classification.UNDETERMINED)])
        failed = remote_item("c").start_analysis("x").fail("boom")

        groups = grouped_results([done, review, failed, remote_item("d")])

        assert [r.canonical_item_id for r in groups[Classification.FORWARD_PRIMARY]] == ["1"]
        assert [r.canonical_item_id for r in groups[Classification.SHRED]] == ["2"]
        assert [r.canonical_item_id for r in groups[Classification.UNDETERMINED]] == ["3"]
        assert groups[Classification.FORWARD_SECONDARY] == []

    def test_forwarding_request(self):
        text = build_forwarding_request(
            "Forward to Ayr",
            [result("96279", recipient_name="Arvind Dougall"), result("55123")],
        )
        assert text == (
            "REQUEST: Forward to Ayr\n\n"
            "Please process the following items:\n"
            "- Item ID: 96279 (Arvind Dougall)\n"
            "- Item ID: 55123 (Unknown)\n\n"
            "Thank you."
        )

    def test_forwarding_request_empty(self):
        assert build_forwarding_request("Forward to Ayr", []) == ""

    def test_search_ids(self):
        assert search_ids([result("1"), result("2")]) == "1, 2"


class TestArchive:
    """Test archiving results to storage."""

    def test_extension_appended(self):
        assert archive_filename(result(), "96279.pdf").endswith("[FWD-AYR].pdf")
        assert archive_filename(result(), "noext") == "20250708_[HMRC]_[Arvind]_[FWD-AYR]"

    @pytest.mark.asyncio
    async def test_archive_result(self):
        source = MemorySource({"a": b"scan"})
        item = remote_item("a", "96279_080725.pdf")
        res = result(sender="HMRC", recipient_name="Arvind Dougall", reasoning="Tax letter")

        await archive_result(source, item, res, "archive-folder")

        upload = source.uploads[0]
        assert upload["content"] == b"scan"
        assert upload["destination"] == "archive-folder"
        assert upload["filename"] == "20250708_[HMRC]_[Arvind]_[FWD-AYR].pdf"
        assert upload["mime_type"] == "application/pdf"
        assert upload["description"] == (
            "Sender: HMRC\n"
            "Addressee: Arvind Dougall\n"
            f"Classification: {Classification.FORWARD_PRIMARY.label}\n"
            "Reason: Tax letter"
        )
