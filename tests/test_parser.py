"""
Tests for the line-item parser.

The parser must read both OCR layouts (pipe-delimited rows and 5-line blocks),
skip what it cannot read, and never raise.

Run: pytest tests/ -v
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from bill_auditor.models import LineItem
from bill_auditor.parser import parse_bill_text


# ─── Test Data ───────────────────────────────────────────────────────

HEADERS = "Description\nDate\nQty\nUnit Price"

SCENARIO_A = f"""\
CITY MEDICAL CENTER
Patient: John Smith
Charges
{HEADERS}
Blood Test | 2025-01-15 | 1 | 120.00 | $120.00
Blood Test | 2025-01-15 | 1 | 120.00 | $120.00
Subtotal $240.00"""

BLOCK_LAYOUT = f"""\
Charges
{HEADERS}
Chest X-Ray
2025-01-16
1
$85.00
$85.00
MRI Brain
2025-01-16
1
1,450.00
$1,450.00
Amount Due $1,535.00"""


def _bill(*rows: str) -> str:
    """Wrap rows in a Charges section with the standard 4 header lines."""
    return "\n".join(["Charges", HEADERS, *rows])


# ═══════════════════════════════════════════════════════════════════════
# SECTION DETECTION
# ═══════════════════════════════════════════════════════════════════════


class TestSectionDetection:
    def test_no_charges_section_returns_empty(self):
        text = "Blood Test | 2025-01-15 | 1 | 120.00 | $120.00\nTotal $120.00"
        assert parse_bill_text(text) == []

    def test_empty_text_returns_empty(self):
        assert parse_bill_text("") == []

    def test_marker_is_case_insensitive_and_trimmed(self):
        text = "   CHARGES   \n" + HEADERS + "\nBlood Test | 2025-01-15 | 1 | 120.00 | $120.00"
        assert len(parse_bill_text(text)) == 1

    def test_marker_must_be_whole_line(self):
        """'Charges:' or 'Other Charges' do not open the section."""
        for marker in ("Charges:", "Other Charges", "charges summary"):
            text = f"{marker}\n{HEADERS}\nBlood Test | 2025-01-15 | 1 | 120.00 | $120.00"
            assert parse_bill_text(text) == [], marker

    def test_lines_before_marker_are_ignored(self):
        text = (
            "Lab Panel | 2025-01-10 | 1 | 50.00 | $50.00\n"
            + _bill("Blood Test | 2025-01-15 | 1 | 120.00 | $120.00")
        )
        items = parse_bill_text(text)
        assert [i.description for i in items] == ["Blood Test"]


# ═══════════════════════════════════════════════════════════════════════
# HEADER SKIPPING
# ═══════════════════════════════════════════════════════════════════════


class TestHeaderSkipping:
    def test_four_lines_after_marker_are_skipped_unconditionally(self):
        """Even a perfectly valid row in the header slots is not parsed."""
        row = "Blood Test | 2025-01-15 | 1 | 120.00 | $120.00"
        text = "\n".join(["Charges", row, row, row, row, "Lab Panel | 2025-01-10 | 1 | 50.00 | $50.00"])
        items = parse_bill_text(text)
        assert [i.description for i in items] == ["Lab Panel"]

    def test_only_headers_after_marker_returns_empty(self):
        assert parse_bill_text("Charges\n" + HEADERS) == []

    def test_marker_on_last_line_returns_empty(self):
        assert parse_bill_text("Header\nCharges") == []

    def test_blank_lines_do_not_count_as_headers(self):
        text = "Charges\n\nDescription\n\nDate\nQty\n\nUnit Price\nBlood Test | 2025-01-15 | 1 | 120.00 | $120.00"
        assert len(parse_bill_text(text)) == 1


# ═══════════════════════════════════════════════════════════════════════
# PIPE-DELIMITED ROWS
# ═══════════════════════════════════════════════════════════════════════


class TestDelimitedRows:
    def test_scenario_a_parses_two_items(self):
        items = parse_bill_text(SCENARIO_A)
        assert len(items) == 2
        for item in items:
            assert item.description == "Blood Test"
            assert item.date == "2025-01-15"
            assert item.amount == Decimal("120.00")

    def test_invalid_date_skips_row(self):
        text = _bill(
            "Blood Test | 01/15/2025 | 1 | 120.00 | $120.00",
            "Lab Panel | 2025-01-10 | 1 | 50.00 | $50.00",
        )
        items = parse_bill_text(text)
        assert [i.description for i in items] == ["Lab Panel"]

    def test_missing_amount_skips_row(self):
        text = _bill(
            "Blood Test | 2025-01-15 | 1 | 120.00 | N/A",
            "Lab Panel | 2025-01-10 | 1 | 50.00 | $50.00",
        )
        assert [i.description for i in parse_bill_text(text)] == ["Lab Panel"]

    def test_empty_description_skips_row(self):
        text = _bill(
            " | 2025-01-15 | 1 | 120.00 | $120.00",
            "Lab Panel | 2025-01-10 | 1 | 50.00 | $50.00",
        )
        assert [i.description for i in parse_bill_text(text)] == ["Lab Panel"]

    def test_short_delimited_row_consumes_one_line_only(self):
        """A row with too few fields is dropped without swallowing what follows."""
        text = _bill(
            "Blood Test | 2025-01-15 | 120.00",
            "Lab Panel | 2025-01-10 | 1 | 50.00 | $50.00",
            "Urinalysis | 2025-01-10 | 1 | 30.00 | $30.00",
        )
        items = parse_bill_text(text)
        assert [i.description for i in items] == ["Lab Panel", "Urinalysis"]

    def test_extra_fields_are_ignored(self):
        text = _bill("Blood Test | 2025-01-15 | 1 | 120.00 | $120.00 | CPT 85025")
        items = parse_bill_text(text)
        assert items[0].amount == Decimal("120.00")

    def test_fields_are_trimmed(self):
        text = _bill("   Blood Test   |   2025-01-15 |1|120.00|   $120.00   ")
        item = parse_bill_text(text)[0]
        assert item.description == "Blood Test"
        assert item.date == "2025-01-15"

    def test_only_delimiters_is_skipped(self):
        assert parse_bill_text(_bill("|||||")) == []


# ═══════════════════════════════════════════════════════════════════════
# 5-LINE BLOCKS
# ═══════════════════════════════════════════════════════════════════════


class TestBlockLayout:
    def test_block_layout_parses(self):
        items = parse_bill_text(BLOCK_LAYOUT)
        assert items == [
            LineItem(description="Chest X-Ray", date="2025-01-16", amount=Decimal("85.00")),
            LineItem(description="MRI Brain", date="2025-01-16", amount=Decimal("1450.00")),
        ]

    def test_malformed_block_resynchronizes_one_line_at_a_time(self):
        """A stray OCR line before a block costs one line, not the block."""
        text = _bill(
            "Smudged ## 2025-0l-16",
            "Chest X-Ray",
            "2025-01-16",
            "1",
            "$85.00",
            "$85.00",
        )
        items = parse_bill_text(text)
        assert [i.description for i in items] == ["Chest X-Ray"]

    def test_truncated_block_at_end_is_dropped(self):
        text = _bill(
            "Chest X-Ray", "2025-01-16", "1", "$85.00", "$85.00",
            "Lab Panel", "2025-01-10", "1",
        )
        assert [i.description for i in parse_bill_text(text)] == ["Chest X-Ray"]

    def test_mixed_layouts(self):
        text = _bill(
            "Blood Test | 2025-01-15 | 1 | 120.00 | $120.00",
            "Chest X-Ray", "2025-01-16", "1", "$85.00", "$85.00",
            "Lab Panel | 2025-01-17 | 1 | 50.00 | $50.00",
            "Total $255.00",
        )
        items = parse_bill_text(text)
        assert [i.description for i in items] == ["Blood Test", "Chest X-Ray", "Lab Panel"]


# ═══════════════════════════════════════════════════════════════════════
# SUMMARY TERMINATION
# ═══════════════════════════════════════════════════════════════════════


class TestSummaryLines:
    @pytest.mark.parametrize(
        "summary",
        ["Subtotal $100", "Insurance Adjustment -$20", "Patient Responsibility $80", "TOTAL", "Amount Due: $80"],
    )
    def test_summary_line_stops_parsing(self, summary):
        text = _bill(
            "Blood Test | 2025-01-15 | 1 | 120.00 | $120.00",
            summary,
            "Lab Panel | 2025-01-10 | 1 | 50.00 | $50.00",
        )
        assert [i.description for i in parse_bill_text(text)] == ["Blood Test"]

    def test_summary_term_inside_row_stops_parsing(self):
        text = _bill("Total Hip Replacement | 2025-01-15 | 1 | 900.00 | $900.00")
        assert parse_bill_text(text) == []


# ═══════════════════════════════════════════════════════════════════════
# AMOUNTS & DATES
# ═══════════════════════════════════════════════════════════════════════


class TestFieldConversion:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("$1,234.56", Decimal("1234.56")),
            ("USD 99", Decimal("99")),
            ("-$45.00", Decimal("45.00")),
            ("120.00.5", Decimal("120.00")),
            (".50", Decimal("0.50")),
        ],
    )
    def test_amount_stripping(self, raw, expected):
        items = parse_bill_text(_bill(f"Blood Test | 2025-01-15 | 1 | x | {raw}"))
        assert items[0].amount == expected

    def test_date_shape_is_checked_not_calendar(self):
        """2025-13-45 has the right shape; later stages decide it is unusable."""
        items = parse_bill_text(_bill("Blood Test | 2025-13-45 | 1 | 120.00 | $120.00"))
        assert items[0].date == "2025-13-45"

    def test_non_ascii_date_digits_skip_row(self):
        """Arabic-Indic digits are not an ISO date."""
        items = parse_bill_text(_bill("Blood Test | ٢٠٢٥-٠١-١٥ | 1 | 1 | $١٢٠.٠٠"))
        assert items == []

    def test_fullwidth_amount_digits_skip_row(self):
        items = parse_bill_text(_bill("Blood Test | 2025-01-15 | 1 | 1 | $１２０"))
        assert items == []

    def test_non_ascii_digits_in_block_layout_skip_block(self):
        items = parse_bill_text(_bill("Blood Test", "２０２５-０１-１５", "1", "120.00", "$120.00"))
        assert items == []


# ═══════════════════════════════════════════════════════════════════════
# ROBUSTNESS
# ═══════════════════════════════════════════════════════════════════════


class TestRobustness:
    def test_parsing_is_deterministic(self):
        text = SCENARIO_A + "\n" + BLOCK_LAYOUT
        assert parse_bill_text(text) == parse_bill_text(text)

    def test_windows_line_endings(self):
        assert len(parse_bill_text(SCENARIO_A.replace("\n", "\r\n"))) == 2

    @pytest.mark.parametrize(
        "text",
        ["\n\n\n", "Charges", "Charges\n|\n|\n|\n|\n|", "charges\n" + "\x00\n" * 10, "💊 | 📅 | | | $"],
    )
    def test_garbage_never_raises(self, text):
        assert isinstance(parse_bill_text(text), list)
