"""
Deterministic line-item extraction from OCR text of a medical bill.

OCR output comes in two layouts depending on how the source was rendered:

  single-line rows   Blood Test | 2025-01-15 | 1 | 120.00 | $120.00
  5-line blocks      Blood Test
                     2025-01-15
                     1
                     120.00
                     $120.00

The parser does not know in advance which one it got. It walks the lines with
a three-state machine and handles both, skipping what it cannot read rather
than failing. A malformed block costs one line, not the rest of the document.

Philosophy: It's better to extract nothing than to extract wrong data.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional

from .models import LineItem

logger = logging.getLogger(__name__)


# ─── Constants ───────────────────────────────────────────────────────

SECTION_MARKER = "charges"
HEADER_LINES = 4
BLOCK_SIZE = 5
MIN_DELIMITED_FIELDS = 5

SUMMARY_TERMS: tuple[str, ...] = (
    "subtotal",
    "insurance",  # "Insurance Adjustment"
    "patient responsibility",
    "total",
    "amount due",
)

_DATE_RE = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")
_NON_AMOUNT_CHARS = re.compile(r"[^0-9.]")
_LEADING_NUMBER = re.compile(r"[0-9]+(?:\.[0-9]*)?|\.[0-9]+")


class ParserState(Enum):
    SEEKING_SECTION = "seeking_section"
    SKIPPING_HEADER = "skipping_header"
    PARSING_ROWS = "parsing_rows"


# ─── Public API ──────────────────────────────────────────────────────


def parse_bill_text(raw_text: str) -> list[LineItem]:
    """Extract charge line items from raw OCR text.

    Args:
        raw_text: Newline-delimited OCR output of a bill.

    Returns:
        Line items in document order. Empty if no "Charges" section is found
        or nothing in it could be read. Never raises.
    """
    lines = [line.strip() for line in raw_text.split("\n")]
    lines = [line for line in lines if line]

    items: list[LineItem] = []
    state = ParserState.SEEKING_SECTION
    i = 0

    while i < len(lines):
        if state is ParserState.SEEKING_SECTION:
            if lines[i].lower() == SECTION_MARKER:
                logger.debug("Found 'Charges' section at line %d", i)
                state = ParserState.SKIPPING_HEADER
            i += 1
            continue

        if state is ParserState.SKIPPING_HEADER:
            # Need the header lines plus at least one row after them
            if len(lines) - i <= HEADER_LINES:
                logger.debug("Not enough lines to skip %d header lines; aborting", HEADER_LINES)
                return items
            i += HEADER_LINES
            state = ParserState.PARSING_ROWS
            continue

        line = lines[i]

        if _is_summary_line(line):
            logger.debug("Stopping at summary line: %r", line)
            break

        if "|" in line:
            item = _parse_delimited_row(line)
            if item is not None:
                items.append(item)
            else:
                logger.debug("Skipping unreadable delimited row: %r", line)
            i += 1
            continue

        if i + BLOCK_SIZE > len(lines):
            logger.debug("Fewer than %d lines left at %r; stopping", BLOCK_SIZE, line)
            break

        item = _parse_block(lines[i:i + BLOCK_SIZE])
        if item is not None:
            items.append(item)
            i += BLOCK_SIZE
        else:
            logger.debug("Skipping unreadable block starting at %r; advancing one line", line)
            i += 1

    logger.info("Parsed %d line item(s)", len(items))
    return items


# ─── Row Readers ─────────────────────────────────────────────────────


def _is_summary_line(line: str) -> bool:
    lowered = line.lower()
    return any(term in lowered for term in SUMMARY_TERMS)


def _parse_delimited_row(line: str) -> LineItem | None:
    """Read 'description | date | qty | unit price | amount'."""
    fields = [part.strip() for part in line.split("|")]
    if len(fields) < MIN_DELIMITED_FIELDS:
        return None
    return _build_item(fields[0], fields[1], fields[4])


def _parse_block(block: list[str]) -> LineItem | None:
    """Read a 5-line block. Lines 2-3 (quantity, unit price) are not kept."""
    return _build_item(block[0], block[1], block[4])


def _build_item(description: str, date_candidate: str, amount_candidate: str) -> LineItem | None:
    date = _parse_date(date_candidate)
    amount = _parse_amount(amount_candidate)
    if not description or date is None or amount is None:
        return None
    return LineItem(description=description, date=date, amount=amount)


# ─── Field Converters ────────────────────────────────────────────────


def _parse_date(value: str) -> Optional[str]:
    """Strict YYYY-MM-DD shape check. Calendar validity is not checked here."""
    return value if _DATE_RE.match(value) else None


def _parse_amount(value: str) -> Optional[Decimal]:
    """Strip everything but digits and dots, then read the leading number.

    "$1,234.50" → 1234.50, "120.00.5" → 120.00, "N/A" → None.
    Decimal, not float: amounts are compared for exact equality downstream.
    """
    cleaned = _NON_AMOUNT_CHARS.sub("", value)
    match = _LEADING_NUMBER.match(cleaned)
    if not match:
        return None
    try:
        return Decimal(match.group())
    except InvalidOperation:
        return None
