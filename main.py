#!/usr/bin/env python3
"""
Bill Auditor — Entry Point
==========================

Runs the full analysis pipeline on a sample OCR-scanned medical bill,
or on a text file given as the first argument.

Usage:
    python main.py                          # Rules only (no API key needed)
    python main.py bill.txt                 # Analyze your own OCR text
    OPENAI_API_KEY=sk-... python main.py    # Rules + LLM combination review
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from bill_auditor.config import Settings
from bill_auditor.exceptions import ConfigurationError
from bill_auditor.models import BillAnalysis
from bill_auditor.pipeline import BillAnalysisPipeline


# ─── Sample OCR Output: Both Layouts, Ugly on Purpose ──────────────

RAW_OCR_TEXT = """\
ST. MARY'S GENERAL HOSPITAL
Patient: Jane Doe    Acct# 00912
Statement Date: 2025-02-01

Charges
Description
Date
Qty
Amount
Blood Test | 2025-01-15 | 1 | 120.00 | $120.00
Blood Test | 2025-01-15 | 1 | 120.00 | $120.00
Hospital Services | 2025-01-15 | 1 | 500.00 | $500.00
Chest X-Ray
2025-01-16
1
$85.00
$85.00
Smudged Line ## 2025-0l-16
MRI Brain
2025-01-16
1
1,450.00
$1,450.00
Subtotal $2,275.00
Insurance Adjustment -$900.00
Amount Due $1,375.00"""


# ─── ANSI Color Constants ───────────────────────────────────────────

_RED = "\033[91m"
_YELLOW = "\033[93m"
_GREEN = "\033[92m"
_CYAN = "\033[96m"
_DIM = "\033[2m"
_BOLD = "\033[1m"
_RESET = "\033[0m"
_WIDTH = 72


# ─── Pretty Printer Helpers ─────────────────────────────────────────


def _score_color(score: int) -> str:
    if score >= 85:
        return _GREEN
    if score >= 50:
        return _YELLOW
    return _RED


def _print_line_items(analysis: BillAnalysis) -> None:
    if not analysis.line_items:
        print(f"  {_DIM}No line items could be read from this bill.{_RESET}")
        return
    for index, item in enumerate(analysis.line_items):
        print(f"  [{index}] {item.description:<32} {item.date or '—':<10}  ${item.amount:>10,.2f}")


def _print_flags(analysis: BillAnalysis) -> None:
    if not analysis.flags:
        print(f"\n  {_GREEN}No issues detected.{_RESET}\n")
        return
    print(f"\n  {_YELLOW}{_BOLD}FLAGS ({len(analysis.flags)}){_RESET}")
    for flag in analysis.flags:
        where = "bill" if flag.is_bill_level else f"item {flag.item_index}"
        print(f"    {_YELLOW}[{flag.type.value}]{_RESET} {_DIM}({where}){_RESET}")
        print(f"    {flag.explanation}")
        print()


def _print_breakdown(analysis: BillAnalysis) -> None:
    breakdown = analysis.fairness.breakdown
    print(f"  Starting score:  {breakdown.initial_score}")
    for flag_type, deduction in breakdown.deductions.items():
        print(
            f"    - {flag_type.value:<24} x{deduction.count:<3} "
            f"{_DIM}-{deduction.points_deducted}{_RESET}"
        )


# ─── Pretty Printer ─────────────────────────────────────────────────


def print_report(analysis: BillAnalysis) -> int:
    """Pretty-print the analysis with ANSI color codes.

    Returns:
        0 if no issues were found, 1 otherwise.
    """
    score = analysis.fairness.score

    print(f"\n{'=' * _WIDTH}")
    print(f"{_BOLD}{_CYAN}  MEDICAL BILL ANALYSIS{_RESET}")
    print(f"{'=' * _WIDTH}")
    print(f"  Bill:        {analysis.bill_id}")
    print(f"  Audit Hash:  {_DIM}{analysis.original_hash[:16]}...{_RESET}")
    print(f"  AI Review:   {analysis.combination_review}")
    print(f"{'─' * _WIDTH}")

    _print_line_items(analysis)

    print(f"{'─' * _WIDTH}")

    _print_flags(analysis)
    _print_breakdown(analysis)

    print(f"{'=' * _WIDTH}")
    color = _score_color(score)
    print(f"  {color}{_BOLD}FAIRNESS SCORE: {score}/100{_RESET}")
    print(f"{'=' * _WIDTH}\n")

    return 0 if score == 100 else 1


# ─── Main ────────────────────────────────────────────────────────────


def main():
    """Run the full analysis pipeline and print the report."""
    load_dotenv()

    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        print(f"{_RED}Configuration error:{_RESET} {e} {e.details}", file=sys.stderr)
        sys.exit(2)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )

    if len(sys.argv) > 1:
        bill_path = Path(sys.argv[1])
        try:
            raw_text = bill_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            print(f"{_RED}Cannot read bill file:{_RESET} {e}", file=sys.stderr)
            sys.exit(2)
        bill_id = bill_path.stem
    else:
        raw_text = RAW_OCR_TEXT
        bill_id = "SAMPLE-BILL-001"

    print("\n  Starting Bill Auditor...")
    print("  Analyzing OCR-scanned bill...\n")

    pipeline = BillAnalysisPipeline(settings)
    analysis = pipeline.run(raw_text, bill_id=bill_id)
    exit_code = print_report(analysis)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
