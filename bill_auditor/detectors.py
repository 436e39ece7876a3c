"""
Anomaly detection over parsed line items.

Three passes are PURE CODE checks: duplicates, vague descriptions, very old
dates. They never call out, never guess and never raise. The fourth pass asks
an injected CombinationReviewer whether the descriptions make sense together;
that call is time-bounded, retried per RetryPolicy, and any failure in it is
contained here. It only ever costs the bill its combination flag.

Each rule function:
  - Takes the list of LineItems
  - Returns a list of BillFlag objects (empty = all clear)
  - Is independently testable

FlagDetector.detect() runs every pass and de-duplicates the result.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import date
from typing import Iterable, Optional

from .exceptions import ReviewerError
from .models import BILL_LEVEL_INDEX, BillFlag, DuplicateKey, FlagType, LineItem
from .retry import RetryPolicy
from .reviewer import NO_FINDINGS_SENTINEL, REVIEW_INSTRUCTION, CombinationReviewer

logger = logging.getLogger(__name__)


# ─── Constants ───────────────────────────────────────────────────────

VAGUE_TERMS: tuple[str, ...] = (
    "services",
    "miscellaneous",
    "other",
    "consultation",
    "treatment",
    "medical supplies",
)

# Charges dated before (current year - MAX_CHARGE_AGE_YEARS) are flagged
MAX_CHARGE_AGE_YEARS = 5

DEFAULT_REVIEW_TIMEOUT = 20.0


# ─── Rule-Based Passes ───────────────────────────────────────────────


def detect_duplicates(items: list[LineItem]) -> list[BillFlag]:
    """Flag every item that shares description, date and amount with another.

    All N members of a group are flagged once each, including the first
    occurrence. Groups are reported in order of first appearance.
    """
    groups: dict[DuplicateKey, list[int]] = defaultdict(list)
    for index, item in enumerate(items):
        groups[DuplicateKey.of(item)].append(index)

    flags: list[BillFlag] = []
    for key, indices in groups.items():
        if len(indices) < 2:
            continue
        explanation = (
            f"Charge '{key.description}' with amount ${key.amount} "
            f"(and date {key.date or 'N/A'}) appears {len(indices)} times on this bill."
        )
        flags.extend(
            BillFlag(item_index=index, type=FlagType.DUPLICATE_CHARGE, explanation=explanation)
            for index in indices
        )

    return flags


def detect_vague_descriptions(items: list[LineItem]) -> list[BillFlag]:
    """Flag low-information descriptions such as 'Hospital Services'."""
    flags: list[BillFlag] = []

    for index, item in enumerate(items):
        lowered = item.description.lower()
        if any(term in lowered for term in VAGUE_TERMS):
            flags.append(
                BillFlag(
                    item_index=index,
                    type=FlagType.VAGUE_DESCRIPTION,
                    explanation=(
                        f"The description '{item.description}' is vague and "
                        f"could benefit from more detail."
                    ),
                )
            )

    return flags


def detect_temporal_inconsistencies(
    items: list[LineItem], today: Optional[date] = None
) -> list[BillFlag]:
    """Flag charges dated more than MAX_CHARGE_AGE_YEARS calendar years back.

    The comparison is on years only and strict: with today in 2026, a charge
    dated 2021-01-01 passes and one dated 2020-12-31 is flagged.
    Items with no date, or a date that is not a real calendar day, are skipped.
    """
    flags: list[BillFlag] = []
    cutoff_year = (today or date.today()).year - MAX_CHARGE_AGE_YEARS

    for index, item in enumerate(items):
        if item.date is None:
            continue
        try:
            charged_on = date.fromisoformat(item.date)
        except ValueError:
            continue

        if charged_on.year < cutoff_year:
            flags.append(
                BillFlag(
                    item_index=index,
                    type=FlagType.TEMPORAL_INCONSISTENCY,
                    explanation=(
                        f"Charge '{item.description}' has a very old date "
                        f"({item.date}) which might be inconsistent."
                    ),
                )
            )

    return flags


def interpret_review(response: object) -> BillFlag | None:
    """Turn a reviewer reply into a bill-level flag, or None for no finding."""
    if not isinstance(response, str):
        raise ReviewerError(
            "Reviewer returned a non-text response",
            details={"response_type": type(response).__name__},
        )
    text = response.strip()
    if not text or text == NO_FINDINGS_SENTINEL:
        return None
    return BillFlag(
        item_index=BILL_LEVEL_INDEX,
        type=FlagType.ILLOGICAL_COMBINATION,
        explanation=f"Potential illogical procedure combinations identified by AI: {text}",
    )


def unique_flags(flags: Iterable[BillFlag]) -> list[BillFlag]:
    """De-duplicate by (item_index, type, explanation), keeping first-seen order."""
    return list(dict.fromkeys(flags))


# ─── Orchestrator ────────────────────────────────────────────────────


class FlagDetector:
    """Runs all detection passes over one bill.

    Usage:
        detector = FlagDetector(reviewer=OpenAIReviewer(settings), timeout=20)
        flags = detector.detect(items, raw_text)

    Without a reviewer the combination pass is skipped.
    """

    def __init__(
        self,
        reviewer: CombinationReviewer | None = None,
        timeout: float = DEFAULT_REVIEW_TIMEOUT,
        retry_policy: RetryPolicy | None = None,
        today: Optional[date] = None,
    ):
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.reviewer = reviewer
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self.today = today

    def detect(self, items: list[LineItem], raw_text: str = "") -> list[BillFlag]:
        """Run all passes and return their flags, de-duplicated, in pass order.

        ``raw_text`` is accepted for reviewers that may want the full bill
        later; the current passes only look at line items.
        """
        # Start the remote call first so it overlaps with the local passes
        executor: ThreadPoolExecutor | None = None
        pending: Future | None = None
        cancelled = threading.Event()
        if self.reviewer is not None and len(items) > 1:
            executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="combination-review")
            descriptions = ", ".join(item.description for item in items)
            pending = executor.submit(self._review, self.reviewer, descriptions, cancelled)

        try:
            flags: list[BillFlag] = []
            flags.extend(detect_duplicates(items))
            flags.extend(detect_vague_descriptions(items))
            flags.extend(detect_temporal_inconsistencies(items, self.today))

            if pending is not None:
                combination_flag = self._collect_review(pending)
                if combination_flag is not None:
                    flags.append(combination_flag)
        finally:
            if executor is not None:
                # A running attempt cannot be interrupted; stop it retrying
                cancelled.set()
                executor.shutdown(wait=False, cancel_futures=True)

        unique = unique_flags(flags)
        logger.info("Detected %d flag(s) across %d line item(s)", len(unique), len(items))
        return unique

    # ─── Combination Review ──────────────────────────────────────────

    def _review(
        self,
        reviewer: CombinationReviewer,
        descriptions: str,
        cancelled: threading.Event,
    ) -> BillFlag | None:
        response = self.retry_policy.call(
            reviewer.review, REVIEW_INSTRUCTION, descriptions, cancelled=cancelled
        )
        return interpret_review(response)

    def _collect_review(self, pending: Future) -> BillFlag | None:
        try:
            return pending.result(timeout=self.timeout)
        except FutureTimeoutError:
            logger.warning("Combination review timed out after %.1fs; skipping", self.timeout)
        except ReviewerError as e:
            logger.warning("Combination review failed [%s]: %s", e.code, e)
        except Exception as e:
            logger.error("Combination review raised unexpectedly: %s", e)
        return None
