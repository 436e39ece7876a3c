"""
Main analysis pipeline — orchestrates the full workflow.

Flow:
  ┌─────────┐
  │ Raw OCR │
  └────┬────┘
       │
  ┌────▼────┐
  │ Parser  │   ← Charges section → line items
  └────┬────┘
       │
  ┌────▼─────┐     ┌──────────┐
  │ Detector │ ──▶ │ Reviewer │   ← optional, time-bounded
  └────┬─────┘     └──────────┘
       │
  ┌────▼────┐
  │ Scorer  │   ← pure deduction table
  └────┬────┘
       │
  ┌────▼────┐
  │ Report  │   ← items + flags + score, keyed by bill id
  └─────────┘

Design principles:
  - Each stage accepts an empty result from the previous one.
  - The reviewer is optional (graceful degradation).
  - No stage keeps state between bills.
  - The original OCR text is SHA-256 hashed for audit trail.
"""

from __future__ import annotations

import hashlib
import logging
import uuid

from .config import Settings
from .detectors import FlagDetector
from .models import BillAnalysis
from .parser import parse_bill_text
from .retry import RetryPolicy
from .reviewer import CombinationReviewer, OpenAIReviewer
from .scoring import score_flags

logger = logging.getLogger(__name__)


class BillAnalysisPipeline:
    """Orchestrates parsing, detection and scoring for one bill at a time.

    Usage:
        pipeline = BillAnalysisPipeline(Settings.from_env())
        analysis = pipeline.run(raw_ocr_text, bill_id="bill-123")
        print(analysis.fairness.score)
    """

    def __init__(
        self,
        settings: Settings | None = None,
        reviewer: CombinationReviewer | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        self.settings = settings or Settings()

        if reviewer is None and self.settings.reviewer_enabled:
            reviewer = OpenAIReviewer(self.settings)
        if reviewer is None:
            logger.info("No OPENAI_API_KEY set; combination review disabled")

        self.reviewer = reviewer
        self.detector = FlagDetector(
            reviewer=reviewer,
            timeout=self.settings.review_timeout,
            retry_policy=retry_policy or RetryPolicy(max_attempts=self.settings.review_attempts),
        )

    @property
    def combination_review(self) -> str:
        if self.reviewer is None:
            return "disabled"
        return getattr(self.reviewer, "name", type(self.reviewer).__name__)

    def run(self, raw_text: str, bill_id: str | None = None) -> BillAnalysis:
        """Execute the full pipeline on raw OCR text.

        Args:
            raw_text: The raw OCR text of the bill.
            bill_id: Caller's identifier for the bill; generated if omitted.

        Returns:
            BillAnalysis with line items, flags and fairness score.
        """
        bill_id = bill_id or str(uuid.uuid4())

        # ── Step 0: Audit hash of original input ────────────────────
        doc_hash = hashlib.sha256(raw_text.encode("utf-8")).hexdigest()

        # ── Step 1: Parse line items ────────────────────────────────
        logger.info("Parsing bill %s...", bill_id)
        line_items = parse_bill_text(raw_text)

        # ── Step 2: Detect anomalies ────────────────────────────────
        logger.info("Running anomaly detection on %d item(s)...", len(line_items))
        flags = self.detector.detect(line_items, raw_text)

        # ── Step 3: Score ───────────────────────────────────────────
        fairness = score_flags(flags)
        logger.info("Bill %s scored %d/100", bill_id, fairness.score)

        return BillAnalysis(
            bill_id=bill_id,
            line_items=line_items,
            flags=flags,
            fairness=fairness,
            combination_review=self.combination_review,
            original_hash=doc_hash,
        )
