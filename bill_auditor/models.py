"""
Pydantic models for bill data — strict typing as our first line of defense.

Line items and flags are frozen once emitted: a flag refers to its item by
position, so neither side may change after the parser hands them over.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


BILL_LEVEL_INDEX = -1
INITIAL_SCORE = 100


# ─── Flag Types ─────────────────────────────────────────────────────


class FlagType(str, Enum):
    """Category of a detected billing anomaly."""

    DUPLICATE_CHARGE = "DUPLICATE_CHARGE"
    VAGUE_DESCRIPTION = "VAGUE_DESCRIPTION"
    TEMPORAL_INCONSISTENCY = "TEMPORAL_INCONSISTENCY"
    ILLOGICAL_COMBINATION = "ILLOGICAL_COMBINATION"


# ─── Line Items ─────────────────────────────────────────────────────


class LineItem(BaseModel):
    """One charge row recovered from the OCR text."""

    model_config = ConfigDict(frozen=True)

    description: str = Field(min_length=1)
    date: Optional[str] = Field(default=None, pattern=r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")
    amount: Decimal = Field(ge=0)


class DuplicateKey(NamedTuple):
    """Composite grouping key for duplicate-charge detection."""

    description: str
    date: Optional[str]
    amount: Decimal

    @classmethod
    def of(cls, item: LineItem) -> DuplicateKey:
        return cls(item.description, item.date, item.amount)


# ─── Flags ──────────────────────────────────────────────────────────


class BillFlag(BaseModel):
    """A single anomaly. ``item_index == -1`` marks a bill-level flag."""

    model_config = ConfigDict(frozen=True)

    item_index: int = Field(ge=BILL_LEVEL_INDEX)
    type: FlagType
    explanation: str

    @property
    def is_bill_level(self) -> bool:
        return self.item_index == BILL_LEVEL_INDEX


# ─── Fairness Score ─────────────────────────────────────────────────


class Deduction(BaseModel):
    count: int = Field(gt=0)
    points_deducted: int = Field(ge=0)


class FairnessBreakdown(BaseModel):
    initial_score: int = INITIAL_SCORE
    deductions: dict[FlagType, Deduction] = Field(default_factory=dict)
    final_score: int = Field(ge=0, le=INITIAL_SCORE)


class FairnessScore(BaseModel):
    """Derived view over a flag multiset; recompute rather than store."""

    score: int = Field(ge=0, le=INITIAL_SCORE)
    breakdown: FairnessBreakdown


# ─── Analysis Report ────────────────────────────────────────────────


class BillAnalysis(BaseModel):
    """The final output of the analysis pipeline.

    Holds the three records a persistence layer keeps per bill (line items,
    flags, fairness score), keyed by the caller's ``bill_id``.
    """

    bill_id: str
    line_items: list[LineItem] = Field(default_factory=list)
    flags: list[BillFlag] = Field(default_factory=list)
    fairness: FairnessScore
    combination_review: str = "disabled"
    original_hash: str = ""  # SHA-256 of original OCR text for audit trail

    @model_validator(mode="after")
    def _flags_reference_items(self) -> BillAnalysis:
        for flag in self.flags:
            if not flag.is_bill_level and flag.item_index >= len(self.line_items):
                raise ValueError(
                    f"Flag {flag.type.value} references item {flag.item_index}, "
                    f"but only {len(self.line_items)} line item(s) exist"
                )
        return self
