"""
Fairness score: a pure function from a flag multiset to a 0-100 number.

The score is a heuristic summary of how many issues were detected and how
serious their category is. It is not a pricing or legal judgment.
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable

from .models import INITIAL_SCORE, BillFlag, Deduction, FairnessBreakdown, FairnessScore, FlagType

# Points deducted per flag occurrence
DEDUCTION_RATES: dict[FlagType, int] = {
    FlagType.DUPLICATE_CHARGE: 30,
    FlagType.VAGUE_DESCRIPTION: 15,
    FlagType.TEMPORAL_INCONSISTENCY: 20,
    FlagType.ILLOGICAL_COMBINATION: 10,
}


def score_flags(flags: Iterable[BillFlag]) -> FairnessScore:
    """Compute the fairness score for a bill's flags.

    Every occurrence counts, so pass the flags as detected (duplicates of the
    same triple included, if the caller has any). The result is clamped at 0.
    """
    counts = Counter(flag.type for flag in flags)

    score = INITIAL_SCORE
    deductions: dict[FlagType, Deduction] = {}
    for flag_type, rate in DEDUCTION_RATES.items():
        count = counts.get(flag_type, 0)
        if count > 0:
            points = count * rate
            score -= points
            deductions[flag_type] = Deduction(count=count, points_deducted=points)

    score = max(0, score)

    return FairnessScore(
        score=score,
        breakdown=FairnessBreakdown(
            initial_score=INITIAL_SCORE,
            deductions=deductions,
            final_score=score,
        ),
    )
