"""
LLM-based review of line-item descriptions for odd combinations.

The LLM is used as a common-sense second reader, nothing more. It sees only
the plain descriptions: no amounts, no dates, no patient data. It is never
asked about prices, diagnoses or whether a charge is fair.

Design:
  - The reviewer is an injected collaborator (``CombinationReviewer``), so the
    detector can be tested with a fake.
  - OpenAIReviewer turns SDK errors into ReviewerError / ReviewerUnavailableError;
    the detector decides what a failure means (no flag).
  - The SDK's own retries are disabled; RetryPolicy owns retrying.
"""

from __future__ import annotations

import logging
from typing import Protocol

import openai
from openai import OpenAI

from .config import Settings
from .exceptions import ReviewerError, ReviewerUnavailableError

logger = logging.getLogger(__name__)


# ─── Prompt ──────────────────────────────────────────────────────────

NO_FINDINGS_SENTINEL = "No illogical combinations identified."

REVIEW_INSTRUCTION = f"""\
Review the following medical billing line item descriptions and identify any
combinations that seem unusually illogical or out of place from a common-sense
perspective.

CRITICAL RULES:
1. Do NOT provide medical advice or diagnoses.
2. Do NOT comment on prices, amounts or whether a charge is fair.
3. Only point out strange combinations, with a brief human-readable reason.
   Example: "Tooth extraction and brain surgery in the same visit might be illogical."
4. If nothing looks out of place, reply with exactly:
   {NO_FINDINGS_SENTINEL}
"""


class CombinationReviewer(Protocol):
    """Anything that can read a list of descriptions and answer in free text."""

    def review(self, instruction: str, descriptions: str) -> str: ...


# ─── OpenAI Implementation ───────────────────────────────────────────


class OpenAIReviewer:
    """CombinationReviewer backed by OpenAI chat completions."""

    def __init__(self, settings: Settings, client: OpenAI | None = None):
        if client is None:
            if not settings.openai_api_key:
                raise ReviewerError(
                    "OpenAIReviewer needs an API key",
                    details={"setting": "OPENAI_API_KEY"},
                )
            client = OpenAI(
                api_key=settings.openai_api_key,
                timeout=settings.review_timeout,
                max_retries=0,
            )
        self.client = client
        self.model = settings.model

    @property
    def name(self) -> str:
        return f"OpenAI ({self.model})"

    def review(self, instruction: str, descriptions: str) -> str:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": instruction},
                    {"role": "user", "content": f"Line items: {descriptions}"},
                ],
            )
        except (
            openai.RateLimitError,
            openai.APIConnectionError,
            openai.InternalServerError,
        ) as e:
            raise ReviewerUnavailableError(
                f"Reviewer temporarily unavailable: {e}",
                details={"error_type": type(e).__name__},
            ) from e
        except openai.OpenAIError as e:
            raise ReviewerError(
                f"Reviewer request failed: {e}",
                details={"error_type": type(e).__name__},
            ) from e

        if not response.choices:
            raise ReviewerError("Reviewer returned no choices")
        content = response.choices[0].message.content
        if content is None:
            raise ReviewerError("Reviewer returned empty content")

        logger.info("Combination review completed (%d chars)", len(content))
        return content
