"""
Runtime settings, read once from the environment and passed in explicitly.

Nothing inside the analysis core touches ``os.environ``; the entry points
build a Settings object and hand it to the pipeline.
"""

from __future__ import annotations

import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigurationError

DEFAULT_MODEL = "gpt-4o-mini"


class Settings(BaseModel):
    openai_api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    review_timeout: float = Field(default=20.0, gt=0)
    review_attempts: int = Field(default=3, ge=1)
    log_level: str = "INFO"

    @property
    def reviewer_enabled(self) -> bool:
        return bool(self.openai_api_key)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from environment variables.

        Raises:
            ConfigurationError: if a variable is set to an invalid value.
        """
        env = os.environ if environ is None else environ
        raw: dict[str, str] = {}
        for field_name, var in (
            ("openai_api_key", "OPENAI_API_KEY"),
            ("model", "BILL_AUDITOR_MODEL"),
            ("review_timeout", "BILL_AUDITOR_REVIEW_TIMEOUT"),
            ("review_attempts", "BILL_AUDITOR_REVIEW_ATTEMPTS"),
            ("log_level", "BILL_AUDITOR_LOG_LEVEL"),
        ):
            value = env.get(var)
            if value is not None and value.strip():
                raw[field_name] = value.strip()

        try:
            settings = cls(**raw)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid environment configuration: {e.error_count()} error(s)",
                details={"errors": [err["msg"] for err in e.errors()]},
            ) from e

        return settings.model_copy(update={"log_level": settings.log_level.upper()})
