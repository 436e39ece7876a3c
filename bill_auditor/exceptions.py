"""
Custom exception hierarchy for bill analysis.

Parsing, rule-based detection and scoring never raise. These exceptions
cover the edges of the system: the combination reviewer and configuration.
The detector catches every ReviewerError at its boundary.
"""

from __future__ import annotations


class BillAuditError(Exception):
    """Base exception for all bill analysis failures."""

    def __init__(self, code: str, message: str, details: dict | None = None):
        self.code = code
        self.details = details or {}
        super().__init__(message)


class ReviewerError(BillAuditError):
    """The combination reviewer failed or returned something unusable."""

    def __init__(self, message: str, details: dict | None = None, code: str = "REVIEWER_FAILED"):
        super().__init__(code, message, details)


class ReviewerUnavailableError(ReviewerError):
    """Transient reviewer overload (rate limit, connection drop, 5xx). Safe to retry."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, details, code="REVIEWER_UNAVAILABLE")


class ConfigurationError(BillAuditError):
    """An environment setting is present but invalid."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("CONFIGURATION_INVALID", message, details)
