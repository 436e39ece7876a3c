"""
Bill Auditor — line-item extraction and anomaly scoring for OCR-scanned medical bills.

Architecture: Parse (state machine) → Detect (rules + optional LLM review) → Score
Philosophy:  Let the AI point at oddities. Let only code count and score.
"""

__version__ = "1.0.0"
