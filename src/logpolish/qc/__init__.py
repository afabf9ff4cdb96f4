# src/logpolish/qc/__init__.py
from __future__ import annotations

from .quality import CurveQuality, QCResult, Recommendation, assess_quality, grade_for
from .validation import ValidationIssue, ValidationReport, validate_log

__all__ = [
    "CurveQuality",
    "QCResult",
    "Recommendation",
    "assess_quality",
    "grade_for",
    "ValidationIssue",
    "ValidationReport",
    "validate_log",
]
