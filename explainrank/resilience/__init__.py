"""
ExplainRank Resilience Module
=============================

Domain error taxonomy and error-wrapping helpers.
"""

from .error_handler import (
    DatabaseError,
    ExplainRankError,
    ExplanationNotFoundError,
    InvalidEventError,
    LineageCycleError,
    LineageError,
    ScoringError,
    handle_errors,
)

__all__ = [
    "ExplainRankError",
    "ExplanationNotFoundError",
    "LineageError",
    "LineageCycleError",
    "InvalidEventError",
    "ScoringError",
    "DatabaseError",
    "handle_errors",
]
