"""
Scoring
=======

Pure scoring math: Wilson intervals, content similarity and the
Similarity-Adjusted-Feedback scorer.
"""

from .saf import (
    AncestorContribution,
    AncestorSignal,
    SafResult,
    SafScorer,
    ScoringParams,
)
from .similarity import content_similarity, cosine_similarity, token_jaccard
from .wilson import exploration_bonus, wilson_interval, wilson_lower_bound, z_for_confidence

__all__ = [
    "ScoringParams",
    "AncestorSignal",
    "AncestorContribution",
    "SafResult",
    "SafScorer",
    "cosine_similarity",
    "token_jaccard",
    "content_similarity",
    "wilson_interval",
    "wilson_lower_bound",
    "exploration_bonus",
    "z_for_confidence",
]
