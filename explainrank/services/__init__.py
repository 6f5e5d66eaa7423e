"""
ExplainRank Services
====================

Database-backed operations: explanations, lineage, engagement events,
score computation/caching and related-content matching.
"""

from .cache import invalidate
from .events import get_metrics, get_view_counts, record_event, refresh_all_metrics, refresh_explanation_metrics
from .explanations import (
    create_explanation,
    delete_explanation,
    get_explanation,
    is_test_content,
    list_explanations,
    update_explanation,
)
from .lineage import add_lineage_edge, get_ancestors, remove_lineage_edge
from .matches import enhance_matches, filter_test_content, find_similar, select_best_match
from .scores import compute_score, get_score, get_score_breakdown, rank_explanations, recompute_stale

__all__ = [
    "invalidate",
    "create_explanation",
    "get_explanation",
    "update_explanation",
    "delete_explanation",
    "list_explanations",
    "is_test_content",
    "add_lineage_edge",
    "remove_lineage_edge",
    "get_ancestors",
    "record_event",
    "refresh_explanation_metrics",
    "refresh_all_metrics",
    "get_metrics",
    "get_view_counts",
    "compute_score",
    "get_score",
    "get_score_breakdown",
    "recompute_stale",
    "rank_explanations",
    "filter_test_content",
    "find_similar",
    "enhance_matches",
    "select_best_match",
]
