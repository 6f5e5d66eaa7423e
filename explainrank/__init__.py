"""
ExplainRank
===========

Lineage-based scoring for explanation content.

Modules:
    - core: Database models, schemas, and utilities
    - lineage: Parent/child graph between explanation revisions
    - scoring: Wilson intervals, similarity and the SAF scorer
    - services: Events, metrics, score caching, matching
    - observability: Structured logging and request context
    - resilience: Error taxonomy
    - interface: CLI
"""

__version__ = "0.1.0"

from .core.db import get_engine, get_session, init_db
from .core.models import (
    Base,
    ComputedScore,
    Explanation,
    ExplanationEvent,
    ExplanationMetrics,
    LineageEdge,
    SafComponent,
)

__all__ = [
    # Core models
    "Base",
    "Explanation",
    "LineageEdge",
    "ExplanationEvent",
    "ExplanationMetrics",
    "SafComponent",
    "ComputedScore",
    # Database utilities
    "get_session",
    "get_engine",
    "init_db",
]
