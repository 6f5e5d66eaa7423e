"""
Score cache invalidation.

A cached score depends on the explanation's own engagement, its content,
and the engagement/content of every ancestor. So when any of those change
for explanation x, the cached values of x and of every descendant of x are
no longer valid.
"""

from collections.abc import Iterable

from sqlalchemy.orm import Session

from ..core.models import ComputedScore, SafComponent
from ..lineage.graph import LineageGraph
from ..lineage.store import load_lineage_graph
from ..observability.logging_config import get_logger

logger = get_logger(__name__)


def affected_ids(graph: LineageGraph, explanation_ids: Iterable[int]) -> set[int]:
    """The given ids plus all of their descendants."""
    affected: set[int] = set()
    for explanation_id in explanation_ids:
        affected.add(explanation_id)
        affected |= graph.descendants(explanation_id)
    return affected


def invalidate(
    session: Session,
    explanation_ids: Iterable[int],
    graph: LineageGraph | None = None,
) -> set[int]:
    """
    Drop SAF cache rows and mark computed scores stale for the given ids
    and every descendant.

    Returns:
        The set of invalidated explanation ids
    """
    graph = graph or load_lineage_graph(session)
    affected = affected_ids(graph, explanation_ids)
    if not affected:
        return affected

    session.query(SafComponent).filter(SafComponent.explanation_id.in_(affected)).delete(
        synchronize_session=False
    )
    session.query(ComputedScore).filter(ComputedScore.explanation_id.in_(affected)).update(
        {ComputedScore.is_stale: True}, synchronize_session=False
    )
    session.flush()
    session.expire_all()

    logger.debug(
        f"Invalidated {len(affected)} cached scores",
        extra={"extra_data": {"explanation_ids": sorted(affected)}},
    )
    return affected
