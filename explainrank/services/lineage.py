"""Persisted lineage edges between explanations."""

from sqlalchemy.orm import Session

from ..core.models import Explanation, LineageEdge
from ..lineage.graph import LineageGraph
from ..lineage.store import load_lineage_graph
from ..observability.logging_config import get_logger
from ..resilience.error_handler import ExplanationNotFoundError, LineageError
from .cache import invalidate

logger = get_logger(__name__)


def _require_explanations(session: Session, *explanation_ids: int) -> None:
    for explanation_id in explanation_ids:
        if session.get(Explanation, explanation_id) is None:
            raise ExplanationNotFoundError(explanation_id)


def add_lineage_edge(
    session: Session,
    parent_id: int,
    child_id: int,
    created_by: str | None = None,
) -> LineageEdge:
    """
    Link ``child_id`` as a revision of ``parent_id``.

    An edge that already exists is returned unchanged.

    Raises:
        ExplanationNotFoundError: if either explanation is missing
        LineageError: on a self-loop
        LineageCycleError: if the edge would close a cycle
    """
    _require_explanations(session, parent_id, child_id)

    graph = load_lineage_graph(session)
    if not graph.add_edge(parent_id, child_id):
        return (
            session.query(LineageEdge)
            .filter(LineageEdge.parent_id == parent_id, LineageEdge.child_id == child_id)
            .one()
        )

    edge = LineageEdge(parent_id=parent_id, child_id=child_id, created_by=created_by)
    session.add(edge)
    session.flush()

    invalidated = invalidate(session, [child_id], graph=graph)
    logger.info(
        f"Added lineage edge {parent_id} -> {child_id}",
        extra={"extra_data": {"parent_id": parent_id, "child_id": child_id, "invalidated": len(invalidated)}},
    )
    return edge


def remove_lineage_edge(session: Session, parent_id: int, child_id: int) -> None:
    """
    Remove a lineage edge and invalidate the child subtree.

    Raises:
        LineageError: if the edge does not exist
    """
    edge = (
        session.query(LineageEdge)
        .filter(LineageEdge.parent_id == parent_id, LineageEdge.child_id == child_id)
        .one_or_none()
    )
    if edge is None:
        raise LineageError(f"No lineage edge {parent_id} -> {child_id}")

    graph = load_lineage_graph(session)
    # Descendants are collected before the edge goes away
    invalidated = invalidate(session, [child_id], graph=graph)

    session.query(LineageEdge).filter(LineageEdge.id == edge.id).delete(synchronize_session=False)
    session.flush()
    session.expire_all()
    logger.info(
        f"Removed lineage edge {parent_id} -> {child_id}",
        extra={"extra_data": {"parent_id": parent_id, "child_id": child_id, "invalidated": len(invalidated)}},
    )


def get_ancestors(
    session: Session,
    explanation_id: int,
    max_depth: int | None = None,
    graph: LineageGraph | None = None,
) -> dict[int, int]:
    """Ancestor id -> depth for an existing explanation."""
    _require_explanations(session, explanation_id)
    graph = graph or load_lineage_graph(session)
    return graph.ancestors(explanation_id, max_depth=max_depth)


def list_edges(session: Session) -> list[LineageEdge]:
    return session.query(LineageEdge).order_by(LineageEdge.parent_id, LineageEdge.child_id).all()
