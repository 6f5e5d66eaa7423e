"""Load the persisted lineage into a LineageGraph."""

from sqlalchemy.orm import Session

from ..core.models import LineageEdge
from .graph import LineageGraph


def load_lineage_graph(session: Session) -> LineageGraph:
    edges = session.query(LineageEdge.parent_id, LineageEdge.child_id).all()
    return LineageGraph.from_edges((parent, child) for parent, child in edges)
