"""Lineage graph between explanation revisions."""

from .graph import LineageGraph
from .store import load_lineage_graph

__all__ = ["LineageGraph", "load_lineage_graph"]
