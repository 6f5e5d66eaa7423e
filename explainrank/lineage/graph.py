from collections.abc import Iterable

import networkx as nx

from ..resilience.error_handler import LineageCycleError, LineageError


class LineageGraph:
    """
    Parent/child DAG between explanation revisions.

    Edges point parent -> child. A child may have several parents.
    """

    def __init__(self):
        self.graph: nx.DiGraph = nx.DiGraph()

    @classmethod
    def from_edges(cls, edges: Iterable[tuple[int, int]]) -> "LineageGraph":
        """
        Build a graph from (parent_id, child_id) pairs.

        Raises:
            LineageError: if the pairs contain a self-loop or a cycle
        """
        lineage = cls()
        lineage.graph.add_edges_from(edges)
        if any(parent == child for parent, child in lineage.graph.edges):
            raise LineageError("Lineage contains a self-loop")
        if not nx.is_directed_acyclic_graph(lineage.graph):
            raise LineageError("Lineage contains a cycle")
        return lineage

    def __contains__(self, node: int) -> bool:
        return self.graph.has_node(node)

    def __len__(self) -> int:
        return self.graph.number_of_nodes()

    def has_edge(self, parent: int, child: int) -> bool:
        return self.graph.has_edge(parent, child)

    def would_create_cycle(self, parent: int, child: int) -> bool:
        if parent == child:
            return True
        if not (self.graph.has_node(parent) and self.graph.has_node(child)):
            return False
        return nx.has_path(self.graph, child, parent)

    def add_edge(self, parent: int, child: int) -> bool:
        """
        Add a parent -> child edge.

        Returns:
            False if the edge already existed, True otherwise

        Raises:
            LineageError: on a self-loop
            LineageCycleError: if the edge would close a cycle
        """
        if parent == child:
            raise LineageError(f"Explanation {parent} cannot be its own parent")
        if self.graph.has_edge(parent, child):
            return False
        if self.would_create_cycle(parent, child):
            raise LineageCycleError(parent, child)
        self.graph.add_edge(parent, child)
        return True

    def remove_edge(self, parent: int, child: int) -> None:
        if not self.graph.has_edge(parent, child):
            raise LineageError(f"No lineage edge {parent} -> {child}")
        self.graph.remove_edge(parent, child)

    def parents(self, node: int) -> list[int]:
        if not self.graph.has_node(node):
            return []
        return sorted(self.graph.predecessors(node))

    def children(self, node: int) -> list[int]:
        if not self.graph.has_node(node):
            return []
        return sorted(self.graph.successors(node))

    def ancestors(self, node: int, max_depth: int | None = None) -> dict[int, int]:
        """
        Ancestors of ``node`` mapped to their depth.

        Depth is the shortest number of parent hops (parents are depth 1).
        """
        if not self.graph.has_node(node):
            return {}
        distances = nx.single_source_shortest_path_length(
            self.graph.reverse(copy=False), node, cutoff=max_depth
        )
        return {ancestor: depth for ancestor, depth in distances.items() if ancestor != node}

    def descendants(self, node: int) -> set[int]:
        if not self.graph.has_node(node):
            return set()
        return set(nx.descendants(self.graph, node))

    def topological_order(self) -> list[int]:
        """Parents before children; ties ordered by id."""
        return list(nx.lexicographical_topological_sort(self.graph))
