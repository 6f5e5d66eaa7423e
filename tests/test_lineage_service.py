"""Tests for persisted lineage edges."""
import pytest

from explainrank.core.models import ComputedScore, LineageEdge
from explainrank.lineage import load_lineage_graph
from explainrank.resilience.error_handler import ExplanationNotFoundError, LineageCycleError, LineageError
from explainrank.services.lineage import add_lineage_edge, get_ancestors, list_edges, remove_lineage_edge
from explainrank.services.scores import get_score


class TestAddEdge:

    def test_add_edge_persists(self, session, make_explanation):
        parent = make_explanation(title="v1")
        child = make_explanation(title="v2")

        edge = add_lineage_edge(session, parent.id, child.id, created_by="editor")

        assert edge.id is not None
        assert edge.created_by == "editor"
        assert load_lineage_graph(session).has_edge(parent.id, child.id)

    def test_duplicate_edge_returns_existing(self, session, make_explanation):
        parent = make_explanation()
        child = make_explanation()
        first = add_lineage_edge(session, parent.id, child.id)
        second = add_lineage_edge(session, parent.id, child.id)
        assert first.id == second.id
        assert session.query(LineageEdge).count() == 1

    def test_missing_explanation(self, session, make_explanation):
        parent = make_explanation()
        with pytest.raises(ExplanationNotFoundError):
            add_lineage_edge(session, parent.id, 999_999)

    def test_cycle_rejected(self, session, lineage_chain):
        grandparent, _, child = lineage_chain
        with pytest.raises(LineageCycleError):
            add_lineage_edge(session, child.id, grandparent.id)

    def test_self_loop_rejected(self, session, make_explanation):
        explanation = make_explanation()
        with pytest.raises(LineageError):
            add_lineage_edge(session, explanation.id, explanation.id)

    def test_new_parent_invalidates_child_subtree(self, session, make_explanation, lineage_chain):
        _, parent, child = lineage_chain
        get_score(session, parent.id)
        get_score(session, child.id)

        other = make_explanation(title="Other")
        add_lineage_edge(session, other.id, parent.id)

        assert session.get(ComputedScore, parent.id).is_stale
        assert session.get(ComputedScore, child.id).is_stale


class TestRemoveEdge:

    def test_remove_edge(self, session, lineage_chain):
        grandparent, parent, child = lineage_chain
        get_score(session, child.id)

        remove_lineage_edge(session, parent.id, child.id)

        assert not load_lineage_graph(session).has_edge(parent.id, child.id)
        assert session.get(ComputedScore, child.id).is_stale
        assert get_ancestors(session, child.id) == {}

    def test_remove_missing_edge(self, session, make_explanation):
        a = make_explanation()
        b = make_explanation()
        with pytest.raises(LineageError):
            remove_lineage_edge(session, a.id, b.id)


def test_get_ancestors(session, lineage_chain):
    grandparent, parent, child = lineage_chain
    assert get_ancestors(session, child.id) == {parent.id: 1, grandparent.id: 2}
    assert get_ancestors(session, child.id, max_depth=1) == {parent.id: 1}


def test_get_ancestors_missing(session):
    with pytest.raises(ExplanationNotFoundError):
        get_ancestors(session, 424242)


def test_list_edges(session, lineage_chain):
    grandparent, parent, child = lineage_chain
    assert [(e.parent_id, e.child_id) for e in list_edges(session)] == [
        (grandparent.id, parent.id),
        (parent.id, child.id),
    ]
