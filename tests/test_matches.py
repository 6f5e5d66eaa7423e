"""Tests for related-content matching."""
import pytest

from explainrank.core.models import ExplanationStatusEnum
from explainrank.core.schemas import Match, MatchMode, MatchRanking, VectorSearchResult
from explainrank.services.matches import (
    enhance_matches,
    filter_test_content,
    find_similar,
    select_best_match,
)


def _match(explanation_id, similarity, title="Topic", topic_id=None):
    return Match(
        explanation_id=explanation_id,
        topic_id=topic_id,
        current_title=title,
        ranking=MatchRanking(similarity=similarity),
    )


class TestFilterTestContent:

    def test_filters_match_models(self):
        matches = [_match(1, 0.9, "[TEST] a"), _match(2, 0.8, "Real"), _match(3, 0.7, "test-b")]
        assert [m.explanation_id for m in filter_test_content(matches)] == [2]

    def test_filters_dicts_and_keeps_untitled(self):
        matches = [{"explanation_id": 1, "current_title": "[TEST] x"}, {"explanation_id": 2}]
        assert filter_test_content(matches) == [{"explanation_id": 2}]


class TestFindSimilar:

    def test_orders_by_cosine(self, session, make_explanation):
        close = make_explanation(embedding=[1.0, 0.1, 0.0])
        far = make_explanation(embedding=[0.0, 1.0, 0.0])
        make_explanation(embedding=None)
        make_explanation(embedding=[1.0, 0.0])
        make_explanation(embedding=[1.0, 0.0, 0.0], status=ExplanationStatusEnum.DRAFT)

        results = find_similar(session, [1.0, 0.0, 0.0])

        assert [r.explanation_id for r in results] == [close.id, far.id]
        assert results[0].score > 0.99
        assert results[1].score == pytest.approx(0.0)

    def test_exclude_and_limit(self, session, make_explanation):
        a = make_explanation(embedding=[1.0, 0.0])
        b = make_explanation(embedding=[0.9, 0.1])
        make_explanation(embedding=[0.5, 0.5])

        assert [r.explanation_id for r in find_similar(session, [1.0, 0.0], limit=1)] == [a.id]
        assert [r.explanation_id for r in find_similar(session, [1.0, 0.0], limit=1, exclude_ids=[a.id])] == [b.id]

    def test_zero_query_vector(self, session, make_explanation):
        make_explanation(embedding=[1.0, 0.0])
        assert find_similar(session, [0.0, 0.0]) == []

    def test_text_truncated(self, session, make_explanation):
        make_explanation(content="x" * 5000, embedding=[1.0])
        assert len(find_similar(session, [1.0])[0].text) == 1000


class TestEnhanceMatches:

    def test_attaches_current_content(self, session, make_explanation):
        explanation = make_explanation(title="Osmosis", content="Water moves.", topic_id=7)
        results = [
            VectorSearchResult(explanation_id=explanation.id, score=0.8, text="old text"),
            VectorSearchResult(explanation_id=999_999, score=0.7),
        ]
        diversity = [VectorSearchResult(explanation_id=explanation.id, score=0.3)]

        matches = enhance_matches(session, results, diversity)

        assert len(matches) == 1
        match = matches[0]
        assert match.current_title == "Osmosis"
        assert match.current_content == "Water moves."
        assert match.topic_id == 7
        assert match.text == "old text"
        assert match.ranking.similarity == pytest.approx(0.8)
        assert match.ranking.diversity_score == pytest.approx(0.3)

    def test_without_diversity(self, session, make_explanation):
        explanation = make_explanation()
        matches = enhance_matches(session, [VectorSearchResult(explanation_id=explanation.id, score=0.5)])
        assert matches[0].ranking.diversity_score is None


class TestSelectBestMatch:

    def test_empty_list_is_an_error(self):
        selection = select_best_match([])
        assert selection.error.code == "NO_MATCHES"
        assert selection.selected_index is None

    def test_force_mode_skips_saved(self):
        matches = [_match(10, 0.9, topic_id=1), _match(11, 0.5, topic_id=2)]
        selection = select_best_match(matches, mode=MatchMode.FORCE, saved_id=10)
        assert (selection.selected_index, selection.explanation_id, selection.topic_id) == (2, 11, 2)

    def test_force_mode_only_saved(self):
        selection = select_best_match([_match(10, 0.9)], mode=MatchMode.FORCE, saved_id=10)
        assert selection.selected_index == 0
        assert selection.explanation_id is None

    def test_normal_mode_prefers_similarity_by_default(self):
        matches = [_match(1, 0.6), _match(2, 0.9), _match(3, 0.7)]
        selection = select_best_match(matches)
        assert (selection.selected_index, selection.explanation_id) == (2, 2)

    def test_normal_mode_weighs_scores(self):
        matches = [_match(1, 0.9), _match(2, 0.8)]
        selection = select_best_match(matches, scores={1: 0.0, 2: 1.0})
        # 0.9 * 0.5 vs 0.8 * 1.0
        assert selection.explanation_id == 2

    def test_normal_mode_excludes_saved(self):
        matches = [_match(1, 0.9), _match(2, 0.1)]
        assert select_best_match(matches, saved_id=1).explanation_id == 2

    def test_only_top_candidates_considered(self):
        matches = [_match(i, 0.1) for i in range(1, 6)] + [_match(6, 0.99)]
        selection = select_best_match(matches)
        assert selection.selected_index == 1

    def test_ties_keep_earliest(self):
        selection = select_best_match([_match(1, 0.5), _match(2, 0.5)])
        assert selection.explanation_id == 1
