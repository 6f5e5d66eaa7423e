"""Tests for content similarity."""
import pytest

from explainrank.scoring.similarity import content_similarity, cosine_similarity, token_jaccard, tokenize


def test_cosine_identical_vectors():
    assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)


def test_cosine_orthogonal_vectors():
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)


def test_cosine_zero_vector():
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0


def test_cosine_dimension_mismatch():
    with pytest.raises(ValueError, match="dimensions"):
        cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])


def test_tokenize_lowercases_and_splits():
    assert tokenize("Mitosis, Meiosis & DNA-2!") == {"mitosis", "meiosis", "dna", "2"}
    assert tokenize(None) == set()


def test_token_jaccard():
    assert token_jaccard("cells divide", "cells divide fast") == pytest.approx(2 / 3)
    assert token_jaccard("", "") == 0.0


class TestContentSimilarity:
    """Embedding-first similarity with a text fallback."""

    def test_uses_embeddings_when_both_present(self):
        assert content_similarity([1.0, 0.0], [1.0, 0.0], "a", "b") == pytest.approx(1.0)

    def test_falls_back_to_text(self):
        assert content_similarity(None, [1.0, 0.0], "cells divide", "cells divide") == pytest.approx(1.0)
        assert content_similarity([], [], "alpha", "beta") == 0.0

    def test_negative_cosine_clamped(self):
        assert content_similarity([1.0, 0.0], [-1.0, 0.0]) == 0.0
