"""
Related-Content Matching
========================

Vector-search results are enriched with the current explanation content,
filtered of test fixtures, and a single best match is selected for the
caller, optionally weighing in each candidate's SAF score.
"""

from collections.abc import Iterable, Sequence
from typing import TypeVar

import numpy as np
from sqlalchemy.orm import Session

from ..core.models import Explanation, ExplanationStatusEnum
from ..core.schemas import Match, MatchError, MatchMode, MatchRanking, MatchSelection, VectorSearchResult
from ..observability.logging_config import get_logger
from .explanations import is_test_content

logger = get_logger(__name__)

TOP_CANDIDATES = 5
DEFAULT_FINAL_SCORE = 0.5

T = TypeVar("T", Match, dict)


def filter_test_content(matches: Iterable[T]) -> list[T]:
    """Drop matches whose title marks them as test content; untitled matches are kept."""
    kept = []
    for match in matches:
        title = match.get("current_title") if isinstance(match, dict) else match.current_title
        if not is_test_content(title):
            kept.append(match)
    return kept


def find_similar(
    session: Session,
    embedding: Sequence[float],
    limit: int = 10,
    exclude_ids: Iterable[int] = (),
) -> list[VectorSearchResult]:
    """
    Nearest published explanations by cosine similarity.

    Full scan over stored embeddings; explanations without an embedding or
    with a different dimension are skipped.
    """
    query_vec = np.asarray(embedding, dtype=float)
    query_norm = np.linalg.norm(query_vec)
    if query_norm == 0:
        return []

    excluded = set(exclude_ids)
    rows = (
        session.query(Explanation)
        .filter(Explanation.status == ExplanationStatusEnum.PUBLISHED, Explanation.embedding.isnot(None))
        .all()
    )

    results = []
    for explanation in rows:
        if explanation.id in excluded or explanation.embedding is None:
            continue
        vec = np.asarray(explanation.embedding, dtype=float)
        if vec.shape != query_vec.shape:
            logger.debug(f"Skipping explanation {explanation.id}: embedding dimension {vec.shape}")
            continue
        norm = np.linalg.norm(vec)
        if norm == 0:
            continue
        results.append(
            VectorSearchResult(
                explanation_id=explanation.id,
                topic_id=explanation.topic_id,
                score=float(np.dot(query_vec, vec) / (query_norm * norm)),
                text=explanation.content[:1000],
            )
        )

    results.sort(key=lambda r: (-r.score, r.explanation_id))
    return results[:limit]


def enhance_matches(
    session: Session,
    results: Iterable[VectorSearchResult],
    diversity_comparison: Sequence[VectorSearchResult] | None = None,
) -> list[Match]:
    """
    Attach current title/content and similarity/diversity scores.

    Explanations that no longer exist are skipped.
    """
    diversity_by_id = {d.explanation_id: d.score for d in diversity_comparison or []}

    enhanced = []
    for result in results:
        explanation = session.get(Explanation, result.explanation_id)
        if explanation is None:
            logger.warning(
                "Skipping inaccessible explanation in vector results",
                extra={"extra_data": {"explanation_id": result.explanation_id}},
            )
            continue

        enhanced.append(
            Match(
                explanation_id=result.explanation_id,
                topic_id=result.topic_id if result.topic_id is not None else explanation.topic_id,
                text=result.text,
                current_title=explanation.title or "",
                current_content=explanation.content or "",
                summary_teaser=explanation.summary_teaser,
                timestamp=explanation.created_at,
                ranking=MatchRanking(
                    similarity=result.score or 0.0,
                    diversity_score=diversity_by_id.get(result.explanation_id),
                ),
            )
        )
    return enhanced


def _selection(matches: list[Match], index: int) -> MatchSelection:
    """Selection for a 0-based index into ``matches``."""
    match = matches[index]
    return MatchSelection(selected_index=index + 1, explanation_id=match.explanation_id, topic_id=match.topic_id)


def select_best_match(
    matches: Sequence[Match],
    mode: MatchMode = MatchMode.NORMAL,
    saved_id: int | None = None,
    scores: dict[int, float] | None = None,
) -> MatchSelection:
    """
    Pick one match for the user.

    Force mode returns the first match that is not ``saved_id``. Normal mode
    looks at the top candidates (excluding ``saved_id``) and picks the one
    with the best similarity * (0.5 + 0.5 * final_score); earlier matches
    win ties. ``selected_index`` is 1-based and 0 when nothing qualifies.
    """
    matches = list(matches)
    if not matches:
        return MatchSelection(error=MatchError(code="NO_MATCHES", message="No matches available for selection"))

    if mode == MatchMode.FORCE:
        for index, match in enumerate(matches):
            if match.explanation_id != saved_id:
                logger.debug(f"Force mode: returning match {match.explanation_id}")
                return _selection(matches, index)
        return MatchSelection(selected_index=0)

    scores = scores or {}
    best_index = None
    best_value = -1.0
    for index, match in enumerate(matches[:TOP_CANDIDATES]):
        if match.explanation_id == saved_id:
            continue
        final_score = min(max(scores.get(match.explanation_id, DEFAULT_FINAL_SCORE), 0.0), 1.0)
        value = match.ranking.similarity * (0.5 + 0.5 * final_score)
        if value > best_value:
            best_index, best_value = index, value

    if best_index is None:
        return MatchSelection(selected_index=0)

    logger.debug(
        "Selected match",
        extra={"extra_data": {"selected_index": best_index + 1, "explanation_id": matches[best_index].explanation_id}},
    )
    return _selection(matches, best_index)
