"""
Score Service - SAF Computation and Caching
===========================================

Computes SAF scores from persisted explanations, lineage and metrics, and
keeps them in two cache tables:

- SafComponent: one row per (explanation, ancestor) with the weight breakdown
- ComputedScore: one row per explanation with the final score

Scores are computed lazily (``get_score`` recomputes when missing or stale)
and invalidated eagerly by the services that change their inputs.

Usage:
    from explainrank.services.scores import get_score, rank_explanations

    with get_session() as session:
        result = get_score(session, explanation_id=42)
        top = rank_explanations(session, limit=10)
"""

from sqlalchemy.orm import Session

from ..config import get_settings
from ..core.db import upsert
from ..core.models import ComputedScore, Explanation, ExplanationStatusEnum, SafComponent, utcnow
from ..lineage.graph import LineageGraph
from ..lineage.store import load_lineage_graph
from ..observability.logging_config import OperationContext, OperationLogger, get_logger
from ..resilience.error_handler import ExplanationNotFoundError, ScoringError, handle_errors
from ..scoring.saf import AncestorContribution, AncestorSignal, SafResult, SafScorer, ScoringParams
from ..scoring.similarity import content_similarity
from .cache import invalidate
from .events import get_counts_map
from .explanations import is_test_content

logger = get_logger(__name__)

__all__ = [
    "compute_score",
    "get_score",
    "get_score_breakdown",
    "invalidate",
    "rank_explanations",
    "recompute_stale",
]


def _default_params() -> ScoringParams:
    return get_settings().scoring_params()


def _ancestor_signals(
    session: Session,
    explanation: Explanation,
    graph: LineageGraph,
    params: ScoringParams,
) -> list[AncestorSignal]:
    depths = graph.ancestors(explanation.id, max_depth=params.max_depth)
    if not depths:
        return []

    ancestors = session.query(Explanation).filter(Explanation.id.in_(list(depths))).all()
    counts = get_counts_map(session, [a.id for a in ancestors])

    signals = []
    for ancestor in ancestors:
        views, saves = counts[ancestor.id]
        try:
            similarity = content_similarity(
                explanation.embedding, ancestor.embedding, explanation.content, ancestor.content
            )
        except ValueError as e:
            logger.warning(f"Comparing ancestor {ancestor.id} by content instead: {e}")
            similarity = content_similarity(None, None, explanation.content, ancestor.content)
        signals.append(
            AncestorSignal(
                ancestor_id=ancestor.id,
                depth=depths[ancestor.id],
                similarity=similarity,
                views=views,
                saves=saves,
            )
        )
    return signals


def _store(session: Session, result: SafResult) -> ComputedScore:
    session.query(SafComponent).filter(SafComponent.explanation_id == result.explanation_id).delete(
        synchronize_session=False
    )
    for c in result.contributions:
        upsert(
            session,
            SafComponent,
            {
                "explanation_id": result.explanation_id,
                "ancestor_id": c.ancestor_id,
                "depth": c.depth,
                "similarity": c.similarity,
                "feedback_weight": c.feedback_weight,
                "raw_weight": c.raw_weight,
                "weight": c.weight,
                "ancestor_rate": c.ancestor_rate,
                "ancestor_views": c.views,
                "ancestor_saves": c.saves,
                "computed_at": result.calculated_at,
            },
            index_elements=["explanation_id", "ancestor_id"],
        )

    upsert(
        session,
        ComputedScore,
        {
            "explanation_id": result.explanation_id,
            "views": result.views,
            "saves": result.saves,
            "own_rate": result.own_rate,
            "inherited_rate": result.inherited_rate,
            "prior_rate": result.prior_rate,
            "saf_score": result.saf_score,
            "wilson_lower": result.wilson_lower,
            "wilson_upper": result.wilson_upper,
            "exploration_bonus": result.exploration_bonus,
            "final_score": result.final_score,
            "is_stale": False,
            "computed_at": result.calculated_at,
        },
        index_elements=["explanation_id"],
    )
    return session.get(ComputedScore, result.explanation_id, populate_existing=True)


def compute_score(
    session: Session,
    explanation_id: int,
    params: ScoringParams | None = None,
    graph: LineageGraph | None = None,
) -> SafResult:
    """
    Compute and cache the SAF score for one explanation.

    Ancestors whose embedding cannot be compared with the explanation's
    are compared by content.

    Raises:
        ExplanationNotFoundError: if the explanation does not exist
    """
    params = params or _default_params()
    explanation = session.get(Explanation, explanation_id)
    if explanation is None:
        raise ExplanationNotFoundError(explanation_id)

    graph = graph or load_lineage_graph(session)
    with OperationContext(explanation_id=explanation_id):
        views, saves = get_counts_map(session, [explanation_id])[explanation_id]
        signals = _ancestor_signals(session, explanation, graph, params)

        result = SafScorer(params).score(explanation_id, views, saves, signals)
        _store(session, result)

        logger.debug(f"Computed score {result.final_score:.4f} from {len(signals)} ancestors")
    return result


def result_from_cache(cached: ComputedScore, components: list[SafComponent]) -> SafResult:
    contributions = [
        AncestorContribution(
            ancestor_id=c.ancestor_id,
            depth=c.depth,
            similarity=c.similarity,
            views=c.ancestor_views,
            saves=c.ancestor_saves,
            feedback_weight=c.feedback_weight,
            raw_weight=c.raw_weight,
            weight=c.weight,
            ancestor_rate=c.ancestor_rate,
        )
        for c in sorted(components, key=lambda c: (-c.weight, c.depth, c.ancestor_id))
    ]
    return SafResult(
        explanation_id=cached.explanation_id,
        views=cached.views,
        saves=cached.saves,
        own_rate=cached.own_rate,
        inherited_rate=cached.inherited_rate,
        prior_rate=cached.prior_rate,
        saf_score=cached.saf_score,
        wilson_lower=cached.wilson_lower,
        wilson_upper=cached.wilson_upper,
        exploration_bonus=cached.exploration_bonus,
        final_score=cached.final_score,
        contributions=contributions,
        calculated_at=cached.computed_at or utcnow(),
    )


def get_score(
    session: Session,
    explanation_id: int,
    params: ScoringParams | None = None,
    graph: LineageGraph | None = None,
) -> SafResult:
    """Cached score when fresh, otherwise recompute."""
    cached = session.get(ComputedScore, explanation_id)
    if cached is not None and not cached.is_stale:
        components = (
            session.query(SafComponent)
            .populate_existing()
            .filter(SafComponent.explanation_id == explanation_id)
            .all()
        )
        return result_from_cache(cached, components)
    return compute_score(session, explanation_id, params=params, graph=graph)


def get_score_breakdown(session: Session, explanation_id: int, params: ScoringParams | None = None) -> dict:
    """Score plus per-ancestor contributions and cache state."""
    result = get_score(session, explanation_id, params=params)
    breakdown = result.to_dict()
    cached = session.get(ComputedScore, explanation_id)
    breakdown["is_stale"] = bool(cached.is_stale) if cached is not None else True
    return breakdown


@handle_errors(ScoringError, logger=logger)
def recompute_stale(session: Session, params: ScoringParams | None = None) -> int:
    """
    Recompute every stale or missing score, parents before children.

    Returns:
        Number of scores recomputed
    """
    params = params or _default_params()
    graph = load_lineage_graph(session)

    all_ids = [row[0] for row in session.query(Explanation.id).all()]
    fresh = {
        row[0]
        for row in session.query(ComputedScore.explanation_id).filter(ComputedScore.is_stale.is_(False)).all()
    }
    pending = set(all_ids) - fresh
    if not pending:
        return 0

    ordered = [node for node in graph.topological_order() if node in pending]
    ordered += sorted(pending - set(ordered))

    with OperationLogger(logger, "recompute_stale_scores", pending=len(ordered)):
        for explanation_id in ordered:
            compute_score(session, explanation_id, params=params, graph=graph)
    return len(ordered)


def rank_explanations(
    session: Session,
    limit: int = 20,
    include_unpublished: bool = False,
    params: ScoringParams | None = None,
) -> list[SafResult]:
    """
    Ranked scores for published, non-test explanations.

    Stale or missing scores are recomputed first.
    """
    params = params or _default_params()
    query = session.query(Explanation.id, Explanation.title).order_by(Explanation.id)
    if not include_unpublished:
        query = query.filter(Explanation.status == ExplanationStatusEnum.PUBLISHED)
    candidates = [explanation_id for explanation_id, title in query.all() if not is_test_content(title)]

    graph = load_lineage_graph(session)
    results = [get_score(session, explanation_id, params=params, graph=graph) for explanation_id in candidates]
    return SafScorer(params).top_n(results, n=limit)
