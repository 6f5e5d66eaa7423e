"""
Engagement Events and Metrics
=============================

Views and saves are the feedback signal for scoring: views are trials,
saves are successes. Every recorded event refreshes the explanation's
aggregated metrics and invalidates the cached scores that depend on them.
"""

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.db import lock_row, upsert
from ..core.models import EventNameEnum, Explanation, ExplanationEvent, ExplanationMetrics, utcnow
from ..core.schemas import ViewPeriod
from ..observability.logging_config import OperationContext, get_logger
from ..resilience.error_handler import DatabaseError, ExplanationNotFoundError, InvalidEventError, handle_errors
from .cache import invalidate

logger = get_logger(__name__)

PERIOD_CUTOFFS: dict[ViewPeriod, timedelta | None] = {
    ViewPeriod.HOUR: timedelta(hours=1),
    ViewPeriod.TODAY: timedelta(days=1),
    ViewPeriod.WEEK: timedelta(days=7),
    ViewPeriod.MONTH: timedelta(days=30),
    ViewPeriod.ALL: None,
}


def parse_event_name(event_name: str | EventNameEnum) -> EventNameEnum:
    if isinstance(event_name, EventNameEnum):
        return event_name
    try:
        return EventNameEnum(getattr(event_name, "value", event_name))
    except ValueError:
        valid = ", ".join(e.value for e in EventNameEnum)
        raise InvalidEventError(f"Unknown event '{event_name}'. Expected one of: {valid}") from None


def parse_period(period: str | ViewPeriod | None) -> ViewPeriod:
    """Unknown periods fall back to a week."""
    if isinstance(period, ViewPeriod):
        return period
    try:
        return ViewPeriod(period)
    except ValueError:
        logger.debug(f"Unknown view period '{period}', using week")
        return ViewPeriod.WEEK


def record_event(
    session: Session,
    explanation_id: int,
    event_name: str | EventNameEnum,
    user_id: str,
    extra: dict[str, Any] | None = None,
    created_at: datetime | None = None,
) -> ExplanationEvent:
    """
    Record a view or save.

    The explanation row stays locked until the transaction ends, so
    concurrent events for one explanation refresh its metrics in turn.

    Raises:
        InvalidEventError: for an unknown event name
        ExplanationNotFoundError: if the explanation does not exist
    """
    name = parse_event_name(event_name)
    if lock_row(session, Explanation, explanation_id) is None:
        raise ExplanationNotFoundError(explanation_id)

    with OperationContext(explanation_id=explanation_id):
        event = ExplanationEvent(
            explanation_id=explanation_id,
            user_id=user_id,
            event_name=name,
            extra_data=extra or {},
            created_at=created_at or utcnow(),
        )
        session.add(event)
        session.flush()

        refresh_explanation_metrics(session, explanation_id)
        invalidate(session, [explanation_id])

        logger.debug(f"Recorded {name.value}")
    return event


def _count_events(session: Session, explanation_id: int) -> dict[EventNameEnum, int]:
    rows = (
        session.query(ExplanationEvent.event_name, func.count(ExplanationEvent.id))
        .filter(ExplanationEvent.explanation_id == explanation_id)
        .group_by(ExplanationEvent.event_name)
        .all()
    )
    return {name: count for name, count in rows}


def refresh_explanation_metrics(session: Session, explanation_id: int) -> ExplanationMetrics:
    """Recount views and saves for one explanation and upsert its metrics row."""
    session.flush()
    counts = _count_events(session, explanation_id)
    views = counts.get(EventNameEnum.EXPLANATION_VIEWED, 0)
    saves = counts.get(EventNameEnum.EXPLANATION_SAVED, 0)

    upsert(
        session,
        ExplanationMetrics,
        {
            "explanation_id": explanation_id,
            "total_views": views,
            "total_saves": saves,
            "save_rate": saves / views if views else 0.0,
            "last_updated": utcnow(),
        },
        index_elements=["explanation_id"],
    )
    return session.get(ExplanationMetrics, explanation_id, populate_existing=True)


@handle_errors(DatabaseError, logger=logger)
def refresh_all_metrics(session: Session) -> int:
    """Refresh metrics for every explanation; returns how many were refreshed."""
    explanation_ids = [row[0] for row in session.query(Explanation.id).order_by(Explanation.id).all()]
    for explanation_id in explanation_ids:
        refresh_explanation_metrics(session, explanation_id)
    if explanation_ids:
        invalidate(session, explanation_ids)
    logger.info(f"Refreshed metrics for {len(explanation_ids)} explanations")
    return len(explanation_ids)


def get_metrics(session: Session, explanation_id: int) -> ExplanationMetrics:
    """Metrics row for an explanation; an unsaved zero row if nothing was recorded yet."""
    if session.get(Explanation, explanation_id) is None:
        raise ExplanationNotFoundError(explanation_id)
    metrics = session.get(ExplanationMetrics, explanation_id)
    if metrics is None:
        return ExplanationMetrics(explanation_id=explanation_id, total_views=0, total_saves=0, save_rate=0.0)
    return metrics


def get_counts_map(session: Session, explanation_ids: list[int]) -> dict[int, tuple[int, int]]:
    """explanation id -> (views, saves) from the metrics table."""
    if not explanation_ids:
        return {}
    rows = (
        session.query(ExplanationMetrics.explanation_id, ExplanationMetrics.total_views, ExplanationMetrics.total_saves)
        .filter(ExplanationMetrics.explanation_id.in_(explanation_ids))
        .all()
    )
    counts = {explanation_id: (0, 0) for explanation_id in explanation_ids}
    for explanation_id, views, saves in rows:
        counts[explanation_id] = (views or 0, saves or 0)
    return counts


def get_view_counts(
    session: Session,
    period: str | ViewPeriod | None = ViewPeriod.WEEK,
    limit: int = 100,
    now: datetime | None = None,
) -> list[tuple[int, int]]:
    """
    View counts per explanation within a time period.

    Args:
        period: hour, today, week, month or all (anything else means week)
        limit: Maximum number of rows
        now: Reference time (defaults to the current UTC time)

    Returns:
        (explanation_id, view_count) pairs, most viewed first
    """
    cutoff_delta = PERIOD_CUTOFFS[parse_period(period)]
    view_count = func.count(ExplanationEvent.id).label("view_count")

    query = session.query(ExplanationEvent.explanation_id, view_count).filter(
        ExplanationEvent.event_name == EventNameEnum.EXPLANATION_VIEWED
    )
    if cutoff_delta is not None:
        query = query.filter(ExplanationEvent.created_at >= (now or utcnow()) - cutoff_delta)

    rows = (
        query.group_by(ExplanationEvent.explanation_id)
        .order_by(view_count.desc(), ExplanationEvent.explanation_id)
        .limit(limit)
        .all()
    )
    return [(explanation_id, count) for explanation_id, count in rows]
