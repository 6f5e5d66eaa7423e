"""Explanation CRUD with score invalidation on relevant changes."""

from sqlalchemy.orm import Session

from ..core.models import Explanation, ExplanationStatusEnum, SafComponent
from ..core.schemas import ExplanationCreate, ExplanationResponse, ExplanationStatus, ExplanationUpdate
from ..observability.logging_config import OperationContext, get_logger
from ..resilience.error_handler import ExplanationNotFoundError
from .cache import invalidate

logger = get_logger(__name__)

TEST_CONTENT_PREFIX = "[TEST]"
LEGACY_TEST_PREFIX = "test-"

# Fields whose change alters a derived score
_SCORE_INPUT_FIELDS = {"content", "embedding", "status"}
_REQUIRED_FIELDS = {"title", "content", "status"}


def is_test_content(title: str | None) -> bool:
    """Titles starting with ``[TEST]`` or ``test-`` mark fixture content."""
    if not title:
        return False
    return title.startswith(TEST_CONTENT_PREFIX) or title.startswith(LEGACY_TEST_PREFIX)


def to_response(explanation: Explanation) -> ExplanationResponse:
    return ExplanationResponse(
        id=explanation.id,
        title=explanation.title,
        content=explanation.content,
        topic_id=explanation.topic_id,
        status=ExplanationStatus(explanation.status.value),
        summary_teaser=explanation.summary_teaser,
        has_embedding=explanation.embedding is not None,
        created_at=explanation.created_at,
        updated_at=explanation.updated_at,
    )


def get_explanation(session: Session, explanation_id: int) -> Explanation:
    explanation = session.get(Explanation, explanation_id)
    if explanation is None:
        raise ExplanationNotFoundError(explanation_id)
    return explanation


def create_explanation(session: Session, data: ExplanationCreate) -> Explanation:
    explanation = Explanation(
        title=data.title,
        content=data.content,
        topic_id=data.topic_id,
        status=ExplanationStatusEnum(data.status.value),
        summary_teaser=data.summary_teaser,
        embedding=data.embedding,
    )
    session.add(explanation)
    session.flush()
    with OperationContext(explanation_id=explanation.id):
        logger.info("Created explanation")
    return explanation


def update_explanation(session: Session, explanation_id: int, data: ExplanationUpdate) -> Explanation:
    """Apply a partial update; invalidates scores when content, embedding or status change."""
    explanation = get_explanation(session, explanation_id)
    changes = data.model_dump(exclude_unset=True)

    for key, value in list(changes.items()):
        if value is None and key in _REQUIRED_FIELDS:
            changes.pop(key)
            continue
        if key == "status":
            value = ExplanationStatusEnum(ExplanationStatus(value).value)
        setattr(explanation, key, value)
    session.flush()

    with OperationContext(explanation_id=explanation_id):
        if _SCORE_INPUT_FIELDS & changes.keys():
            invalidate(session, [explanation_id])
        logger.info("Updated explanation", extra={"extra_data": {"fields": sorted(changes)}})
    return explanation


def delete_explanation(session: Session, explanation_id: int) -> None:
    """Delete an explanation; its descendants lose an ancestor and go stale."""
    explanation = get_explanation(session, explanation_id)
    invalidate(session, [explanation_id])

    session.query(SafComponent).filter(SafComponent.ancestor_id == explanation_id).delete(
        synchronize_session=False
    )
    session.delete(explanation)
    session.flush()
    logger.info(f"Deleted explanation {explanation_id}")


def list_explanations(
    session: Session,
    status: ExplanationStatus | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Explanation]:
    query = session.query(Explanation)
    if status is not None:
        query = query.filter(Explanation.status == ExplanationStatusEnum(status.value))
    return query.order_by(Explanation.id).offset(offset).limit(limit).all()
