"""Error Handler - Centralized error handling."""

import functools


class ExplainRankError(Exception):
    """Base exception for the scoring service."""

    pass


class ExplanationNotFoundError(ExplainRankError):
    """Referenced explanation does not exist."""

    def __init__(self, explanation_id: int):
        self.explanation_id = explanation_id
        super().__init__(f"Explanation {explanation_id} not found")


class LineageError(ExplainRankError):
    """Invalid lineage edge (self-loop, missing edge)."""

    pass


class LineageCycleError(LineageError):
    """Lineage edge would close a cycle."""

    def __init__(self, parent_id: int, child_id: int):
        self.parent_id = parent_id
        self.child_id = child_id
        super().__init__(
            f"Edge {parent_id} -> {child_id} would create a cycle: "
            f"{child_id} is already an ancestor of {parent_id}"
        )


class InvalidEventError(ExplainRankError):
    """Unknown engagement event name."""

    pass


class ScoringError(ExplainRankError):
    """Error while computing or caching a score."""

    pass


class DatabaseError(ExplainRankError):
    """Database operation error."""

    pass


def handle_errors(error_class=ExplainRankError, logger=None):
    """Decorator for error handling.

    Domain errors pass through untouched; anything else is logged and
    re-raised as ``error_class`` with the original chained.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except ExplainRankError:
                raise
            except Exception as e:
                if logger:
                    logger.error(f"Error in {func.__name__}: {e}")
                raise error_class(str(e)) from e

        return wrapper

    return decorator
