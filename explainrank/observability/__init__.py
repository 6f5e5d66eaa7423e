"""
ExplainRank Observability Module
================================

Structured logging and request/operation context.
"""

from .logging_config import (
    ContextFormatter,
    OperationContext,
    OperationLogger,
    StructuredFormatter,
    current_context,
    generate_operation_id,
    generate_request_id,
    get_explanation_id,
    get_logger,
    get_operation_id,
    get_request_id,
    get_user_id,
    log_exception,
    set_operation_id,
    set_request_id,
    set_user_id,
    setup_logging,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "OperationContext",
    "OperationLogger",
    "get_request_id",
    "set_request_id",
    "get_operation_id",
    "set_operation_id",
    "get_user_id",
    "set_user_id",
    "get_explanation_id",
    "current_context",
    "generate_request_id",
    "generate_operation_id",
    "StructuredFormatter",
    "ContextFormatter",
    "log_exception",
]
