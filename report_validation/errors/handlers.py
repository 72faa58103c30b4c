"""Error handlers that turn exceptions into pipeline data.

Node-level failures never escape a workflow. The helpers here classify an
exception into the FailureKind taxonomy, build the PipelineError record
stored in workflow state and log the failure with its context.
"""

import logging
import traceback
from typing import Any

from report_validation.errors.exceptions import (
    FeedbackInputError,
    IterationBudgetExhaustedError,
    JudgeError,
    MalformedNodeError,
    ValidationPipelineError,
    WorkflowCancelledError,
)
from report_validation.state.enums import FailureKind
from report_validation.state.models import PipelineError

logger = logging.getLogger(__name__)


# =============================================================================
# Error Classification
# =============================================================================


def classify_failure(error: Exception) -> FailureKind:
    """Map an exception onto the pipeline failure taxonomy.

    Args:
        error: The exception

    Returns:
        FailureKind for the error
    """
    if isinstance(error, JudgeError):
        return FailureKind.JUDGE_UNAVAILABLE
    elif isinstance(error, (TimeoutError, ConnectionError)):
        return FailureKind.JUDGE_UNAVAILABLE
    elif isinstance(error, MalformedNodeError):
        return FailureKind.MALFORMED_NODE
    elif isinstance(error, FeedbackInputError):
        return FailureKind.MALFORMED_NODE
    elif isinstance(error, WorkflowCancelledError):
        return FailureKind.WORKFLOW_CANCELLED
    elif isinstance(error, IterationBudgetExhaustedError):
        return FailureKind.ITERATION_BUDGET_EXHAUSTED
    else:
        return FailureKind.INTERNAL_ERROR


# =============================================================================
# Error Record Creation
# =============================================================================


def create_pipeline_error(
    error: Exception,
    phase: str,
    node_id: str | None = None,
    kind: FailureKind | None = None,
) -> PipelineError:
    """Create a PipelineError record from an exception.

    Args:
        error: The exception that occurred
        phase: Pipeline phase where the error occurred
        node_id: Node the error relates to, if any
        kind: Failure kind (auto-detected if not provided)

    Returns:
        PipelineError for state tracking
    """
    if kind is None:
        kind = classify_failure(error)

    if isinstance(error, ValidationPipelineError):
        message = error.message
        recoverable = error.recoverable
        details = dict(error.details)
    else:
        message = str(error) or error.__class__.__name__
        recoverable = True
        details = {"original_type": error.__class__.__name__}

    return PipelineError(
        kind=kind,
        phase=phase,
        node_id=node_id,
        message=message,
        recoverable=recoverable,
        details=details,
    )


# =============================================================================
# Error Logging
# =============================================================================


def log_error_with_context(
    error: Exception,
    phase: str | None = None,
    context: dict[str, Any] | None = None,
    level: int = logging.ERROR,
) -> None:
    """Log an error with full context.

    Args:
        error: The exception that occurred
        phase: Pipeline phase where the error occurred
        context: Additional context to log
        level: Logging level (default: ERROR)
    """
    parts = [f"Error: {error.__class__.__name__}: {error}"]

    if phase:
        parts.append(f"Phase: {phase}")

    if isinstance(error, ValidationPipelineError):
        if error.details:
            parts.append(f"Details: {error.details}")
        parts.append(f"Recoverable: {error.recoverable}")

    if context:
        parts.append(f"Context: {context}")

    logger.log(level, " | ".join(parts))
    logger.debug(f"Traceback:\n{traceback.format_exc()}")
