"""Custom exception types for the report validation pipeline.

Exceptions are used at the seams where something can actually be raised:
judge calls, malformed nodes and malformed feedback input. Everything that
reaches a workflow result is converted into a PipelineError record.
"""

from typing import Any


class ValidationPipelineError(Exception):
    """Base exception for all validation pipeline errors.

    Attributes:
        message: Human-readable error description
        details: Additional error context
        recoverable: Whether the workflow can continue after this error
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        recoverable: bool = True,
    ):
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# Judge Errors
# =============================================================================


class JudgeError(ValidationPipelineError):
    """Error returned by the judge oracle."""

    def __init__(
        self,
        message: str,
        criterion: str | None = None,
        node_id: str | None = None,
        details: dict[str, Any] | None = None,
        recoverable: bool = True,
    ):
        details = details or {}
        if criterion:
            details["criterion"] = criterion
        if node_id:
            details["node_id"] = node_id
        super().__init__(message, details, recoverable)
        self.criterion = criterion
        self.node_id = node_id


class JudgeTimeoutError(JudgeError):
    """A judge call exceeded its timeout."""

    def __init__(
        self,
        message: str,
        timeout_seconds: float,
        criterion: str | None = None,
        node_id: str | None = None,
    ):
        super().__init__(
            message,
            criterion=criterion,
            node_id=node_id,
            details={"timeout_seconds": timeout_seconds},
        )
        self.timeout_seconds = timeout_seconds


class JudgeRateLimitError(JudgeError):
    """The judge backend is throttling requests.

    Attributes:
        retry_after: Seconds to wait before retrying (if provided)
    """

    def __init__(
        self,
        message: str,
        retry_after: float | None = None,
        criterion: str | None = None,
    ):
        details = {}
        if retry_after:
            details["retry_after"] = retry_after
        super().__init__(message, criterion=criterion, details=details)
        self.retry_after = retry_after


class JudgeUnavailableError(JudgeError):
    """All attempts against the judge were exhausted."""

    def __init__(
        self,
        message: str,
        attempts: int,
        last_error: Exception | None = None,
        criterion: str | None = None,
        node_id: str | None = None,
    ):
        details = {"attempts": attempts}
        if last_error is not None:
            details["last_error"] = f"{last_error.__class__.__name__}: {last_error}"
        super().__init__(
            message,
            criterion=criterion,
            node_id=node_id,
            details=details,
        )
        self.attempts = attempts
        self.last_error = last_error


# =============================================================================
# Data Errors
# =============================================================================


class MalformedNodeError(ValidationPipelineError):
    """A report region could not be turned into a valid node.

    The node is skipped and the workflow is marked degraded, not failed.
    """

    def __init__(
        self,
        message: str,
        region: str,
        path: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        details["region"] = region
        if path:
            details["path"] = path
        super().__init__(message, details, recoverable=True)
        self.region = region
        self.path = path


class FeedbackInputError(ValidationPipelineError):
    """Feedback synthesis was given malformed input.

    This is the one pipeline error that is raised to the caller.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details, recoverable=False)
        self.field = field


# =============================================================================
# Workflow Errors
# =============================================================================


class WorkflowCancelledError(ValidationPipelineError):
    """The workflow was cancelled between phases."""

    def __init__(self, message: str, phase: str):
        super().__init__(message, {"phase": phase}, recoverable=False)
        self.phase = phase


class IterationBudgetExhaustedError(ValidationPipelineError):
    """The workflow ran out of feedback/re-evaluation iterations."""

    def __init__(self, message: str, iterations: int, max_iterations: int):
        super().__init__(
            message,
            {"iterations": iterations, "max_iterations": max_iterations},
            recoverable=False,
        )
        self.iterations = iterations
        self.max_iterations = max_iterations
