"""Error handling for the report validation pipeline.

This module provides:
- Custom exception types raised at judge and input seams
- RetryPolicy configuration and the retrying judge-call helper
- Handlers that convert exceptions into PipelineError records
"""

from report_validation.errors.exceptions import (
    ValidationPipelineError,
    JudgeError,
    JudgeTimeoutError,
    JudgeRateLimitError,
    JudgeUnavailableError,
    MalformedNodeError,
    FeedbackInputError,
    WorkflowCancelledError,
    IterationBudgetExhaustedError,
)
from report_validation.errors.policies import (
    RetryPolicy,
    create_judge_retry_policy,
    create_test_retry_policy,
    call_with_retry,
    DEFAULT_RETRY_POLICY,
)
from report_validation.errors.handlers import (
    classify_failure,
    create_pipeline_error,
    log_error_with_context,
)

__all__ = [
    # Exceptions
    "ValidationPipelineError",
    "JudgeError",
    "JudgeTimeoutError",
    "JudgeRateLimitError",
    "JudgeUnavailableError",
    "MalformedNodeError",
    "FeedbackInputError",
    "WorkflowCancelledError",
    "IterationBudgetExhaustedError",
    # Policies
    "RetryPolicy",
    "create_judge_retry_policy",
    "create_test_retry_policy",
    "call_with_retry",
    "DEFAULT_RETRY_POLICY",
    # Handlers
    "classify_failure",
    "create_pipeline_error",
    "log_error_with_context",
]
