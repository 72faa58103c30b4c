"""ValidationState schema for the validation workflow graph.

This module defines the state object that flows through all nodes in the
LangGraph validation workflow. Each workflow owns its state; nothing here
is shared between concurrent workflows.
"""

from datetime import datetime, timezone

from typing_extensions import TypedDict

from report_validation.state.enums import FailureKind, ValidationStatus, WorkflowStatus
from report_validation.state.models import (
    ApprovalBlocker,
    ConsistencyResult,
    ExtractionMetadata,
    ExtractionWarning,
    Feedback,
    FeedbackPlan,
    IterationRecord,
    ManualReviewReport,
    NodeProfile,
    PipelineError,
    Report,
    ReportNode,
    RevalidationResult,
    ValidationResult,
)


class ValidationState(TypedDict, total=False):
    """
    Central state schema for the validation workflow.

    The state is structured in logical groups:
    1. Report context - the report under validation and its nodes
    2. Scoring context - current and superseded validation results
    3. Feedback context - the plan handed to the generator
    4. Re-evaluation history
    5. Workflow metadata - status, iteration counters, errors

    Usage with LangGraph:
        ```python
        from langgraph.graph import StateGraph
        from report_validation.state import ValidationState

        graph = StateGraph(ValidationState)
        ```
    """

    # =========================================================================
    # Report Context
    # =========================================================================

    workflow_id: str
    report: Report

    # Current nodes keyed by id
    nodes: dict[str, ReportNode]

    # Nodes from the previous iteration, kept for change analysis
    previous_nodes: dict[str, ReportNode]

    node_profiles: dict[str, NodeProfile]
    extraction_metadata: ExtractionMetadata | None
    extraction_warnings: list[ExtractionWarning]

    # =========================================================================
    # Scoring Context
    # =========================================================================

    # Exactly one current result per node
    node_results: dict[str, ValidationResult]

    # Results superseded by the latest re-evaluation
    previous_results: dict[str, ValidationResult]

    # Every result per node, oldest first
    node_history: dict[str, list[ValidationResult]]

    consistency: ConsistencyResult | None
    overall_confidence: float
    decision: ValidationStatus | None
    blockers: list[ApprovalBlocker]

    # =========================================================================
    # Feedback Context
    # =========================================================================

    feedback_plan: FeedbackPlan | None

    # Feedback handed to the generator for the revision now being evaluated
    applied_feedback: list[Feedback]

    # =========================================================================
    # Re-evaluation History
    # =========================================================================

    revalidation_history: list[RevalidationResult]
    iteration_history: list[IterationRecord]

    # =========================================================================
    # Workflow Metadata
    # =========================================================================

    status: WorkflowStatus

    # Number of feedback/re-evaluation iterations completed
    iteration: int
    max_iterations: int

    # Why the workflow stopped without approval
    stop_reason: FailureKind | None
    stop_detail: str
    manual_review: ManualReviewReport | None

    errors: list[PipelineError]

    # Oracle calls made by the most recent scoring pass
    last_oracle_calls: int

    created_at: datetime
    updated_at: datetime


def create_initial_state(report: Report, max_iterations: int = 3) -> ValidationState:
    """
    Create an initial ValidationState for a report.

    Args:
        report: Report supplied by the generator.
        max_iterations: Bound on feedback/re-evaluation iterations.

    Returns:
        Initialized ValidationState.
    """
    now = datetime.now(timezone.utc)

    return {
        "workflow_id": report.workflow_id,
        "report": report,
        "nodes": {},
        "previous_nodes": {},
        "node_profiles": {},
        "extraction_metadata": None,
        "extraction_warnings": [],
        "node_results": {},
        "previous_results": {},
        "node_history": {},
        "consistency": None,
        "overall_confidence": 0.0,
        "decision": None,
        "blockers": [],
        "feedback_plan": None,
        "applied_feedback": [],
        "revalidation_history": [],
        "iteration_history": [],
        "status": WorkflowStatus.INITIALIZED,
        "iteration": 0,
        "max_iterations": max_iterations,
        "stop_reason": None,
        "stop_detail": "",
        "manual_review": None,
        "errors": [],
        "last_oracle_calls": 0,
        "created_at": now,
        "updated_at": now,
    }
