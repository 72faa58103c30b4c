"""Collaborators shared by the validation graph nodes.

Graph nodes are built by factory functions that close over a
ValidationServices instance. Nothing in here is stored in graph state, so
state stays serializable for checkpointing.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from report_validation.config import ValidationConfig
from report_validation.errors import WorkflowCancelledError, create_pipeline_error
from report_validation.feedback import FeedbackSynthesizer
from report_validation.reevaluation import ConsistencyChecker, ReevaluationController
from report_validation.scoring import ConfidenceScorer
from report_validation.state.enums import FailureKind, WorkflowStatus
from report_validation.state.models import FeedbackPlan, Report
from report_validation.state.schema import ValidationState

logger = logging.getLogger(__name__)


@runtime_checkable
class ReportGenerator(Protocol):
    """Content generator that applies a feedback plan to a report."""

    async def revise(self, report: Report, plan: FeedbackPlan) -> Report:
        """Return the revised report."""
        ...


@dataclass
class ValidationServices:
    """Everything a graph node needs besides the state."""

    config: ValidationConfig
    scorer: ConfidenceScorer
    synthesizer: FeedbackSynthesizer = field(default_factory=FeedbackSynthesizer)
    checker: ConsistencyChecker | None = None
    controller: ReevaluationController | None = None
    generator: ReportGenerator | None = None
    cancelled_ids: set[str] = field(default_factory=set)
    _cancel_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self):
        if self.checker is None:
            self.checker = ConsistencyChecker(self.config.consistency_depth)
        if self.controller is None:
            self.controller = ReevaluationController(self.scorer, self.checker, self.config)

    def cancel(self, workflow_id: str) -> None:
        with self._cancel_lock:
            self.cancelled_ids.add(workflow_id)

    def is_cancelled(self, workflow_id: str | None) -> bool:
        with self._cancel_lock:
            return workflow_id in self.cancelled_ids


def now() -> datetime:
    return datetime.now(timezone.utc)


def cancelled_update(state: ValidationState, phase: str) -> dict:
    """State update that ends the workflow as cancelled before a phase runs."""
    logger.warning(f"Workflow {state.get('workflow_id')} cancelled before {phase}")
    error = create_pipeline_error(
        WorkflowCancelledError(f"Workflow cancelled before {phase}", phase=phase),
        phase=phase,
    )
    return {
        "status": WorkflowStatus.CANCELLED,
        "stop_reason": FailureKind.WORKFLOW_CANCELLED,
        "stop_detail": f"Cancelled before {phase}",
        "errors": list(state.get("errors", [])) + [error],
        "updated_at": now(),
    }
