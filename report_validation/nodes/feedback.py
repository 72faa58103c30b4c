"""Feedback node.

Turns the current validation results and cross-node inconsistencies into a
prioritized, dependency-ordered remediation plan for the generator.
"""

import logging
from typing import Any, Callable

from report_validation.errors import FeedbackInputError, create_pipeline_error
from report_validation.feedback import FeedbackContext
from report_validation.nodes.services import ValidationServices, cancelled_update, now
from report_validation.state.enums import FailureKind, Urgency, WorkflowStatus
from report_validation.state.models import FeedbackPlan
from report_validation.state.schema import ValidationState

logger = logging.getLogger(__name__)


def feedback_context(services: ValidationServices, state: ValidationState) -> FeedbackContext:
    """Feedback context for the current iteration; the last allowed round is urgent."""
    config = services.config
    max_iterations = state.get("max_iterations", config.max_iterations)
    last_round = state.get("iteration", 0) + 1 >= max_iterations
    return FeedbackContext(
        confidence_threshold=config.confidence_threshold,
        urgency=Urgency.HIGH if last_round else Urgency.MEDIUM,
        report_kind=state["report"].kind,
        strict_mode=config.strict_mode,
    )


def build_plan(services: ValidationServices, state: ValidationState) -> FeedbackPlan:
    """
    Build the remediation plan for the current snapshot.

    Raises:
        FeedbackInputError: If results and nodes disagree
    """
    consistency = state.get("consistency")
    return services.synthesizer.plan_report(
        state.get("node_results", {}),
        state.get("nodes", {}),
        feedback_context(services, state),
        inconsistencies=consistency.inconsistencies if consistency else [],
    )


def make_feedback_node(services: ValidationServices) -> Callable[[ValidationState], dict[str, Any]]:
    """Create the feedback node bound to the workflow services."""

    def feedback_node(state: ValidationState) -> dict[str, Any]:
        if services.is_cancelled(state.get("workflow_id")):
            return cancelled_update(state, "feedback")

        try:
            plan = build_plan(services, state)
        except FeedbackInputError as e:
            logger.error(f"FEEDBACK: invalid synthesis input: {e}")
            return {
                "errors": list(state.get("errors", [])) + [
                    create_pipeline_error(e, phase="feedback", kind=FailureKind.INTERNAL_ERROR)
                ],
                "stop_reason": FailureKind.INTERNAL_ERROR,
                "stop_detail": f"Feedback synthesis rejected its input: {e.message}",
                "updated_at": now(),
            }

        update: dict[str, Any] = {
            "feedback_plan": plan,
            "status": WorkflowStatus.FEEDBACK_READY,
            "updated_at": now(),
        }

        if plan.is_empty():
            # Blockers remain but none of them maps to a node-level fix
            update["stop_reason"] = FailureKind.THRESHOLD_NOT_MET
            update["stop_detail"] = "No actionable feedback could be derived from the remaining blockers"
            logger.warning("FEEDBACK: empty plan, routing to manual review")
        else:
            logger.info(
                f"FEEDBACK: {plan.metrics.total_items} items, "
                f"{len(plan.parallelizable)} parallelizable"
            )

        return update

    return feedback_node
