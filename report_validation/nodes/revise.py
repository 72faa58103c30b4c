"""Revision node.

Hands the feedback plan to the content generator and collects the revised
report. When no generator is configured the workflow pauses with
interrupt() and resumes with the revised report supplied by the caller.
"""

import logging
from typing import Any, Awaitable, Callable

from langgraph.types import interrupt

from report_validation.errors import create_pipeline_error, log_error_with_context
from report_validation.nodes.services import ValidationServices, cancelled_update, now
from report_validation.state.enums import FailureKind, WorkflowStatus
from report_validation.state.models import Report
from report_validation.state.schema import ValidationState

logger = logging.getLogger(__name__)


def coerce_revised_report(value: Any, previous: Report) -> Report:
    """
    Turn a resume value into a Report for the same workflow.

    Accepts a Report, a serialized Report, or the bare report content.

    Raises:
        TypeError: If the value cannot be interpreted as a report
    """
    if isinstance(value, Report):
        report = value
    elif isinstance(value, dict) and "content" in value and isinstance(value["content"], dict):
        report = Report.model_validate({
            "workflow_id": previous.workflow_id,
            "kind": previous.kind,
            **value,
        })
    elif isinstance(value, dict):
        report = Report(workflow_id=previous.workflow_id, kind=previous.kind, content=value)
    else:
        raise TypeError(f"Cannot use {type(value).__name__} as a revised report")

    return report.model_copy(update={
        "workflow_id": previous.workflow_id,
        "iteration": previous.iteration + 1,
    })


def make_revise_node(
    services: ValidationServices,
) -> Callable[[ValidationState], Awaitable[dict[str, Any]]]:
    """Create the revise node bound to the workflow services."""

    async def revise_node(state: ValidationState) -> dict[str, Any]:
        if services.is_cancelled(state.get("workflow_id")):
            return cancelled_update(state, "revision")

        report = state["report"]
        plan = state["feedback_plan"]
        iteration = state.get("iteration", 0)

        if services.generator is None:
            logger.info(f"REVISE: awaiting revised report for iteration {iteration + 1}")
            revised = interrupt({
                "action": "revise_report",
                "workflow_id": report.workflow_id,
                "iteration": iteration,
                "feedback_plan": plan.model_dump(mode="json"),
                "instructions": (
                    "Apply the feedback plan and resume with the revised report "
                    "(a Report, or its content as a dict)."
                ),
            })
        else:
            logger.info(
                f"REVISE: sending {plan.metrics.total_items} feedback items to generator"
            )
            try:
                revised = await services.generator.revise(report, plan)
            except Exception as e:
                return _rejected(state, e, iteration, "Generator failed to revise the report")

        try:
            revised_report = coerce_revised_report(revised, report)
        except (TypeError, ValueError) as e:
            return _rejected(state, e, iteration, "Revised report was rejected")

        return {
            "report": revised_report,
            "applied_feedback": list(plan.recommended_sequence),
            "status": WorkflowStatus.REVISED,
            "updated_at": now(),
        }

    return revise_node


def _rejected(state: ValidationState, error: Exception, iteration: int, summary: str) -> dict[str, Any]:
    log_error_with_context(error, phase="revision", context={"iteration": iteration})
    return {
        "errors": list(state.get("errors", [])) + [
            create_pipeline_error(error, phase="revision", kind=FailureKind.INTERNAL_ERROR)
        ],
        "stop_reason": FailureKind.INTERNAL_ERROR,
        "stop_detail": f"{summary}: {error}",
        "updated_at": now(),
    }
