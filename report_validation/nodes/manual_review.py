"""Manual review node.

Terminal node for workflows that stop without approval. It explains which
nodes and issues blocked approval, at which iteration the workflow stopped,
and what a reviewer should do next. Workflows that exhausted their
iteration budget, or still carry a critical issue, end as failed; the
rest are handed to a human as manual review.
"""

import logging
from typing import Any, Callable

from report_validation.errors import FeedbackInputError
from report_validation.nodes.feedback import build_plan
from report_validation.nodes.services import ValidationServices, now
from report_validation.state.enums import FailureKind, WorkflowStatus
from report_validation.state.models import ApprovalBlocker, ManualReviewReport
from report_validation.state.schema import ValidationState

logger = logging.getLogger(__name__)

FAILED_REASONS = frozenset({
    FailureKind.ITERATION_BUDGET_EXHAUSTED,
    FailureKind.INTERNAL_ERROR,
})

REASON_SUMMARIES = {
    FailureKind.EXTRACTION_WARNING: "No validatable content could be extracted from the report",
    FailureKind.ITERATION_BUDGET_EXHAUSTED: "The iteration budget was exhausted before approval",
    FailureKind.THRESHOLD_NOT_MET: "Revisions stopped improving the report",
    FailureKind.CRITICAL_ISSUE_PRESENT: "Critical issues remain in the report",
    FailureKind.INTERNAL_ERROR: "The workflow could not continue",
}


def recommended_actions(
    blockers: list[ApprovalBlocker],
    next_steps: list[str],
    reason: FailureKind,
) -> list[str]:
    """Deduplicated next actions for a human reviewer."""
    actions: list[str] = []

    critical_nodes = sorted({
        b.node_id for b in blockers
        if b.reason == FailureKind.CRITICAL_ISSUE_PRESENT and b.node_id
    })
    if critical_nodes:
        actions.append(f"Resolve critical issues in: {', '.join(critical_nodes)}")

    low_nodes = sorted({
        b.node_id for b in blockers
        if b.reason == FailureKind.THRESHOLD_NOT_MET and b.node_id
    })
    if low_nodes:
        actions.append(f"Review nodes below the approval bar: {', '.join(low_nodes)}")

    if any(b.node_id is None for b in blockers):
        actions.append("Reconcile inconsistencies between nodes")

    if reason == FailureKind.EXTRACTION_WARNING:
        actions.append("Check the report structure against the expected regions")
    elif reason == FailureKind.INTERNAL_ERROR:
        actions.append("Inspect workflow errors before retrying")

    for step in next_steps:
        if step not in actions:
            actions.append(step)
    return actions


def make_manual_review_node(
    services: ValidationServices,
) -> Callable[[ValidationState], dict[str, Any]]:
    """Create the manual_review node bound to the workflow services."""

    def manual_review_node(state: ValidationState) -> dict[str, Any]:
        reason = state.get("stop_reason") or FailureKind.THRESHOLD_NOT_MET
        iteration = state.get("iteration", 0)
        blockers = state.get("blockers", [])
        results = state.get("node_results", {})

        has_critical = any(r.has_critical_issues() for r in results.values())
        if reason in FAILED_REASONS or has_critical:
            status = WorkflowStatus.FAILED
        else:
            status = WorkflowStatus.MANUAL_REVIEW

        update: dict[str, Any] = {}

        # The plan in state was built for the previous snapshot
        if results and reason != FailureKind.INTERNAL_ERROR:
            try:
                update["feedback_plan"] = build_plan(services, state)
            except FeedbackInputError as e:
                logger.error(f"MANUAL_REVIEW: could not build final feedback plan: {e}")

        revalidations = state.get("revalidation_history", [])
        next_steps = revalidations[-1].next_steps if revalidations else []

        summary = REASON_SUMMARIES.get(reason, "Approval was not reached")
        if state.get("stop_detail"):
            summary = f"{summary}: {state['stop_detail']}"
        summary = f"{summary} (stopped at iteration {iteration})"
        if blockers:
            blocked = sorted({b.node_id for b in blockers if b.node_id})
            summary += f". Blocking nodes: {', '.join(blocked) or 'report-level'}"

        review = ManualReviewReport(
            reason=reason,
            iteration=iteration,
            summary=summary,
            blockers=blockers,
            recommended_actions=recommended_actions(blockers, next_steps, reason),
        )

        logger.warning(f"MANUAL_REVIEW: {status.value}: {summary}")

        update.update({
            "manual_review": review,
            "stop_reason": reason,
            "status": status,
            "updated_at": now(),
        })
        return update

    return manual_review_node
