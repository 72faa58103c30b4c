"""Decision node.

Renders the per-iteration status from the current snapshot and decides
whether the loop may continue. A report is approved only when every node
meets the confidence threshold, no critical issue remains and cross-node
consistency meets its threshold.
"""

import logging
from typing import Any, Callable

from report_validation.errors import IterationBudgetExhaustedError, create_pipeline_error
from report_validation.nodes.services import ValidationServices, cancelled_update, now
from report_validation.reevaluation import check_convergence
from report_validation.state.enums import FailureKind, ValidationStatus, WorkflowStatus
from report_validation.state.models import (
    IterationRecord,
    calculate_report_confidence,
    collect_approval_blockers,
    determine_validation_status,
)
from report_validation.state.schema import ValidationState

logger = logging.getLogger(__name__)


def make_decide_node(services: ValidationServices) -> Callable[[ValidationState], dict[str, Any]]:
    """Create the decide node bound to the workflow services."""
    config = services.config

    def decide_node(state: ValidationState) -> dict[str, Any]:
        if services.is_cancelled(state.get("workflow_id")):
            return cancelled_update(state, "deciding")

        results = state.get("node_results", {})
        consistency = state.get("consistency")
        consistency_score = consistency.score if consistency else 100.0
        iteration = state.get("iteration", 0)

        blockers = collect_approval_blockers(
            results,
            consistency_score,
            confidence_threshold=config.confidence_threshold,
            consistency_threshold=config.consistency_threshold,
            strict_mode=config.strict_mode,
        )
        decision = determine_validation_status(blockers)
        overall = calculate_report_confidence(results, state.get("nodes", {}))

        record = IterationRecord(
            iteration=iteration,
            status=decision,
            overall_confidence=overall,
            node_confidences={node_id: r.confidence for node_id, r in results.items()},
            consistency_score=consistency_score,
            critical_issue_count=sum(len(r.get_critical_issues()) for r in results.values()),
            blockers=blockers,
            oracle_calls=state.get("last_oracle_calls", 0),
        )
        history = list(state.get("iteration_history", [])) + [record]

        logger.info(
            f"DECIDE: iteration {iteration}, decision={decision.value}, "
            f"confidence={overall:.1f}, blockers={len(blockers)}"
        )

        update: dict[str, Any] = {
            "decision": decision,
            "blockers": blockers,
            "overall_confidence": overall,
            "iteration_history": history,
            "updated_at": now(),
        }

        if decision == ValidationStatus.APPROVED:
            update["status"] = WorkflowStatus.APPROVED
            update["stop_reason"] = None
            return update

        max_iterations = state.get("max_iterations", config.max_iterations)
        if iteration >= max_iterations:
            detail = f"Not approved after {iteration} of {max_iterations} iterations"
            error = create_pipeline_error(
                IterationBudgetExhaustedError(detail, iterations=iteration, max_iterations=max_iterations),
                phase="deciding",
            )
            update["stop_reason"] = FailureKind.ITERATION_BUDGET_EXHAUSTED
            update["stop_detail"] = detail
            update["errors"] = list(state.get("errors", [])) + [error]
            logger.warning(f"DECIDE: iteration budget exhausted at iteration {iteration}")
            return update

        convergence = check_convergence(
            [r.overall_confidence for r in history],
            config.min_improvement_rate,
            config.max_iterations_without_improvement,
        )
        if convergence.should_stop:
            update["stop_reason"] = FailureKind.THRESHOLD_NOT_MET
            update["stop_detail"] = convergence.reason

        return update

    return decide_node
