"""Re-evaluation node.

Re-extracts the revised report and runs one re-evaluation pass: only the
nodes affected by the revision are re-scored, every other node keeps its
previous result.
"""

import logging
from typing import Any, Awaitable, Callable

from report_validation.errors import MalformedNodeError, create_pipeline_error
from report_validation.extraction import classify_all, extract
from report_validation.nodes.services import ValidationServices, cancelled_update, now
from report_validation.state.enums import FailureKind, WorkflowStatus
from report_validation.state.schema import ValidationState

logger = logging.getLogger(__name__)


def make_reevaluate_node(
    services: ValidationServices,
) -> Callable[[ValidationState], Awaitable[dict[str, Any]]]:
    """Create the reevaluate node bound to the workflow services."""

    async def reevaluate_node(state: ValidationState) -> dict[str, Any]:
        if services.is_cancelled(state.get("workflow_id")):
            return cancelled_update(state, "reevaluation")

        report = state["report"]
        iteration = state.get("iteration", 0) + 1
        errors = list(state.get("errors", []))

        extraction = extract(report)
        current_nodes = extraction.node_map()
        warnings = list(extraction.metadata.warnings)

        if not current_nodes:
            errors.append(create_pipeline_error(
                MalformedNodeError("Revised report produced no validatable nodes", region="report"),
                phase="reevaluation",
                kind=FailureKind.EXTRACTION_WARNING,
            ))
            logger.warning(f"REEVALUATE: revised report {report.workflow_id} has no nodes")
            return {
                "extraction_metadata": extraction.metadata,
                "extraction_warnings": warnings,
                "errors": errors,
                "iteration": iteration,
                "stop_reason": FailureKind.EXTRACTION_WARNING,
                "stop_detail": "Revised report produced no validatable nodes",
                "updated_at": now(),
            }

        profiles = classify_all(list(current_nodes.values()))
        previous_results = state.get("node_results", {})

        outcome = await services.controller.reevaluate(
            previous_nodes=state.get("nodes", {}),
            previous_results=previous_results,
            current_nodes=current_nodes,
            applied_feedback=state.get("applied_feedback", []),
            iteration=iteration,
            previous_consistency=state.get("consistency"),
            profiles=profiles,
        )

        history = {
            node_id: list(results)
            for node_id, results in state.get("node_history", {}).items()
            if node_id in current_nodes
        }
        for node_id in outcome.revalidation.revalidated_nodes:
            history.setdefault(node_id, []).append(outcome.node_results[node_id])

        return {
            "previous_nodes": state.get("nodes", {}),
            "nodes": current_nodes,
            "node_profiles": profiles,
            "extraction_metadata": extraction.metadata,
            "extraction_warnings": warnings,
            "previous_results": previous_results,
            "node_results": outcome.node_results,
            "node_history": history,
            "consistency": outcome.consistency,
            "revalidation_history": list(state.get("revalidation_history", [])) + [
                outcome.revalidation
            ],
            "iteration": iteration,
            "errors": errors + outcome.errors,
            "last_oracle_calls": outcome.revalidation.metrics.oracle_calls,
            "status": WorkflowStatus.REEVALUATED,
            "updated_at": now(),
        }

    return reevaluate_node
