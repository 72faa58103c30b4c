"""Initial scoring node.

Scores every extracted node on the bounded worker pool and runs a deep
consistency check over the full node set. The batch always completes, so
the approval decision that follows sees a consistent snapshot.
"""

import logging
from typing import Any, Awaitable, Callable

from report_validation.nodes.services import ValidationServices, cancelled_update, now
from report_validation.state.enums import WorkflowStatus
from report_validation.state.schema import ValidationState

logger = logging.getLogger(__name__)


def make_score_node(
    services: ValidationServices,
) -> Callable[[ValidationState], Awaitable[dict[str, Any]]]:
    """Create the score node bound to the workflow services."""

    async def score_node(state: ValidationState) -> dict[str, Any]:
        if services.is_cancelled(state.get("workflow_id")):
            return cancelled_update(state, "scoring")

        nodes = state.get("nodes", {})
        batch = await services.scorer.score_batch(
            list(nodes.values()),
            state.get("node_profiles", {}),
        )
        consistency = services.checker.check(list(nodes.values()))

        degraded = batch.degraded_nodes
        if degraded:
            logger.warning(f"SCORE: degraded results for {degraded}")
        logger.info(
            f"SCORE: {len(batch.results)} nodes scored, consistency {consistency.score:.0f}"
        )

        return {
            "node_results": batch.results,
            "previous_results": {},
            "node_history": {node_id: [result] for node_id, result in batch.results.items()},
            "consistency": consistency,
            "errors": list(state.get("errors", [])) + batch.errors,
            "last_oracle_calls": batch.oracle_calls,
            "status": WorkflowStatus.SCORED,
            "updated_at": now(),
        }

    return score_node
