"""Extraction node.

Decomposes the incoming report into nodes and assigns each node its
validation profile. Extraction problems never fail the workflow; they are
carried as warnings on the state.
"""

import logging
from typing import Any, Callable

from report_validation.errors import MalformedNodeError, create_pipeline_error
from report_validation.extraction import classify_all, extract
from report_validation.nodes.services import ValidationServices, cancelled_update, now
from report_validation.state.enums import FailureKind, WorkflowStatus
from report_validation.state.schema import ValidationState

logger = logging.getLogger(__name__)


def make_extract_node(services: ValidationServices) -> Callable[[ValidationState], dict[str, Any]]:
    """Create the extract node bound to the workflow services."""

    def extract_node(state: ValidationState) -> dict[str, Any]:
        if services.is_cancelled(state.get("workflow_id")):
            return cancelled_update(state, "extraction")

        report = state["report"]
        extraction = extract(report)
        nodes = extraction.node_map()
        warnings = list(extraction.metadata.warnings)

        logger.info(
            f"EXTRACT: {len(nodes)} nodes from {report.kind.value} report "
            f"{report.workflow_id} ({len(warnings)} warnings)"
        )

        update: dict[str, Any] = {
            "nodes": nodes,
            "previous_nodes": {},
            "node_profiles": classify_all(list(nodes.values())),
            "extraction_metadata": extraction.metadata,
            "extraction_warnings": warnings,
            "status": WorkflowStatus.EXTRACTED,
            "updated_at": now(),
        }

        if not nodes:
            error = create_pipeline_error(
                MalformedNodeError("Report produced no validatable nodes", region="report"),
                phase="extraction",
                kind=FailureKind.EXTRACTION_WARNING,
            )
            update["errors"] = list(state.get("errors", [])) + [error]
            update["stop_reason"] = FailureKind.EXTRACTION_WARNING
            update["stop_detail"] = "Report produced no validatable nodes"
            logger.warning(f"EXTRACT: no nodes extracted from {report.workflow_id}")

        return update

    return extract_node
