"""Graph definitions and workflow assembly for report validation.

This module provides:
- The validation workflow graph factory
- Routing functions for conditional edges
- ValidationWorkflow, the run/resume/cancel entry point
"""

from report_validation.graphs.routers import (
    route_after_decide,
    route_after_extract,
    route_after_feedback,
    route_after_reevaluate,
    route_after_revise,
    route_after_score,
)
from report_validation.graphs.validation_workflow import (
    WORKFLOW_NODES,
    ValidationWorkflow,
    WorkflowConfig,
    build_workflow_result,
    create_validation_workflow,
    recursion_limit,
)

__all__ = [
    # Workflow
    "WORKFLOW_NODES",
    "ValidationWorkflow",
    "WorkflowConfig",
    "build_workflow_result",
    "create_validation_workflow",
    "recursion_limit",
    # Routers
    "route_after_decide",
    "route_after_extract",
    "route_after_feedback",
    "route_after_reevaluate",
    "route_after_revise",
    "route_after_score",
]
