"""Routing functions for the validation workflow graph.

This module contains all routing logic for conditional edges in the workflow,
extracted from the graph definition for modularity and testability.
"""

import logging
from typing import Literal

from report_validation.state.enums import ValidationStatus, WorkflowStatus
from report_validation.state.schema import ValidationState

logger = logging.getLogger(__name__)


# =============================================================================
# Stop Check Helper
# =============================================================================


def _cancelled(state: ValidationState) -> bool:
    return state.get("status") == WorkflowStatus.CANCELLED


def _should_stop(state: ValidationState) -> bool:
    """True when a node recorded why the loop cannot continue."""
    return state.get("stop_reason") is not None


# =============================================================================
# Routers
# =============================================================================


def route_after_extract(state: ValidationState) -> Literal["score", "manual_review", "__end__"]:
    """
    Route after the extract node.

    Args:
        state: Current workflow state

    Returns:
        "score", "manual_review" when nothing could be extracted, or "__end__"
        when the workflow was cancelled
    """
    if _cancelled(state):
        return "__end__"

    if _should_stop(state) or not state.get("nodes"):
        logger.warning("Routing to manual_review: no nodes extracted")
        return "manual_review"

    return "score"


def route_after_score(state: ValidationState) -> Literal["decide", "__end__"]:
    """Continue to the decision unless the workflow was cancelled."""
    if _cancelled(state):
        return "__end__"
    return "decide"


def route_after_decide(state: ValidationState) -> Literal["feedback", "manual_review", "__end__"]:
    """
    Route after the decide node.

    Approved reports end the workflow. Reports that cannot make further
    progress (iteration budget exhausted, stagnation or oscillation) go to
    manual review; everything else gets another feedback round.

    Args:
        state: Current workflow state

    Returns:
        Next node name or "__end__"
    """
    if _cancelled(state):
        return "__end__"

    if state.get("decision") == ValidationStatus.APPROVED:
        logger.info("Report approved, ending workflow")
        return "__end__"

    if _should_stop(state):
        logger.warning(f"Routing to manual_review: {state['stop_reason'].value}")
        return "manual_review"

    return "feedback"


def route_after_feedback(state: ValidationState) -> Literal["revise", "manual_review", "__end__"]:
    """Send a non-empty plan to revision; anything else needs a human."""
    if _cancelled(state):
        return "__end__"

    plan = state.get("feedback_plan")
    if _should_stop(state) or plan is None or plan.is_empty():
        return "manual_review"

    return "revise"


def route_after_revise(state: ValidationState) -> Literal["reevaluate", "manual_review", "__end__"]:
    if _cancelled(state):
        return "__end__"
    if _should_stop(state):
        return "manual_review"
    return "reevaluate"


def route_after_reevaluate(state: ValidationState) -> Literal["decide", "manual_review", "__end__"]:
    """
    Route after the reevaluate node.

    Args:
        state: Current workflow state

    Returns:
        "decide" for the next decision, "manual_review" when the revised
        report could not be evaluated, or "__end__" when cancelled
    """
    if _cancelled(state):
        return "__end__"
    if _should_stop(state):
        return "manual_review"
    return "decide"
