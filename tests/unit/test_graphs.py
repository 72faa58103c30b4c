"""Unit tests for graph routing and workflow helpers."""

import pytest

from report_validation.graphs import (
    WORKFLOW_NODES,
    build_workflow_result,
    recursion_limit,
    route_after_decide,
    route_after_extract,
    route_after_feedback,
    route_after_reevaluate,
    route_after_revise,
    route_after_score,
)
from report_validation.nodes.revise import coerce_revised_report
from report_validation.state import (
    FailureKind,
    FeedbackPlan,
    ManualReviewReport,
    Report,
    ReportNode,
    RevalidationResult,
    ValidationStatus,
    WorkflowStatus,
    create_initial_state,
)
from report_validation.state.enums import NodeType


@pytest.fixture
def state(report):
    state = create_initial_state(report)
    state["nodes"] = {"context_factors": ReportNode(id="context_factors", type=NodeType.CONTEXT, content={})}
    return state


class TestRouteAfterExtract:
    """Tests for route_after_extract."""

    def test_nodes_go_to_scoring(self, state):
        assert route_after_extract(state) == "score"

    def test_no_nodes_go_to_manual_review(self, state):
        state["nodes"] = {}
        assert route_after_extract(state) == "manual_review"

    def test_cancelled_ends(self, state):
        state["status"] = WorkflowStatus.CANCELLED
        assert route_after_extract(state) == "__end__"


class TestRouteAfterDecide:
    """Tests for route_after_decide."""

    def test_approved_ends(self, state):
        state["decision"] = ValidationStatus.APPROVED
        assert route_after_decide(state) == "__end__"

    def test_stop_reason_goes_to_manual_review(self, state):
        state["decision"] = ValidationStatus.REQUIRES_FURTHER_REVISION
        state["stop_reason"] = FailureKind.ITERATION_BUDGET_EXHAUSTED
        assert route_after_decide(state) == "manual_review"

    def test_failed_iteration_gets_feedback(self, state):
        """A critical issue fails the iteration but still gets a feedback round."""
        state["decision"] = ValidationStatus.FAILED
        assert route_after_decide(state) == "feedback"

    def test_cancelled_wins_over_approval(self, state):
        state["decision"] = ValidationStatus.APPROVED
        state["status"] = WorkflowStatus.CANCELLED
        assert route_after_decide(state) == "__end__"


class TestLoopRouters:
    """Tests for the routers inside the revision loop."""

    def test_score_goes_to_decide(self, state):
        assert route_after_score(state) == "decide"

    def test_empty_plan_goes_to_manual_review(self, state):
        state["feedback_plan"] = FeedbackPlan()
        assert route_after_feedback(state) == "manual_review"
        state["feedback_plan"] = None
        assert route_after_feedback(state) == "manual_review"

    def test_revise_routes(self, state):
        assert route_after_revise(state) == "reevaluate"
        state["stop_reason"] = FailureKind.INTERNAL_ERROR
        assert route_after_revise(state) == "manual_review"

    def test_reevaluate_routes(self, state):
        assert route_after_reevaluate(state) == "decide"
        state["stop_reason"] = FailureKind.EXTRACTION_WARNING
        assert route_after_reevaluate(state) == "manual_review"
        state["status"] = WorkflowStatus.CANCELLED
        assert route_after_reevaluate(state) == "__end__"


class TestCoerceRevisedReport:
    """Tests for turning resume values into reports."""

    def test_report_keeps_workflow_identity(self, report):
        revised = coerce_revised_report(Report(content={"executiveSummary": "New."}), report)
        assert revised.workflow_id == report.workflow_id
        assert revised.iteration == report.iteration + 1

    def test_serialized_report(self, report):
        revised = coerce_revised_report({"content": {"executiveSummary": "New."}}, report)
        assert revised.content == {"executiveSummary": "New."}
        assert revised.kind == report.kind

    def test_bare_content(self, report):
        revised = coerce_revised_report({"executiveSummary": "New."}, report)
        assert revised.content == {"executiveSummary": "New."}
        assert revised.workflow_id == report.workflow_id

    def test_unusable_value(self, report):
        with pytest.raises(TypeError):
            coerce_revised_report("new text", report)


class TestWorkflowHelpers:
    """Tests for recursion_limit and build_workflow_result."""

    def test_recursion_limit_grows_with_iterations(self):
        assert recursion_limit(1) < recursion_limit(3)
        assert recursion_limit(3) >= len(WORKFLOW_NODES) + 3 * 4

    def test_actions_come_from_manual_review(self, state):
        state["manual_review"] = ManualReviewReport(
            reason=FailureKind.THRESHOLD_NOT_MET,
            iteration=2,
            summary="stalled",
            recommended_actions=["Rewrite the summary"],
        )
        result = build_workflow_result(state, 85)
        assert result.recommended_actions == ["Rewrite the summary"]

    def test_actions_fall_back_to_last_revalidation(self, state):
        state["revalidation_history"] = [RevalidationResult(
            iteration=1,
            status=ValidationStatus.APPROVED,
            next_steps=["Assessment meets quality standards"],
        )]
        result = build_workflow_result(state, 85)
        assert result.recommended_actions == ["Assessment meets quality standards"]

    def test_status_override(self, state):
        result = build_workflow_result(state, 85, status=WorkflowStatus.AWAITING_REVISION)
        assert result.status == WorkflowStatus.AWAITING_REVISION
        assert result.workflow_id == state["workflow_id"]
