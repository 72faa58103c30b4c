"""End-to-end tests for the validation workflow with a scripted judge."""

import asyncio
import copy

import pytest

from report_validation.config import ValidationConfig
from report_validation.errors import JudgeError
from report_validation.state import (
    FailureKind,
    MetricCategory,
    Report,
    Severity,
    ValidationStatus,
    WorkflowStatus,
)


REVISED_INSIGHT = "The candidate asks two clarifying questions before starting new work."


class FailingGenerator:
    """Generator whose revision call always fails."""

    async def revise(self, report, plan):
        raise RuntimeError("generator offline")


# =============================================================================
# Approval Scenarios
# =============================================================================


class TestApprovalScenarios:
    """Report-level outcomes for the reference scenarios."""

    @pytest.mark.asyncio
    async def test_clean_report_is_approved(self, judge, make_workflow, make_report, five_node_content):
        """Five nodes, every metric above threshold and no issues."""
        result = await make_workflow(generator=None).run(make_report(five_node_content))

        assert result.status == WorkflowStatus.APPROVED
        assert result.approved
        assert result.overall_confidence >= 85
        assert result.iterations == 0
        assert len(result.node_results) == 5
        assert all(r.confidence == 93 for r in result.node_results.values())
        assert len(judge.calls) == 5 * 4
        assert result.blockers == []

    @pytest.mark.asyncio
    async def test_critical_bias_fails_regardless_of_average(
        self, judge, make_verdict, make_workflow, make_generator, report
    ):
        """A critical issue fails the workflow even when the node scores 90+."""
        judge.script(
            "curiosity",
            make_verdict(90, Severity.CRITICAL, description="Gender stereotype"),
            category=MetricCategory.BIAS,
        )
        result = await make_workflow(generator=make_generator()).run(report)

        assert result.node_results["insight_0"].confidence >= 85
        assert result.iteration_history[0].status == ValidationStatus.FAILED
        assert result.iteration_history[0].critical_issue_count == 1
        assert result.status == WorkflowStatus.FAILED
        assert "Resolve critical issues in: insight_0" in result.recommended_actions

    @pytest.mark.asyncio
    async def test_low_confidence_node_gets_feedback(
        self, judge, make_verdict, make_workflow, make_generator, report
    ):
        """A node at confidence 70 with medium issues gets a plan naming it."""
        judge.script("curiosity", make_verdict(67, Severity.MEDIUM, description="Claim is vague"))
        generator = make_generator()
        result = await make_workflow(generator=generator).run(report)

        first = result.iteration_history[0]
        assert first.status == ValidationStatus.REQUIRES_FURTHER_REVISION
        assert first.node_confidences["insight_0"] == 70

        plan = generator.plans[0]
        assert not plan.is_empty()
        assert "insight_0" in {item.node_id for item in plan.recommended_sequence}

    @pytest.mark.asyncio
    async def test_revision_reaches_approval(
        self, judge, make_verdict, make_workflow, make_generator, report_content
    ):
        judge.script("curiosity", make_verdict(67, Severity.MEDIUM, description="Claim is vague"))
        revised = copy.deepcopy(report_content)
        revised["insights"][0] = REVISED_INSIGHT

        result = await make_workflow(generator=make_generator([revised])).run(
            Report(content=report_content)
        )

        assert result.status == WorkflowStatus.APPROVED
        assert result.iterations == 1
        assert result.node_results["insight_0"].confidence == 93
        reval = result.revalidation_history[0]
        assert reval.revalidated_nodes == ["insight_0"]
        assert [i.description for i in reval.resolved_issues] == ["Claim is vague"] * 4


# =============================================================================
# Selective Re-scoring
# =============================================================================


class TestSelectiveRescoring:
    """Only nodes touched by a revision go back to the judge."""

    @pytest.mark.asyncio
    async def test_one_changed_node_in_eleven(
        self, judge, make_verdict, make_workflow, make_generator, eleven_node_content
    ):
        """Ten unchanged nodes and one changed score give one node's worth of calls."""
        judge.script('"score":40', make_verdict(67))
        revised = copy.deepcopy(eleven_node_content)
        revised["scores"]["ocean"]["raw"]["openness"] = 45

        result = await make_workflow(generator=make_generator([revised])).run(
            Report(content=eleven_node_content)
        )

        assert result.status == WorkflowStatus.APPROVED
        assert len(result.node_results) == 11
        assert len(judge.calls) == 11 * 4 + 4
        assert judge.calls_matching('"score":45') == 4

        reval = result.revalidation_history[0]
        assert reval.revalidated_nodes == ["ocean_openness"]
        assert reval.metrics.nodes_skipped == 10
        assert result.iteration_history[-1].oracle_calls == 4

    @pytest.mark.asyncio
    async def test_recommendation_change_rescores_summary(
        self, judge, make_verdict, make_workflow, make_generator, report_content
    ):
        judge.script("neighbouring teams", make_verdict(67))
        revised = copy.deepcopy(report_content)
        revised["recommendations"][0] = (
            "The candidate should run a monthly retrospective with the team for six months."
        )

        result = await make_workflow(generator=make_generator([revised])).run(
            Report(content=report_content)
        )

        reval = result.revalidation_history[0]
        assert reval.revalidated_nodes == ["recommendation_0", "executive_summary"]
        assert reval.metrics.oracle_calls == 8
        assert len(judge.calls) == 7 * 4 + 8
        assert result.status == WorkflowStatus.APPROVED

    @pytest.mark.asyncio
    async def test_shared_cache_skips_identical_report(self, judge, make_workflow, report):
        """A second workflow over the same content is served from the shared cache."""
        first = make_workflow()
        await first.run(report)
        judge.calls.clear()

        second = make_workflow(cache=first.cache)
        result = await second.run(Report(content=report.content))

        assert result.status == WorkflowStatus.APPROVED
        assert judge.calls == []
        assert second.scorer.stats.cache_hits == 7


# =============================================================================
# Regressions
# =============================================================================


class TestRegressions:
    """New issues introduced by a revision are tracked against the feedback."""

    @pytest.mark.asyncio
    async def test_regression_attributed_to_feedback(
        self, judge, make_verdict, make_workflow, make_generator, report_content
    ):
        judge.script("curiosity", make_verdict(70))
        judge.script(
            "curiosity",
            make_verdict(55, Severity.MEDIUM, description="Claim is vague"),
            category=MetricCategory.CLARITY,
        )
        judge.script(
            "synergistically",
            make_verdict(60, Severity.MEDIUM, description="Jargon obscures meaning"),
            category=MetricCategory.CLARITY,
        )
        revised = copy.deepcopy(report_content)
        revised["insights"][0] = "The candidate synergistically approaches unfamiliar problems."
        generator = make_generator([revised])

        result = await make_workflow(generator=generator).run(Report(content=report_content))

        # clarity 60 with the other metrics at 92 clears the bar
        assert result.status == WorkflowStatus.APPROVED
        regressions = result.regression_issues
        assert len(regressions) == 1
        assert regressions[0].issue.description == "Jargon obscures meaning"
        applied = generator.plans[0].recommended_sequence[0]
        assert applied.category == MetricCategory.CLARITY
        assert regressions[0].caused_by_feedback_id == applied.feedback_id


# =============================================================================
# Termination
# =============================================================================


class TestTermination:
    """Workflows that cannot reach approval stop with a reason."""

    @pytest.mark.asyncio
    async def test_stagnation_goes_to_manual_review(
        self, judge, make_verdict, make_workflow, make_generator, report
    ):
        """Unchanged revisions stop the loop before the iteration budget."""
        judge.script("curiosity", make_verdict(67))
        config = ValidationConfig(judge_timeout_seconds=5.0, max_iterations=5)
        generator = make_generator()

        result = await make_workflow(generator=generator, config_override=config).run(report)

        assert result.status == WorkflowStatus.MANUAL_REVIEW
        assert result.iterations == 2
        assert result.manual_review.reason == FailureKind.THRESHOLD_NOT_MET
        assert "stopped at iteration 2" in result.manual_review.summary
        assert len(generator.plans) == 2
        # Unchanged nodes are never re-scored
        assert len(judge.calls) == 7 * 4

    @pytest.mark.asyncio
    async def test_iteration_budget_exhausted(
        self, judge, make_verdict, make_workflow, make_generator, report_content
    ):
        judge.script("curiosity", make_verdict(67))
        judge.script("unfamiliar", make_verdict(67))
        revised = copy.deepcopy(report_content)
        revised["insights"][0] = "The candidate meets unfamiliar problems with patience."
        config = ValidationConfig(judge_timeout_seconds=5.0, max_iterations=1)

        result = await make_workflow(generator=make_generator([revised]), config_override=config).run(
            Report(content=report_content)
        )

        assert result.status == WorkflowStatus.FAILED
        assert result.iterations == 1
        assert result.manual_review.reason == FailureKind.ITERATION_BUDGET_EXHAUSTED
        budget_errors = [e for e in result.errors if e.kind == FailureKind.ITERATION_BUDGET_EXHAUSTED]
        assert len(budget_errors) == 1
        assert budget_errors[0].phase == "deciding"
        assert budget_errors[0].details["max_iterations"] == 1
        assert "Review nodes below the approval bar: insight_0" in result.recommended_actions
        assert result.feedback_plan is not None
        assert not result.feedback_plan.is_empty()

    @pytest.mark.asyncio
    async def test_report_without_nodes(self, judge, make_workflow):
        result = await make_workflow().run(Report(content={}))

        assert result.status == WorkflowStatus.MANUAL_REVIEW
        assert result.manual_review.reason == FailureKind.EXTRACTION_WARNING
        assert judge.calls == []

    @pytest.mark.asyncio
    async def test_generator_failure_fails_workflow(self, judge, make_verdict, make_workflow, report):
        judge.script("curiosity", make_verdict(67))
        result = await make_workflow(generator=FailingGenerator()).run(report)

        assert result.status == WorkflowStatus.FAILED
        assert result.manual_review.reason == FailureKind.INTERNAL_ERROR
        assert any("generator offline" in e.message for e in result.errors)
        assert "Inspect workflow errors before retrying" in result.recommended_actions

    @pytest.mark.asyncio
    async def test_strict_mode_blocks_high_issue(
        self, judge, make_verdict, make_workflow, make_generator, report
    ):
        judge.script(
            "curiosity",
            make_verdict(92, Severity.HIGH, description="Overstated claim"),
            category=MetricCategory.ACCURACY,
        )
        lenient = await make_workflow().run(report)
        assert lenient.status == WorkflowStatus.APPROVED

        strict = ValidationConfig(judge_timeout_seconds=5.0, max_iterations=3, strict_mode=True)
        result = await make_workflow(generator=make_generator(), config_override=strict).run(
            Report(content=report.content)
        )
        assert result.iteration_history[0].status == ValidationStatus.REQUIRES_FURTHER_REVISION
        assert result.status == WorkflowStatus.MANUAL_REVIEW


# =============================================================================
# Judge Outages
# =============================================================================


class TestJudgeOutage:
    """An unavailable judge degrades results instead of failing the run."""

    @pytest.mark.asyncio
    async def test_unavailable_judge_is_reported(
        self, judge, make_workflow, make_generator, report
    ):
        judge.script("curiosity", JudgeError("upstream 503"))
        config = ValidationConfig(judge_timeout_seconds=5.0, max_iterations=1)

        result = await make_workflow(generator=make_generator(), config_override=config).run(report)

        insight = result.node_results["insight_0"]
        assert set(insight.unavailable_metrics) == {
            MetricCategory.ACCURACY,
            MetricCategory.BIAS,
            MetricCategory.CLARITY,
            MetricCategory.CONSISTENCY,
        }
        assert result.degraded
        assert result.status == WorkflowStatus.FAILED
        assert {e.kind for e in result.errors} >= {FailureKind.JUDGE_UNAVAILABLE}
        assert all(r.confidence == 93 for node_id, r in result.node_results.items() if node_id != "insight_0")


# =============================================================================
# Cancellation
# =============================================================================


class TestCancellation:
    """Cancellation takes effect at the next phase boundary."""

    @pytest.mark.asyncio
    async def test_cancel_before_run(self, judge, make_workflow, report):
        workflow = make_workflow()
        workflow.cancel(report.workflow_id)
        result = await workflow.run(report)

        assert result.status == WorkflowStatus.CANCELLED
        assert judge.calls == []
        assert result.errors[0].kind == FailureKind.WORKFLOW_CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_during_scoring_completes_batch(self, judge, make_workflow, report):
        """A dispatched batch finishes; the workflow stops before deciding."""
        workflow = make_workflow()
        judge.on_call = lambda content, criterion: workflow.cancel(report.workflow_id)

        result = await workflow.run(report)

        assert workflow.is_cancelled(report.workflow_id)
        assert result.status == WorkflowStatus.CANCELLED
        assert len(judge.calls) == 7 * 4
        assert len(result.node_results) == 7
        assert result.decision is None

    @pytest.mark.asyncio
    async def test_instance_runs_again_after_cancel(self, judge, make_workflow, report):
        """Cancelling one workflow does not cancel later runs on the same instance."""
        workflow = make_workflow()
        workflow.cancel(report.workflow_id)
        first = await workflow.run(report)

        second_report = Report(content=report.content)
        second = await workflow.run(second_report)

        assert first.status == WorkflowStatus.CANCELLED
        assert second.status == WorkflowStatus.APPROVED
        assert not workflow.is_cancelled(second_report.workflow_id)
        assert len(judge.calls) == 7 * 4

    @pytest.mark.asyncio
    async def test_cancel_is_scoped_to_workflow_id(self, judge, make_workflow, report):
        workflow = make_workflow()
        other = Report(content=report.content)
        workflow.cancel(other.workflow_id)

        kept, cancelled = await asyncio.gather(workflow.run(report), workflow.run(other))

        assert kept.status == WorkflowStatus.APPROVED
        assert cancelled.status == WorkflowStatus.CANCELLED
        assert cancelled.workflow_id == other.workflow_id
