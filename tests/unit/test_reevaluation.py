"""Tests for incremental re-evaluation.

This module tests:
- Change analysis between node snapshots
- Cross-node consistency checks (deep and shallow)
- Node history trends and convergence checks
- ReevaluationController selective re-scoring and issue tracking
"""

import copy

import pytest

from report_validation.cache import ValidationCache
from report_validation.config import ValidationConfig
from report_validation.extraction import extract
from report_validation.reevaluation import (
    ConsistencyChecker,
    ReevaluationController,
    ReevaluationPhase,
    analyze_node_change,
    analyze_node_history,
    change_scope,
    check_convergence,
    consistency_score,
    diff_inconsistencies,
    feedback_recommendation,
    revalidation_candidates,
)
from report_validation.reevaluation.history import improvement_velocity, stability_score
from report_validation.scoring import ConfidenceScorer
from report_validation.state.enums import (
    ChangeScope,
    ChangeType,
    ConsistencyDepth,
    FeedbackRecommendation,
    InconsistencyKind,
    MetricCategory,
    NodeType,
    Severity,
    ValidationStatus,
)
from report_validation.state.models import (
    ConsistencyResult,
    Feedback,
    Inconsistency,
    Issue,
    Report,
    ReportNode,
    ValidationResult,
    ValidationResultMetadata,
)


def node_map(content):
    return extract(Report(content=content)).node_map()


def text_node(node_id, node_type, text):
    return ReportNode(id=node_id, type=node_type, content={"text": text})


def scoring_node(trait, score, percentile=None):
    content = {"trait": trait, "score": score}
    if percentile is not None:
        content["percentile"] = percentile
    return ReportNode(id=f"ocean_{trait}", type=NodeType.SCORING, content=content)


def history_result(confidence, issues=None):
    return ValidationResult(
        node_id="insight_0",
        node_type=NodeType.INSIGHT,
        confidence=confidence,
        issues=issues or [],
        metadata=ValidationResultMetadata(judge_version="test", content_hash="h"),
    )


# =============================================================================
# Change Analysis
# =============================================================================


class TestChangeDetector:
    """Tests for analyze_node_change()."""

    def test_identical_node_is_unchanged(self, report_content):
        nodes = node_map(report_content)
        assert analyze_node_change(nodes["insight_0"], nodes["insight_0"], nodes) is None

    def test_new_node_is_structural(self, report_content):
        nodes = node_map(report_content)
        analysis = analyze_node_change(None, nodes["recommendation_0"], nodes)
        assert analysis.change_type == ChangeType.STRUCTURE
        assert analysis.change_scope == ChangeScope.MAJOR
        assert analysis.revalidation_required
        assert analysis.affected_nodes == ["executive_summary"]

    def test_content_change(self, report_content):
        before = node_map(report_content)
        revised = copy.deepcopy(report_content)
        revised["insights"][0] = revised["insights"][0].replace("curiosity", "care")
        after = node_map(revised)

        analysis = analyze_node_change(before["insight_0"], after["insight_0"], after)
        assert analysis.change_type == ChangeType.CONTENT
        assert analysis.change_scope == ChangeScope.MINOR
        assert analysis.revalidation_required
        assert analysis.consistency_check_required is False

    def test_recommendation_change_reaches_dependents(self, report_content):
        before = node_map(report_content)
        revised = copy.deepcopy(report_content)
        revised["recommendations"][0] = "Run a monthly retrospective with the team for six months."
        after = node_map(revised)

        analysis = analyze_node_change(before["recommendation_0"], after["recommendation_0"], after)
        assert analysis.consistency_check_required is True
        assert analysis.affected_nodes == ["executive_summary"]

    def test_metadata_only_change_needs_no_rescoring(self, report_content):
        nodes = node_map(report_content)
        before = nodes["executive_summary"]
        after = before.model_copy(update={
            "metadata": before.metadata.model_copy(update={"dependencies": ["ocean_openness"]})
        })
        analysis = analyze_node_change(before, after, nodes)
        assert analysis.change_type == ChangeType.METADATA
        assert analysis.revalidation_required is False

    @pytest.mark.parametrize("similarity,scope", [
        (95, ChangeScope.MINOR),
        (90, ChangeScope.MODERATE),
        (75, ChangeScope.MODERATE),
        (70, ChangeScope.MAJOR),
    ])
    def test_change_scope_thresholds(self, similarity, scope):
        assert change_scope(similarity) == scope


# =============================================================================
# Consistency
# =============================================================================


class TestConsistencyChecks:
    """Tests for the three detectors and the score."""

    def test_quoted_score_disagreeing_with_data(self):
        nodes = [
            scoring_node("openness", 72, percentile=78),
            text_node("executive_summary", NodeType.SUMMARY, "The candidate shows openness score of 90."),
        ]
        found = ConsistencyChecker().detect(nodes)
        assert [i.kind for i in found] == [InconsistencyKind.DATA_VALUE]
        assert found[0].node_ids == ["executive_summary", "ocean_openness"]
        assert consistency_score(found) == 90.0

    def test_percentile_and_rounding_are_accepted(self):
        nodes = [
            scoring_node("openness", 72, percentile=78),
            text_node("insight_0", NodeType.INSIGHT, "The candidate sits at openness 78th percentile."),
            text_node("insight_1", NodeType.INSIGHT, "The candidate has openness of 72.5 overall."),
        ]
        assert ConsistencyChecker().detect(nodes) == []

    def test_compound_trait_names(self):
        nodes = [
            ReportNode(id="ocean_emotional_stability", type=NodeType.SCORING,
                       content={"trait": "emotional_stability", "score": 60}),
            text_node("insight_0", NodeType.INSIGHT, "The candidate's emotional stability is 85."),
        ]
        assert len(ConsistencyChecker().detect(nodes)) == 1

    def test_terminology_variants(self):
        nodes = [
            text_node("insight_0", NodeType.INSIGHT, "The candidate's decision-making is careful."),
            text_node("executive_summary", NodeType.SUMMARY, "The candidate shows steady decision making."),
        ]
        found = ConsistencyChecker().detect(nodes)
        assert [i.key for i in found] == ["terminology:decision-making"]
        assert found[0].node_ids == ["executive_summary", "insight_0"]

    def test_mixed_voice_flags_minority(self):
        nodes = [
            text_node("insight_0", NodeType.INSIGHT, "The candidate plans carefully."),
            text_node("insight_1", NodeType.INSIGHT, "The candidate delegates well."),
            text_node("recommendation_0", NodeType.RECOMMENDATION, "You should share your plans."),
        ]
        found = ConsistencyChecker().detect(nodes)
        assert [i.kind for i in found] == [InconsistencyKind.STYLISTIC]
        assert found[0].node_ids == ["recommendation_0"]

    def test_score_floor(self):
        many = [
            Inconsistency(kind=InconsistencyKind.DATA_VALUE, node_ids=["a", "b"], description="x", key=f"k{i}")
            for i in range(12)
        ]
        assert consistency_score(many) == 0.0


class TestConsistencyChecker:
    """Tests for deep versus shallow checking."""

    def test_no_scope_checks_everything(self, report):
        nodes = list(extract(report).nodes)
        result = ConsistencyChecker(ConsistencyDepth.SHALLOW).check(nodes)
        assert result.depth == ConsistencyDepth.DEEP
        assert result.score == 100.0
        assert len(result.checked_nodes) == len(nodes)

    def test_shallow_carries_forward_outside_scope(self, report):
        nodes = list(extract(report).nodes)
        stale = Inconsistency(
            kind=InconsistencyKind.TERMINOLOGY,
            node_ids=["context_factors", "ocean_openness"],
            description="old",
            key="terminology:old",
        )
        previous = ConsistencyResult(score=95, inconsistencies=[stale])

        result = ConsistencyChecker(ConsistencyDepth.SHALLOW).check(nodes, scope={"insight_0"}, previous=previous)
        assert result.depth == ConsistencyDepth.SHALLOW
        assert result.inconsistencies == [stale]
        assert result.checked_nodes == ["insight_0"]

    def test_shallow_drops_stale_issue_inside_scope(self, report):
        nodes = list(extract(report).nodes)
        stale = Inconsistency(
            kind=InconsistencyKind.TERMINOLOGY,
            node_ids=["insight_0", "executive_summary"],
            description="old",
            key="terminology:old",
        )
        previous = ConsistencyResult(score=95, inconsistencies=[stale])
        result = ConsistencyChecker().check(nodes, scope={"insight_0"}, previous=previous)
        assert result.inconsistencies == []

    def test_deep_ignores_previous(self, report):
        nodes = list(extract(report).nodes)
        stale = Inconsistency(
            kind=InconsistencyKind.TERMINOLOGY,
            node_ids=["context_factors", "ocean_openness"],
            description="old",
            key="terminology:old",
        )
        previous = ConsistencyResult(score=95, inconsistencies=[stale])
        result = ConsistencyChecker(ConsistencyDepth.DEEP).check(nodes, scope={"insight_0"}, previous=previous)
        assert result.inconsistencies == []

    def test_diff_inconsistencies(self):
        a = Inconsistency(kind=InconsistencyKind.STYLISTIC, node_ids=["x"], description="a", key="a")
        b = Inconsistency(kind=InconsistencyKind.STYLISTIC, node_ids=["x"], description="b", key="b")
        before = ConsistencyResult(inconsistencies=[a])
        after = ConsistencyResult(inconsistencies=[b])
        assert diff_inconsistencies(before, after) == (1, 1)
        assert diff_inconsistencies(None, after) == (1, 0)


# =============================================================================
# History and Convergence
# =============================================================================


class TestHistory:
    """Tests for per-node trends."""

    def test_velocity_and_stability(self):
        assert improvement_velocity([60, 70, 80]) == 10
        assert improvement_velocity([80]) == 0.0
        assert stability_score([80, 80, 80]) == 1.0
        assert stability_score([60, 70, 80]) == pytest.approx(1 - 200 / 3 / 100)

    def test_node_insights(self):
        vague = Issue(category=MetricCategory.CLARITY, severity=Severity.MEDIUM, description="vague")
        history = [history_result(60, [vague]), history_result(70, [vague]), history_result(80)]
        insights = analyze_node_history("insight_0", history, confidence_threshold=85)

        assert insights.confidence_trend == [60, 70, 80]
        assert insights.improvement_velocity == 10
        assert insights.needs_revalidation is True
        assert insights.common_issues == ["clarity: vague"]
        assert "Consider more consistent validation criteria" in insights.recommendations

    def test_stable_passing_node_needs_no_revalidation(self):
        insights = analyze_node_history("insight_0", [history_result(92), history_result(93)], 85)
        assert insights.needs_revalidation is False
        assert revalidation_candidates([insights]) == []


class TestConvergence:
    """Tests for check_convergence()."""

    def test_stagnation(self):
        check = check_convergence([70, 70.2, 70.3], min_improvement_rate=0.5, max_iterations_without_improvement=2)
        assert check.stagnated
        assert check.should_stop
        assert "2 consecutive iterations" in check.reason

    def test_progress_is_not_stagnation(self):
        check = check_convergence([70, 75, 80], 0.5, 2)
        assert not check.should_stop

    def test_oscillation(self):
        check = check_convergence([70, 80, 70, 80, 70], 0.5, 10)
        assert check.oscillating
        assert not check.stagnated

    def test_zero_tolerance_disables_stagnation(self):
        assert not check_convergence([70, 70, 70], 0.5, 0).stagnated


# =============================================================================
# Controller
# =============================================================================


@pytest.fixture
def scorer(judge, config, retry_policy):
    return ConfidenceScorer(judge, cache=ValidationCache(), config=config, retry_policy=retry_policy)


async def baseline(scorer, nodes):
    batch = await scorer.score_batch(list(nodes.values()))
    consistency = ConsistencyChecker(ConsistencyDepth.DEEP).check(list(nodes.values()))
    return batch.results, consistency


class TestReevaluationController:
    """Tests for selective re-scoring."""

    @pytest.mark.asyncio
    async def test_single_score_change_rescores_one_node(self, judge, scorer, eleven_node_content):
        """Changing one trait score sends only that node to the judge."""
        before = node_map(eleven_node_content)
        results, consistency = await baseline(scorer, before)
        judge.calls.clear()

        revised = copy.deepcopy(eleven_node_content)
        revised["scores"]["ocean"]["raw"]["openness"] = 45
        after = node_map(revised)

        outcome = await ReevaluationController(scorer).reevaluate(
            before, results, after, iteration=1, previous_consistency=consistency
        )

        assert len(judge.calls) == 4
        assert judge.calls_matching('"trait":"openness"') == 4
        assert outcome.revalidation.revalidated_nodes == ["ocean_openness"]
        assert outcome.revalidation.metrics.nodes_skipped == 10
        assert outcome.revalidation.metrics.oracle_calls == 4
        assert outcome.status == ValidationStatus.APPROVED
        assert outcome.phases == [
            ReevaluationPhase.ANALYZING,
            ReevaluationPhase.SELECTIVE_SCORING,
            ReevaluationPhase.CONSISTENCY_CHECK,
            ReevaluationPhase.DECIDING,
        ]

    @pytest.mark.asyncio
    async def test_unchanged_nodes_keep_previous_results(self, judge, scorer, report_content):
        before = node_map(report_content)
        results, consistency = await baseline(scorer, before)
        judge.calls.clear()

        outcome = await ReevaluationController(scorer).reevaluate(
            before, results, node_map(copy.deepcopy(report_content)), previous_consistency=consistency
        )

        assert judge.calls == []
        assert outcome.revalidation.revalidated_nodes == []
        assert outcome.node_results["insight_0"] is results["insight_0"]

    @pytest.mark.asyncio
    async def test_recommendation_change_rescores_summary(self, judge, scorer, report_content):
        """Dependents of a changed recommendation are re-scored, bypassing the cache."""
        before = node_map(report_content)
        results, consistency = await baseline(scorer, before)
        judge.calls.clear()

        revised = copy.deepcopy(report_content)
        revised["recommendations"][0] = "The candidate should run a monthly retrospective for six months."
        outcome = await ReevaluationController(scorer).reevaluate(
            before, results, node_map(revised), previous_consistency=consistency
        )

        assert outcome.revalidation.revalidated_nodes == ["recommendation_0", "executive_summary"]
        assert len(judge.calls) == 8
        assert outcome.revalidation.metrics.cache_hits == 0

    @pytest.mark.asyncio
    async def test_new_and_removed_nodes(self, scorer, report_content, five_node_content):
        before = node_map(report_content)
        results, consistency = await baseline(scorer, before)

        outcome = await ReevaluationController(scorer).reevaluate(
            before, results, node_map(five_node_content), previous_consistency=consistency
        )
        assert sorted(outcome.revalidation.removed_nodes) == ["context_factors", "recommendation_0"]
        assert "recommendation_0" not in outcome.node_results

        grown = copy.deepcopy(report_content)
        grown["insights"].append("The candidate keeps commitments and plans work in clear stages.")
        outcome = await ReevaluationController(scorer).reevaluate(
            before, results, node_map(grown), previous_consistency=consistency
        )
        assert outcome.revalidation.new_nodes == ["insight_1"]
        assert "insight_1" in outcome.revalidation.revalidated_nodes

    @pytest.mark.asyncio
    async def test_resolved_issue(self, judge, make_verdict, scorer, report_content):
        judge.script("curiosity", make_verdict(60, Severity.MEDIUM, description="Claim is vague"),
                     category=MetricCategory.CLARITY)
        before = node_map(report_content)
        results, consistency = await baseline(scorer, before)

        revised = copy.deepcopy(report_content)
        revised["insights"][0] = "The candidate asks two clarifying questions before starting new work."
        outcome = await ReevaluationController(scorer).reevaluate(
            before, results, node_map(revised), previous_consistency=consistency
        )

        assert [i.description for i in outcome.revalidation.resolved_issues] == ["Claim is vague"]
        assert outcome.revalidation.integrity_violations == []

    @pytest.mark.asyncio
    async def test_regression_is_attributed_to_applied_feedback(self, judge, make_verdict, scorer, report_content):
        judge.script("synergistically", make_verdict(60, Severity.MEDIUM, description="Jargon obscures meaning"),
                     category=MetricCategory.CLARITY)
        before = node_map(report_content)
        results, consistency = await baseline(scorer, before)

        applied = Feedback(
            feedback_id="fb_insight_clarity",
            node_id="insight_0",
            node_type=NodeType.INSIGHT,
            issue=Issue(node_id="insight_0", category=MetricCategory.CLARITY,
                        severity=Severity.MEDIUM, description="Too long"),
            priority=5,
            specific_action="Tighten the sentence",
            estimated_confidence_gain=8,
        )
        revised = copy.deepcopy(report_content)
        revised["insights"][0] = "The candidate synergistically approaches unfamiliar problems."

        outcome = await ReevaluationController(scorer).reevaluate(
            before, results, node_map(revised), applied_feedback=[applied],
            previous_consistency=consistency,
        )

        regressions = outcome.revalidation.regression_issues
        assert len(regressions) == 1
        assert regressions[0].caused_by_feedback_id == "fb_insight_clarity"
        assert regressions[0].issue.description == "Jargon obscures meaning"
        assert regressions[0].mitigation in outcome.revalidation.next_steps

        effectiveness = outcome.revalidation.feedback_effectiveness[0]
        assert effectiveness.actual_gain < 0
        assert effectiveness.effectiveness == 0
        assert effectiveness.recommendation == FeedbackRecommendation.ABANDON
        assert effectiveness.side_effects == ["New issues in: clarity"]

    @pytest.mark.asyncio
    async def test_vanished_issue_on_unchanged_node_is_a_violation(
        self, judge, make_verdict, retry_policy, report_content
    ):
        config = ValidationConfig(judge_timeout_seconds=5, validate_unmodified_nodes=True)
        scorer = ConfidenceScorer(judge, cache=ValidationCache(), config=config, retry_policy=retry_policy)
        judge.script("curiosity", make_verdict(60, Severity.MEDIUM, description="Claim is vague"),
                     category=MetricCategory.CLARITY)
        before = node_map(report_content)
        results, consistency = await baseline(scorer, before)

        judge.script("curiosity", make_verdict(92), category=MetricCategory.CLARITY)
        outcome = await ReevaluationController(scorer).reevaluate(
            before, results, node_map(copy.deepcopy(report_content)), previous_consistency=consistency
        )

        violations = outcome.revalidation.integrity_violations
        assert [v.node_id for v in violations] == ["insight_0"]
        assert outcome.revalidation.resolved_issues == []
        assert len(outcome.revalidation.revalidated_nodes) == len(before)

    @pytest.mark.asyncio
    async def test_critical_issue_fails_iteration(self, judge, make_verdict, scorer, report_content):
        before = node_map(report_content)
        results, consistency = await baseline(scorer, before)

        judge.script("women", make_verdict(30, Severity.CRITICAL, description="Gender stereotype"),
                     category=MetricCategory.BIAS)
        revised = copy.deepcopy(report_content)
        revised["insights"][0] = "Like most women, the candidate avoids conflict."

        outcome = await ReevaluationController(scorer).reevaluate(
            before, results, node_map(revised), previous_consistency=consistency
        )
        assert outcome.status == ValidationStatus.FAILED
        assert outcome.revalidation.next_steps[0].startswith("Address 1 critical issues")
        assert outcome.revalidation.metrics.estimated_completion_minutes == 60


class TestFeedbackRecommendation:
    """Tests for effectiveness recommendations."""

    @pytest.mark.parametrize("effectiveness,gain,expected", [
        (90, 10, FeedbackRecommendation.CONTINUE),
        (60, 3, FeedbackRecommendation.MODIFY),
        (20, 6, FeedbackRecommendation.MODIFY),
        (10, 1, FeedbackRecommendation.ABANDON),
    ])
    def test_thresholds(self, effectiveness, gain, expected):
        assert feedback_recommendation(effectiveness, gain) == expected
