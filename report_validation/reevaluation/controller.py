"""Re-evaluation controller.

Re-validates a revised report against the previous iteration's snapshot.
One pass walks the phases

    ANALYZING -> SELECTIVE_SCORING -> CONSISTENCY_CHECK -> DECIDING

and renders approved, requires_further_revision or failed. Only nodes whose
content changed (plus dependents of changed recommendation nodes, and new
nodes) are sent to the scorer; every other node keeps its previous result,
so the cost of a pass scales with the size of the change.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum

from report_validation.config import ValidationConfig
from report_validation.reevaluation.change_detector import analyze_changes, removed_node_ids
from report_validation.reevaluation.consistency import ConsistencyChecker, diff_inconsistencies
from report_validation.scoring import ConfidenceScorer
from report_validation.state.enums import (
    FeedbackRecommendation,
    Severity,
    ValidationStatus,
)
from report_validation.state.models import (
    ApprovalBlocker,
    ConsistencyResult,
    Feedback,
    FeedbackEffectiveness,
    IntegrityViolation,
    Issue,
    NodeProfile,
    PipelineError,
    RegressionIssue,
    ReportNode,
    RevalidationMetrics,
    RevalidationResult,
    ValidationResult,
    collect_approval_blockers,
    determine_validation_status,
)

logger = logging.getLogger(__name__)

# Estimated oracle cost of validating one node
COST_PER_NODE = 0.03


class ReevaluationPhase(str, Enum):
    ANALYZING = "analyzing"
    SELECTIVE_SCORING = "selective_scoring"
    CONSISTENCY_CHECK = "consistency_check"
    DECIDING = "deciding"


@dataclass
class ReevaluationOutcome:
    """Everything one re-evaluation pass produces."""

    revalidation: RevalidationResult
    node_results: dict[str, ValidationResult]
    consistency: ConsistencyResult
    blockers: list[ApprovalBlocker]
    errors: list[PipelineError] = field(default_factory=list)
    phases: list[ReevaluationPhase] = field(default_factory=list)

    @property
    def status(self) -> ValidationStatus:
        return self.revalidation.status


class ReevaluationController:
    """Selective re-scoring, consistency re-checking and regression tracking.

    Args:
        scorer: Scorer shared with the initial validation pass
        checker: Consistency checker (defaults to config.consistency_depth)
        config: Validation configuration
    """

    def __init__(
        self,
        scorer: ConfidenceScorer,
        checker: ConsistencyChecker | None = None,
        config: ValidationConfig | None = None,
    ):
        self.scorer = scorer
        self.config = config or scorer.config
        self.checker = checker or ConsistencyChecker(self.config.consistency_depth)

    async def reevaluate(
        self,
        previous_nodes: dict[str, ReportNode],
        previous_results: dict[str, ValidationResult],
        current_nodes: dict[str, ReportNode],
        applied_feedback: list[Feedback] | None = None,
        iteration: int = 1,
        previous_consistency: ConsistencyResult | None = None,
        profiles: dict[str, NodeProfile] | None = None,
    ) -> ReevaluationOutcome:
        """
        Run one re-evaluation pass.

        Args:
            previous_nodes: Node snapshot the previous results were computed on
            previous_results: Current results before this pass, keyed by node id
            current_nodes: Nodes of the revised report
            applied_feedback: Feedback the generator was asked to apply
            iteration: Iteration number this pass belongs to (1-based)
            previous_consistency: Consistency result of the previous pass
            profiles: Validation profiles keyed by node id

        Returns:
            ReevaluationOutcome with the RevalidationResult and the new
            current result for every node.
        """
        started = time.perf_counter()
        applied_feedback = applied_feedback or []
        phases: list[ReevaluationPhase] = []

        # ANALYZING
        phases.append(ReevaluationPhase.ANALYZING)
        analyses = analyze_changes(previous_nodes, current_nodes)
        removed = removed_node_ids(previous_nodes, current_nodes)
        new_nodes = [a.node_id for a in analyses if a.node_id not in previous_nodes]
        content_changed = {a.node_id for a in analyses if a.revalidation_required}

        to_score: set[str] = set(content_changed)
        bypass: set[str] = set()
        for analysis in analyses:
            if not analysis.consistency_check_required:
                continue
            for dependent in analysis.affected_nodes:
                if dependent in current_nodes and dependent not in to_score:
                    to_score.add(dependent)
                    bypass.add(dependent)

        for node_id in current_nodes:
            if node_id in to_score:
                continue
            if node_id not in previous_results:
                to_score.add(node_id)
            elif self.config.validate_unmodified_nodes:
                to_score.add(node_id)
                bypass.add(node_id)

        logger.info(
            f"RE-EVALUATION: iteration {iteration}, {len(analyses)} changed, "
            f"{len(removed)} removed, {len(to_score)} of {len(current_nodes)} to re-score"
        )

        # SELECTIVE_SCORING
        phases.append(ReevaluationPhase.SELECTIVE_SCORING)
        ordered = [node for node_id, node in current_nodes.items() if node_id in to_score]
        batch = await self.scorer.score_batch(ordered, profiles, bypass_cache=bypass)

        node_results: dict[str, ValidationResult] = {}
        for node_id in current_nodes:
            if node_id in batch.results:
                node_results[node_id] = batch.results[node_id]
            else:
                node_results[node_id] = previous_results[node_id]

        # CONSISTENCY_CHECK
        phases.append(ReevaluationPhase.CONSISTENCY_CHECK)
        scope = set(content_changed)
        for analysis in analyses:
            scope.update(n for n in analysis.affected_nodes if n in current_nodes)
        consistency = self.checker.check(
            list(current_nodes.values()),
            scope=scope,
            previous=previous_consistency,
        )
        new_inconsistencies, resolved_inconsistencies = diff_inconsistencies(
            previous_consistency, consistency
        )

        # DECIDING
        phases.append(ReevaluationPhase.DECIDING)
        blockers = collect_approval_blockers(
            node_results,
            consistency.score,
            confidence_threshold=self.config.confidence_threshold,
            consistency_threshold=self.config.consistency_threshold,
            strict_mode=self.config.strict_mode,
        )
        status = determine_validation_status(blockers)

        rescored = [node_id for node_id in current_nodes if node_id in batch.results]
        new_issues, resolved_issues, violations = compare_issues(
            rescored, previous_results, node_results, content_changed
        )
        regressions = detect_regressions(
            new_issues, previous_results, applied_feedback
        )
        effectiveness = analyze_effectiveness(
            applied_feedback, previous_results, node_results, rescored
        )

        skipped = len(current_nodes) - len(rescored)
        critical_remaining = sum(len(r.get_critical_issues()) for r in node_results.values())
        metrics = RevalidationMetrics(
            nodes_revalidated=len(rescored),
            nodes_skipped=skipped,
            oracle_calls=batch.oracle_calls,
            cache_hits=batch.cache_hits,
            cost_savings=round(skipped * COST_PER_NODE, 2),
            estimated_completion_minutes=estimate_completion_minutes(status, critical_remaining),
            duration_ms=round((time.perf_counter() - started) * 1000, 3),
        )

        revalidation = RevalidationResult(
            iteration=iteration,
            change_analyses=analyses,
            revalidated_nodes=rescored,
            unchanged_nodes=[n for n in current_nodes if n not in batch.results],
            new_nodes=new_nodes,
            removed_nodes=removed,
            new_issues=new_issues,
            resolved_issues=resolved_issues,
            consistency=consistency,
            consistency_before=previous_consistency.score if previous_consistency else 100.0,
            new_inconsistencies=new_inconsistencies,
            resolved_inconsistencies=resolved_inconsistencies,
            regression_issues=regressions,
            feedback_effectiveness=effectiveness,
            integrity_violations=violations,
            status=status,
            metrics=metrics,
            next_steps=next_steps(
                status, node_results, consistency, self.config, regressions, violations
            ),
        )

        if violations:
            logger.warning(
                f"RE-EVALUATION: {len(violations)} issues vanished from unchanged nodes: "
                f"{sorted({v.node_id for v in violations})}"
            )
        logger.info(
            f"RE-EVALUATION: status={status.value}, oracle_calls={batch.oracle_calls}, "
            f"new_issues={len(new_issues)}, resolved={len(resolved_issues)}, "
            f"regressions={len(regressions)}"
        )

        return ReevaluationOutcome(
            revalidation=revalidation,
            node_results=node_results,
            consistency=consistency,
            blockers=blockers,
            errors=list(batch.errors),
            phases=phases,
        )


# =============================================================================
# Issue Comparison
# =============================================================================


def compare_issues(
    rescored: list[str],
    previous_results: dict[str, ValidationResult],
    current_results: dict[str, ValidationResult],
    content_changed: set[str],
) -> tuple[list[Issue], list[Issue], list[IntegrityViolation]]:
    """
    Diff issues of re-scored nodes against their previous results.

    An issue that disappears from a node whose content did not change is an
    integrity violation, not a resolution.

    Returns:
        (new issues, resolved issues, integrity violations)
    """
    new_issues: list[Issue] = []
    resolved: list[Issue] = []
    violations: list[IntegrityViolation] = []

    for node_id in rescored:
        current = current_results[node_id]
        before = previous_results.get(node_id)
        if before is None:
            new_issues.extend(current.issues)
            continue

        before_keys = {issue.match_key for issue in before.issues}
        after_keys = {issue.match_key for issue in current.issues}

        new_issues.extend(i for i in current.issues if i.match_key not in before_keys)

        for issue in before.issues:
            if issue.match_key in after_keys:
                continue
            if node_id in content_changed:
                resolved.append(issue)
            else:
                violations.append(IntegrityViolation(
                    node_id=node_id,
                    issue_id=issue.issue_id,
                    description=(
                        f"{issue.category.value} issue '{issue.description}' disappeared "
                        f"although the node content did not change"
                    ),
                ))

    return new_issues, resolved, violations


def detect_regressions(
    new_issues: list[Issue],
    previous_results: dict[str, ValidationResult],
    applied_feedback: list[Feedback],
) -> list[RegressionIssue]:
    """Attribute new issues to the applied feedback that targeted the same category."""
    regressions = []
    for issue in new_issues:
        if issue.node_id not in previous_results:
            continue
        cause = next(
            (
                f for f in applied_feedback
                if f.node_id == issue.node_id and f.category == issue.category
            ),
            None,
        )
        if cause is None:
            continue
        regressions.append(RegressionIssue(
            node_id=issue.node_id,
            issue=issue,
            caused_by_feedback_id=cause.feedback_id,
            mitigation=(
                f"Review feedback {cause.feedback_id} and adjust approach to avoid "
                f"{issue.category.value} issues"
            ),
        ))
    return regressions


# =============================================================================
# Feedback Effectiveness
# =============================================================================


def feedback_recommendation(effectiveness: float, actual_gain: float) -> FeedbackRecommendation:
    if effectiveness > 80 and actual_gain > 0:
        return FeedbackRecommendation.CONTINUE
    if effectiveness > 50 or actual_gain > 5:
        return FeedbackRecommendation.MODIFY
    return FeedbackRecommendation.ABANDON


def side_effects(before: ValidationResult, after: ValidationResult) -> list[str]:
    before_categories = {i.category for i in before.issues}
    introduced = sorted(
        {i.category.value for i in after.issues if i.category not in before_categories}
    )
    if introduced:
        return [f"New issues in: {', '.join(introduced)}"]
    return []


def analyze_effectiveness(
    applied_feedback: list[Feedback],
    previous_results: dict[str, ValidationResult],
    current_results: dict[str, ValidationResult],
    rescored: list[str],
) -> list[FeedbackEffectiveness]:
    rescored_ids = set(rescored)
    report = []
    for feedback in applied_feedback:
        before = previous_results.get(feedback.node_id)
        after = current_results.get(feedback.node_id)
        if before is None or after is None or feedback.node_id not in rescored_ids:
            continue

        actual = after.confidence - before.confidence
        expected = feedback.estimated_confidence_gain
        raw = (actual / expected) * 100 if expected > 0 else 0.0

        report.append(FeedbackEffectiveness(
            feedback_id=feedback.feedback_id,
            node_id=feedback.node_id,
            expected_gain=expected,
            actual_gain=actual,
            effectiveness=max(0.0, min(100.0, raw)),
            side_effects=side_effects(before, after),
            recommendation=feedback_recommendation(raw, actual),
        ))
    return report


# =============================================================================
# Next Steps
# =============================================================================


def estimate_completion_minutes(status: ValidationStatus, critical_remaining: int) -> int:
    if status == ValidationStatus.APPROVED:
        return 0
    if critical_remaining > 0:
        return 60
    return 30


def next_steps(
    status: ValidationStatus,
    results: dict[str, ValidationResult],
    consistency: ConsistencyResult,
    config: ValidationConfig,
    regressions: list[RegressionIssue],
    violations: list[IntegrityViolation],
) -> list[str]:
    steps = []
    critical = [i for r in results.values() for i in r.get_critical_issues()]
    low = [r.node_id for r in results.values() if r.confidence < config.confidence_threshold]

    if critical:
        steps.append(f"Address {len(critical)} critical issues immediately")
    if low:
        steps.append(f"Improve {len(low)} nodes below confidence threshold: {', '.join(low)}")
    if consistency.score < config.consistency_threshold:
        steps.append("Address consistency issues across nodes")
    if config.strict_mode:
        high = [
            i for r in results.values() for i in r.issues
            if i.severity == Severity.HIGH
        ]
        if high:
            steps.append(f"Strict mode: resolve {len(high)} high-severity issues")
    steps.extend(r.mitigation for r in regressions)
    if violations:
        steps.append(
            f"Investigate {len(violations)} issues that vanished without a content change"
        )
    if status == ValidationStatus.APPROVED and not steps:
        steps.append("Assessment meets quality standards")
    return steps
