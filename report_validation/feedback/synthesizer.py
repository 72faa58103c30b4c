"""Feedback synthesis.

Turns validation issues into actionable feedback items and orders them into
a remediation plan. Synthesis is derived purely from validation results:
no external calls are made, and the only failure mode is malformed input,
which raises FeedbackInputError.

Sequencing rules:
- Within a node, fixes to upstream categories come first (accuracy before
  consistency and clarity, bias and compliance before clarity).
- Across nodes, a fix on a node comes after the same-category fix on the
  nodes it depends on.
- Critical items are scheduled before every non-critical item.
- Ties are broken by descending priority, then expected confidence gain.
"""

import heapq
import logging
from collections import Counter
from dataclasses import dataclass

from report_validation.errors import FeedbackInputError
from report_validation.feedback.templates import (
    CONFIDENCE_GAIN_BY_SEVERITY,
    EFFORT_HOURS,
    EXPECTED_IMPACT,
    FEEDBACK_TEMPLATES,
    IMPLEMENTATION_STEPS,
    IMPROVEMENT_TEXT,
    QUALITY_CHECKS,
    ROOT_CAUSES,
    FeedbackTemplate,
    estimate_timeframe,
    populate_template,
    select_template,
)
from report_validation.state.enums import (
    DependencyKind,
    Effort,
    MetricCategory,
    NodeType,
    ReportKind,
    Severity,
    Urgency,
)
from report_validation.state.models import (
    Feedback,
    FeedbackDependency,
    FeedbackMetrics,
    FeedbackPlan,
    FeedbackTimeline,
    Inconsistency,
    Issue,
    ReportNode,
    ValidationResult,
)

logger = logging.getLogger(__name__)


SEVERITY_MULTIPLIER = {
    Severity.CRITICAL: 2.0,
    Severity.HIGH: 1.5,
    Severity.MEDIUM: 1.0,
    Severity.LOW: 0.5,
}

URGENCY_MULTIPLIER = {
    Urgency.CRITICAL: 2.0,
    Urgency.HIGH: 1.5,
    Urgency.MEDIUM: 1.0,
    Urgency.LOW: 0.8,
}

# Confidence gap above which priority is boosted
LARGE_GAP = 20.0

# upstream category -> categories whose fixes should follow it on the same node
DOWNSTREAM_CATEGORIES = {
    MetricCategory.ACCURACY: (MetricCategory.CONSISTENCY, MetricCategory.CLARITY),
    MetricCategory.BIAS: (MetricCategory.CLARITY,),
    MetricCategory.COMPLIANCE: (MetricCategory.CLARITY,),
}

CONTEXT_FOCUS = {
    ReportKind.INDIVIDUAL: "Focus on personal development and individual growth",
    ReportKind.EXECUTIVE: "Emphasize leadership capabilities and strategic thinking",
    ReportKind.ORGANIZATIONAL: "Consider cultural and systemic factors",
}


@dataclass
class FeedbackContext:
    """Inputs that shape priorities and wording."""

    confidence_threshold: float = 85.0
    urgency: Urgency = Urgency.MEDIUM
    report_kind: ReportKind = ReportKind.DEFAULT
    strict_mode: bool = False


class FeedbackSynthesizer:
    """Builds feedback items and remediation plans from validation results."""

    def __init__(self, templates: dict[str, FeedbackTemplate] | None = None):
        self.templates = FEEDBACK_TEMPLATES if templates is None else templates

    # =========================================================================
    # Per-node synthesis
    # =========================================================================

    def synthesize(
        self,
        result: ValidationResult,
        node: ReportNode,
        context: FeedbackContext | None = None,
    ) -> list[Feedback]:
        """
        Generate one feedback item per issue of a node.

        Args:
            result: Validation result for the node
            node: The node the result belongs to
            context: Threshold and urgency (defaults apply when omitted)

        Returns:
            Feedback items sorted by descending priority, then expected gain.

        Raises:
            FeedbackInputError: If the result does not belong to the node or
                the context is out of range.
        """
        context = context or FeedbackContext()
        self._check_input(result, node, context)

        items: list[Feedback] = []
        seen: set[str] = set()
        for issue in result.issues:
            if issue.issue_id in seen:
                continue
            seen.add(issue.issue_id)
            items.append(self._create_feedback(result, node, issue, context))

        items.sort(key=lambda f: (-f.priority, -f.estimated_confidence_gain))
        return items

    def _check_input(
        self,
        result: ValidationResult,
        node: ReportNode,
        context: FeedbackContext,
    ) -> None:
        if result.node_id != node.id:
            raise FeedbackInputError(
                f"Validation result for '{result.node_id}' does not belong to node '{node.id}'",
                field="node_id",
            )
        if result.node_type != node.type:
            raise FeedbackInputError(
                f"Node type mismatch for '{node.id}': "
                f"result says {result.node_type.value}, node is {node.type.value}",
                field="node_type",
            )
        if not 0 <= context.confidence_threshold <= 100:
            raise FeedbackInputError(
                f"Confidence threshold {context.confidence_threshold} is outside 0-100",
                field="confidence_threshold",
            )
        for issue in result.issues:
            if issue.node_id and issue.node_id != node.id:
                raise FeedbackInputError(
                    f"Issue {issue.issue_id} belongs to '{issue.node_id}', not '{node.id}'",
                    field="issues",
                )

    def _create_feedback(
        self,
        result: ValidationResult,
        node: ReportNode,
        issue: Issue,
        context: FeedbackContext,
    ) -> Feedback:
        template = select_template(issue.category, issue.severity, node.type, self.templates)
        suggestion = result.suggestion_for(issue.issue_id)
        confidence_gap = context.confidence_threshold - result.confidence
        effort = estimate_effort(issue, node.type)

        specific_action = (
            suggestion.specific_action if suggestion else populate_template(
                template.action_template,
                {
                    "issue_description": issue.description,
                    "node_type": node.type.value,
                    "category": issue.category.value,
                },
            )
        )

        example_before, example_after = self._examples(node, issue, template)
        if suggestion and suggestion.example_before:
            example_before = suggestion.example_before
        if suggestion and suggestion.example_after:
            example_after = suggestion.example_after

        gain = (
            suggestion.estimated_confidence_gain
            if suggestion and suggestion.estimated_confidence_gain > 0
            else CONFIDENCE_GAIN_BY_SEVERITY[issue.severity]
        )

        steps = list(IMPLEMENTATION_STEPS[issue.category])
        if suggestion and suggestion.implementation_steps:
            steps = list(suggestion.implementation_steps)

        focus = CONTEXT_FOCUS.get(context.report_kind)
        expected_impact = EXPECTED_IMPACT[issue.category]
        if focus:
            expected_impact = f"{expected_impact}. {focus}"

        return Feedback(
            feedback_id=f"fb_{node.id}_{issue.issue_id}",
            node_id=node.id,
            node_type=node.type,
            issue=issue,
            priority=calculate_priority(
                issue,
                confidence_gap=confidence_gap,
                node_importance=node.metadata.importance,
                urgency=context.urgency,
            ),
            specific_action=specific_action,
            root_cause=ROOT_CAUSES[issue.category],
            expected_impact=expected_impact,
            implementation_steps=steps,
            example_before=example_before,
            example_after=example_after,
            estimated_confidence_gain=gain,
            estimated_effort=effort,
            confidence_gap=confidence_gap,
            timeframe=estimate_timeframe(effort, issue.severity),
            success_criteria=[
                f'Issue "{issue.description}" is resolved',
                f"Confidence increase of at least {gain:.0f}%",
                "No new issues introduced",
                *template.success_criteria,
            ],
            testing_guidance=[
                f"Re-validate the {node.type.value} node focusing on {issue.category.value} criteria",
                f"Verify that the {issue.severity.value} severity issue has been resolved "
                f"without introducing new problems",
            ],
            quality_checks=list(QUALITY_CHECKS),
        )

    def _examples(
        self,
        node: ReportNode,
        issue: Issue,
        template: FeedbackTemplate,
    ) -> tuple[str, str]:
        if issue.evidence:
            snippet = issue.evidence[0][:200] + "..."
        else:
            snippet = node.content_text()[:200] + "..."

        improvement = IMPROVEMENT_TEXT[issue.category]
        if template.example_before and template.example_after:
            before = populate_template(template.example_before, {
                "content": snippet,
                "issue": issue.description,
                "evidence": ", ".join(issue.evidence),
            })
            after = populate_template(template.example_after, {
                "content": snippet,
                "improvement": improvement,
            })
            return before, after

        return (
            f"{snippet} [Contains issue: {issue.description}]",
            f"[Improved version addressing {issue.category.value}] {improvement}",
        )

    # =========================================================================
    # Planning
    # =========================================================================

    def plan(
        self,
        items: list[Feedback],
        nodes: dict[str, ReportNode] | None = None,
    ) -> FeedbackPlan:
        """
        Order feedback items into a plan.

        Args:
            items: Feedback items, possibly spanning several nodes
            nodes: Nodes by id, used to derive cross-node dependency edges

        Returns:
            FeedbackPlan with sequence, parallelizable set, timeline and totals.

        Raises:
            FeedbackInputError: If two items share a feedback id.
        """
        counts = Counter(item.feedback_id for item in items)
        duplicates = sorted(fid for fid, n in counts.items() if n > 1)
        if duplicates:
            raise FeedbackInputError(
                f"Duplicate feedback ids: {', '.join(duplicates)}",
                field="feedback_id",
            )

        dependencies = identify_dependencies(items, nodes or {})
        sequence = order_feedback(items, dependencies)
        dependent_ids = {dep.dependent_id for dep in dependencies}
        parallelizable = [item for item in sequence if item.feedback_id not in dependent_ids]

        total_hours = sum(EFFORT_HOURS[item.estimated_effort] for item in items)
        total_impact = sum(item.estimated_confidence_gain for item in items)

        plan = FeedbackPlan(
            recommended_sequence=sequence,
            parallelizable=parallelizable,
            timeline=build_timeline(sequence),
            dependencies=dependencies,
            total_effort_hours=total_hours,
            total_estimated_effort=effort_level(total_hours),
            total_expected_impact=total_impact,
            efficiency=round(total_impact / total_hours, 1) if total_hours > 0 else 0.0,
            metrics=calculate_metrics(items),
        )

        logger.debug(
            f"Planned {len(items)} feedback items with {len(dependencies)} dependencies, "
            f"{len(parallelizable)} parallelizable"
        )
        return plan

    def plan_report(
        self,
        results: dict[str, ValidationResult],
        nodes: dict[str, ReportNode],
        context: FeedbackContext | None = None,
        inconsistencies: list[Inconsistency] | None = None,
    ) -> FeedbackPlan:
        """
        Build the plan for a whole report.

        Nodes below the confidence threshold, nodes carrying a critical issue
        (or a high one in strict mode) and nodes involved in a cross-node
        inconsistency receive feedback. A node below threshold whose judge
        reported no issues gets one issue for its weakest metric so that the
        plan always names it.

        Args:
            results: Current validation results keyed by node id
            nodes: Current nodes keyed by node id
            context: Threshold, urgency and strictness
            inconsistencies: Cross-node inconsistencies from the consistency check

        Returns:
            FeedbackPlan including cross-node recommendations and an
            execution strategy.
        """
        context = context or FeedbackContext()
        extra_issues = inconsistency_issues(inconsistencies or [])

        items: list[Feedback] = []
        for node_id, result in results.items():
            node = nodes.get(node_id)
            if node is None:
                raise FeedbackInputError(
                    f"No node supplied for validation result '{node_id}'",
                    field="nodes",
                )

            extra = extra_issues.get(node_id, [])
            if not self._needs_feedback(result, context) and not extra:
                continue

            issues = list(result.issues) + extra
            if not issues and result.confidence < context.confidence_threshold:
                weakest = weakest_metric_issue(result, context.confidence_threshold)
                if weakest is not None:
                    issues.append(weakest)

            augmented = result.model_copy(update={"issues": issues})
            items.extend(self.synthesize(augmented, node, context))

        plan = self.plan(items, nodes)
        plan.metrics.nodes_with_feedback = len({item.node_id for item in items})
        plan.cross_node_recommendations = cross_node_recommendations(
            results, inconsistencies or []
        )
        plan.execution_strategy = execution_strategy(plan, context)

        logger.info(
            f"Feedback plan: {len(items)} items across "
            f"{plan.metrics.nodes_with_feedback} nodes ({plan.total_estimated_effort.value} effort)"
        )
        return plan

    @staticmethod
    def _needs_feedback(result: ValidationResult, context: FeedbackContext) -> bool:
        if result.confidence < context.confidence_threshold:
            return True
        if result.has_critical_issues():
            return True
        if context.strict_mode:
            return bool(result.issues_at_least(Severity.HIGH)) or result.degraded
        return False


# =============================================================================
# Estimates
# =============================================================================


def calculate_priority(
    issue: Issue,
    confidence_gap: float,
    node_importance: int,
    urgency: Urgency = Urgency.MEDIUM,
) -> int:
    """
    Derived priority of an issue, clamped to 1-10.

    priority = issue.priority * severity multiplier * (1.5 if gap > 20)
               * importance / 10 * urgency multiplier
    """
    priority = float(issue.priority)
    priority *= SEVERITY_MULTIPLIER[issue.severity]
    if confidence_gap > LARGE_GAP:
        priority *= 1.5
    priority *= node_importance / 10
    priority *= URGENCY_MULTIPLIER[urgency]
    return int(round(min(10.0, max(1.0, priority))))


def estimate_effort(issue: Issue, node_type: NodeType) -> Effort:
    if issue.severity == Severity.CRITICAL:
        return Effort.HIGH
    if issue.severity == Severity.HIGH:
        return Effort.MEDIUM
    # Score corrections ripple into interpretations and summaries
    if node_type == NodeType.SCORING:
        return Effort.HIGH
    return Effort.LOW


def effort_level(total_hours: float) -> Effort:
    if total_hours < 2:
        return Effort.LOW
    if total_hours < 8:
        return Effort.MEDIUM
    return Effort.HIGH


def weakest_metric_issue(result: ValidationResult, threshold: float) -> Issue | None:
    """Issue describing the lowest-scoring metric of a node below threshold."""
    if not result.metric_scores:
        return None
    weakest = min(result.metric_scores, key=lambda m: (m.score, m.category.value))
    if weakest.judge_unavailable:
        description = f"{weakest.category.value} could not be judged; re-run validation"
    else:
        description = (
            f"{weakest.category.value} score {weakest.score:.0f} keeps node "
            f"confidence {result.confidence:.0f} below threshold {threshold:.0f}"
        )
    return Issue(
        node_id=result.node_id,
        category=weakest.category,
        severity=Severity.MEDIUM,
        description=description,
        evidence=list(weakest.evidence[:1]),
    )


def inconsistency_issues(inconsistencies: list[Inconsistency]) -> dict[str, list[Issue]]:
    """Consistency issues per node for every cross-node inconsistency."""
    issues: dict[str, list[Issue]] = {}
    for inconsistency in inconsistencies:
        for node_id in inconsistency.node_ids:
            issues.setdefault(node_id, []).append(Issue(
                node_id=node_id,
                category=MetricCategory.CONSISTENCY,
                severity=Severity.MEDIUM,
                description=inconsistency.description,
                evidence=[f"{inconsistency.kind.value}: {', '.join(inconsistency.node_ids)}"],
            ))
    return issues


# =============================================================================
# Dependencies and Ordering
# =============================================================================


def identify_dependencies(
    items: list[Feedback],
    nodes: dict[str, ReportNode],
) -> list[FeedbackDependency]:
    """Dependency edges between feedback items.

    No edge ever makes a critical item wait on a non-critical one.
    """
    dependencies: list[FeedbackDependency] = []

    for upstream in items:
        for downstream in items:
            if upstream.feedback_id == downstream.feedback_id:
                continue
            if downstream.is_critical and not upstream.is_critical:
                continue

            if (
                upstream.node_id == downstream.node_id
                and downstream.category in DOWNSTREAM_CATEGORIES.get(upstream.category, ())
            ):
                blocking = upstream.severity.rank >= Severity.HIGH.rank
                dependencies.append(FeedbackDependency(
                    dependent_id=downstream.feedback_id,
                    depends_on_id=upstream.feedback_id,
                    reason=(
                        f"{downstream.category.value} fix builds on the "
                        f"{upstream.category.value} fix for {upstream.node_id}"
                    ),
                    kind=DependencyKind.BLOCKING if blocking else DependencyKind.ENHANCING,
                ))
                continue

            dependent_node = nodes.get(downstream.node_id)
            if (
                dependent_node is not None
                and upstream.node_id != downstream.node_id
                and upstream.category == downstream.category
                and upstream.node_id in dependent_node.metadata.dependencies
            ):
                dependencies.append(FeedbackDependency(
                    dependent_id=downstream.feedback_id,
                    depends_on_id=upstream.feedback_id,
                    reason=(
                        f"{downstream.node_id} draws on {upstream.node_id}; "
                        f"fix {upstream.category.value} there first"
                    ),
                    kind=DependencyKind.RELATED,
                ))

    return dependencies


def order_feedback(
    items: list[Feedback],
    dependencies: list[FeedbackDependency],
) -> list[Feedback]:
    """Topological order preferring critical, then higher priority and gain.

    Items caught in a dependency cycle are appended in priority order.
    """
    by_id = {item.feedback_id: item for item in items}
    index = {item.feedback_id: i for i, item in enumerate(items)}
    indegree = {fid: 0 for fid in by_id}
    edges: dict[str, list[str]] = {fid: [] for fid in by_id}
    for dep in dependencies:
        if dep.depends_on_id in by_id and dep.dependent_id in by_id:
            edges[dep.depends_on_id].append(dep.dependent_id)
            indegree[dep.dependent_id] += 1

    def sort_key(item: Feedback) -> tuple:
        return (
            not item.is_critical,
            -item.priority,
            -item.estimated_confidence_gain,
            index[item.feedback_id],
        )

    heap = [(sort_key(item), item.feedback_id) for item in items if indegree[item.feedback_id] == 0]
    heapq.heapify(heap)

    ordered: list[Feedback] = []
    while heap:
        _, feedback_id = heapq.heappop(heap)
        ordered.append(by_id[feedback_id])
        for dependent in edges[feedback_id]:
            indegree[dependent] -= 1
            if indegree[dependent] == 0:
                heapq.heappush(heap, (sort_key(by_id[dependent]), dependent))

    if len(ordered) < len(items):
        placed = {item.feedback_id for item in ordered}
        remaining = sorted((i for i in items if i.feedback_id not in placed), key=sort_key)
        logger.warning(f"Feedback dependency cycle among {len(remaining)} items; using priority order")
        ordered.extend(remaining)

    return ordered


def build_timeline(items: list[Feedback]) -> FeedbackTimeline:
    timeline = FeedbackTimeline()
    for item in items:
        if item.severity == Severity.CRITICAL or item.priority >= 9:
            timeline.immediate.append(item)
        elif item.severity == Severity.HIGH or 6 <= item.priority < 9:
            timeline.short_term.append(item)
        else:
            timeline.long_term.append(item)
    return timeline


# =============================================================================
# Report-level Summaries
# =============================================================================


def calculate_metrics(items: list[Feedback]) -> FeedbackMetrics:
    if not items:
        return FeedbackMetrics()
    return FeedbackMetrics(
        total_items=len(items),
        nodes_with_feedback=len({item.node_id for item in items}),
        critical_items=sum(1 for item in items if item.is_critical),
        high_priority_items=sum(1 for item in items if item.priority >= 8),
        by_category=dict(Counter(item.category.value for item in items)),
        by_severity=dict(Counter(item.severity.value for item in items)),
        average_confidence_gap=round(sum(item.confidence_gap for item in items) / len(items), 2),
        total_estimated_gain=sum(item.estimated_confidence_gain for item in items),
    )


def cross_node_recommendations(
    results: dict[str, ValidationResult],
    inconsistencies: list[Inconsistency],
) -> list[str]:
    recommendations = []

    nodes_per_category: Counter = Counter()
    for result in results.values():
        for category in {issue.category for issue in result.issues}:
            nodes_per_category[category.value] += 1
    common = sorted(category for category, count in nodes_per_category.items() if count > 1)
    if common:
        recommendations.append(
            f"Address common issues across multiple nodes: {', '.join(common)}"
        )

    has_consistency_issue = any(
        issue.category == MetricCategory.CONSISTENCY
        for result in results.values()
        for issue in result.issues
    )
    if has_consistency_issue or inconsistencies:
        recommendations.append("Standardize terminology and style across all nodes")

    return recommendations


def execution_strategy(plan: FeedbackPlan, context: FeedbackContext) -> str:
    if plan.is_empty():
        return "NONE: No remediation required."

    critical = plan.metrics.critical_items
    nodes = plan.metrics.nodes_with_feedback
    if critical > 0:
        return (
            f"CRITICAL: Address {critical} critical issues immediately across {nodes} nodes. "
            f"Focus on bias and accuracy issues first."
        )
    if context.urgency in (Urgency.HIGH, Urgency.CRITICAL):
        return (
            "HIGH PRIORITY: Execute feedback plans in parallel where possible. "
            "Target completion within current iteration."
        )
    return (
        "STANDARD: Address feedback systematically, starting with highest priority items. "
        "Allow 2-3 iterations for complete resolution."
    )
