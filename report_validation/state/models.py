"""Pydantic models for report validation state.

These models define the data structures that flow through the validation
pipeline, from extracted nodes through scoring, feedback synthesis and
re-evaluation to the final workflow result.
"""

import hashlib
import json
import math
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from report_validation.state.enums import (
    ChangeScope,
    ChangeType,
    ConsistencyDepth,
    Criticality,
    DependencyKind,
    Effort,
    FailureKind,
    FeedbackRecommendation,
    InconsistencyKind,
    MetricCategory,
    NodeType,
    ReportKind,
    Severity,
    ValidationStatus,
    WorkflowStatus,
)


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def canonical_json(content: Any) -> str:
    """Serialize content deterministically (sorted keys, no whitespace)."""
    return json.dumps(content, sort_keys=True, separators=(",", ":"), default=str)


def compute_content_hash(content: Any) -> str:
    """SHA-256 hex digest of the canonical JSON form of content."""
    return hashlib.sha256(canonical_json(content).encode("utf-8")).hexdigest()


# =============================================================================
# Report and Node Models
# =============================================================================


class NodeMetadata(BaseModel):
    """Structural metadata attached to a node at extraction time."""

    model_config = ConfigDict(frozen=True)

    parent_context: str = Field(
        default="general_assessment",
        description="Report section the node belongs to"
    )
    dependencies: list[str] = Field(
        default_factory=list,
        description="Ids of nodes this node depends on"
    )
    importance: int = Field(default=5, ge=1, le=10)
    validation_complexity: int = Field(default=5, ge=1, le=10)
    data_source: str = Field(default="unknown")


class ReportNode(BaseModel):
    """A discrete, independently validatable unit of a report.

    Nodes are immutable within an iteration. Identity for caching purposes
    is the pair (id, content_hash).
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Stable id across iterations")
    type: NodeType
    content: Any = Field(..., description="Opaque structured payload")
    metadata: NodeMetadata = Field(default_factory=NodeMetadata)

    @property
    def content_hash(self) -> str:
        return compute_content_hash(self.content)

    def content_text(self) -> str:
        """Content flattened to text, as sent to the judge."""
        if isinstance(self.content, str):
            return self.content
        return canonical_json(self.content)


class Report(BaseModel):
    """Structured report supplied by the content generator."""

    workflow_id: str = Field(default_factory=lambda: f"wf_{uuid4().hex[:12]}")
    kind: ReportKind = ReportKind.DEFAULT
    iteration: int = Field(default=0, ge=0)
    content: dict[str, Any] = Field(default_factory=dict)


class NodeProfile(BaseModel):
    """Validation profile assigned to a node by the classifier."""

    node_type: NodeType | None = None
    sub_type: str = "general"
    requirements: list[str] = Field(default_factory=list)
    criticality: Criticality = Criticality.LOW
    applicable_metrics: list[MetricCategory] = Field(
        default_factory=lambda: list(MetricCategory)
    )


class ExtractionWarning(BaseModel):
    """A report region that could not be turned into nodes."""

    region: str
    message: str
    path: str | None = None


class ExtractionMetadata(BaseModel):
    """Summary of one extraction pass."""

    report_kind: ReportKind = ReportKind.DEFAULT
    total_nodes: int = 0
    node_type_counts: dict[str, int] = Field(default_factory=dict)
    average_complexity: float = 0.0
    extraction_ms: float = 0.0
    warnings: list[ExtractionWarning] = Field(default_factory=list)


class ExtractionResult(BaseModel):
    """Nodes extracted from a report together with extraction metadata."""

    nodes: list[ReportNode] = Field(default_factory=list)
    metadata: ExtractionMetadata = Field(default_factory=ExtractionMetadata)

    def node_map(self) -> dict[str, ReportNode]:
        return {node.id: node for node in self.nodes}


# =============================================================================
# Scoring Models
# =============================================================================


DEFAULT_ISSUE_PRIORITY = {
    Severity.CRITICAL: 10,
    Severity.HIGH: 8,
    Severity.MEDIUM: 5,
    Severity.LOW: 2,
}


class Issue(BaseModel):
    """A defect found in a node for one metric category."""

    issue_id: str = Field(
        default="",
        description="Stable id derived from category and description"
    )
    node_id: str = Field(default="", description="Node the issue belongs to")
    category: MetricCategory
    severity: Severity
    description: str = Field(..., min_length=1)
    evidence: list[str] = Field(default_factory=list)
    priority: int = Field(default=0, ge=0, le=10)
    location: str | None = Field(default=None, description="Region of the content referenced")

    @model_validator(mode="after")
    def _fill_derived_fields(self) -> "Issue":
        if not self.issue_id:
            key = f"{self.category.value}|{self.description.strip().lower()}"
            self.issue_id = "iss_" + hashlib.sha1(key.encode("utf-8")).hexdigest()[:12]
        if self.priority == 0:
            self.priority = DEFAULT_ISSUE_PRIORITY[self.severity]
        return self

    @property
    def match_key(self) -> tuple[str, str]:
        """Key used to match the same issue across iterations."""
        return (self.category.value, self.description.strip().lower())


class Suggestion(BaseModel):
    """A remediation hint attached to a validation result."""

    issue_id: str
    category: MetricCategory
    specific_action: str
    implementation_steps: list[str] = Field(default_factory=list)
    example_before: str = ""
    example_after: str = ""
    estimated_confidence_gain: float = Field(default=0.0, ge=0)
    estimated_effort: Effort = Effort.MEDIUM


class MetricScore(BaseModel):
    """Score for a single quality dimension of a node."""

    category: MetricCategory
    score: float = Field(..., ge=0, le=100)
    weight: float = Field(..., ge=0, le=1)
    evidence: list[str] = Field(default_factory=list)
    issues: list[Issue] = Field(default_factory=list)
    self_confidence: float = Field(default=80.0, ge=0, le=100)
    judge_unavailable: bool = Field(
        default=False,
        description="Judge calls were exhausted and a conservative score was assigned"
    )


class ValidationResultMetadata(BaseModel):
    judge_version: str
    content_hash: str
    timestamp: datetime = Field(default_factory=_utc_now)


class ValidationResult(BaseModel):
    """Validation outcome for one node in one iteration."""

    node_id: str
    node_type: NodeType
    confidence: float = Field(..., ge=0, le=100)
    metric_scores: list[MetricScore] = Field(default_factory=list)
    issues: list[Issue] = Field(default_factory=list)
    suggestions: list[Suggestion] = Field(default_factory=list)
    metadata: ValidationResultMetadata

    @property
    def degraded(self) -> bool:
        return any(m.judge_unavailable for m in self.metric_scores)

    @property
    def unavailable_metrics(self) -> list[MetricCategory]:
        return [m.category for m in self.metric_scores if m.judge_unavailable]

    def get_metric(self, category: MetricCategory) -> MetricScore | None:
        for metric in self.metric_scores:
            if metric.category == category:
                return metric
        return None

    def get_critical_issues(self) -> list[Issue]:
        return [i for i in self.issues if i.severity == Severity.CRITICAL]

    def has_critical_issues(self) -> bool:
        return len(self.get_critical_issues()) > 0

    def issues_at_least(self, severity: Severity) -> list[Issue]:
        return [i for i in self.issues if i.severity.rank >= severity.rank]

    def suggestion_for(self, issue_id: str) -> Suggestion | None:
        for suggestion in self.suggestions:
            if suggestion.issue_id == issue_id:
                return suggestion
        return None


# =============================================================================
# Feedback Models
# =============================================================================


class Feedback(BaseModel):
    """A specific, actionable remediation tied to one issue."""

    feedback_id: str
    node_id: str
    node_type: NodeType
    issue: Issue
    priority: int = Field(..., ge=1, le=10)
    specific_action: str
    root_cause: str = ""
    expected_impact: str = ""
    implementation_steps: list[str] = Field(default_factory=list)
    example_before: str = ""
    example_after: str = ""
    estimated_confidence_gain: float = Field(default=0.0, ge=0)
    estimated_effort: Effort = Effort.MEDIUM
    confidence_gap: float = 0.0
    timeframe: str = ""
    success_criteria: list[str] = Field(default_factory=list)
    testing_guidance: list[str] = Field(default_factory=list)
    quality_checks: list[str] = Field(default_factory=list)

    @property
    def category(self) -> MetricCategory:
        return self.issue.category

    @property
    def severity(self) -> Severity:
        return self.issue.severity

    @property
    def is_critical(self) -> bool:
        return self.issue.severity == Severity.CRITICAL


class FeedbackDependency(BaseModel):
    """Ordering constraint between two feedback items."""

    dependent_id: str
    depends_on_id: str
    reason: str
    kind: DependencyKind


class FeedbackTimeline(BaseModel):
    immediate: list[Feedback] = Field(default_factory=list)
    short_term: list[Feedback] = Field(default_factory=list)
    long_term: list[Feedback] = Field(default_factory=list)


class FeedbackMetrics(BaseModel):
    """Aggregate statistics over a set of feedback items."""

    total_items: int = 0
    nodes_with_feedback: int = 0
    critical_items: int = 0
    high_priority_items: int = 0
    by_category: dict[str, int] = Field(default_factory=dict)
    by_severity: dict[str, int] = Field(default_factory=dict)
    average_confidence_gap: float = 0.0
    total_estimated_gain: float = 0.0


class FeedbackPlan(BaseModel):
    """Prioritized, dependency-ordered remediation plan."""

    recommended_sequence: list[Feedback] = Field(default_factory=list)
    parallelizable: list[Feedback] = Field(default_factory=list)
    timeline: FeedbackTimeline = Field(default_factory=FeedbackTimeline)
    dependencies: list[FeedbackDependency] = Field(default_factory=list)
    total_effort_hours: float = 0.0
    total_estimated_effort: Effort = Effort.LOW
    total_expected_impact: float = 0.0
    efficiency: float = 0.0
    metrics: FeedbackMetrics = Field(default_factory=FeedbackMetrics)
    cross_node_recommendations: list[str] = Field(default_factory=list)
    execution_strategy: str = ""
    created_at: datetime = Field(default_factory=_utc_now)

    def is_empty(self) -> bool:
        return not self.recommended_sequence

    def feedback_for_node(self, node_id: str) -> list[Feedback]:
        return [f for f in self.recommended_sequence if f.node_id == node_id]

    def get(self, feedback_id: str) -> Feedback | None:
        for item in self.recommended_sequence:
            if item.feedback_id == feedback_id:
                return item
        return None


# =============================================================================
# Re-evaluation Models
# =============================================================================


class ChangeAnalysis(BaseModel):
    """How one node changed between two iterations."""

    node_id: str
    change_type: ChangeType
    change_scope: ChangeScope
    similarity: float = Field(default=100.0, ge=0, le=100)
    revalidation_required: bool
    consistency_check_required: bool
    affected_nodes: list[str] = Field(default_factory=list)


class Inconsistency(BaseModel):
    """A disagreement between two or more nodes."""

    kind: InconsistencyKind
    node_ids: list[str]
    description: str
    key: str = Field(..., description="Stable key used to diff inconsistencies across iterations")


class ConsistencyResult(BaseModel):
    score: float = Field(default=100.0, ge=0, le=100)
    depth: ConsistencyDepth = ConsistencyDepth.SHALLOW
    checked_nodes: list[str] = Field(default_factory=list)
    inconsistencies: list[Inconsistency] = Field(default_factory=list)


class RegressionIssue(BaseModel):
    """A new issue attributed to a specific applied feedback item."""

    node_id: str
    issue: Issue
    caused_by_feedback_id: str
    mitigation: str


class FeedbackEffectiveness(BaseModel):
    feedback_id: str
    node_id: str
    expected_gain: float
    actual_gain: float
    effectiveness: float = Field(..., ge=0, le=100)
    side_effects: list[str] = Field(default_factory=list)
    recommendation: FeedbackRecommendation


class IntegrityViolation(BaseModel):
    """An issue that vanished from a node whose content did not change."""

    node_id: str
    issue_id: str
    description: str


class RevalidationMetrics(BaseModel):
    nodes_revalidated: int = 0
    nodes_skipped: int = 0
    oracle_calls: int = 0
    cache_hits: int = 0
    cost_savings: float = 0.0
    estimated_completion_minutes: int = 0
    duration_ms: float = 0.0


class RevalidationResult(BaseModel):
    """Outcome of one re-evaluation pass."""

    iteration: int = Field(..., ge=1)
    change_analyses: list[ChangeAnalysis] = Field(default_factory=list)
    revalidated_nodes: list[str] = Field(default_factory=list)
    unchanged_nodes: list[str] = Field(default_factory=list)
    new_nodes: list[str] = Field(default_factory=list)
    removed_nodes: list[str] = Field(default_factory=list)
    new_issues: list[Issue] = Field(default_factory=list)
    resolved_issues: list[Issue] = Field(default_factory=list)
    consistency: ConsistencyResult = Field(default_factory=ConsistencyResult)
    consistency_before: float = 100.0
    new_inconsistencies: int = 0
    resolved_inconsistencies: int = 0
    regression_issues: list[RegressionIssue] = Field(default_factory=list)
    feedback_effectiveness: list[FeedbackEffectiveness] = Field(default_factory=list)
    integrity_violations: list[IntegrityViolation] = Field(default_factory=list)
    status: ValidationStatus
    metrics: RevalidationMetrics = Field(default_factory=RevalidationMetrics)
    next_steps: list[str] = Field(default_factory=list)

    @property
    def consistency_delta(self) -> float:
        return self.consistency.score - self.consistency_before


# =============================================================================
# Workflow Models
# =============================================================================


class PipelineError(BaseModel):
    """A failure recorded as data rather than raised."""

    error_id: str = Field(
        default_factory=lambda: str(uuid4())[:8],
        description="Unique error identifier"
    )
    occurred_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the error occurred"
    )
    kind: FailureKind
    phase: str = Field(..., description="Pipeline phase where the error occurred")
    node_id: str | None = None
    message: str
    recoverable: bool = True
    details: dict[str, Any] = Field(default_factory=dict)


class ApprovalBlocker(BaseModel):
    """Why a node keeps the report from being approved."""

    node_id: str | None = Field(default=None, description="None for report-level blockers")
    reason: FailureKind
    description: str
    issue: Issue | None = None
    confidence: float | None = None


class IterationRecord(BaseModel):
    """Snapshot of one iteration's decision."""

    iteration: int = Field(..., ge=0)
    status: ValidationStatus
    overall_confidence: float
    node_confidences: dict[str, float] = Field(default_factory=dict)
    consistency_score: float = 100.0
    critical_issue_count: int = 0
    blockers: list[ApprovalBlocker] = Field(default_factory=list)
    oracle_calls: int = 0
    recorded_at: datetime = Field(default_factory=_utc_now)


class NodeInsights(BaseModel):
    """Trend analysis for one node across iterations."""

    node_id: str
    confidence_trend: list[float] = Field(default_factory=list)
    improvement_velocity: float = 0.0
    stability: float = Field(default=1.0, ge=0, le=1)
    common_issues: list[str] = Field(default_factory=list)
    needs_revalidation: bool = False
    recommendations: list[str] = Field(default_factory=list)


class ManualReviewReport(BaseModel):
    """Explanation attached to a workflow that stopped without approval."""

    reason: FailureKind
    iteration: int
    summary: str
    blockers: list[ApprovalBlocker] = Field(default_factory=list)
    recommended_actions: list[str] = Field(default_factory=list)


class WorkflowResult(BaseModel):
    """Report-level outcome of a validation workflow."""

    workflow_id: str
    status: WorkflowStatus
    decision: ValidationStatus | None = None
    overall_confidence: float = 0.0
    iterations: int = 0
    node_results: dict[str, ValidationResult] = Field(default_factory=dict)
    feedback_plan: FeedbackPlan | None = None
    revalidation_history: list[RevalidationResult] = Field(default_factory=list)
    iteration_history: list[IterationRecord] = Field(default_factory=list)
    extraction_warnings: list[ExtractionWarning] = Field(default_factory=list)
    errors: list[PipelineError] = Field(default_factory=list)
    blockers: list[ApprovalBlocker] = Field(default_factory=list)
    node_insights: list[NodeInsights] = Field(default_factory=list)
    manual_review: ManualReviewReport | None = None
    recommended_actions: list[str] = Field(default_factory=list)
    completed_at: datetime = Field(default_factory=_utc_now)

    @property
    def approved(self) -> bool:
        return self.status == WorkflowStatus.APPROVED

    @property
    def degraded(self) -> bool:
        return bool(self.extraction_warnings) or any(
            r.degraded for r in self.node_results.values()
        )

    @property
    def regression_issues(self) -> list[RegressionIssue]:
        return [r for reval in self.revalidation_history for r in reval.regression_issues]


# =============================================================================
# Aggregation helpers
# =============================================================================


def calculate_confidence(metric_scores: list[MetricScore]) -> float:
    """Weighted mean of metric scores, rounded half up to an integer."""
    total_weight = sum(m.weight for m in metric_scores)
    if total_weight == 0:
        return 0.0
    weighted_sum = sum(m.score * m.weight for m in metric_scores)
    # Trim float noise so a mean of x.5 rounds up
    mean = round(weighted_sum / total_weight, 9)
    return float(math.floor(mean + 0.5))


def calculate_report_confidence(
    results: dict[str, ValidationResult],
    nodes: dict[str, ReportNode],
) -> float:
    """Importance-weighted mean of current node confidences."""
    total_weight = 0
    weighted_sum = 0.0
    for node_id, result in results.items():
        node = nodes.get(node_id)
        importance = node.metadata.importance if node else 5
        weighted_sum += result.confidence * importance
        total_weight += importance

    if total_weight == 0:
        return 0.0

    return round(weighted_sum / total_weight, 2)


def collect_approval_blockers(
    results: dict[str, ValidationResult],
    consistency_score: float,
    confidence_threshold: float,
    consistency_threshold: float,
    strict_mode: bool = False,
) -> list[ApprovalBlocker]:
    """List everything that prevents approval of the current snapshot."""
    blockers: list[ApprovalBlocker] = []

    for node_id, result in sorted(results.items()):
        for issue in result.get_critical_issues():
            blockers.append(ApprovalBlocker(
                node_id=node_id,
                reason=FailureKind.CRITICAL_ISSUE_PRESENT,
                description=f"Critical {issue.category.value} issue: {issue.description}",
                issue=issue,
                confidence=result.confidence,
            ))

        if result.confidence < confidence_threshold:
            blockers.append(ApprovalBlocker(
                node_id=node_id,
                reason=FailureKind.THRESHOLD_NOT_MET,
                description=(
                    f"Confidence {result.confidence:.0f} is below "
                    f"threshold {confidence_threshold:.0f}"
                ),
                confidence=result.confidence,
            ))

        if strict_mode:
            for issue in result.issues:
                if issue.severity == Severity.HIGH:
                    blockers.append(ApprovalBlocker(
                        node_id=node_id,
                        reason=FailureKind.THRESHOLD_NOT_MET,
                        description=f"Strict mode: high {issue.category.value} issue: {issue.description}",
                        issue=issue,
                        confidence=result.confidence,
                    ))
            for category in result.unavailable_metrics:
                blockers.append(ApprovalBlocker(
                    node_id=node_id,
                    reason=FailureKind.JUDGE_UNAVAILABLE,
                    description=f"Strict mode: {category.value} could not be judged",
                    confidence=result.confidence,
                ))

    if consistency_score < consistency_threshold:
        blockers.append(ApprovalBlocker(
            node_id=None,
            reason=FailureKind.THRESHOLD_NOT_MET,
            description=(
                f"Cross-node consistency {consistency_score:.0f} is below "
                f"threshold {consistency_threshold:.0f}"
            ),
        ))

    return blockers


def determine_validation_status(blockers: list[ApprovalBlocker]) -> ValidationStatus:
    """Map approval blockers to a per-iteration status."""
    if any(b.reason == FailureKind.CRITICAL_ISSUE_PRESENT for b in blockers):
        return ValidationStatus.FAILED
    if blockers:
        return ValidationStatus.REQUIRES_FURTHER_REVISION
    return ValidationStatus.APPROVED
