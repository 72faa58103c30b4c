"""State management for the report validation workflow."""

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
    Urgency,
    ValidationStatus,
    WorkflowStatus,
)
from report_validation.state.models import (
    ApprovalBlocker,
    ChangeAnalysis,
    ConsistencyResult,
    ExtractionMetadata,
    ExtractionResult,
    ExtractionWarning,
    Feedback,
    FeedbackDependency,
    FeedbackEffectiveness,
    FeedbackPlan,
    FeedbackTimeline,
    Inconsistency,
    Issue,
    IterationRecord,
    ManualReviewReport,
    MetricScore,
    NodeInsights,
    NodeMetadata,
    NodeProfile,
    PipelineError,
    RegressionIssue,
    Report,
    ReportNode,
    RevalidationResult,
    Suggestion,
    ValidationResult,
    WorkflowResult,
    calculate_confidence,
    calculate_report_confidence,
    compute_content_hash,
)
from report_validation.state.schema import ValidationState, create_initial_state

__all__ = [
    # Enums
    "ChangeScope",
    "ChangeType",
    "ConsistencyDepth",
    "Criticality",
    "DependencyKind",
    "Effort",
    "FailureKind",
    "FeedbackRecommendation",
    "InconsistencyKind",
    "MetricCategory",
    "NodeType",
    "ReportKind",
    "Severity",
    "Urgency",
    "ValidationStatus",
    "WorkflowStatus",
    # Models
    "ApprovalBlocker",
    "ChangeAnalysis",
    "ConsistencyResult",
    "ExtractionMetadata",
    "ExtractionResult",
    "ExtractionWarning",
    "Feedback",
    "FeedbackDependency",
    "FeedbackEffectiveness",
    "FeedbackPlan",
    "FeedbackTimeline",
    "Inconsistency",
    "Issue",
    "IterationRecord",
    "ManualReviewReport",
    "MetricScore",
    "NodeInsights",
    "NodeMetadata",
    "NodeProfile",
    "PipelineError",
    "RegressionIssue",
    "Report",
    "ReportNode",
    "RevalidationResult",
    "Suggestion",
    "ValidationResult",
    "WorkflowResult",
    "calculate_confidence",
    "calculate_report_confidence",
    "compute_content_hash",
    # Schema
    "ValidationState",
    "create_initial_state",
]
