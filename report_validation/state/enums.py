"""Enums and constants for report validation state."""

from enum import Enum


class NodeType(str, Enum):
    """Kind of independently validatable unit extracted from a report."""

    SCORING = "scoring"
    INSIGHT = "insight"
    RECOMMENDATION = "recommendation"
    SUMMARY = "summary"
    CONTEXT = "context"


class ReportKind(str, Enum):
    """Assessment kind, used to select an extractor."""

    INDIVIDUAL = "individual"
    EXECUTIVE = "executive"
    ORGANIZATIONAL = "organizational"
    DEFAULT = "default"


class MetricCategory(str, Enum):
    """Quality dimensions scored for every node."""

    ACCURACY = "accuracy"
    BIAS = "bias"
    CLARITY = "clarity"
    CONSISTENCY = "consistency"
    COMPLIANCE = "compliance"


class Severity(str, Enum):
    """Severity levels for issues."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"  # Blocks approval

    @property
    def rank(self) -> int:
        """Ordinal rank, higher is more severe."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class Criticality(str, Enum):
    """How much a node type matters to the overall report."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Effort(str, Enum):
    """Estimated remediation effort."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Urgency(str, Enum):
    """Caller-supplied urgency of the remediation round."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class DependencyKind(str, Enum):
    """Relationship between two feedback items."""

    BLOCKING = "blocking"
    ENHANCING = "enhancing"
    RELATED = "related"


class ChangeType(str, Enum):
    """What kind of change a node underwent between iterations."""

    CONTENT = "content"
    STRUCTURE = "structure"
    METADATA = "metadata"


class ChangeScope(str, Enum):
    """Magnitude of a node change."""

    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"


class ConsistencyDepth(str, Enum):
    """How far the cross-node consistency check reaches."""

    SHALLOW = "shallow"  # changed nodes and their direct neighbours
    DEEP = "deep"        # every node in the report


class InconsistencyKind(str, Enum):
    """Kinds of cross-node disagreement."""

    TERMINOLOGY = "terminology"
    DATA_VALUE = "data_value"
    STYLISTIC = "stylistic"


class ValidationStatus(str, Enum):
    """Per-iteration decision for a report."""

    APPROVED = "approved"
    REQUIRES_FURTHER_REVISION = "requires_further_revision"
    FAILED = "failed"


class FeedbackRecommendation(str, Enum):
    """Whether a feedback approach should be kept after seeing its effect."""

    CONTINUE = "continue"
    MODIFY = "modify"
    ABANDON = "abandon"


class FailureKind(str, Enum):
    """Pipeline failure taxonomy. All of these are carried as data."""

    EXTRACTION_WARNING = "extraction_warning"
    JUDGE_UNAVAILABLE = "judge_unavailable"
    MALFORMED_NODE = "malformed_node"
    THRESHOLD_NOT_MET = "threshold_not_met"
    CRITICAL_ISSUE_PRESENT = "critical_issue_present"
    ITERATION_BUDGET_EXHAUSTED = "iteration_budget_exhausted"
    WORKFLOW_CANCELLED = "workflow_cancelled"
    INTERNAL_ERROR = "internal_error"


class WorkflowStatus(str, Enum):
    """Status of the validation workflow."""

    # Initial state
    INITIALIZED = "initialized"

    # Phases
    EXTRACTED = "extracted"
    SCORED = "scored"
    FEEDBACK_READY = "feedback_ready"
    AWAITING_REVISION = "awaiting_revision"
    REVISED = "revised"
    REEVALUATED = "reevaluated"

    # Terminal states
    APPROVED = "approved"
    FAILED = "failed"
    MANUAL_REVIEW = "manual_review"
    CANCELLED = "cancelled"

