"""Evaluation criteria for node scoring.

This module defines the criterion set sent to the judge for each metric
category, specialized by the node's validation profile.

Metrics:
- Accuracy: Factual and numerical correctness against the underlying data
- Bias: Fairness, absence of stereotypes and demographic assumptions
- Clarity: Readability, specificity and professional register
- Consistency: Internal agreement of claims, values and terminology
- Compliance: Policy rules, checked deterministically (see compliance.py)
"""

from pydantic import BaseModel, Field

from report_validation.state.enums import MetricCategory, NodeType
from report_validation.state.models import NodeProfile


# =============================================================================
# Metric Configuration
# =============================================================================


METRIC_CRITERIA = {
    MetricCategory.ACCURACY: {
        "name": "Accuracy",
        "description": "Factual and numerical correctness of the content",
        "criteria": [
            "Scores and percentiles are internally coherent",
            "Interpretations match the reported score bands",
            "Claims are supported by the assessment data",
            "No fabricated facts or figures",
        ],
    },
    MetricCategory.BIAS: {
        "name": "Bias",
        "description": "Fairness and freedom from stereotyped or demographic assumptions",
        "criteria": [
            "No gender, age, cultural or other demographic assumptions",
            "No stereotyped language about groups or roles",
            "Balanced treatment of strengths and development areas",
            "Judgments are grounded in observed behaviour, not identity",
        ],
    },
    MetricCategory.CLARITY: {
        "name": "Clarity",
        "description": "Readability, specificity and professional register",
        "criteria": [
            "Plain, direct language suitable for the audience",
            "Specific rather than vague statements",
            "Technical terms explained or avoided",
            "Appropriate length for the content type",
        ],
    },
    MetricCategory.CONSISTENCY: {
        "name": "Consistency",
        "description": "Internal agreement of claims, values and terminology",
        "criteria": [
            "Values quoted in the text match the structured data",
            "Terminology is used the same way throughout",
            "No contradictory statements",
            "Tone and voice are uniform",
        ],
    },
    MetricCategory.COMPLIANCE: {
        "name": "Compliance",
        "description": "Ethical, privacy, professional and legal policy rules",
        "criteria": [
            "No discriminatory or harmful content",
            "No personal or identifying information",
            "Professional language only",
            "No false or legally problematic claims",
        ],
    },
}

# Categories routed through the judge; compliance is rule-based
JUDGED_CATEGORIES = [
    MetricCategory.ACCURACY,
    MetricCategory.BIAS,
    MetricCategory.CLARITY,
    MetricCategory.CONSISTENCY,
]

# Extra checks per node type, appended to the category criteria
NODE_TYPE_FOCUS = {
    NodeType.SCORING: {
        MetricCategory.ACCURACY: ["Percentile and interpretation agree with the raw score"],
    },
    NodeType.RECOMMENDATION: {
        MetricCategory.CLARITY: ["Action is specific, measurable and time-bound"],
        MetricCategory.CONSISTENCY: ["Recommendation follows from the reported scores and insights"],
    },
    NodeType.INSIGHT: {
        MetricCategory.ACCURACY: ["Insight is evidence-based"],
    },
    NodeType.SUMMARY: {
        MetricCategory.CONSISTENCY: ["Summary reflects every section without contradiction"],
    },
}


class Criterion(BaseModel):
    """What the judge is asked to evaluate for one metric of one node."""

    category: MetricCategory
    name: str
    description: str
    checks: list[str] = Field(default_factory=list)
    node_type: NodeType | None = None
    sub_type: str = "general"
    requirements: list[str] = Field(default_factory=list)

    def render(self) -> str:
        """Criterion as prompt text."""
        lines = [f"{self.name}: {self.description}", "Checks:"]
        lines.extend(f"- {check}" for check in self.checks)
        if self.requirements:
            lines.append(f"Node requirements: {', '.join(self.requirements)}")
        if self.node_type is not None:
            lines.append(f"Node type: {self.node_type.value} ({self.sub_type})")
        return "\n".join(lines)


def build_criterion(category: MetricCategory, profile: NodeProfile | None = None) -> Criterion:
    """Build the criterion for a category, specialized by node profile."""
    config = METRIC_CRITERIA[category]
    checks = list(config["criteria"])

    if profile is not None and profile.node_type is not None:
        checks.extend(NODE_TYPE_FOCUS.get(profile.node_type, {}).get(category, []))
        return Criterion(
            category=category,
            name=config["name"],
            description=config["description"],
            checks=checks,
            node_type=profile.node_type,
            sub_type=profile.sub_type,
            requirements=profile.requirements,
        )

    return Criterion(
        category=category,
        name=config["name"],
        description=config["description"],
        checks=checks,
    )
