"""Feedback templates and per-category remediation text.

Templates are looked up by (category, severity, node type), falling back to
(category, severity) and then to a generic default. Placeholders use the
``{{name}}`` form and are filled with :func:`populate_template`.
"""

import re

from pydantic import BaseModel, Field

from report_validation.state.enums import Effort, MetricCategory, NodeType, Severity


class FeedbackTemplate(BaseModel):
    """Action and example text for one class of issue."""

    template_id: str
    description: str
    action_template: str
    example_before: str = ""
    example_after: str = ""
    success_criteria: list[str] = Field(default_factory=list)
    estimated_impact: float = 10.0


# =============================================================================
# Template Registry
# =============================================================================


DEFAULT_TEMPLATE = FeedbackTemplate(
    template_id="default_001",
    description="General quality improvement needed",
    action_template="Address the {{issue_description}} in {{node_type}} content",
    example_before="Current: {{content}}",
    example_after="Improved: {{improvement}}",
    success_criteria=["Issue resolved", "Quality improved"],
    estimated_impact=10.0,
)

FEEDBACK_TEMPLATES: dict[str, FeedbackTemplate] = {
    "accuracy_critical": FeedbackTemplate(
        template_id="acc_crit_001",
        description="Critical accuracy issue requiring immediate correction",
        action_template=(
            "Correct the {{issue_description}} in {{node_type}} by verifying "
            "data sources and updating content"
        ),
        example_before="Current content: {{content}} [Issue: {{issue}}]",
        example_after="Improved content: {{content}} [Corrected with {{improvement}}]",
        success_criteria=["Factual accuracy verified", "Supporting evidence provided"],
        estimated_impact=25.0,
    ),
    "accuracy_critical_scoring": FeedbackTemplate(
        template_id="acc_crit_scoring_001",
        description="Score interpretation contradicts the underlying data",
        action_template=(
            "Recompute the percentile and interpretation for this {{node_type}} node "
            "so they agree with the raw score ({{issue_description}})"
        ),
        example_before="Reported: {{content}}",
        example_after="Corrected: interpretation band matches the raw score",
        success_criteria=["Percentile matches raw score", "Interpretation band matches percentile"],
        estimated_impact=25.0,
    ),
    "accuracy_high": FeedbackTemplate(
        template_id="acc_high_001",
        description="Unsupported or inaccurate claim",
        action_template=(
            "Verify and correct the {{issue_description}} in {{node_type}} against "
            "the assessment data"
        ),
        example_before="Current content: {{content}}",
        example_after="Improved content: {{improvement}}",
        success_criteria=["Claim traced to assessment data"],
        estimated_impact=15.0,
    ),
    "bias_critical": FeedbackTemplate(
        template_id="bias_crit_001",
        description="Discriminatory or stereotyped content",
        action_template=(
            "Remove the biased statement ({{issue_description}}) from {{node_type}} "
            "and ground the observation in assessed behaviour only"
        ),
        example_before="Biased content: {{content}}",
        example_after="Inclusive content: {{improvement}}",
        success_criteria=["No demographic assumptions", "Statement grounded in assessed behaviour"],
        estimated_impact=25.0,
    ),
    "bias_high": FeedbackTemplate(
        template_id="bias_high_001",
        description="High-severity bias requiring immediate attention",
        action_template=(
            "Remove biased language in {{node_type}} and replace with inclusive alternatives"
        ),
        example_before="Biased content: {{content}}",
        example_after="Inclusive content: {{improvement}}",
        success_criteria=["Bias indicators removed", "Inclusive language used"],
        estimated_impact=20.0,
    ),
    "clarity_medium": FeedbackTemplate(
        template_id="clar_med_001",
        description="Vague or hard to read content",
        action_template=(
            "Rewrite the {{node_type}} content to resolve: {{issue_description}}"
        ),
        example_before="Current: {{content}}",
        example_after="Clearer: {{improvement}}",
        success_criteria=["Plain language", "Specific statements"],
        estimated_impact=8.0,
    ),
    "clarity_medium_recommendation": FeedbackTemplate(
        template_id="clar_med_rec_001",
        description="Recommendation is not specific or measurable",
        action_template=(
            "Make the recommendation specific, measurable and time-bound "
            "({{issue_description}})"
        ),
        example_before="Current: {{content}}",
        example_after="Actionable: {{improvement}}",
        success_criteria=["Action has a measurable outcome", "Action has a timeframe"],
        estimated_impact=8.0,
    ),
    "consistency_high": FeedbackTemplate(
        template_id="cons_high_001",
        description="Content disagrees with other sections",
        action_template=(
            "Align the {{node_type}} content with related sections: {{issue_description}}"
        ),
        example_before="Current: {{content}}",
        example_after="Aligned: {{improvement}}",
        success_criteria=["Values match the structured data", "Terminology matches other sections"],
        estimated_impact=15.0,
    ),
    "compliance_critical": FeedbackTemplate(
        template_id="comp_crit_001",
        description="Content violates an ethical or legal policy",
        action_template=(
            "Remove the non-compliant content from {{node_type}}: {{issue_description}}"
        ),
        example_before="Non-compliant: {{content}}",
        example_after="Compliant: {{improvement}}",
        success_criteria=["Policy violation removed"],
        estimated_impact=25.0,
    ),
    "compliance_high": FeedbackTemplate(
        template_id="comp_high_001",
        description="Content exposes personal or legally risky information",
        action_template=(
            "Redact or rephrase the flagged content in {{node_type}}: {{issue_description}}"
        ),
        example_before="Non-compliant: {{content}}",
        example_after="Compliant: {{improvement}}",
        success_criteria=["No personal data", "No unsupported claims"],
        estimated_impact=15.0,
    ),
}


def template_key(
    category: MetricCategory,
    severity: Severity,
    node_type: NodeType | None = None,
) -> str:
    key = f"{category.value}_{severity.value}"
    if node_type is not None:
        key = f"{key}_{node_type.value}"
    return key


def select_template(
    category: MetricCategory,
    severity: Severity,
    node_type: NodeType,
    templates: dict[str, FeedbackTemplate] | None = None,
) -> FeedbackTemplate:
    """Most specific template for an issue, falling back to the default."""
    templates = FEEDBACK_TEMPLATES if templates is None else templates
    specific = templates.get(template_key(category, severity, node_type))
    if specific is not None:
        return specific
    general = templates.get(template_key(category, severity))
    if general is not None:
        return general
    return templates.get("default", DEFAULT_TEMPLATE)


_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


def populate_template(template: str, variables: dict[str, str]) -> str:
    """Replace ``{{name}}`` placeholders; unknown placeholders are left as-is."""
    return _PLACEHOLDER.sub(
        lambda match: variables.get(match.group(1), match.group(0)),
        template,
    )


# =============================================================================
# Per-category Text
# =============================================================================


IMPLEMENTATION_STEPS = {
    MetricCategory.ACCURACY: [
        "1. Review the current content for factual accuracy",
        "2. Verify data sources and calculations",
        "3. Cross-reference with assessment methodology",
        "4. Update content with corrected information",
        "5. Add supporting evidence where needed",
    ],
    MetricCategory.BIAS: [
        "1. Identify specific biased language or assumptions",
        "2. Research inclusive alternatives",
        "3. Rewrite content using neutral, professional language",
        "4. Review for remaining bias indicators",
        "5. Validate with diversity guidelines",
    ],
    MetricCategory.CLARITY: [
        "1. Identify unclear or complex language",
        "2. Simplify technical jargon for target audience",
        "3. Improve sentence structure and flow",
        "4. Add clarifying examples if needed",
        "5. Test readability with target audience level",
    ],
    MetricCategory.CONSISTENCY: [
        "1. Compare content with related sections",
        "2. Identify inconsistent terminology or data",
        "3. Standardize language and format",
        "4. Update cross-references",
        "5. Verify alignment with overall assessment",
    ],
    MetricCategory.COMPLIANCE: [
        "1. Review content against compliance standards",
        "2. Identify non-compliant elements",
        "3. Research compliant alternatives",
        "4. Update content to meet requirements",
        "5. Document compliance measures taken",
    ],
}

ROOT_CAUSES = {
    MetricCategory.ACCURACY: "Insufficient data validation or outdated information",
    MetricCategory.BIAS: "Unconscious bias in language or assumptions",
    MetricCategory.CLARITY: "Complex language or poor structure",
    MetricCategory.CONSISTENCY: "Lack of standardization across content",
    MetricCategory.COMPLIANCE: "Insufficient compliance checking",
}

EXPECTED_IMPACT = {
    MetricCategory.ACCURACY: "Improved factual correctness and reliability",
    MetricCategory.BIAS: "More inclusive and fair assessment content",
    MetricCategory.CLARITY: "Enhanced readability and comprehension",
    MetricCategory.CONSISTENCY: "Better coherence across assessment sections",
    MetricCategory.COMPLIANCE: "Adherence to professional and legal standards",
}

IMPROVEMENT_TEXT = {
    MetricCategory.BIAS: "inclusive, professional language that avoids stereotypes",
    MetricCategory.CLARITY: "clear, concise language appropriate for the target audience",
    MetricCategory.ACCURACY: "factually correct information with proper supporting evidence",
    MetricCategory.CONSISTENCY: "terminology and style consistent with other sections",
    MetricCategory.COMPLIANCE: "content that meets all professional and ethical standards",
}

CONFIDENCE_GAIN_BY_SEVERITY = {
    Severity.CRITICAL: 25.0,
    Severity.HIGH: 15.0,
    Severity.MEDIUM: 8.0,
    Severity.LOW: 3.0,
}

EFFORT_HOURS = {
    Effort.LOW: 1.0,
    Effort.MEDIUM: 3.0,
    Effort.HIGH: 8.0,
}

TIMEFRAMES = {
    Effort.LOW: {
        Severity.CRITICAL: "1-2 hours",
        Severity.HIGH: "30-60 min",
        Severity.MEDIUM: "15-30 min",
        Severity.LOW: "5-15 min",
    },
    Effort.MEDIUM: {
        Severity.CRITICAL: "4-6 hours",
        Severity.HIGH: "2-3 hours",
        Severity.MEDIUM: "1-2 hours",
        Severity.LOW: "30-60 min",
    },
    Effort.HIGH: {
        Severity.CRITICAL: "1-2 days",
        Severity.HIGH: "4-8 hours",
        Severity.MEDIUM: "2-4 hours",
        Severity.LOW: "1-2 hours",
    },
}

QUALITY_CHECKS = [
    "Content accuracy verified",
    "Bias indicators removed",
    "Professional tone maintained",
    "Target audience appropriateness confirmed",
    "Compliance standards met",
]


def estimate_timeframe(effort: Effort, severity: Severity) -> str:
    return TIMEFRAMES.get(effort, {}).get(severity, "1-2 hours")
