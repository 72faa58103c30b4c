"""Feedback synthesis: templates, prioritization and remediation plans."""

from report_validation.feedback.synthesizer import (
    FeedbackContext,
    FeedbackSynthesizer,
    build_timeline,
    calculate_priority,
    estimate_effort,
    identify_dependencies,
    order_feedback,
)
from report_validation.feedback.templates import (
    FEEDBACK_TEMPLATES,
    FeedbackTemplate,
    populate_template,
    select_template,
)

__all__ = [
    "FeedbackContext",
    "FeedbackSynthesizer",
    "build_timeline",
    "calculate_priority",
    "estimate_effort",
    "identify_dependencies",
    "order_feedback",
    "FEEDBACK_TEMPLATES",
    "FeedbackTemplate",
    "populate_template",
    "select_template",
]
