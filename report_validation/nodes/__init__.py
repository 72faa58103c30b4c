"""LangGraph nodes for the report validation workflow."""

from report_validation.nodes.services import (
    ReportGenerator,
    ValidationServices,
    cancelled_update,
)
from report_validation.nodes.extract import make_extract_node
from report_validation.nodes.score import make_score_node
from report_validation.nodes.decide import make_decide_node
from report_validation.nodes.feedback import (
    build_plan,
    feedback_context,
    make_feedback_node,
)
from report_validation.nodes.revise import (
    coerce_revised_report,
    make_revise_node,
)
from report_validation.nodes.reevaluate import make_reevaluate_node
from report_validation.nodes.manual_review import (
    make_manual_review_node,
    recommended_actions,
)

__all__ = [
    # Services
    "ReportGenerator",
    "ValidationServices",
    "cancelled_update",
    # Nodes
    "make_extract_node",
    "make_score_node",
    "make_decide_node",
    "make_feedback_node",
    "build_plan",
    "feedback_context",
    "make_revise_node",
    "coerce_revised_report",
    "make_reevaluate_node",
    "make_manual_review_node",
    "recommended_actions",
]
