"""Node classification.

Maps a node to its validation profile (sub-type, requirements, criticality)
through a registry keyed by node type. Adding a node type means registering
one more profile function; existing profiles are untouched.
"""

import logging
from typing import Callable

from report_validation.state.enums import Criticality, NodeType
from report_validation.state.models import NodeProfile, ReportNode

logger = logging.getLogger(__name__)

ProfileStrategy = Callable[[ReportNode], NodeProfile]

_PROFILES: dict[NodeType, ProfileStrategy] = {}


def register_profile(node_type: NodeType) -> Callable[[ProfileStrategy], ProfileStrategy]:
    """Decorator registering a profile strategy for a node type."""

    def decorator(strategy: ProfileStrategy) -> ProfileStrategy:
        if node_type in _PROFILES:
            logger.info(f"Replacing profile strategy for {node_type.value} nodes")
        _PROFILES[node_type] = strategy
        return strategy

    return decorator


def registered_types() -> list[NodeType]:
    return list(_PROFILES)


def classify(node: ReportNode) -> NodeProfile:
    """Return the validation profile for a node (pure lookup)."""
    strategy = _PROFILES.get(node.type)
    if strategy is None:
        return default_profile(node)
    return strategy(node)


def classify_all(nodes: list[ReportNode]) -> dict[str, NodeProfile]:
    return {node.id: classify(node) for node in nodes}


def default_profile(node: ReportNode) -> NodeProfile:
    return NodeProfile(
        node_type=node.type,
        sub_type="general",
        requirements=["basic_quality"],
        criticality=Criticality.LOW,
    )


# =============================================================================
# Built-in Profiles
# =============================================================================


SCORING_SUB_TYPES = [
    ("ocean_", "personality_trait"),
    ("pillar_", "performance_pillar"),
    ("domain_", "competency_domain"),
    ("executive_", "leadership_dimension"),
]


@register_profile(NodeType.SCORING)
def scoring_profile(node: ReportNode) -> NodeProfile:
    sub_type = next(
        (name for prefix, name in SCORING_SUB_TYPES if node.id.startswith(prefix)),
        "general_score",
    )
    return NodeProfile(
        node_type=NodeType.SCORING,
        sub_type=sub_type,
        requirements=[
            "statistical_validity",
            "percentile_accuracy",
            "score_consistency",
            "bias_detection",
        ],
        criticality=Criticality.CRITICAL,
    )


@register_profile(NodeType.INSIGHT)
def insight_profile(node: ReportNode) -> NodeProfile:
    text = node.content_text().lower()
    if "strength" in text:
        sub_type = "strength_insight"
    elif "challenge" in text or "development" in text:
        sub_type = "development_insight"
    elif "behavior" in text or "behaviour" in text:
        sub_type = "behavioral_insight"
    else:
        sub_type = "general_insight"

    return NodeProfile(
        node_type=NodeType.INSIGHT,
        sub_type=sub_type,
        requirements=[
            "evidence_based",
            "bias_free",
            "actionable_insights",
            "professional_tone",
        ],
        criticality=Criticality.HIGH,
    )


@register_profile(NodeType.RECOMMENDATION)
def recommendation_profile(node: ReportNode) -> NodeProfile:
    return NodeProfile(
        node_type=NodeType.RECOMMENDATION,
        sub_type="development_action",
        requirements=[
            "specificity",
            "measurability",
            "achievability",
            "relevance",
            "time_bound",
        ],
        criticality=Criticality.HIGH,
    )


@register_profile(NodeType.SUMMARY)
def summary_profile(node: ReportNode) -> NodeProfile:
    return NodeProfile(
        node_type=NodeType.SUMMARY,
        sub_type="executive_summary",
        requirements=[
            "comprehensiveness",
            "accuracy",
            "clarity",
            "appropriate_length",
        ],
        criticality=Criticality.MEDIUM,
    )


@register_profile(NodeType.CONTEXT)
def context_profile(node: ReportNode) -> NodeProfile:
    return NodeProfile(
        node_type=NodeType.CONTEXT,
        sub_type="contextual_factors",
        requirements=[
            "relevance",
            "cultural_sensitivity",
            "industry_accuracy",
        ],
        criticality=Criticality.MEDIUM,
    )
