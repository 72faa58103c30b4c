"""Validation history analysis.

Per-node trends (confidence trend, improvement velocity, stability and
recurring issues) and report-level convergence checks used to stop a
workflow that has stopped making progress.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from statistics import fmean, pvariance

from report_validation.state.models import NodeInsights, ValidationResult

logger = logging.getLogger(__name__)

UNSTABLE_BELOW = 0.7
OSCILLATION_WINDOW = 5
OSCILLATION_MIN_POINTS = 4
OSCILLATION_RATE = 0.6
OSCILLATION_AMPLITUDE = 1.0


# =============================================================================
# Node Trends
# =============================================================================


def improvement_velocity(trend: list[float]) -> float:
    """Mean change between consecutive confidences."""
    if len(trend) < 2:
        return 0.0
    return fmean(b - a for a, b in zip(trend, trend[1:]))


def stability_score(trend: list[float]) -> float:
    """1 for a flat trend, falling towards 0 as variance grows."""
    if len(trend) < 2:
        return 1.0
    return max(0.0, 1 - pvariance(trend) / 100)


def analyze_node_history(
    node_id: str,
    history: list[ValidationResult],
    confidence_threshold: float,
) -> NodeInsights:
    """
    Summarize one node's results across iterations.

    Args:
        node_id: Node id
        history: Results for the node, oldest first
        confidence_threshold: Approval threshold

    Returns:
        NodeInsights with trend metrics and recommendations.
    """
    trend = [r.confidence for r in history]
    velocity = improvement_velocity(trend)
    stability = stability_score(trend)

    issue_counts = Counter(
        f"{issue.category.value}: {issue.description}"
        for result in history
        for issue in result.issues
    )
    common = [issue for issue, _ in issue_counts.most_common(3)]

    latest = trend[-1] if trend else 0.0
    needs_revalidation = latest < confidence_threshold or stability < UNSTABLE_BELOW

    recommendations = []
    if stability < 0.5:
        recommendations.append("Consider more consistent validation criteria")
    if velocity < 0:
        recommendations.append("Review validation prompts for effectiveness")
    if common:
        recommendations.append(f"Focus on recurring issues: {', '.join(common)}")

    return NodeInsights(
        node_id=node_id,
        confidence_trend=trend,
        improvement_velocity=round(velocity, 2),
        stability=round(stability, 3),
        common_issues=common,
        needs_revalidation=needs_revalidation,
        recommendations=recommendations,
    )


def build_node_insights(
    node_history: dict[str, list[ValidationResult]],
    confidence_threshold: float,
) -> list[NodeInsights]:
    return [
        analyze_node_history(node_id, history, confidence_threshold)
        for node_id, history in node_history.items()
    ]


def revalidation_candidates(insights: list[NodeInsights]) -> list[str]:
    return [i.node_id for i in insights if i.needs_revalidation]


# =============================================================================
# Convergence
# =============================================================================


@dataclass
class ConvergenceCheck:
    """Why iterating further is not expected to help, if it is not."""

    stagnated: bool = False
    oscillating: bool = False
    reason: str = ""

    @property
    def should_stop(self) -> bool:
        return self.stagnated or self.oscillating


def iterations_without_improvement(trend: list[float], min_improvement_rate: float) -> int:
    """Number of trailing iterations whose gain was below the minimum rate."""
    count = 0
    for before, after in reversed(list(zip(trend, trend[1:]))):
        if after - before >= min_improvement_rate:
            break
        count += 1
    return count


def detect_oscillation(trend: list[float]) -> bool:
    """True when recent confidences keep changing direction by a visible amount."""
    window = trend[-OSCILLATION_WINDOW:]
    if len(window) < OSCILLATION_MIN_POINTS:
        return False
    turns = 0
    for a, b, c in zip(window, window[1:], window[2:]):
        if (b > a) != (c > b):
            turns += 1
    rate = turns / (len(window) - 2)
    amplitude = max(window) - min(window)
    return rate > OSCILLATION_RATE and amplitude > OSCILLATION_AMPLITUDE


def check_convergence(
    trend: list[float],
    min_improvement_rate: float,
    max_iterations_without_improvement: int,
) -> ConvergenceCheck:
    """
    Decide whether a report-level confidence trend has stopped converging.

    Args:
        trend: Overall confidence per iteration, oldest first
        min_improvement_rate: Gain per iteration that counts as progress
        max_iterations_without_improvement: Stagnant iterations tolerated

    Returns:
        ConvergenceCheck; should_stop is True on stagnation or oscillation.
    """
    check = ConvergenceCheck()

    stagnant = iterations_without_improvement(trend, min_improvement_rate)
    if max_iterations_without_improvement > 0 and stagnant >= max_iterations_without_improvement:
        check.stagnated = True
        check.reason = (
            f"Confidence improved by less than {min_improvement_rate:g} points "
            f"for {stagnant} consecutive iterations"
        )
    elif detect_oscillation(trend):
        check.oscillating = True
        check.reason = f"Confidence is oscillating: {[round(v, 1) for v in trend[-OSCILLATION_WINDOW:]]}"

    if check.should_stop:
        logger.warning(f"Convergence check: {check.reason}")
    return check
