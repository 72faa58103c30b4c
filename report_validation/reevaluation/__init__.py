"""Incremental re-evaluation: change analysis, consistency and history."""

from report_validation.reevaluation.change_detector import (
    analyze_changes,
    analyze_node_change,
    change_scope,
    content_similarity,
    dependents_of,
    removed_node_ids,
)
from report_validation.reevaluation.consistency import (
    ConsistencyChecker,
    consistency_score,
    diff_inconsistencies,
)
from report_validation.reevaluation.controller import (
    ReevaluationController,
    ReevaluationOutcome,
    ReevaluationPhase,
    feedback_recommendation,
)
from report_validation.reevaluation.history import (
    ConvergenceCheck,
    analyze_node_history,
    build_node_insights,
    check_convergence,
    revalidation_candidates,
)

__all__ = [
    "analyze_changes",
    "analyze_node_change",
    "change_scope",
    "content_similarity",
    "dependents_of",
    "removed_node_ids",
    "ConsistencyChecker",
    "consistency_score",
    "diff_inconsistencies",
    "ReevaluationController",
    "ReevaluationOutcome",
    "ReevaluationPhase",
    "feedback_recommendation",
    "ConvergenceCheck",
    "analyze_node_history",
    "build_node_insights",
    "check_convergence",
    "revalidation_candidates",
]
