"""Confidence scoring: judge oracle, criteria, compliance rules and the scorer."""

from report_validation.scoring.compliance import COMPLIANCE_RULES, ComplianceRule, evaluate_compliance
from report_validation.scoring.criteria import (
    JUDGED_CATEGORIES,
    METRIC_CRITERIA,
    Criterion,
    build_criterion,
)
from report_validation.scoring.judge import (
    AnthropicJudge,
    JudgeIssue,
    JudgeOracle,
    JudgeVerdict,
    create_judge_model,
)
from report_validation.scoring.scorer import BatchScoreResult, ConfidenceScorer, ScorerStats

__all__ = [
    "COMPLIANCE_RULES",
    "ComplianceRule",
    "evaluate_compliance",
    "JUDGED_CATEGORIES",
    "METRIC_CRITERIA",
    "Criterion",
    "build_criterion",
    "AnthropicJudge",
    "JudgeIssue",
    "JudgeOracle",
    "JudgeVerdict",
    "create_judge_model",
    "BatchScoreResult",
    "ConfidenceScorer",
    "ScorerStats",
]
