"""Unit tests for state models and aggregation helpers."""

import pytest

from report_validation.extraction import extract
from report_validation.state import (
    FailureKind,
    Issue,
    MetricCategory,
    MetricScore,
    NodeType,
    Report,
    ReportNode,
    Severity,
    ValidationResult,
    ValidationStatus,
    WorkflowStatus,
    calculate_report_confidence,
    compute_content_hash,
    create_initial_state,
)
from report_validation.state.models import (
    ValidationResultMetadata,
    collect_approval_blockers,
    determine_validation_status,
)


def result(node_id, confidence, issues=None, unavailable=()):
    return ValidationResult(
        node_id=node_id,
        node_type=NodeType.INSIGHT,
        confidence=confidence,
        metric_scores=[
            MetricScore(category=c, score=0, weight=0.2, judge_unavailable=True)
            for c in unavailable
        ],
        issues=issues or [],
        metadata=ValidationResultMetadata(judge_version="test", content_hash="h"),
    )


def issue(node_id, severity, category=MetricCategory.BIAS, description="problem"):
    return Issue(node_id=node_id, category=category, severity=severity, description=description)


class TestContentHash:
    """Tests for canonical hashing."""

    def test_key_order_does_not_matter(self):
        assert compute_content_hash({"a": 1, "b": 2}) == compute_content_hash({"b": 2, "a": 1})

    def test_value_change_changes_hash(self):
        assert compute_content_hash({"score": 72}) != compute_content_hash({"score": 73})

    def test_node_hash_uses_content(self):
        a = ReportNode(id="x", type=NodeType.CONTEXT, content={"k": "v"})
        b = ReportNode(id="y", type=NodeType.CONTEXT, content={"k": "v"})
        assert a.content_hash == b.content_hash


class TestIssue:
    """Tests for derived issue fields."""

    def test_priority_defaults_from_severity(self):
        assert issue("n", Severity.CRITICAL).priority == 10
        assert issue("n", Severity.LOW).priority == 2

    def test_issue_id_is_stable(self):
        a = issue("n", Severity.HIGH, description="Gendered assumption")
        b = issue("n", Severity.HIGH, description="  gendered assumption ")
        assert a.issue_id == b.issue_id
        assert a.issue_id.startswith("iss_")

    def test_explicit_priority_is_kept(self):
        assert Issue(category=MetricCategory.CLARITY, severity=Severity.LOW,
                     description="x", priority=7).priority == 7


class TestReportConfidence:
    """Tests for the importance-weighted report confidence."""

    def test_weighted_by_importance(self, report):
        nodes = extract(report).node_map()
        results = {
            "ocean_openness": result("ocean_openness", 90),   # importance 10
            "context_factors": result("context_factors", 60),  # importance 5
        }
        # (90 * 10 + 60 * 5) / 15 = 80
        assert calculate_report_confidence(results, nodes) == 80.0

    def test_unknown_node_uses_default_importance(self):
        assert calculate_report_confidence({"x": result("x", 70)}, {}) == 70.0

    def test_no_results(self):
        assert calculate_report_confidence({}, {}) == 0.0


class TestApprovalBlockers:
    """Tests for approval blockers and the per-iteration status."""

    def test_clean_results_are_approved(self):
        blockers = collect_approval_blockers(
            {"a": result("a", 90)}, 100, confidence_threshold=85, consistency_threshold=85
        )
        assert blockers == []
        assert determine_validation_status(blockers) == ValidationStatus.APPROVED

    def test_critical_issue_fails_even_above_threshold(self):
        blockers = collect_approval_blockers(
            {"a": result("a", 95, [issue("a", Severity.CRITICAL)])}, 100, 85, 85
        )
        assert [b.reason for b in blockers] == [FailureKind.CRITICAL_ISSUE_PRESENT]
        assert determine_validation_status(blockers) == ValidationStatus.FAILED

    def test_threshold_is_inclusive(self):
        assert collect_approval_blockers({"a": result("a", 85)}, 85, 85, 85) == []

    def test_below_threshold_requires_revision(self):
        blockers = collect_approval_blockers({"a": result("a", 84)}, 100, 85, 85)
        assert blockers[0].reason == FailureKind.THRESHOLD_NOT_MET
        assert determine_validation_status(blockers) == ValidationStatus.REQUIRES_FURTHER_REVISION

    def test_low_consistency_is_a_report_blocker(self):
        blockers = collect_approval_blockers({"a": result("a", 90)}, 80, 85, 85)
        assert blockers[0].node_id is None
        assert "consistency" in blockers[0].description

    def test_strict_mode_blocks_high_issues_and_degraded_metrics(self):
        results = {
            "a": result("a", 90, [issue("a", Severity.HIGH)]),
            "b": result("b", 90, unavailable=[MetricCategory.CLARITY]),
        }
        assert collect_approval_blockers(results, 100, 85, 85) == []

        strict = collect_approval_blockers(results, 100, 85, 85, strict_mode=True)
        assert {(b.node_id, b.reason) for b in strict} == {
            ("a", FailureKind.THRESHOLD_NOT_MET),
            ("b", FailureKind.JUDGE_UNAVAILABLE),
        }


class TestInitialState:
    """Tests for create_initial_state()."""

    def test_defaults(self):
        report = Report(content={"executiveSummary": "Short."})
        state = create_initial_state(report, max_iterations=2)
        assert state["workflow_id"] == report.workflow_id
        assert state["status"] == WorkflowStatus.INITIALIZED
        assert state["iteration"] == 0
        assert state["max_iterations"] == 2
        assert state["stop_reason"] is None
        assert state["errors"] == []


@pytest.mark.parametrize("severity,rank", [
    (Severity.LOW, 0),
    (Severity.MEDIUM, 1),
    (Severity.HIGH, 2),
    (Severity.CRITICAL, 3),
])
def test_severity_rank(severity, rank):
    assert severity.rank == rank
