"""Test configuration and fixtures."""

import copy
from typing import Any, Callable

import pytest

from report_validation.config import ValidationConfig
from report_validation.errors import create_test_retry_policy
from report_validation.scoring import JudgeIssue, JudgeVerdict
from report_validation.scoring.criteria import Criterion
from report_validation.state.enums import MetricCategory, ReportKind, Severity
from report_validation.state.models import FeedbackPlan, Report


# Configure pytest-asyncio
pytest_plugins = ['pytest_asyncio']


@pytest.fixture(scope="session")
def anyio_backend():
    """Use asyncio as the async backend."""
    return "asyncio"


# =============================================================================
# Judge Fake
# =============================================================================


Response = JudgeVerdict | Exception | Callable[[str, Criterion], JudgeVerdict]


class ScriptedJudge:
    """Judge oracle that answers from a script keyed by content marker.

    A rule matches when its marker occurs in the node content sent to the
    judge (and, optionally, the criterion category matches). The most
    recently added matching rule wins; unmatched calls get a clean verdict
    with the default score.
    """

    def __init__(self, default_score: float = 92.0, version: str = "test-judge-v1"):
        self.version = version
        self.default_score = default_score
        self.rules: dict[tuple[str, MetricCategory | None], Response] = {}
        self.calls: list[tuple[str, MetricCategory]] = []
        self.on_call: Callable[[str, Criterion], None] | None = None

    def script(
        self,
        marker: str,
        response: Response,
        category: MetricCategory | None = None,
    ) -> "ScriptedJudge":
        key = (marker, category)
        self.rules.pop(key, None)
        self.rules[key] = response
        return self

    def calls_matching(self, marker: str) -> int:
        return sum(1 for content, _ in self.calls if marker in content)

    async def evaluate(self, content: str, criterion: Criterion) -> JudgeVerdict:
        self.calls.append((content, criterion.category))
        if self.on_call is not None:
            self.on_call(content, criterion)

        for (marker, category), response in reversed(list(self.rules.items())):
            if marker not in content:
                continue
            if category is not None and category != criterion.category:
                continue
            if isinstance(response, Exception):
                raise response
            if callable(response):
                return response(content, criterion)
            return response

        return JudgeVerdict(score=self.default_score, evidence=["No problems found"])


def verdict(
    score: float,
    severity: Severity | None = None,
    description: str = "Issue found by judge",
    evidence: list[str] | None = None,
    **issue_fields: Any,
) -> JudgeVerdict:
    """Build a verdict with at most one issue."""
    issues = []
    if severity is not None:
        issues.append(JudgeIssue(
            severity=severity,
            description=description,
            evidence=evidence or [],
            **issue_fields,
        ))
    return JudgeVerdict(score=score, evidence=[f"scored {score:g}"], issues=issues)


@pytest.fixture
def judge() -> ScriptedJudge:
    return ScriptedJudge()


@pytest.fixture
def make_verdict():
    return verdict


# =============================================================================
# Generator Fake
# =============================================================================


class ScriptedGenerator:
    """Content generator that returns prepared revisions in order.

    Once the prepared revisions are used up the report is returned
    unchanged.
    """

    def __init__(self, revisions: list[dict[str, Any]] | None = None):
        self.revisions = list(revisions or [])
        self.plans: list[FeedbackPlan] = []

    async def revise(self, report: Report, plan: FeedbackPlan) -> Report:
        self.plans.append(plan)
        if self.revisions:
            content = self.revisions.pop(0)
        else:
            content = report.content
        return Report(workflow_id=report.workflow_id, kind=report.kind, content=content)


@pytest.fixture
def make_generator():
    def _create(revisions: list[dict[str, Any]] | None = None) -> ScriptedGenerator:
        return ScriptedGenerator(revisions)
    return _create


# =============================================================================
# Configuration
# =============================================================================


@pytest.fixture
def config() -> ValidationConfig:
    return ValidationConfig(judge_timeout_seconds=5.0, max_iterations=3)


@pytest.fixture
def retry_policy():
    return create_test_retry_policy()


# =============================================================================
# Reports
# =============================================================================


INSIGHT_TEXT = (
    "The candidate approaches unfamiliar problems with curiosity and explores "
    "several options before committing."
)
RECOMMENDATION_TEXT = (
    "The candidate should lead one planning session with neighbouring teams "
    "each quarter and collect structured feedback afterwards."
)
SUMMARY_TEXT = (
    "The candidate shows a curious, organised working style with steady "
    "collaboration habits."
)


def individual_report_content() -> dict[str, Any]:
    """Seven nodes: three traits, one insight, one recommendation, summary and context."""
    return {
        "scores": {
            "ocean": {
                "raw": {"openness": 72, "conscientiousness": 81, "extraversion": 64},
                "percentile": {"openness": 78, "conscientiousness": 88, "extraversion": 55},
                "interpretation": {
                    "openness": "High",
                    "conscientiousness": "High",
                    "extraversion": "Moderate",
                },
            },
        },
        "insights": [INSIGHT_TEXT],
        "recommendations": [RECOMMENDATION_TEXT],
        "executiveSummary": SUMMARY_TEXT,
        "contextualFactors": {"industry": "logistics", "role": "operations manager"},
    }


def five_node_report_content() -> dict[str, Any]:
    """Three traits, one insight and a summary."""
    content = individual_report_content()
    del content["recommendations"]
    del content["contextualFactors"]
    return content


def eleven_node_report_content() -> dict[str, Any]:
    """Five traits, two pillars, two insights, summary and context."""
    return {
        "scores": {
            "ocean": {
                "raw": {
                    "openness": 40,
                    "conscientiousness": 81,
                    "extraversion": 64,
                    "agreeableness": 77,
                    "neuroticism": 35,
                },
            },
            "pillars": {"strategy": 74, "execution": 69},
        },
        "insights": [
            INSIGHT_TEXT,
            "The candidate keeps commitments and plans work in clear stages.",
        ],
        "executiveSummary": SUMMARY_TEXT,
        "contextualFactors": {"industry": "logistics"},
    }


@pytest.fixture
def report_content() -> dict[str, Any]:
    return individual_report_content()


@pytest.fixture
def make_report():
    def _create(content: dict[str, Any] | None = None, kind: ReportKind = ReportKind.INDIVIDUAL) -> Report:
        return Report(
            kind=kind,
            content=copy.deepcopy(content) if content is not None else individual_report_content(),
        )
    return _create


@pytest.fixture
def report(make_report) -> Report:
    return make_report()


@pytest.fixture
def five_node_content() -> dict[str, Any]:
    return five_node_report_content()


@pytest.fixture
def eleven_node_content() -> dict[str, Any]:
    return eleven_node_report_content()
