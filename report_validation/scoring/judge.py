"""Judge oracle interface and the Anthropic-backed judge.

The judge scores one content fragment against one criterion and returns a
score, supporting evidence and any issues found. The pipeline depends only
on the JudgeOracle protocol; AnthropicJudge is the production
implementation.
"""

import logging
from typing import Protocol, runtime_checkable

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel, Field

from report_validation.config import settings
from report_validation.errors import JudgeError, JudgeRateLimitError
from report_validation.scoring.criteria import Criterion
from report_validation.state.enums import Effort, Severity

logger = logging.getLogger(__name__)


# =============================================================================
# Verdict Models
# =============================================================================


class JudgeIssue(BaseModel):
    """An issue reported by the judge."""

    severity: Severity = Field(..., description="low, medium, high or critical")
    description: str = Field(..., min_length=1, description="What is wrong")
    evidence: list[str] = Field(
        default_factory=list,
        description="Verbatim excerpts from the content that show the issue"
    )
    priority: int | None = Field(default=None, ge=1, le=10)
    location: str | None = Field(default=None, description="Where in the content the issue is")
    suggested_action: str | None = Field(
        default=None,
        description="Concrete change that would fix the issue"
    )
    example_after: str | None = Field(default=None, description="Rewritten excerpt")
    estimated_confidence_gain: float | None = Field(default=None, ge=0, le=100)
    estimated_effort: Effort | None = None


class JudgeVerdict(BaseModel):
    """Judge response for one (content, criterion) pair."""

    score: float = Field(..., ge=0, le=100, description="Quality score from 0 to 100")
    evidence: list[str] = Field(
        default_factory=list,
        description="Observations supporting the score"
    )
    issues: list[JudgeIssue] = Field(default_factory=list)
    self_confidence: float | None = Field(
        default=None,
        ge=0,
        le=100,
        description="How confident the judge is in its own score"
    )


@runtime_checkable
class JudgeOracle(Protocol):
    """Pluggable quality judge."""

    version: str

    async def evaluate(self, content: str, criterion: Criterion) -> JudgeVerdict:
        """Score content against a criterion."""
        ...


# =============================================================================
# Anthropic Judge
# =============================================================================


JUDGE_SYSTEM_PROMPT = """You are a meticulous reviewer of psychometric and leadership assessment reports.

You evaluate one fragment of a report against one quality criterion and return:
- score: 0 to 100, where 85 or above means the fragment is ready to publish
- evidence: short observations that justify the score
- issues: every defect you find, each with a severity (low, medium, high, critical),
  a description, verbatim evidence excerpts, and a concrete suggested action

Use "critical" only for defects that would make the report harmful, discriminatory
or factually wrong about the person assessed. Do not invent issues; an excellent
fragment has none."""


def create_judge_model(
    model_name: str | None = None,
    temperature: float | None = None,
    max_tokens: int = 2048,
) -> ChatAnthropic:
    """
    Create the ChatAnthropic model used by the judge.

    Args:
        model_name: Claude model to use (default from settings).
        temperature: Sampling temperature (default from settings).
        max_tokens: Maximum tokens in response.

    Returns:
        Configured ChatAnthropic instance.
    """
    return ChatAnthropic(
        model=model_name or settings.judge_model,
        temperature=settings.judge_temperature if temperature is None else temperature,
        max_tokens=max_tokens,
        api_key=settings.anthropic_api_key,
    )


class AnthropicJudge:
    """Judge oracle backed by Claude with structured output."""

    def __init__(self, model: ChatAnthropic | None = None, version: str | None = None):
        self.model = model or create_judge_model()
        self.version = version or settings.judge_version
        self._structured = self.model.with_structured_output(JudgeVerdict)

    async def evaluate(self, content: str, criterion: Criterion) -> JudgeVerdict:
        messages = [
            SystemMessage(content=JUDGE_SYSTEM_PROMPT),
            HumanMessage(content=(
                f"Criterion:\n{criterion.render()}\n\n"
                f"Content to evaluate:\n{content}"
            )),
        ]
        try:
            verdict = await self._structured.ainvoke(messages)
        except Exception as e:
            raise _to_judge_error(e, criterion) from e

        if not isinstance(verdict, JudgeVerdict):
            raise JudgeError(
                f"Judge returned an unexpected payload of type {type(verdict).__name__}",
                criterion=criterion.name,
            )

        logger.debug(f"Judge scored {criterion.category.value}: {verdict.score}")
        return verdict


def _to_judge_error(error: Exception, criterion: Criterion) -> JudgeError:
    """Translate a model client exception into the judge error hierarchy."""
    status_code = getattr(error, "status_code", None)
    name = error.__class__.__name__

    if status_code == 429 or "RateLimit" in name:
        retry_after = None
        response = getattr(error, "response", None)
        headers = getattr(response, "headers", None) or {}
        if "retry-after" in headers:
            try:
                retry_after = float(headers["retry-after"])
            except (TypeError, ValueError):
                retry_after = None
        return JudgeRateLimitError(
            f"Judge rate limited: {error}",
            retry_after=retry_after,
            criterion=criterion.name,
        )

    # Client errors other than throttling will not succeed on retry
    recoverable = not (isinstance(status_code, int) and 400 <= status_code < 500)
    return JudgeError(
        f"Judge call failed ({name}): {error}",
        criterion=criterion.name,
        details={"status_code": status_code} if status_code else None,
        recoverable=recoverable,
    )
