"""Confidence scoring.

Scores a node across five metrics: four through the judge oracle and
compliance through deterministic rules. The metric scores are combined
into one confidence value with the configured weights. Batches of nodes
are scored on a bounded worker pool; one node's failure never affects its
siblings.
"""

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field

from report_validation.cache import ValidationCache
from report_validation.config import ValidationConfig
from report_validation.errors import (
    JudgeUnavailableError,
    RetryPolicy,
    call_with_retry,
    create_judge_retry_policy,
    create_pipeline_error,
    log_error_with_context,
)
from report_validation.extraction.classifier import classify
from report_validation.scoring.compliance import evaluate_compliance
from report_validation.scoring.criteria import JUDGED_CATEGORIES, build_criterion
from report_validation.scoring.judge import JudgeOracle, JudgeVerdict
from report_validation.state.enums import Effort, MetricCategory
from report_validation.state.models import (
    Issue,
    MetricScore,
    NodeProfile,
    PipelineError,
    ReportNode,
    Suggestion,
    ValidationResult,
    ValidationResultMetadata,
    calculate_confidence,
)

logger = logging.getLogger(__name__)


@dataclass
class ScorerStats:
    """Counters accumulated over the scorer's lifetime."""

    oracle_calls: int = 0
    cache_hits: int = 0
    nodes_scored: int = 0
    degraded_metrics: int = 0
    calls_by_node: Counter = field(default_factory=Counter)


@dataclass
class BatchScoreResult:
    """Results of one scoring batch."""

    results: dict[str, ValidationResult]
    errors: list[PipelineError] = field(default_factory=list)
    oracle_calls: int = 0
    cache_hits: int = 0

    @property
    def degraded_nodes(self) -> list[str]:
        return [node_id for node_id, r in self.results.items() if r.degraded]


class ConfidenceScorer:
    """Scores nodes through a judge oracle with caching and bounded concurrency.

    Args:
        judge: Judge oracle implementation
        cache: Validation cache (None disables caching)
        config: Validation configuration (weights, timeouts, concurrency cap)
        retry_policy: Policy for judge calls (defaults to a judge policy
            with config.judge_max_attempts attempts)
    """

    def __init__(
        self,
        judge: JudgeOracle,
        cache: ValidationCache | None = None,
        config: ValidationConfig | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        self.judge = judge
        self.cache = cache
        self.config = config or ValidationConfig()
        self.retry_policy = retry_policy or create_judge_retry_policy(
            max_attempts=self.config.judge_max_attempts
        )
        self.stats = ScorerStats()
        self._semaphore = asyncio.Semaphore(self.config.max_concurrency)

    @property
    def judge_version(self) -> str:
        return getattr(self.judge, "version", None) or self.config.judge_version

    # =========================================================================
    # Single node
    # =========================================================================

    async def score(
        self,
        node: ReportNode,
        profile: NodeProfile | None = None,
        bypass_cache: bool = False,
    ) -> ValidationResult:
        """
        Score one node.

        Args:
            node: Node to score
            profile: Validation profile (classified from the node if omitted)
            bypass_cache: Re-score even if a cached result exists

        Returns:
            ValidationResult; degraded metrics are flagged, never raised.
        """
        result, _ = await self._score_node(node, profile, bypass_cache)
        return result

    async def _score_node(
        self,
        node: ReportNode,
        profile: NodeProfile | None,
        bypass_cache: bool,
    ) -> tuple[ValidationResult, list[PipelineError]]:
        content_hash = node.content_hash
        judge_version = self.judge_version

        if self.cache is not None and not bypass_cache:
            cached = await self.cache.get(node.id, content_hash, judge_version)
            if cached is not None:
                self.stats.cache_hits += 1
                return cached, []

        profile = profile or classify(node)
        errors: list[PipelineError] = []

        judged_outcomes = await asyncio.gather(*(
            self._judge_metric(node, profile, category, errors)
            for category in JUDGED_CATEGORIES
        ))
        judged = [metric for metric, _ in judged_outcomes]
        compliance = evaluate_compliance(node, self._weight(MetricCategory.COMPLIANCE))
        metric_scores = [*judged, compliance]

        result = ValidationResult(
            node_id=node.id,
            node_type=node.type,
            confidence=calculate_confidence(metric_scores),
            metric_scores=metric_scores,
            issues=[issue for metric in metric_scores for issue in metric.issues],
            suggestions=[s for _, suggestions in judged_outcomes for s in suggestions],
            metadata=ValidationResultMetadata(
                judge_version=judge_version,
                content_hash=content_hash,
            ),
        )
        self.stats.nodes_scored += 1

        if self.cache is not None:
            await self.cache.set(result)

        logger.debug(
            f"Scored {node.id}: confidence={result.confidence:.0f}, "
            f"issues={len(result.issues)}, degraded={result.degraded}"
        )
        return result, errors

    def _weight(self, category: MetricCategory) -> float:
        return self.config.weights.get(category, 0.0)

    async def _judge_metric(
        self,
        node: ReportNode,
        profile: NodeProfile,
        category: MetricCategory,
        errors: list[PipelineError],
    ) -> tuple[MetricScore, list[Suggestion]]:
        criterion = build_criterion(category, profile)
        content = node.content_text()

        async def attempt() -> JudgeVerdict:
            self.stats.oracle_calls += 1
            self.stats.calls_by_node[node.id] += 1
            return await self.judge.evaluate(content, criterion)

        try:
            verdict = await call_with_retry(
                attempt,
                self.retry_policy,
                timeout=self.config.judge_timeout_seconds,
                description=f"{category.value} judge call for {node.id}",
            )
        except JudgeUnavailableError as e:
            e.node_id = node.id
            e.details["node_id"] = node.id
            e.details["category"] = category.value
            log_error_with_context(e, phase="scoring", level=logging.WARNING)
            errors.append(create_pipeline_error(e, phase="scoring", node_id=node.id))
            self.stats.degraded_metrics += 1
            return MetricScore(
                category=category,
                score=self.config.judge_unavailable_score,
                weight=self._weight(category),
                evidence=[f"JudgeUnavailable: {e.message}"],
                self_confidence=0.0,
                judge_unavailable=True,
            ), []

        issues = []
        suggestions = []
        for judge_issue in verdict.issues:
            issue = Issue(
                node_id=node.id,
                category=category,
                severity=judge_issue.severity,
                description=judge_issue.description,
                evidence=list(judge_issue.evidence),
                priority=judge_issue.priority or 0,
                location=judge_issue.location,
            )
            issues.append(issue)
            if judge_issue.suggested_action:
                suggestions.append(Suggestion(
                    issue_id=issue.issue_id,
                    category=category,
                    specific_action=judge_issue.suggested_action,
                    example_before=issue.evidence[0] if issue.evidence else "",
                    example_after=judge_issue.example_after or "",
                    estimated_confidence_gain=judge_issue.estimated_confidence_gain or 0.0,
                    estimated_effort=judge_issue.estimated_effort or Effort.MEDIUM,
                ))

        metric = MetricScore(
            category=category,
            score=verdict.score,
            weight=self._weight(category),
            evidence=list(verdict.evidence),
            issues=issues,
            self_confidence=(
                verdict.self_confidence
                if verdict.self_confidence is not None
                else self._metric_self_confidence(category, verdict.score)
            ),
        )
        return metric, suggestions

    def _metric_self_confidence(self, category: MetricCategory, score: float) -> float:
        threshold = (
            self.config.bias_threshold
            if category == MetricCategory.BIAS
            else self.config.confidence_threshold
        )
        return 90.0 if score > threshold else 70.0

    # =========================================================================
    # Batches
    # =========================================================================

    async def score_batch(
        self,
        nodes: list[ReportNode],
        profiles: dict[str, NodeProfile] | None = None,
        bypass_cache: bool | set[str] = False,
    ) -> BatchScoreResult:
        """
        Score nodes concurrently on the bounded worker pool.

        The batch always completes: every node gets a (possibly degraded)
        result and failures are returned as PipelineError records.

        Args:
            nodes: Nodes to score
            profiles: Validation profiles keyed by node id
            bypass_cache: True to bypass the cache for every node, or the
                set of node ids to bypass it for

        Returns:
            BatchScoreResult keyed by node id in input order.
        """
        profiles = profiles or {}
        calls_before = self.stats.oracle_calls
        hits_before = self.stats.cache_hits

        async def run(node: ReportNode) -> tuple[ValidationResult, list[PipelineError]]:
            bypass = bypass_cache if isinstance(bypass_cache, bool) else node.id in bypass_cache
            async with self._semaphore:
                try:
                    return await self._score_node(node, profiles.get(node.id), bypass)
                except Exception as e:
                    log_error_with_context(e, phase="scoring", context={"node_id": node.id})
                    return self._failed_result(node), [
                        create_pipeline_error(e, phase="scoring", node_id=node.id)
                    ]

        outcomes = await asyncio.gather(*(run(node) for node in nodes))

        batch = BatchScoreResult(results={})
        for node, (result, errors) in zip(nodes, outcomes):
            batch.results[node.id] = result
            batch.errors.extend(errors)
        batch.oracle_calls = self.stats.oracle_calls - calls_before
        batch.cache_hits = self.stats.cache_hits - hits_before

        logger.info(
            f"Scored batch of {len(nodes)} nodes: {batch.oracle_calls} oracle calls, "
            f"{batch.cache_hits} cache hits, {len(batch.degraded_nodes)} degraded"
        )
        return batch

    def _failed_result(self, node: ReportNode) -> ValidationResult:
        """Fully degraded result for a node whose scoring raised unexpectedly."""
        metric_scores = [
            MetricScore(
                category=category,
                score=self.config.judge_unavailable_score,
                weight=self._weight(category),
                evidence=["JudgeUnavailable: scoring failed"],
                self_confidence=0.0,
                judge_unavailable=True,
            )
            for category in JUDGED_CATEGORIES
        ]
        metric_scores.append(evaluate_compliance(node, self._weight(MetricCategory.COMPLIANCE)))
        self.stats.degraded_metrics += len(JUDGED_CATEGORIES)
        return ValidationResult(
            node_id=node.id,
            node_type=node.type,
            confidence=calculate_confidence(metric_scores),
            metric_scores=metric_scores,
            issues=[i for m in metric_scores for i in m.issues],
            metadata=ValidationResultMetadata(
                judge_version=self.judge_version,
                content_hash=node.content_hash,
            ),
        )
