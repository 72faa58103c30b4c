"""Application settings and environment configuration."""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path

from dotenv import load_dotenv

from report_validation.state.enums import ConsistencyDepth, MetricCategory

# Load .env file from project root
PROJECT_ROOT = Path(__file__).parent.parent.parent
load_dotenv(PROJECT_ROOT / ".env")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    # Anthropic judge
    anthropic_api_key: str = os.getenv("ANTHROPIC_API_KEY", "")
    judge_model: str = os.getenv("JUDGE_MODEL", "claude-sonnet-4-5-20250929")
    judge_version: str = os.getenv("JUDGE_VERSION", "judge-v1")
    judge_temperature: float = float(os.getenv("JUDGE_TEMPERATURE", "0"))
    judge_timeout_seconds: float = float(os.getenv("JUDGE_TIMEOUT_SECONDS", "30"))
    judge_max_attempts: int = int(os.getenv("JUDGE_MAX_ATTEMPTS", "3"))
    # Score assigned to a metric whose judge calls were exhausted
    judge_unavailable_score: float = float(os.getenv("JUDGE_UNAVAILABLE_SCORE", "0"))

    # Thresholds
    confidence_threshold: float = float(os.getenv("CONFIDENCE_THRESHOLD", "85"))
    consistency_threshold: float = float(os.getenv("CONSISTENCY_THRESHOLD", "85"))
    bias_threshold: float = float(os.getenv("BIAS_THRESHOLD", "80"))
    accuracy_threshold: float = float(os.getenv("ACCURACY_THRESHOLD", "85"))

    # Metric weights
    weight_accuracy: float = float(os.getenv("WEIGHT_ACCURACY", "0.30"))
    weight_bias: float = float(os.getenv("WEIGHT_BIAS", "0.25"))
    weight_clarity: float = float(os.getenv("WEIGHT_CLARITY", "0.20"))
    weight_consistency: float = float(os.getenv("WEIGHT_CONSISTENCY", "0.15"))
    weight_compliance: float = float(os.getenv("WEIGHT_COMPLIANCE", "0.10"))

    # Workflow behaviour
    strict_mode: bool = _env_bool("STRICT_MODE", "false")
    max_iterations: int = int(os.getenv("MAX_ITERATIONS", "3"))
    validate_unmodified_nodes: bool = _env_bool("VALIDATE_UNMODIFIED_NODES", "false")
    consistency_check_depth: str = os.getenv("CONSISTENCY_CHECK_DEPTH", "shallow")
    max_concurrency: int = int(os.getenv("MAX_CONCURRENCY", "5"))

    # Convergence guard
    min_improvement_rate: float = float(os.getenv("MIN_IMPROVEMENT_RATE", "0.5"))
    max_iterations_without_improvement: int = int(
        os.getenv("MAX_ITERATIONS_WITHOUT_IMPROVEMENT", "2")
    )

    # Validation cache
    cache_backend: str = os.getenv("CACHE_BACKEND", "memory")  # memory | sqlite
    cache_path: str = os.getenv("CACHE_PATH", str(PROJECT_ROOT / "data" / "validation_cache.db"))
    cache_ttl: int | None = int(os.getenv("CACHE_TTL")) if os.getenv("CACHE_TTL") else None

    def metric_weights(self) -> dict[MetricCategory, float]:
        """Return the configured metric weights keyed by category."""
        return {
            MetricCategory.ACCURACY: self.weight_accuracy,
            MetricCategory.BIAS: self.weight_bias,
            MetricCategory.CLARITY: self.weight_clarity,
            MetricCategory.CONSISTENCY: self.weight_consistency,
            MetricCategory.COMPLIANCE: self.weight_compliance,
        }

    def validate(self, require_api_key: bool = False) -> list[str]:
        """Validate settings, returning a list of human-readable problems."""
        errors = []
        if require_api_key and not self.anthropic_api_key:
            errors.append("ANTHROPIC_API_KEY is not set")
        errors.extend(
            _validate_surface(
                weights=self.metric_weights(),
                confidence_threshold=self.confidence_threshold,
                consistency_threshold=self.consistency_threshold,
                max_iterations=self.max_iterations,
                max_concurrency=self.max_concurrency,
                consistency_check_depth=self.consistency_check_depth,
            )
        )
        if self.cache_backend not in ("memory", "sqlite"):
            errors.append(f"CACHE_BACKEND must be 'memory' or 'sqlite', got {self.cache_backend!r}")
        return errors


def _validate_surface(
    weights: dict[MetricCategory, float],
    confidence_threshold: float,
    consistency_threshold: float,
    max_iterations: int,
    max_concurrency: int,
    consistency_check_depth: str,
) -> list[str]:
    errors = []
    if set(weights) != set(MetricCategory):
        missing = sorted(c.value for c in set(MetricCategory) - set(weights))
        errors.append(f"Metric weights missing categories: {missing}")
    if any(w < 0 or w > 1 for w in weights.values()):
        errors.append("Metric weights must each be between 0 and 1")
    if abs(sum(weights.values()) - 1.0) > 1e-6:
        errors.append(f"Metric weights must sum to 1.0 (got {sum(weights.values()):.3f})")
    for name, value in (
        ("confidence threshold", confidence_threshold),
        ("consistency threshold", consistency_threshold),
    ):
        if not 0 <= value <= 100:
            errors.append(f"The {name} must be between 0 and 100 (got {value})")
    if max_iterations < 1:
        errors.append("max_iterations must be at least 1")
    if max_concurrency < 1:
        errors.append("max_concurrency must be at least 1")
    if consistency_check_depth not in {d.value for d in ConsistencyDepth}:
        errors.append(f"Unknown consistency check depth: {consistency_check_depth!r}")
    return errors


def _coerce_depth(value: str) -> ConsistencyDepth | str:
    # Unknown values are left for validate() to report
    if value in {d.value for d in ConsistencyDepth}:
        return ConsistencyDepth(value)
    return value


# =============================================================================
# Per-workflow validation configuration
# =============================================================================


@dataclass
class ValidationConfig:
    """Configuration surface for a single validation workflow.

    Attributes:
        confidence_threshold: Minimum node confidence for approval
        consistency_threshold: Minimum cross-node consistency score for approval
        weights: Metric weights, summing to 1.0
        strict_mode: Also block approval on high-severity issues and degraded metrics
        max_iterations: Bound on feedback/re-evaluation iterations
        validate_unmodified_nodes: Re-score unchanged nodes instead of carrying them forward
        consistency_depth: Shallow checks only the change neighbourhood; deep checks all nodes
        max_concurrency: Cap on nodes scored concurrently
        judge_version: Version tag that partitions the validation cache
        judge_timeout_seconds: Timeout applied to each oracle call
        judge_max_attempts: Attempts per oracle call before degrading
        judge_unavailable_score: Score assigned to a metric whose judge was unavailable
        bias_threshold: Bias score below which metric self-confidence drops
        min_improvement_rate: Confidence points per iteration that count as progress
        max_iterations_without_improvement: Stagnant iterations before manual review
    """

    confidence_threshold: float = 85.0
    consistency_threshold: float = 85.0
    weights: dict[MetricCategory, float] = field(
        default_factory=lambda: {
            MetricCategory.ACCURACY: 0.30,
            MetricCategory.BIAS: 0.25,
            MetricCategory.CLARITY: 0.20,
            MetricCategory.CONSISTENCY: 0.15,
            MetricCategory.COMPLIANCE: 0.10,
        }
    )
    strict_mode: bool = False
    max_iterations: int = 3
    validate_unmodified_nodes: bool = False
    consistency_depth: ConsistencyDepth = ConsistencyDepth.SHALLOW
    max_concurrency: int = 5
    judge_version: str = "judge-v1"
    judge_timeout_seconds: float = 30.0
    judge_max_attempts: int = 3
    judge_unavailable_score: float = 0.0
    bias_threshold: float = 80.0
    min_improvement_rate: float = 0.5
    max_iterations_without_improvement: int = 2

    @classmethod
    def from_settings(cls, source: Settings | None = None, **overrides) -> "ValidationConfig":
        """Build a configuration from environment settings plus overrides."""
        source = source or settings
        config = cls(
            confidence_threshold=source.confidence_threshold,
            consistency_threshold=source.consistency_threshold,
            weights=source.metric_weights(),
            strict_mode=source.strict_mode,
            max_iterations=source.max_iterations,
            validate_unmodified_nodes=source.validate_unmodified_nodes,
            consistency_depth=_coerce_depth(source.consistency_check_depth),
            max_concurrency=source.max_concurrency,
            judge_version=source.judge_version,
            judge_timeout_seconds=source.judge_timeout_seconds,
            judge_max_attempts=source.judge_max_attempts,
            judge_unavailable_score=source.judge_unavailable_score,
            bias_threshold=source.bias_threshold,
            min_improvement_rate=source.min_improvement_rate,
            max_iterations_without_improvement=source.max_iterations_without_improvement,
        )
        return replace(config, **overrides) if overrides else config

    def validate(self) -> list[str]:
        """Validate the configuration, returning a list of problems."""
        return _validate_surface(
            weights=self.weights,
            confidence_threshold=self.confidence_threshold,
            consistency_threshold=self.consistency_threshold,
            max_iterations=self.max_iterations,
            max_concurrency=self.max_concurrency,
            consistency_check_depth=self.consistency_depth,
        )


# Global settings instance
settings = Settings()
