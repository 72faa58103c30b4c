"""Node extraction.

Decomposes a structured report into typed, addressable nodes. Each report
region (scores, insights, recommendations, summary, context) is handled by
a region walker; extractors are ordered lists of walkers registered per
report kind. Unknown or malformed regions are skipped and recorded as
extraction warnings, never raised.
"""

import logging
import math
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, NamedTuple

from pydantic import ValidationError

from report_validation.errors import MalformedNodeError, log_error_with_context
from report_validation.state.enums import NodeType, ReportKind
from report_validation.state.models import (
    ExtractionMetadata,
    ExtractionResult,
    ExtractionWarning,
    NodeMetadata,
    Report,
    ReportNode,
    canonical_json,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Node Type Traits
# =============================================================================


@dataclass(frozen=True)
class NodeTypeTraits:
    """Structural defaults for a node type."""

    importance: int
    complexity_base: int
    data_source: str
    depends_on: tuple[NodeType, ...] = ()


NODE_TYPE_TRAITS: dict[NodeType, NodeTypeTraits] = {
    NodeType.SCORING: NodeTypeTraits(
        importance=10,
        complexity_base=8,
        data_source="assessment_responses",
    ),
    NodeType.RECOMMENDATION: NodeTypeTraits(
        importance=9,
        complexity_base=7,
        data_source="development_framework",
        depends_on=(NodeType.SCORING, NodeType.INSIGHT),
    ),
    NodeType.INSIGHT: NodeTypeTraits(
        importance=8,
        complexity_base=6,
        data_source="score_interpretation",
        depends_on=(NodeType.SCORING,),
    ),
    NodeType.SUMMARY: NodeTypeTraits(
        importance=7,
        complexity_base=5,
        data_source="aggregated_results",
        depends_on=(
            NodeType.SCORING,
            NodeType.INSIGHT,
            NodeType.RECOMMENDATION,
            NodeType.CONTEXT,
        ),
    ),
    NodeType.CONTEXT: NodeTypeTraits(
        importance=5,
        complexity_base=4,
        data_source="unknown",
    ),
}

# Checked in order; first matching id prefix wins
PARENT_CONTEXT_PREFIXES: list[tuple[str, str]] = [
    ("ocean_", "personality_assessment"),
    ("pillar_", "performance_pillars"),
    ("domain_", "competency_domains"),
    ("executive_summary", "executive_summary"),
    ("executive_", "leadership_evaluation"),
    ("recommendation", "development_plan"),
    ("context", "contextual_factors"),
]

# Top-level keys that carry report metadata rather than content
IGNORED_KEYS = frozenset(
    {"id", "metadata", "workflowId", "assessmentType", "generatedAt", "version"}
)


def calculate_validation_complexity(node_type: NodeType, content: Any) -> int:
    """Blend the type's base complexity with the size of the content."""
    base = NODE_TYPE_TRAITS[node_type].complexity_base
    size_factor = min(10, math.ceil(len(canonical_json(content)) / 500))
    return max(1, min(10, round(base * 0.7 + size_factor * 0.3)))


def determine_parent_context(node_id: str) -> str:
    for prefix, context in PARENT_CONTEXT_PREFIXES:
        if node_id.startswith(prefix):
            return context
    return "general_assessment"


# =============================================================================
# Region Walkers
# =============================================================================


class NodeDraft(NamedTuple):
    """A node before structural metadata has been attached."""

    node_id: str
    node_type: NodeType
    content: Any


RegionWalker = Callable[[Any, list[ExtractionWarning]], list[NodeDraft]]


def _warn(warnings: list[ExtractionWarning], region: str, message: str, path: str | None = None) -> None:
    logger.warning(f"Extraction warning in {region}: {message}")
    warnings.append(ExtractionWarning(region=region, message=message, path=path))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _score_map_walker(prefix: str, label: str, region: str) -> RegionWalker:
    """Build a walker for a flat {name: score} mapping."""

    def walk(value: Any, warnings: list[ExtractionWarning]) -> list[NodeDraft]:
        if not isinstance(value, dict):
            _warn(warnings, region, f"expected a mapping, got {type(value).__name__}")
            return []
        drafts = []
        for name, score in value.items():
            if not _is_number(score):
                _warn(warnings, region, f"non-numeric score for {name!r}", f"{region}.{name}")
                continue
            drafts.append(NodeDraft(f"{prefix}{name}", NodeType.SCORING, {label: name, "score": score}))
        return drafts

    return walk


def walk_ocean_scores(value: Any, warnings: list[ExtractionWarning]) -> list[NodeDraft]:
    region = "scores.ocean"
    if not isinstance(value, dict) or not isinstance(value.get("raw"), dict):
        _warn(warnings, region, "missing or malformed 'raw' trait scores")
        return []

    percentiles = value.get("percentile") or {}
    interpretations = value.get("interpretation") or {}
    drafts = []
    for trait, score in value["raw"].items():
        if not _is_number(score):
            _warn(warnings, region, f"non-numeric score for trait {trait!r}", f"{region}.raw.{trait}")
            continue
        content: dict[str, Any] = {"trait": trait, "score": score}
        if isinstance(percentiles, dict) and trait in percentiles:
            content["percentile"] = percentiles[trait]
        if isinstance(interpretations, dict) and trait in interpretations:
            content["interpretation"] = interpretations[trait]
        drafts.append(NodeDraft(f"ocean_{trait}", NodeType.SCORING, content))
    return drafts


def _text_list_walker(prefix: str, node_type: NodeType, region: str, default_kind: str) -> RegionWalker:
    """Build a walker for a list of narrative entries (strings or {'text': ...})."""

    def walk(value: Any, warnings: list[ExtractionWarning]) -> list[NodeDraft]:
        if not isinstance(value, list):
            _warn(warnings, region, f"expected a list, got {type(value).__name__}")
            return []
        drafts = []
        for index, entry in enumerate(value):
            if isinstance(entry, str) and entry.strip():
                content = {"text": entry, "type": default_kind}
            elif isinstance(entry, dict) and isinstance(entry.get("text"), str) and entry["text"].strip():
                content = {"type": default_kind, **entry}
            else:
                _warn(warnings, region, f"entry {index} has no usable text", f"{region}[{index}]")
                continue
            drafts.append(NodeDraft(f"{prefix}{index}", node_type, content))
        return drafts

    return walk


def walk_executive_summary(value: Any, warnings: list[ExtractionWarning]) -> list[NodeDraft]:
    if not isinstance(value, str) or not value.strip():
        _warn(warnings, "executiveSummary", "summary is empty or not text")
        return []
    return [NodeDraft("executive_summary", NodeType.SUMMARY, {"text": value, "type": "executive"})]


def walk_contextual_factors(value: Any, warnings: list[ExtractionWarning]) -> list[NodeDraft]:
    if value in (None, "", [], {}):
        _warn(warnings, "contextualFactors", "contextual factors are empty")
        return []
    return [NodeDraft("context_factors", NodeType.CONTEXT, value)]


# =============================================================================
# Extractor Registry
# =============================================================================


@dataclass(frozen=True)
class RegionSpec:
    """A report region and the walker that turns it into nodes."""

    path: str
    walker: RegionWalker


DEFAULT_REGIONS: list[RegionSpec] = [
    RegionSpec("scores.ocean", walk_ocean_scores),
    RegionSpec("scores.pillars", _score_map_walker("pillar_", "pillar", "scores.pillars")),
    RegionSpec("insights", _text_list_walker("insight_", NodeType.INSIGHT, "insights", "behavioral_insight")),
    RegionSpec(
        "recommendations",
        _text_list_walker("recommendation_", NodeType.RECOMMENDATION, "recommendations", "development_action"),
    ),
    RegionSpec("executiveSummary", walk_executive_summary),
    RegionSpec("contextualFactors", walk_contextual_factors),
]


def _lookup(content: dict[str, Any], path: str) -> tuple[bool, Any]:
    current: Any = content
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return False, None
        current = current[part]
    return True, current


@dataclass
class ReportExtractor:
    """Walks a report's known regions in order and emits nodes."""

    kind: ReportKind
    regions: list[RegionSpec] = field(default_factory=lambda: list(DEFAULT_REGIONS))

    def known_paths(self) -> set[str]:
        paths = set()
        for region in self.regions:
            parts = region.path.split(".")
            for i in range(1, len(parts) + 1):
                paths.add(".".join(parts[:i]))
        return paths

    def _unknown_regions(self, content: dict[str, Any]) -> list[str]:
        known = self.known_paths()
        unknown = []
        for key, value in content.items():
            if key in IGNORED_KEYS:
                continue
            if key not in known:
                unknown.append(key)
            elif isinstance(value, dict) and any(p.startswith(f"{key}.") for p in known):
                unknown.extend(f"{key}.{sub}" for sub in value if f"{key}.{sub}" not in known)
        return unknown

    def extract(self, content: dict[str, Any]) -> ExtractionResult:
        """
        Extract nodes from report content.

        Args:
            content: Structured report content

        Returns:
            ExtractionResult with nodes in region order and extraction metadata.
        """
        start = time.perf_counter()
        warnings: list[ExtractionWarning] = []
        drafts: list[NodeDraft] = []

        if not isinstance(content, dict):
            _warn(warnings, "report", f"report content must be a mapping, got {type(content).__name__}")
            content = {}

        for region in self.regions:
            present, value = _lookup(content, region.path)
            if not present:
                continue
            try:
                drafts.extend(region.walker(value, warnings))
            except Exception as e:
                log_error_with_context(e, phase="extraction", context={"region": region.path})
                _warn(warnings, region.path, f"region walker failed: {e}")

        for path in self._unknown_regions(content):
            _warn(warnings, path, "unknown region skipped", path)

        nodes = _build_nodes(drafts, warnings)
        elapsed_ms = (time.perf_counter() - start) * 1000

        counts = Counter(node.type.value for node in nodes)
        metadata = ExtractionMetadata(
            report_kind=self.kind,
            total_nodes=len(nodes),
            node_type_counts=dict(counts),
            average_complexity=(
                round(sum(n.metadata.validation_complexity for n in nodes) / len(nodes), 2)
                if nodes else 0.0
            ),
            extraction_ms=round(elapsed_ms, 3),
            warnings=warnings,
        )

        logger.info(
            f"Extracted {len(nodes)} nodes from {self.kind.value} report "
            f"({dict(counts)}, {len(warnings)} warnings)"
        )
        return ExtractionResult(nodes=nodes, metadata=metadata)


def _build_nodes(drafts: list[NodeDraft], warnings: list[ExtractionWarning]) -> list[ReportNode]:
    """Attach structural metadata and resolve type dependencies to node ids."""
    seen: set[str] = set()
    unique: list[NodeDraft] = []
    for draft in drafts:
        if draft.node_id in seen:
            _warn(warnings, draft.node_id, "duplicate node id skipped", draft.node_id)
            continue
        seen.add(draft.node_id)
        unique.append(draft)

    ids_by_type: dict[NodeType, list[str]] = {}
    for draft in unique:
        ids_by_type.setdefault(draft.node_type, []).append(draft.node_id)

    nodes = []
    for draft in unique:
        traits = NODE_TYPE_TRAITS[draft.node_type]
        dependencies = [
            dep_id
            for dep_type in traits.depends_on
            for dep_id in ids_by_type.get(dep_type, [])
            if dep_id != draft.node_id
        ]
        try:
            nodes.append(build_node(draft, dependencies))
        except MalformedNodeError as e:
            _warn(warnings, e.region, e.message, e.path)
    return nodes


def build_node(draft: NodeDraft, dependencies: list[str]) -> ReportNode:
    """
    Create a ReportNode with structural metadata.

    Raises:
        MalformedNodeError: If the draft cannot form a valid node
    """
    traits = NODE_TYPE_TRAITS[draft.node_type]
    try:
        return ReportNode(
            id=draft.node_id,
            type=draft.node_type,
            content=draft.content,
            metadata=NodeMetadata(
                parent_context=determine_parent_context(draft.node_id),
                dependencies=dependencies,
                importance=traits.importance,
                validation_complexity=calculate_validation_complexity(draft.node_type, draft.content),
                data_source=traits.data_source,
            ),
        )
    except (ValidationError, TypeError, ValueError) as e:
        raise MalformedNodeError(
            f"Node {draft.node_id!r} is malformed: {e}",
            region=draft.node_id,
            path=draft.node_id,
        ) from e


_EXTRACTORS: dict[ReportKind, ReportExtractor] = {}


def register_extractor(extractor: ReportExtractor) -> ReportExtractor:
    """Register (or replace) the extractor for a report kind."""
    _EXTRACTORS[extractor.kind] = extractor
    logger.debug(f"Registered extractor for {extractor.kind.value} reports")
    return extractor


def get_extractor(kind: ReportKind) -> ReportExtractor:
    """Return the extractor for a kind, falling back to the default extractor."""
    return _EXTRACTORS.get(kind) or _EXTRACTORS[ReportKind.DEFAULT]


register_extractor(ReportExtractor(ReportKind.DEFAULT))
register_extractor(ReportExtractor(ReportKind.INDIVIDUAL))
register_extractor(ReportExtractor(
    ReportKind.EXECUTIVE,
    regions=[
        *DEFAULT_REGIONS,
        RegionSpec("scores.executive", _score_map_walker("executive_", "dimension", "scores.executive")),
    ],
))
register_extractor(ReportExtractor(
    ReportKind.ORGANIZATIONAL,
    regions=[
        *DEFAULT_REGIONS,
        RegionSpec("scores.domains", _score_map_walker("domain_", "domain", "scores.domains")),
    ],
))


def extract(report: Report, report_kind: ReportKind | None = None) -> ExtractionResult:
    """
    Decompose a report into nodes.

    Extraction never raises for bad content; problems are returned as
    warnings on the result metadata.

    Args:
        report: Report supplied by the generator
        report_kind: Overrides report.kind when given

    Returns:
        ExtractionResult with nodes and metadata.
    """
    kind = report_kind or report.kind
    return get_extractor(kind).extract(report.content)
