"""Cross-node consistency checks.

Three deterministic checks run over the nodes of a report:

- data_value: a narrative node quotes a score that disagrees with the
  scoring node for the same trait, pillar or dimension
- terminology: the same compound term is written both hyphenated and
  unhyphenated across nodes
- stylistic: narrative nodes mix second-person and third-person voice

Shallow checks re-examine only inconsistencies touching the change
neighbourhood and carry the rest forward from the previous result; deep
checks re-examine every node.
"""

import logging
import re
from collections import defaultdict
from dataclasses import dataclass

from report_validation.state.enums import ConsistencyDepth, InconsistencyKind, NodeType
from report_validation.state.models import (
    ConsistencyResult,
    Inconsistency,
    ReportNode,
)

logger = logging.getLogger(__name__)


PENALTIES = {
    InconsistencyKind.DATA_VALUE: 10.0,
    InconsistencyKind.TERMINOLOGY: 5.0,
    InconsistencyKind.STYLISTIC: 3.0,
}

# Score keys written by the extractor for each kind of scoring node
SCORE_NAME_KEYS = ("trait", "pillar", "domain", "dimension")

NARRATIVE_TYPES = frozenset({NodeType.INSIGHT, NodeType.RECOMMENDATION, NodeType.SUMMARY})

# Quoted values may differ from the score by rounding
VALUE_TOLERANCE = 1.0

_HYPHENATED = re.compile(r"\b([a-z]{3,})-([a-z]{3,})\b")
_SECOND_PERSON = re.compile(r"\b(you|your|yours|yourself)\b", re.IGNORECASE)
_THIRD_PERSON = re.compile(
    r"\b(he|she|his|her|hers|him|the candidate|the individual|the participant|the leader)\b",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ScoreFact:
    node_id: str
    name: str
    score: float
    percentile: float | None = None


def _node_text(node: ReportNode) -> str:
    content = node.content
    if isinstance(content, dict) and isinstance(content.get("text"), str):
        return content["text"]
    return node.content_text()


def _score_facts(nodes: list[ReportNode]) -> list[ScoreFact]:
    facts = []
    for node in nodes:
        if node.type != NodeType.SCORING or not isinstance(node.content, dict):
            continue
        name = next(
            (node.content[key] for key in SCORE_NAME_KEYS if isinstance(node.content.get(key), str)),
            None,
        )
        score = node.content.get("score")
        if name is None or isinstance(score, bool) or not isinstance(score, (int, float)):
            continue
        percentile = node.content.get("percentile")
        facts.append(ScoreFact(
            node_id=node.id,
            name=name,
            score=float(score),
            percentile=float(percentile) if isinstance(percentile, (int, float)) else None,
        ))
    return facts


def _name_pattern(name: str) -> re.Pattern:
    # emotional_stability / emotionalStability -> "emotional[ _]?stability"
    words = re.sub(r"([a-z])([A-Z])", r"\1 \2", name).replace("_", " ").lower().split()
    spelled = r"[\s_-]?".join(re.escape(w) for w in words)
    return re.compile(rf"\b{spelled}\b[^0-9.\n]{{0,40}}?(\d+(?:\.\d+)?)", re.IGNORECASE)


# =============================================================================
# Checks
# =============================================================================


def find_data_value_inconsistencies(nodes: list[ReportNode]) -> list[Inconsistency]:
    found = []
    facts = _score_facts(nodes)
    narrative = [n for n in nodes if n.type != NodeType.SCORING]

    for fact in facts:
        pattern = _name_pattern(fact.name)
        for node in narrative:
            for match in pattern.finditer(_node_text(node)):
                quoted = float(match.group(1))
                if abs(quoted - fact.score) <= VALUE_TOLERANCE:
                    continue
                if fact.percentile is not None and abs(quoted - fact.percentile) <= VALUE_TOLERANCE:
                    continue
                found.append(Inconsistency(
                    kind=InconsistencyKind.DATA_VALUE,
                    node_ids=sorted([fact.node_id, node.id]),
                    description=(
                        f"{node.id} reports {fact.name} as {quoted:g} but "
                        f"{fact.node_id} scores it {fact.score:g}"
                    ),
                    key=f"data_value:{fact.node_id}:{node.id}",
                ))
                break
    return found


def find_terminology_inconsistencies(nodes: list[ReportNode]) -> list[Inconsistency]:
    hyphenated: dict[str, set[str]] = defaultdict(set)
    texts = {node.id: _node_text(node).lower() for node in nodes}

    for node_id, text in texts.items():
        for first, second in _HYPHENATED.findall(text):
            hyphenated[f"{first}-{second}"].add(node_id)

    found = []
    for term in sorted(hyphenated):
        first, second = term.split("-")
        variant = re.compile(rf"\b{first}(?: |){second}\b")
        variant_nodes = {node_id for node_id, text in texts.items() if variant.search(text)}
        if not variant_nodes:
            continue
        found.append(Inconsistency(
            kind=InconsistencyKind.TERMINOLOGY,
            node_ids=sorted(hyphenated[term] | variant_nodes),
            description=f"'{term}' is also written as '{first} {second}'",
            key=f"terminology:{term}",
        ))
    return found


def narrative_voice(node: ReportNode) -> str | None:
    text = _node_text(node)
    second = len(_SECOND_PERSON.findall(text))
    third = len(_THIRD_PERSON.findall(text))
    if second > third:
        return "second"
    if third > second:
        return "third"
    return None


def find_stylistic_inconsistencies(nodes: list[ReportNode]) -> list[Inconsistency]:
    voices: dict[str, list[str]] = defaultdict(list)
    for node in nodes:
        if node.type not in NARRATIVE_TYPES:
            continue
        voice = narrative_voice(node)
        if voice:
            voices[voice].append(node.id)

    if len(voices) < 2:
        return []

    second, third = voices["second"], voices["third"]
    minority = second if len(second) < len(third) else third
    return [Inconsistency(
        kind=InconsistencyKind.STYLISTIC,
        node_ids=sorted(minority),
        description=(
            f"Mixed narrative voice: {len(second)} nodes in second person, "
            f"{len(third)} in third person"
        ),
        key="stylistic:voice",
    )]


def consistency_score(inconsistencies: list[Inconsistency]) -> float:
    penalty = sum(PENALTIES[i.kind] for i in inconsistencies)
    return max(0.0, 100.0 - penalty)


# =============================================================================
# Checker
# =============================================================================


class ConsistencyChecker:
    """Runs the cross-node checks at the configured depth."""

    def __init__(self, depth: ConsistencyDepth = ConsistencyDepth.SHALLOW):
        self.depth = depth

    def detect(self, nodes: list[ReportNode]) -> list[Inconsistency]:
        return [
            *find_data_value_inconsistencies(nodes),
            *find_terminology_inconsistencies(nodes),
            *find_stylistic_inconsistencies(nodes),
        ]

    def check(
        self,
        nodes: list[ReportNode],
        scope: set[str] | None = None,
        previous: ConsistencyResult | None = None,
    ) -> ConsistencyResult:
        """
        Check cross-node consistency.

        Args:
            nodes: Current nodes of the report
            scope: Node ids in the change neighbourhood (None checks everything)
            previous: Result of the previous check, carried forward outside scope

        Returns:
            ConsistencyResult with score and inconsistencies.
        """
        detected = self.detect(nodes)

        if self.depth == ConsistencyDepth.DEEP or scope is None or previous is None:
            result = ConsistencyResult(
                score=consistency_score(detected),
                depth=ConsistencyDepth.DEEP if scope is None else self.depth,
                checked_nodes=[n.id for n in nodes],
                inconsistencies=detected,
            )
        else:
            present = {n.id for n in nodes}
            touched = [i for i in detected if scope.intersection(i.node_ids)]
            carried = [
                i for i in previous.inconsistencies
                if not scope.intersection(i.node_ids) and present.issuperset(i.node_ids)
            ]
            inconsistencies = touched + carried
            result = ConsistencyResult(
                score=consistency_score(inconsistencies),
                depth=ConsistencyDepth.SHALLOW,
                checked_nodes=sorted(scope & present),
                inconsistencies=inconsistencies,
            )

        if result.inconsistencies:
            logger.info(
                f"Consistency {result.score:.0f}: "
                f"{[i.key for i in result.inconsistencies]}"
            )
        return result


def diff_inconsistencies(
    before: ConsistencyResult | None,
    after: ConsistencyResult,
) -> tuple[int, int]:
    """(newly introduced, newly resolved) inconsistency counts."""
    before_keys = {i.key for i in before.inconsistencies} if before else set()
    after_keys = {i.key for i in after.inconsistencies}
    return len(after_keys - before_keys), len(before_keys - after_keys)
