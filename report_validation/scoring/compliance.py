"""Deterministic compliance checks.

Compliance is policy, not judgment: four rule checks (ethical, privacy,
professional, legal) match forbidden-content patterns against the node's
lowercased content. The metric score is the share of checks passed.
"""

import logging
import re
from dataclasses import dataclass, field

from report_validation.state.enums import MetricCategory, Severity
from report_validation.state.models import Issue, MetricScore, ReportNode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComplianceRule:
    """One policy check made of literal phrases and regex patterns."""

    name: str
    description: str
    severity: Severity
    phrases: tuple[str, ...] = ()
    patterns: tuple[str, ...] = ()
    _compiled: tuple[re.Pattern, ...] = field(init=False, repr=False, compare=False, default=())

    def __post_init__(self):
        object.__setattr__(
            self,
            "_compiled",
            tuple(re.compile(p, re.IGNORECASE) for p in self.patterns),
        )

    def find_violations(self, text: str) -> list[str]:
        """Return every matched phrase or pattern excerpt in text."""
        lowered = text.lower()
        hits = [phrase for phrase in self.phrases if phrase in lowered]
        for pattern in self._compiled:
            hits.extend(match.group(0) for match in pattern.finditer(text))
        return hits


COMPLIANCE_RULES: list[ComplianceRule] = [
    ComplianceRule(
        name="ethical",
        description="Contains potentially unethical or discriminatory content",
        severity=Severity.CRITICAL,
        phrases=(
            "discriminatory language",
            "harmful stereotypes",
            "unfair judgments",
            "for a woman",
            "for a man",
            "too old to",
            "too young to",
        ),
        patterns=(
            r"\b(?:all|typical|most)\s+(?:women|men|millennials|boomers|foreigners|immigrants)\s+(?:are|tend)\b",
        ),
    ),
    ComplianceRule(
        name="privacy",
        description="May contain privacy-sensitive or identifying information",
        severity=Severity.HIGH,
        phrases=(
            "personal information",
            "sensitive data",
            "identifying details",
            "date of birth",
            "home address",
            "social security",
        ),
        patterns=(
            r"[\w.+-]+@[\w-]+\.[\w.]+",
            r"\b\d{3}-\d{2}-\d{4}\b",
            r"\b\d{3}[-.\s]\d{3}[-.\s]\d{4}\b",
        ),
    ),
    ComplianceRule(
        name="professional",
        description="Contains unprofessional language",
        severity=Severity.MEDIUM,
        phrases=(
            "inappropriate language",
            "casual tone",
            "unprofessional terms",
        ),
        patterns=(
            r"\b(?:lazy|stupid|clueless|sucks|lol|dumb)\b",
        ),
    ),
    ComplianceRule(
        name="legal",
        description="May contain legally problematic claims",
        severity=Severity.HIGH,
        phrases=(
            "discriminatory statements",
            "false claims",
            "legal violations",
            "should not be hired because",
            "guaranteed to succeed",
        ),
    ),
]


def evaluate_compliance(
    node: ReportNode,
    weight: float,
    rules: list[ComplianceRule] | None = None,
) -> MetricScore:
    """
    Score a node against the compliance rules.

    Args:
        node: Node to check
        weight: Weight of the compliance metric
        rules: Rules to apply (defaults to COMPLIANCE_RULES)

    Returns:
        MetricScore with score = passed / total * 100 and one issue per failed rule.
    """
    rules = rules if rules is not None else COMPLIANCE_RULES
    text = node.content_text()

    issues: list[Issue] = []
    evidence: list[str] = []
    passed = 0

    for rule in rules:
        hits = rule.find_violations(text)
        if not hits:
            passed += 1
            continue
        evidence.append(f"{rule.name}: matched {', '.join(repr(h) for h in hits[:3])}")
        issues.append(Issue(
            node_id=node.id,
            category=MetricCategory.COMPLIANCE,
            severity=rule.severity,
            description=rule.description,
            evidence=hits[:5],
            location=rule.name,
        ))

    score = round(passed / len(rules) * 100) if rules else 100
    if issues:
        logger.debug(f"Compliance failures on {node.id}: {[i.location for i in issues]}")
    else:
        evidence.append(f"All {len(rules)} compliance checks passed")

    return MetricScore(
        category=MetricCategory.COMPLIANCE,
        score=score,
        weight=weight,
        evidence=evidence,
        issues=issues,
        self_confidence=100.0,
    )
