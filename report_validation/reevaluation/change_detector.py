"""Change analysis between two node snapshots."""

import logging
from difflib import SequenceMatcher

from report_validation.state.enums import ChangeScope, ChangeType, NodeType
from report_validation.state.models import ChangeAnalysis, ReportNode

logger = logging.getLogger(__name__)

MINOR_SIMILARITY = 90.0
MODERATE_SIMILARITY = 70.0


def content_similarity(before: ReportNode, after: ReportNode) -> float:
    """Similarity of the serialized contents, 0-100."""
    a = before.content_text()
    b = after.content_text()
    if not a and not b:
        return 100.0
    return round(SequenceMatcher(None, a, b).ratio() * 100, 2)


def change_scope(similarity: float) -> ChangeScope:
    if similarity > MINOR_SIMILARITY:
        return ChangeScope.MINOR
    if similarity > MODERATE_SIMILARITY:
        return ChangeScope.MODERATE
    return ChangeScope.MAJOR


def dependents_of(node_id: str, nodes: dict[str, ReportNode]) -> list[str]:
    """Ids of nodes whose metadata lists node_id as a dependency."""
    return sorted(
        other.id for other in nodes.values()
        if other.id != node_id and node_id in other.metadata.dependencies
    )


def analyze_node_change(
    before: ReportNode | None,
    after: ReportNode,
    current_nodes: dict[str, ReportNode],
) -> ChangeAnalysis | None:
    """
    Classify how one node changed.

    Args:
        before: Snapshot from the previous iteration (None for a new node)
        after: Snapshot from the current iteration
        current_nodes: All current nodes, used to find dependents

    Returns:
        ChangeAnalysis, or None when the node is identical to its snapshot.
    """
    affected = dependents_of(after.id, current_nodes)

    if before is None:
        return ChangeAnalysis(
            node_id=after.id,
            change_type=ChangeType.STRUCTURE,
            change_scope=ChangeScope.MAJOR,
            similarity=0.0,
            revalidation_required=True,
            consistency_check_required=True,
            affected_nodes=affected,
        )

    content_changed = before.content_hash != after.content_hash
    if not content_changed:
        if before.metadata == after.metadata and before.type == after.type:
            return None
        return ChangeAnalysis(
            node_id=after.id,
            change_type=ChangeType.METADATA,
            change_scope=ChangeScope.MINOR,
            similarity=100.0,
            revalidation_required=before.type != after.type,
            consistency_check_required=False,
            affected_nodes=affected,
        )

    similarity = content_similarity(before, after)
    return ChangeAnalysis(
        node_id=after.id,
        change_type=ChangeType.CONTENT,
        change_scope=change_scope(similarity),
        similarity=similarity,
        revalidation_required=True,
        # Recommendations fan out to cross-node consistency
        consistency_check_required=after.type == NodeType.RECOMMENDATION,
        affected_nodes=affected,
    )


def analyze_changes(
    previous: dict[str, ReportNode],
    current: dict[str, ReportNode],
) -> list[ChangeAnalysis]:
    """Change analyses for every new or modified node, in current order."""
    analyses = []
    for node_id, node in current.items():
        analysis = analyze_node_change(previous.get(node_id), node, current)
        if analysis is not None:
            analyses.append(analysis)

    logger.debug(
        f"Change analysis: {len(analyses)} of {len(current)} nodes changed, "
        f"{len(removed_node_ids(previous, current))} removed"
    )
    return analyses


def removed_node_ids(
    previous: dict[str, ReportNode],
    current: dict[str, ReportNode],
) -> list[str]:
    return [node_id for node_id in previous if node_id not in current]
