"""
Severity escalation from cross-layer correlations.

Tiers are tried in order: the security pin, user-defined links, graph
metrics, and finally plain link counting when no graph metrics exist.
Severity only ever moves up.
"""

import logging
from typing import Dict, List

from drift_flow.core.config import CorrelationConfig
from drift_flow.core.correlation_config import HIGH_CONFIDENCE_SCORE
from drift_flow.core.models import CascadeImpact, CorrelationEdge, DriftArtifact, Severity
from drift_flow.core.safety import is_critical_artifact

CRITICAL_ENFORCED = "Critical security issue - severity enforced to HIGH"
CRITICAL_LOCKED = "Critical security issue - severity cannot be reduced"

_RELATIONSHIP_NOTES = {
    "api_uses_table": "API endpoints directly depend on affected database tables",
    "operation_alignment": "Database operations align with API CRUD operations",
    "dependency_affects_api": "Package dependency changes affect multiple layers",
    "dependency_affects_db": "Package dependency changes affect multiple layers",
}


def _raise_to(artifact: DriftArtifact, severity: Severity, line: str) -> bool:
    if severity.rank <= artifact.severity.rank:
        return False
    artifact.severity = severity
    artifact.reasoning.append(line)
    return True


def relevant_edges(artifact: DriftArtifact, edges: List[CorrelationEdge], correlate_min: float) -> List[CorrelationEdge]:
    return [edge for edge in edges if edge.touches(artifact.artifact_id) and edge.final_score >= correlate_min]


def cascade_impact(artifact: DriftArtifact, relevant: List[CorrelationEdge], block_min: float) -> CascadeImpact:
    hard = sum(1 for edge in relevant if edge.final_score >= block_min)
    components = {edge.other(artifact.artifact_id) for edge in relevant if edge.final_score >= block_min}
    return CascadeImpact(
        hard_link_count=hard,
        soft_link_count=len(relevant) - hard,
        cascade_component_count=len(components),
        correlations_considered=len(relevant),
        graph_metrics=artifact.graph_metrics,
    )


def _user_defined_tier(artifact: DriftArtifact, user_edges: List[CorrelationEdge]) -> None:
    count = len(user_edges)
    if artifact.severity is Severity.LOW:
        _raise_to(
            artifact, Severity.MEDIUM,
            f"Upgraded from low to medium severity: {count} user-defined correlation(s) detected",
        )
    elif artifact.severity is Severity.MEDIUM and count >= 2:
        _raise_to(
            artifact, Severity.HIGH,
            f"Upgraded from medium to high severity: {count} user-defined correlations detected",
        )
    for edge in user_edges:
        if edge.rule is not None and edge.rule.description:
            artifact.reasoning.append(f"User-defined: {edge.rule.description}")


def _graph_tier(artifact: DriftArtifact, cascade: int) -> bool:
    metrics = artifact.graph_metrics
    changed = False
    if metrics.is_root_cause and artifact.severity is Severity.LOW:
        changed |= _raise_to(
            artifact, Severity.MEDIUM,
            f"Upgraded from low to medium severity: root cause impacting {metrics.blast_radius} artifact(s)",
        )
    elif metrics.is_root_cause and metrics.blast_radius >= 3 and artifact.severity is Severity.MEDIUM:
        changed |= _raise_to(
            artifact, Severity.HIGH,
            f"Upgraded from medium to high severity: root cause with blast radius {metrics.blast_radius}",
        )
    if metrics.path_confidence >= HIGH_CONFIDENCE_SCORE and cascade >= 2 and artifact.severity is Severity.LOW:
        changed |= _raise_to(
            artifact, Severity.MEDIUM,
            f"Upgraded from low to medium severity: impact path confidence {metrics.path_confidence:.2f} "
            f"across {cascade} components",
        )
    if metrics.risk_score >= 0.7:
        changed |= _raise_to(
            artifact, Severity.HIGH,
            f"Upgraded to high severity: blast radius risk score {metrics.risk_score:.2f}",
        )
    if changed and len(metrics.impact_by_relationship_kind) > 1:
        breakdown = ", ".join(f"{kind}:{count}" for kind, count in sorted(metrics.impact_by_relationship_kind.items()))
        artifact.reasoning.append(f"Cross-layer impact: {breakdown}")
    return changed


def _cascade_tier(artifact: DriftArtifact, cascade: int, hard: int) -> bool:
    if cascade >= 3 and artifact.severity is Severity.MEDIUM:
        return _raise_to(
            artifact, Severity.HIGH,
            f"Upgraded from medium to high severity: affects {cascade} cross-layer components",
        )
    elif cascade >= 2 and artifact.severity is Severity.LOW:
        return _raise_to(
            artifact, Severity.MEDIUM,
            f"Upgraded from low to medium severity: affects {cascade} cross-layer components",
        )
    elif hard >= 4 and artifact.severity is not Severity.HIGH:
        return _raise_to(
            artifact, Severity.HIGH,
            f"Upgraded to high severity: {hard} strong cross-layer correlations detected",
        )
    return False


def _summary_lines(relevant: List[CorrelationEdge]) -> List[str]:
    labels = sorted({label for edge in relevant for label in edge.relationships})
    lines: List[str] = []
    if labels:
        lines.append(f"Correlation types: {', '.join(labels)}")
    notes: Dict[str, None] = {}
    for label in labels:
        if label in _RELATIONSHIP_NOTES:
            notes.setdefault(_RELATIONSHIP_NOTES[label], None)
    lines.extend(notes)
    strong = sum(1 for edge in relevant if edge.final_score >= HIGH_CONFIDENCE_SCORE)
    if strong:
        lines.append(f"{strong} correlations with confidence ≥ {HIGH_CONFIDENCE_SCORE}")
    return lines


def escalate(artifact: DriftArtifact, edges: List[CorrelationEdge], config: CorrelationConfig) -> DriftArtifact:
    """Raise ``artifact.severity`` from its correlations and record why in ``reasoning``."""
    thresholds = config.thresholds
    relevant = relevant_edges(artifact, edges, thresholds.correlate_min)
    impact = cascade_impact(artifact, relevant, thresholds.block_min)
    artifact.correlation_impact = impact
    original = artifact.severity

    if is_critical_artifact(artifact):
        if artifact.severity is not Severity.HIGH:
            _raise_to(artifact, Severity.HIGH, CRITICAL_ENFORCED)
            logging.info(f"Escalation: {artifact.artifact_id} pinned to high (security-critical)")
        elif any(edge.user_defined for edge in relevant):
            artifact.reasoning.append(CRITICAL_LOCKED)
        return artifact

    user_edges = [edge for edge in relevant if edge.user_defined]
    if user_edges:
        _user_defined_tier(artifact, user_edges)

    if artifact.severity is original:
        if artifact.graph_metrics is not None:
            _graph_tier(artifact, artifact.graph_metrics.blast_radius)
        else:
            _cascade_tier(artifact, impact.cascade_component_count, impact.hard_link_count)

    if artifact.severity is not original:
        artifact.reasoning.extend(_summary_lines(relevant))
        logging.info(
            f"Escalation: {artifact.artifact_id} raised from {original.value} to {artifact.severity.value}"
        )
    return artifact
