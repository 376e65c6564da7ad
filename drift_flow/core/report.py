"""Correlation report composition."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from drift_flow.core.correlation_engine import CorrelationResult
from drift_flow.core.models import (
    CascadeImpact,
    CorrelationEdge,
    DriftArtifact,
    GraphMetrics,
    ImpactPath,
    RootCauseRecord,
    Severity,
)


@dataclass
class CorrelationReportBuilder:
    block_min: float = 0.80

    def build_report(self, result: CorrelationResult, meta: Dict[str, Any]) -> Dict[str, Any]:
        severities = {severity.value: 0 for severity in Severity}
        for artifact in result.artifacts:
            severities[artifact.severity.value] += 1

        return {
            "summary": {
                "artifacts": len(result.artifacts),
                "edges": len(result.edges),
                "hard_links": sum(1 for e in result.edges if e.final_score >= self.block_min),
                "user_defined_links": sum(1 for e in result.edges if e.user_defined),
                "root_causes": len(result.root_causes),
                "candidate_pairs": len(result.candidate_pairs),
                "severities": severities,
            },
            "edges": [self._serialize_edge(e) for e in result.edges],
            "artifacts": [self._serialize_artifact(a) for a in result.artifacts],
            "root_causes": [self._serialize_root_cause(r) for r in result.root_causes],
            "meta": meta,
        }

    @staticmethod
    def _serialize_edge(edge: CorrelationEdge) -> Dict[str, Any]:
        data = {
            "source_id": edge.source_id,
            "target_id": edge.target_id,
            "relationship": edge.relationship,
            "relationships": sorted(edge.relationships),
            "strategies": list(edge.strategies),
            "scores": dict(edge.scores),
            "weights": dict(edge.weights),
            "final_score": round(edge.final_score, 4),
            "user_defined": edge.user_defined,
            "evidence": [item.to_dict() for item in edge.evidence],
            "explanation": edge.explanation,
        }
        if edge.rule is not None:
            data["rule"] = edge.rule.model_dump(exclude_none=True)
        return data

    @classmethod
    def _serialize_artifact(cls, artifact: DriftArtifact) -> Dict[str, Any]:
        return {
            "artifact_id": artifact.artifact_id,
            "layer_type": artifact.layer_type.value,
            "file": artifact.file,
            "severity": artifact.severity.value,
            "changes": list(artifact.changes),
            "reasoning": list(artifact.reasoning),
            "endpoints": list(artifact.endpoints),
            "entities": list(artifact.entities),
            "resources": list(artifact.resources),
            "metadata": artifact.metadata.to_dict() if artifact.metadata else None,
            "correlation_impact": cls._serialize_impact(artifact.correlation_impact),
            "graph_metrics": cls._serialize_metrics(artifact.graph_metrics),
            "impact_path": cls._serialize_path(artifact.impact_path),
            "root_cause": cls._serialize_root_cause(artifact.root_cause) if artifact.root_cause else None,
        }

    @staticmethod
    def _serialize_root_cause(record: RootCauseRecord) -> Dict[str, Any]:
        return {"artifact_id": record.artifact_id, "kind": record.kind, "confidence": record.confidence}

    @staticmethod
    def _serialize_metrics(metrics: Optional[GraphMetrics]) -> Optional[Dict[str, Any]]:
        if metrics is None:
            return None
        return {
            "blast_radius": metrics.blast_radius,
            "risk_score": metrics.risk_score,
            "path_confidence": metrics.path_confidence,
            "path_depth": metrics.path_depth,
            "is_root_cause": metrics.is_root_cause,
            "impact_by_relationship_kind": dict(metrics.impact_by_relationship_kind),
        }

    @classmethod
    def _serialize_impact(cls, impact: Optional[CascadeImpact]) -> Optional[Dict[str, Any]]:
        if impact is None:
            return None
        return {
            "hard_link_count": impact.hard_link_count,
            "soft_link_count": impact.soft_link_count,
            "cascade_component_count": impact.cascade_component_count,
            "correlations_considered": impact.correlations_considered,
            "graph_metrics": cls._serialize_metrics(impact.graph_metrics),
        }

    @staticmethod
    def _serialize_path(path: Optional[ImpactPath]) -> Optional[Dict[str, Any]]:
        if path is None:
            return None
        return {
            "source_id": path.source_id,
            "confidence": path.confidence,
            "depth": path.depth,
            "path": list(path.path),
        }
