"""
Core data models for cross-layer drift correlation.

This module contains the data structures shared by every stage of the
correlation pipeline. Signals and edges reference artifacts by fingerprint
(``artifact_id``) rather than by object, so the engine can keep a single
``id -> artifact`` index and no stage aliases another stage's objects.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set

from drift_flow.core.config import CorrelationRule


class LayerType(str, Enum):
    """The layer an analyzer reported a change for."""
    API = "api"
    DATABASE = "database"
    INFRASTRUCTURE = "infrastructure"
    CONFIGURATION = "configuration"


class Severity(str, Enum):
    """Ordered severity levels. Compare with ``rank``, not with the string value."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2}


def canonical_pair_key(first_id: str, second_id: str) -> str:
    """Undirected key for a pair of fingerprints: lexicographically smaller id first."""
    if first_id <= second_id:
        return f"{first_id}::{second_id}"
    return f"{second_id}::{first_id}"


def _as_str_list(value: Any, field_name: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None]
    raise ValueError(f"'{field_name}' must be a list of strings, got {type(value).__name__}")


def _dedupe(values: Iterable[str]) -> List[str]:
    seen: Set[str] = set()
    result: List[str] = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result


@dataclass
class ArtifactMetadata:
    """Derived, non-authoritative facts scanned out of an artifact's change text."""
    entities: List[str] = field(default_factory=list)
    operations: List[str] = field(default_factory=list)
    fields: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.entities = _dedupe(self.entities)
        self.operations = _dedupe(self.operations)
        self.fields = _dedupe(self.fields)
        self.dependencies = _dedupe(self.dependencies)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ArtifactMetadata":
        return cls(
            entities=_as_str_list(data.get("entities"), "metadata.entities"),
            operations=_as_str_list(data.get("operations"), "metadata.operations"),
            fields=_as_str_list(data.get("fields"), "metadata.fields"),
            dependencies=_as_str_list(data.get("dependencies"), "metadata.dependencies"),
        )

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            "entities": list(self.entities),
            "operations": list(self.operations),
            "fields": list(self.fields),
            "dependencies": list(self.dependencies),
        }


@dataclass(frozen=True)
class Evidence:
    """One piece of supporting evidence for a correlation."""
    reason: str
    file: Optional[str] = None
    line: Optional[int] = None

    @property
    def has_location(self) -> bool:
        return bool(self.file) or self.line is not None

    @classmethod
    def from_value(cls, value: Any) -> "Evidence":
        if isinstance(value, Evidence):
            return value
        if isinstance(value, dict):
            line = value.get("line")
            return cls(
                reason=str(value.get("reason", "")),
                file=value.get("file"),
                line=int(line) if isinstance(line, (int, float)) else None,
            )
        return cls(reason=str(value))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"reason": self.reason}
        if self.file:
            data["file"] = self.file
        if self.line is not None:
            data["line"] = self.line
        return data


@dataclass
class Signal:
    """A single strategy's assertion that two artifacts are related."""
    source_id: str
    target_id: str
    relationship: str
    confidence: float
    evidence: List[Evidence] = field(default_factory=list)
    strategy: str = ""

    @property
    def pair_key(self) -> str:
        return canonical_pair_key(self.source_id, self.target_id)


@dataclass
class CorrelationEdge:
    """The fused, per-pair result of every signal plus any explicit rule."""
    source_id: str
    target_id: str
    relationships: Set[str] = field(default_factory=set)
    strategies: List[str] = field(default_factory=list)
    scores: Dict[str, float] = field(default_factory=dict)
    weights: Dict[str, float] = field(default_factory=dict)
    final_score: float = 0.0
    evidence: List[Evidence] = field(default_factory=list)
    user_defined: bool = False
    rule: Optional[CorrelationRule] = None
    explanation: str = ""

    @property
    def pair_key(self) -> str:
        return canonical_pair_key(self.source_id, self.target_id)

    @property
    def relationship(self) -> str:
        return "|".join(sorted(self.relationships))

    def touches(self, artifact_id: str) -> bool:
        return artifact_id in (self.source_id, self.target_id)

    def other(self, artifact_id: str) -> str:
        return self.target_id if self.source_id == artifact_id else self.source_id


@dataclass(frozen=True)
class RootCauseRecord:
    artifact_id: str
    kind: str  # root_cause | likely_root_cause
    confidence: float


@dataclass
class ImpactPath:
    """Best path by which a root-cause artifact reaches another artifact."""
    source_id: str
    confidence: float
    depth: int
    path: List[str] = field(default_factory=list)  # artifact ids, source first


@dataclass
class GraphMetrics:
    blast_radius: int
    risk_score: float
    path_confidence: float
    path_depth: int
    is_root_cause: bool
    impact_by_relationship_kind: Dict[str, int] = field(default_factory=dict)


@dataclass
class CascadeImpact:
    hard_link_count: int
    soft_link_count: int
    cascade_component_count: int
    correlations_considered: int
    graph_metrics: Optional[GraphMetrics] = None


@dataclass(eq=False)
class DriftArtifact:
    """
    One detected change, scoped to a single layer.

    ``artifact_id`` is assigned once by the normalizer; assigning a different
    value afterwards raises ``AttributeError``.
    """
    layer_type: LayerType
    severity: Severity = Severity.LOW
    file: Optional[str] = None
    changes: List[str] = field(default_factory=list)
    reasoning: List[str] = field(default_factory=list)
    endpoints: List[str] = field(default_factory=list)
    entities: List[str] = field(default_factory=list)
    resources: List[str] = field(default_factory=list)
    resource_type: Optional[str] = None
    name: Optional[str] = None
    metadata: Optional[ArtifactMetadata] = None
    artifact_id: Optional[str] = None
    correlation_impact: Optional[CascadeImpact] = None
    graph_metrics: Optional[GraphMetrics] = None
    impact_path: Optional[ImpactPath] = None
    root_cause: Optional[RootCauseRecord] = None

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "artifact_id":
            current = self.__dict__.get("artifact_id")
            if current is not None and value != current:
                raise AttributeError(f"artifact_id is already frozen as {current!r}")
        object.__setattr__(self, name, value)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DriftArtifact":
        """Build an artifact from an analyzer record (camelCase or snake_case keys)."""
        if not isinstance(data, dict):
            raise ValueError(f"Artifact record must be a mapping, got {type(data).__name__}")

        layer = data.get("layerType", data.get("layer_type", data.get("type")))
        try:
            layer_type = LayerType(str(layer).lower())
        except ValueError:
            raise ValueError(f"Unknown layer type: {layer!r}") from None

        severity_value = data.get("severity") or Severity.LOW.value
        try:
            severity = Severity(str(severity_value).lower())
        except ValueError:
            raise ValueError(f"Unknown severity: {severity_value!r}") from None

        metadata = data.get("metadata")
        return cls(
            layer_type=layer_type,
            severity=severity,
            file=data.get("file") or None,
            changes=_as_str_list(data.get("changes"), "changes"),
            reasoning=_as_str_list(data.get("reasoning"), "reasoning"),
            endpoints=_as_str_list(data.get("endpoints"), "endpoints"),
            entities=_as_str_list(data.get("entities"), "entities"),
            resources=_as_str_list(data.get("resources"), "resources"),
            resource_type=data.get("resourceType", data.get("resource_type")),
            name=data.get("name"),
            metadata=ArtifactMetadata.from_dict(metadata) if isinstance(metadata, dict) else None,
            artifact_id=data.get("artifactId", data.get("artifact_id")),
        )
