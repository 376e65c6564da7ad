"""Strategy protocol and pair iteration shared by all correlation strategies."""

from typing import Iterator, List, Optional, Protocol, Set, Tuple

from drift_flow.core.config import CorrelationConfig
from drift_flow.core.models import DriftArtifact, LayerType, Signal, canonical_pair_key


class CorrelationStrategy(Protocol):
    name: str
    budget: str  # low | medium | high
    weight: float
    enabled: bool

    def run(
        self,
        artifacts: List[DriftArtifact],
        config: CorrelationConfig,
        processed_pairs: Set[str],
        candidate_pairs: Optional[Set[str]] = None,
    ) -> List[Signal]:
        ...


def should_skip(
    strategy: CorrelationStrategy,
    key: str,
    processed_pairs: Set[str],
    candidate_pairs: Optional[Set[str]],
) -> bool:
    """Pairs claimed by rules are never re-scored; non-low budgets only see candidates."""
    if key in processed_pairs:
        return True
    if strategy.budget != "low" and candidate_pairs is not None and key not in candidate_pairs:
        return True
    return False


def of_layer(artifacts: List[DriftArtifact], layer: LayerType) -> List[DriftArtifact]:
    return [artifact for artifact in artifacts if artifact.layer_type is layer]


def iter_pairs(
    strategy: CorrelationStrategy,
    sources: List[DriftArtifact],
    targets: List[DriftArtifact],
    processed_pairs: Set[str],
    candidate_pairs: Optional[Set[str]],
) -> Iterator[Tuple[DriftArtifact, DriftArtifact]]:
    for source in sources:
        for target in targets:
            if source.artifact_id == target.artifact_id:
                continue
            key = canonical_pair_key(source.artifact_id, target.artifact_id)
            if should_skip(strategy, key, processed_pairs, candidate_pairs):
                continue
            yield source, target
