from dataclasses import dataclass
from typing import List, Optional, Set

from drift_flow.core.config import CorrelationConfig
from drift_flow.core.metadata import operation_set
from drift_flow.core.models import DriftArtifact, Evidence, LayerType, Signal
from drift_flow.core.strategies.base import iter_pairs, of_layer


@dataclass
class OperationStrategy:
    """Links API and database artifacts that perform the same CRUD operations."""
    weight: float = 1.0
    enabled: bool = True
    budget: str = "low"

    name = "operation"

    def run(
        self,
        artifacts: List[DriftArtifact],
        config: CorrelationConfig,
        processed_pairs: Set[str],
        candidate_pairs: Optional[Set[str]] = None,
    ) -> List[Signal]:
        apis = of_layer(artifacts, LayerType.API)
        tables = of_layer(artifacts, LayerType.DATABASE)
        signals: List[Signal] = []

        for api, table in iter_pairs(self, apis, tables, processed_pairs, candidate_pairs):
            matching = sorted(operation_set(api) & operation_set(table))
            if not matching:
                continue
            signals.append(
                Signal(
                    source_id=api.artifact_id,
                    target_id=table.artifact_id,
                    relationship="operation_alignment",
                    confidence=min(0.9, 0.6 + 0.1 * len(matching)),
                    evidence=[Evidence(reason=f"Shared CRUD operations: {', '.join(matching)}", file=table.file)],
                    strategy=self.name,
                )
            )
        return signals
