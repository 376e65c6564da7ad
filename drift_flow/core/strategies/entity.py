from dataclasses import dataclass
from typing import List, Optional, Set

from drift_flow.core.config import CorrelationConfig
from drift_flow.core.entity_matcher import MatchResult, correlate_fields, match_names
from drift_flow.core.models import DriftArtifact, Evidence, LayerType, Signal
from drift_flow.core.strategies.base import iter_pairs, of_layer

MIN_ENTITY_CONFIDENCE = 0.6


@dataclass
class EntityStrategy:
    """Links API artifacts to the database tables their entities name."""
    weight: float = 1.0
    enabled: bool = True
    budget: str = "low"

    name = "entity"

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
            api_names = api.metadata.entities if api.metadata else []
            table_names = table.metadata.entities if table.metadata else []
            best = MatchResult(confidence=0.0)
            best_names = None
            for api_name in api_names:
                for table_name in table_names:
                    result = match_names(api_name, table_name)
                    if result.confidence > best.confidence:
                        best = result
                        best_names = (api_name, table_name)
            if best.confidence <= MIN_ENTITY_CONFIDENCE or best_names is None:
                continue

            evidence = [
                Evidence(
                    reason=f"API entity '{best_names[0]}' matches table '{best_names[1]}' ({best.confidence:.0%})",
                    file=api.file,
                )
            ]
            for field_match in correlate_fields(api.metadata.fields, table.metadata.fields):
                evidence.append(
                    Evidence(
                        reason=f"API field '{field_match.api_field}' matches column '{field_match.db_field}'",
                        file=table.file,
                    )
                )
            signals.append(
                Signal(
                    source_id=api.artifact_id,
                    target_id=table.artifact_id,
                    relationship="api_uses_table",
                    confidence=best.confidence,
                    evidence=evidence,
                    strategy=self.name,
                )
            )
        return signals
