"""Cross-layer correlation pipeline."""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Union

from drift_flow.core.aggregator import aggregate
from drift_flow.core.artifacts import normalize
from drift_flow.core.candidates import select_candidate_pairs
from drift_flow.core.config import CorrelationConfig
from drift_flow.core.graph_analyzer import GraphAnalysis, GraphAnalyzer
from drift_flow.core.models import CorrelationEdge, DriftArtifact, RootCauseRecord, Signal
from drift_flow.core.risk_escalator import escalate
from drift_flow.core.rules import resolve
from drift_flow.core.strategies import CorrelationStrategy, build_strategies


@dataclass
class CorrelationResult:
    artifacts: List[DriftArtifact]
    edges: List[CorrelationEdge]
    root_causes: List[RootCauseRecord]
    candidate_pairs: Set[str] = field(default_factory=set)
    processed_pairs: Set[str] = field(default_factory=set)
    graph: Optional[GraphAnalysis] = None

    def artifact(self, artifact_id: str) -> Optional[DriftArtifact]:
        for artifact in self.artifacts:
            if artifact.artifact_id == artifact_id:
                return artifact
        return None

    def edges_for(self, artifact_id: str) -> List[CorrelationEdge]:
        return [edge for edge in self.edges if edge.touches(artifact_id)]


class CorrelationEngine:
    """
    Runs normalization, rules, strategies, aggregation, graph analysis and
    escalation over one batch of drift artifacts.

    The engine holds no state between runs; every set and index it builds
    lives only for the duration of ``run``.
    """

    def __init__(self, config: Optional[CorrelationConfig] = None, strategies: Optional[List[CorrelationStrategy]] = None):
        self.config = config or CorrelationConfig()
        self.strategies = strategies if strategies is not None else build_strategies(self.config)

    def run(self, raw_artifacts: Iterable[Union[DriftArtifact, Dict[str, Any]]]) -> CorrelationResult:
        config = self.config
        artifacts = normalize(raw_artifacts)

        explicit_edges, processed_pairs = resolve(artifacts, config.correlation_rules)

        enabled = [s for s in self.strategies if s.enabled]
        low_cost = [s for s in enabled if s.budget == "low"]
        expensive = [s for s in enabled if s.budget != "low"]

        low_signals = self._run_strategies(low_cost, artifacts, processed_pairs, None)
        candidate_pairs = select_candidate_pairs(low_signals, artifacts, config)
        expensive_signals = self._run_strategies(expensive, artifacts, processed_pairs, candidate_pairs)

        weights = {s.name: s.weight for s in self.strategies}
        edges = aggregate(explicit_edges, low_signals + expensive_signals, weights, processed_pairs)

        analysis = GraphAnalyzer(config.graph, config.thresholds.correlate_min).analyze(artifacts, edges)

        for artifact in artifacts:
            escalate(artifact, edges, config)

        logging.info(
            f"Correlation: {len(artifacts)} artifacts, {len(edges)} edges, "
            f"{len(analysis.root_causes)} root causes"
        )
        return CorrelationResult(
            artifacts=artifacts,
            edges=edges,
            root_causes=analysis.root_causes,
            candidate_pairs=candidate_pairs,
            processed_pairs=processed_pairs,
            graph=analysis,
        )

    def _run_strategies(
        self,
        strategies: List[CorrelationStrategy],
        artifacts: List[DriftArtifact],
        processed_pairs: Set[str],
        candidate_pairs: Optional[Set[str]],
    ) -> List[Signal]:
        signals: List[Signal] = []
        for strategy in strategies:
            started = time.time()
            produced = strategy.run(artifacts, self.config, processed_pairs, candidate_pairs)
            elapsed_ms = (time.time() - started) * 1000
            logging.debug(f"Correlation: [{strategy.name}] {len(produced)} signals in {elapsed_ms:.1f}ms")
            signals.extend(produced)
        return signals
