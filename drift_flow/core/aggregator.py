"""Weighted fusion of strategy signals into one edge per artifact pair."""

import logging
from typing import Dict, Iterable, List, Set

from drift_flow.core.correlation_config import DEFAULT_STRATEGY_WEIGHT, EVIDENCE_PER_SIGNAL
from drift_flow.core.models import CorrelationEdge, Evidence, Signal
from drift_flow.core.safety import clamp01, dedupe_evidence


def _has_location(signal: Signal) -> bool:
    return any(item.has_location for item in signal.evidence)


def _prefer(candidate: Signal, current: Signal) -> bool:
    if candidate.confidence > current.confidence:
        return True
    return candidate.confidence == current.confidence and _has_location(candidate)


def explain(edge: CorrelationEdge) -> str:
    parts = ", ".join(
        f"{name}:{edge.scores[name]:.2f}×{edge.weights[name]:.1f}" for name in edge.strategies
    )
    return f"{edge.source_id} → {edge.target_id} = {edge.final_score:.2f} [{parts}]"


def weighted_score(scores: Dict[str, float], weights: Dict[str, float]) -> float:
    total_weight = sum(weights[name] for name in scores)
    if total_weight <= 0:
        return 0.0
    return clamp01(sum(scores[name] * weights[name] for name in scores) / total_weight)


def aggregate(
    explicit_edges: Iterable[CorrelationEdge],
    strategy_signals: Iterable[Signal],
    strategy_weights: Dict[str, float],
    processed_pairs: Set[str],
) -> List[CorrelationEdge]:
    """
    Fuse explicit edges and strategy signals into at most one edge per pair.

    Explicit (user-defined) edges always score exactly 1.0. Heuristic edges
    score the weighted mean of the best signal from each strategy.
    """
    edges: Dict[str, CorrelationEdge] = {}
    for edge in explicit_edges:
        edges.setdefault(edge.pair_key, edge)

    best: Dict[str, Dict[str, Signal]] = {}
    signal_count = 0
    for signal in strategy_signals:
        key = signal.pair_key
        if key in processed_pairs:
            continue
        edge = edges.get(key)
        if edge is None:
            edge = CorrelationEdge(source_id=signal.source_id, target_id=signal.target_id)
            edges[key] = edge
        if edge.user_defined:
            continue
        signal_count += 1
        edge.relationships.add(signal.relationship)
        per_strategy = best.setdefault(key, {})
        current = per_strategy.get(signal.strategy)
        if current is None or _prefer(signal, current):
            per_strategy[signal.strategy] = signal

    for key, per_strategy in best.items():
        edge = edges[key]
        evidence: List[Evidence] = []
        for name, signal in per_strategy.items():
            edge.strategies.append(name)
            edge.scores[name] = signal.confidence
            edge.weights[name] = strategy_weights.get(name, DEFAULT_STRATEGY_WEIGHT)
            evidence.extend(signal.evidence[:EVIDENCE_PER_SIGNAL])
        edge.final_score = weighted_score(edge.scores, edge.weights)
        edge.evidence = dedupe_evidence(evidence)
        edge.explanation = explain(edge)

    for edge in edges.values():
        if edge.user_defined:
            edge.final_score = 1.0

    logging.info(f"Correlation: aggregated {signal_count} signals into {len(edges)} edges")
    return list(edges.values())
