"""Candidate-pair pruning for expensive correlation strategies."""

import logging
from typing import Dict, Iterable, List, Set

from drift_flow.core.config import CorrelationConfig
from drift_flow.core.models import DriftArtifact, Signal, canonical_pair_key
from drift_flow.core.rules import resolve_rule_pairs


def select_candidate_pairs(
    low_signals: Iterable[Signal],
    artifacts: List[DriftArtifact],
    config: CorrelationConfig,
) -> Set[str]:
    """
    Pick the pairs expensive strategies are allowed to score.

    Per source artifact, the top-K low-cost signals at or above
    ``correlate_min`` are kept, every pair a non-ignore rule names is added,
    and the result is cut to ``max_pairs_high_cost`` in insertion order.
    """
    top_k = config.limits.top_k_per_source
    correlate_min = config.thresholds.correlate_min
    max_pairs = config.limits.max_pairs_high_cost

    by_source: Dict[str, List[Signal]] = {}
    for signal in low_signals:
        by_source.setdefault(signal.source_id, []).append(signal)

    # dict keeps first-insertion order for deterministic truncation
    ordered: Dict[str, None] = {}
    for signals in by_source.values():
        ranked = sorted(signals, key=lambda s: s.confidence, reverse=True)
        for signal in ranked[:top_k]:
            if signal.confidence >= correlate_min:
                ordered.setdefault(signal.pair_key, None)

    for rule in config.explicit_rules:
        for source, target in resolve_rule_pairs(artifacts, rule):
            ordered.setdefault(canonical_pair_key(source.artifact_id, target.artifact_id), None)

    selected = list(ordered)
    if len(selected) > max_pairs:
        logging.info(f"Correlation: truncating {len(selected)} candidate pairs to {max_pairs}")
        selected = selected[:max_pairs]

    logging.debug(f"Correlation: selected {len(selected)} candidate pairs for expensive strategies")
    return set(selected)
