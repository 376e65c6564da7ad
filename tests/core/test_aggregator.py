from __future__ import annotations

from typing import List, Optional

import pytest

from drift_flow.core.aggregator import aggregate
from drift_flow.core.config import CorrelationRule
from drift_flow.core.models import CorrelationEdge, Evidence, Signal
from drift_flow.core.rules import explicit_edge
from drift_flow.core.artifacts import normalize


def _make_signal(
    strategy: str,
    confidence: float,
    relationship: str = "api_uses_table",
    evidence: Optional[List[Evidence]] = None,
    source: str = "api:GET:/users",
    target: str = "db:table:users",
) -> Signal:
    return Signal(
        source_id=source,
        target_id=target,
        relationship=relationship,
        confidence=confidence,
        evidence=evidence or [],
        strategy=strategy,
    )


def test_weighted_mean_of_strategy_scores() -> None:
    signals = [
        _make_signal("entity", 0.8),
        _make_signal("operation", 0.7, relationship="operation_alignment"),
    ]

    edges = aggregate([], signals, {"entity": 1.0, "operation": 0.5}, set())

    assert len(edges) == 1
    edge = edges[0]
    assert edge.final_score == pytest.approx((0.8 * 1.0 + 0.7 * 0.5) / 1.5)
    assert edge.strategies == ["entity", "operation"]
    assert edge.relationships == {"api_uses_table", "operation_alignment"}
    assert edge.relationship == "api_uses_table|operation_alignment"


def test_one_edge_per_unordered_pair() -> None:
    signals = [
        _make_signal("entity", 0.8),
        _make_signal("operation", 0.7, source="db:table:users", target="api:GET:/users"),
    ]

    edges = aggregate([], signals, {}, set())

    assert len(edges) == 1
    assert edges[0].source_id == "api:GET:/users"


def test_keeps_strongest_signal_per_strategy() -> None:
    signals = [_make_signal("entity", 0.6), _make_signal("entity", 0.9), _make_signal("entity", 0.7)]

    edge = aggregate([], signals, {"entity": 1.0}, set())[0]

    assert edge.scores == {"entity": 0.9}
    assert edge.final_score == pytest.approx(0.9)


def test_tie_prefers_evidence_with_location() -> None:
    signals = [
        _make_signal("entity", 0.8, evidence=[Evidence(reason="name match")]),
        _make_signal("entity", 0.8, evidence=[Evidence(reason="name match in openapi document", file="openapi.yaml", line=12)]),
    ]

    edge = aggregate([], signals, {"entity": 1.0}, set())[0]

    assert edge.evidence == [Evidence(reason="name match in openapi document", file="openapi.yaml", line=12)]


def test_evidence_is_deduplicated_and_capped() -> None:
    signals = [
        _make_signal(f"s{i}", 0.7, evidence=[Evidence(reason=f"r{i}"), Evidence(reason="shared"), Evidence(reason="extra")])
        for i in range(4)
    ]

    edge = aggregate([], signals, {}, set())[0]

    assert len(edge.evidence) == 5
    assert [e.reason for e in edge.evidence][:3] == ["r0", "shared", "r1"]


def test_zero_total_weight_scores_zero() -> None:
    edge = aggregate([], [_make_signal("entity", 0.9)], {"entity": 0.0}, set())[0]

    assert edge.final_score == 0.0


def test_explicit_edge_dominates() -> None:
    api, db = normalize([
        {"layerType": "api", "endpoints": ["GET:/users"]},
        {"layerType": "database", "entities": ["users"]},
    ])
    rule = CorrelationRule(type="api_to_db", source="/users", target="users")
    explicit = explicit_edge(api, db, rule)
    processed = {explicit.pair_key}

    edges = aggregate([explicit], [_make_signal("entity", 0.3)], {"entity": 1.0}, processed)

    assert len(edges) == 1
    assert edges[0].final_score == 1.0
    assert edges[0].user_defined
    assert "entity" not in edges[0].scores


def test_user_defined_edge_is_pinned_even_with_unclaimed_signals() -> None:
    explicit = CorrelationEdge(
        source_id="api:GET:/users", target_id="db:table:users", user_defined=True, final_score=0.4
    )

    edges = aggregate([explicit], [_make_signal("entity", 0.3)], {"entity": 1.0}, set())

    assert edges[0].final_score == 1.0


def test_explanation_lists_score_breakdown() -> None:
    edge = aggregate([], [_make_signal("entity", 0.8)], {"entity": 1.0}, set())[0]

    assert edge.explanation == "api:GET:/users → db:table:users = 0.80 [entity:0.80×1.0]"
