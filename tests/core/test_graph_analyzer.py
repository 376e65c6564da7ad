from __future__ import annotations

import logging
from typing import List

import pytest

from drift_flow.core.config import GraphOptions
from drift_flow.core.graph_analyzer import (
    ArtifactGraph,
    GraphAnalyzer,
    blast_radius,
    explain_path,
    find_root_causes,
    impacted_nodes,
)
from drift_flow.core.models import CorrelationEdge, DriftArtifact, LayerType, Severity


def _make_artifact(artifact_id: str, layer: LayerType, file: str = None, severity: Severity = Severity.LOW) -> DriftArtifact:
    return DriftArtifact(layer_type=layer, file=file, severity=severity, artifact_id=artifact_id)


def _make_edge(source: str, target: str, score: float = 0.9, relationship: str = "api_uses_table") -> CorrelationEdge:
    return CorrelationEdge(source_id=source, target_id=target, relationships={relationship}, final_score=score)


def _chain() -> List[DriftArtifact]:
    return [
        _make_artifact("config:package.json", LayerType.CONFIGURATION, "package.json"),
        _make_artifact("api:GET:/users", LayerType.API, "api/users.yaml"),
        _make_artifact("db:table:users", LayerType.DATABASE, "db/001.sql", Severity.MEDIUM),
    ]


def test_fan_out_yields_single_root_cause() -> None:
    artifacts = [_make_artifact(i, LayerType.API) for i in ("a1", "a2", "a3")]
    edges = [_make_edge("a1", "a2"), _make_edge("a1", "a3")]

    roots = find_root_causes(edges, artifacts)

    assert len(roots) == 1
    assert roots[0].artifact_id == "a1"
    assert roots[0].kind == "root_cause"
    assert roots[0].confidence == 0.8


def test_root_cause_confidence_is_capped() -> None:
    artifacts = [_make_artifact(f"n{i}", LayerType.API) for i in range(6)]
    edges = [_make_edge("n0", f"n{i}") for i in range(1, 6)]

    assert find_root_causes(edges, artifacts)[0].confidence == 0.9


def test_likely_root_cause_when_every_node_has_inbound_edges() -> None:
    artifacts = [_make_artifact(i, LayerType.API) for i in ("a", "b", "c")]
    edges = [_make_edge("a", "b"), _make_edge("b", "a"), _make_edge("a", "c"), _make_edge("c", "b")]

    roots = find_root_causes(edges, artifacts)

    assert len(roots) == 1
    assert roots[0].artifact_id == "a"
    assert roots[0].kind == "likely_root_cause"
    assert roots[0].confidence == 0.55


def test_no_edges_no_root_causes() -> None:
    assert find_root_causes([], [_make_artifact("a", LayerType.API)]) == []


def test_impacted_nodes_min_and_product_aggregation() -> None:
    artifacts = _chain()
    edges = [
        _make_edge("config:package.json", "api:GET:/users", 0.9, "dependency_affects_api"),
        _make_edge("api:GET:/users", "db:table:users", 0.8),
    ]
    graph = ArtifactGraph(artifacts, edges)

    by_min = impacted_nodes(graph, ["config:package.json"], aggregation="min")
    by_product = impacted_nodes(graph, ["config:package.json"], aggregation="product")

    assert by_min["db:table:users"].confidence == pytest.approx(0.8)
    assert by_min["db:table:users"].depth == 2
    assert by_min["db:table:users"].path == ["config:package.json", "api:GET:/users", "db:table:users"]
    assert by_product["db:table:users"].confidence == pytest.approx(0.72)
    assert "config:package.json" not in by_min


def test_impacted_nodes_respects_depth_and_confidence() -> None:
    artifacts = _chain()
    edges = [
        _make_edge("config:package.json", "api:GET:/users", 0.9),
        _make_edge("api:GET:/users", "db:table:users", 0.5),
    ]
    graph = ArtifactGraph(artifacts, edges)

    assert set(impacted_nodes(graph, ["config:package.json"], max_depth=1)) == {"api:GET:/users"}
    assert set(impacted_nodes(graph, ["config:package.json"], min_confidence=0.55)) == {"api:GET:/users"}


def test_blast_radius_counts_kinds_and_scores_risk() -> None:
    artifacts = _chain()
    edges = [
        _make_edge("config:package.json", "api:GET:/users"),
        _make_edge("config:package.json", "db:table:users"),
    ]
    graph = ArtifactGraph(artifacts, edges)

    radius = blast_radius(graph, impacted_nodes(graph, ["config:package.json"]))

    assert radius.total == 2
    assert radius.by_kind == {"api": 1, "database": 1}
    assert radius.by_severity == {"low": 1, "medium": 1}
    assert radius.risk_score == 1.0


def test_explain_path_describes_each_hop() -> None:
    artifacts = _chain()
    edges = [
        _make_edge("config:package.json", "api:GET:/users", 0.85, "dependency_affects_api"),
        _make_edge("api:GET:/users", "db:table:users", 0.9),
    ]
    graph = ArtifactGraph(artifacts, edges)

    explanation = explain_path(graph, "config:package.json", "db:table:users")

    assert explanation.hops == [
        "configuration:package.json --dependency_affects_api(85%)--> api:api/users.yaml",
        "api:api/users.yaml --api_uses_table(90%)--> database:db/001.sql",
    ]
    assert explanation.confidence == pytest.approx(0.85)
    assert explain_path(graph, "db:table:users", "config:package.json") is None
    assert explain_path(graph, "config:package.json", "db:table:users", max_depth=1) is None


def test_analyze_attaches_graph_metrics() -> None:
    artifacts = _chain()
    edges = [
        _make_edge("config:package.json", "api:GET:/users", 0.9),
        _make_edge("api:GET:/users", "db:table:users", 0.8),
        _make_edge("config:package.json", "db:table:users", 0.3),
    ]

    analysis = GraphAnalyzer().analyze(artifacts, edges)
    config, api, db = artifacts

    assert [r.artifact_id for r in analysis.root_causes] == ["config:package.json"]
    assert config.root_cause is analysis.root_causes[0]
    assert config.graph_metrics.is_root_cause
    assert config.graph_metrics.blast_radius == 2
    assert config.graph_metrics.path_depth == 0
    assert config.graph_metrics.path_confidence == 0.9
    assert db.graph_metrics.path_depth == 2
    assert db.graph_metrics.path_confidence == pytest.approx(0.8)
    assert db.impact_path.source_id == "config:package.json"
    assert api.graph_metrics.impact_by_relationship_kind == {"api": 1, "database": 1}
    assert analysis.explain("config:package.json", "db:table:users") is not None


def test_analyze_without_graph_metrics_still_finds_root_causes() -> None:
    artifacts = _chain()
    edges = [_make_edge("config:package.json", "api:GET:/users")]

    analysis = GraphAnalyzer(GraphOptions(enabled=False)).analyze(artifacts, edges)

    assert len(analysis.root_causes) == 1
    assert not analysis.metrics_enabled
    assert all(a.graph_metrics is None for a in artifacts)


def test_analyze_skips_metrics_over_size_limit(caplog) -> None:
    artifacts = _chain()
    edges = [_make_edge("config:package.json", "api:GET:/users")]

    with caplog.at_level(logging.WARNING):
        analysis = GraphAnalyzer(GraphOptions(node_limit=2)).analyze(artifacts, edges)

    assert not analysis.metrics_enabled
    assert artifacts[0].graph_metrics is None
    assert "exceeds limits" in caplog.text
