from __future__ import annotations

from drift_flow.core.config import CorrelationConfig, CorrelationRule
from drift_flow.core.models import CorrelationEdge, DriftArtifact, GraphMetrics, LayerType, Severity
from drift_flow.core.risk_escalator import CRITICAL_ENFORCED, CRITICAL_LOCKED, escalate

CONFIG = CorrelationConfig()


def _make_artifact(severity: Severity = Severity.LOW, changes=None, artifact_id: str = "db:table:users") -> DriftArtifact:
    return DriftArtifact(
        layer_type=LayerType.DATABASE,
        severity=severity,
        file="migrations/002.sql",
        changes=changes or ["ALTER TABLE users ADD COLUMN email text"],
        artifact_id=artifact_id,
    )


def _make_edge(other: str, score: float, relationship: str = "api_uses_table", user_defined: bool = False,
               description: str = None) -> CorrelationEdge:
    rule = CorrelationRule(type="api_to_db", source=other, target="users", description=description) if user_defined else None
    return CorrelationEdge(
        source_id=other,
        target_id="db:table:users",
        relationships={relationship},
        final_score=1.0 if user_defined else score,
        user_defined=user_defined,
        rule=rule,
    )


def _make_metrics(**overrides) -> GraphMetrics:
    values = dict(
        blast_radius=1,
        risk_score=0.3,
        path_confidence=0.6,
        path_depth=1,
        is_root_cause=False,
        impact_by_relationship_kind={"api": 1},
    )
    values.update(overrides)
    return GraphMetrics(**values)


def test_two_hard_links_raise_low_to_medium() -> None:
    artifact = _make_artifact()
    edges = [_make_edge("api:GET:/users", 0.85), _make_edge("api:POST:/users", 0.82)]

    escalate(artifact, edges, CONFIG)

    assert artifact.severity is Severity.MEDIUM
    assert any("2" in line and "cross-layer components" in line for line in artifact.reasoning)
    assert artifact.correlation_impact.hard_link_count == 2
    assert artifact.correlation_impact.cascade_component_count == 2


def test_summary_lines_follow_an_upgrade() -> None:
    artifact = _make_artifact()
    edges = [
        _make_edge("api:GET:/users", 0.95),
        _make_edge("api:POST:/users", 0.85, relationship="operation_alignment"),
    ]

    escalate(artifact, edges, CONFIG)

    assert "Correlation types: api_uses_table, operation_alignment" in artifact.reasoning
    assert "API endpoints directly depend on affected database tables" in artifact.reasoning
    assert "Database operations align with API CRUD operations" in artifact.reasoning
    assert "1 correlations with confidence ≥ 0.9" in artifact.reasoning


def test_three_components_raise_medium_to_high() -> None:
    artifact = _make_artifact(Severity.MEDIUM)
    edges = [_make_edge(f"api:GET:/r{i}", 0.85) for i in range(3)]

    escalate(artifact, edges, CONFIG)

    assert artifact.severity is Severity.HIGH
    assert "Upgraded from medium to high severity: affects 3 cross-layer components" in artifact.reasoning


def test_soft_links_never_cascade() -> None:
    low = _make_artifact()
    escalate(low, [_make_edge("api:GET:/users", 0.6), _make_edge("api:POST:/users", 0.6)], CONFIG)

    medium = _make_artifact(Severity.MEDIUM)
    escalate(medium, [_make_edge(f"api:GET:/r{i}", 0.6) for i in range(3)], CONFIG)

    assert low.severity is Severity.LOW
    assert low.correlation_impact.soft_link_count == 2
    assert low.correlation_impact.cascade_component_count == 0
    assert medium.severity is Severity.MEDIUM
    assert medium.reasoning == []


def test_weak_links_are_ignored() -> None:
    artifact = _make_artifact()
    edges = [_make_edge("api:GET:/users", 0.5), _make_edge("api:POST:/users", 0.4)]

    escalate(artifact, edges, CONFIG)

    assert artifact.severity is Severity.LOW
    assert artifact.reasoning == []
    assert artifact.correlation_impact.correlations_considered == 0


def test_user_defined_low_to_medium() -> None:
    artifact = _make_artifact()
    edges = [_make_edge("api:GET:/users", 1.0, user_defined=True, description="Users API owns this table")]

    escalate(artifact, edges, CONFIG)

    assert artifact.severity is Severity.MEDIUM
    assert "Upgraded from low to medium severity: 1 user-defined correlation(s) detected" in artifact.reasoning
    assert "User-defined: Users API owns this table" in artifact.reasoning


def test_user_defined_medium_needs_two_links() -> None:
    one = _make_artifact(Severity.MEDIUM)
    escalate(one, [_make_edge("api:GET:/users", 1.0, user_defined=True)], CONFIG)

    two = _make_artifact(Severity.MEDIUM)
    escalate(
        two,
        [_make_edge("api:GET:/users", 1.0, user_defined=True), _make_edge("api:POST:/users", 1.0, user_defined=True)],
        CONFIG,
    )

    assert one.severity is Severity.MEDIUM
    assert two.severity is Severity.HIGH


def test_critical_change_is_pinned_high() -> None:
    artifact = DriftArtifact(
        layer_type=LayerType.INFRASTRUCTURE,
        severity=Severity.LOW,
        changes=["SECURITY_GROUP_DELETION: sg-0abc"],
        artifact_id="iac:resource:sg-0abc",
    )

    escalate(artifact, [], CONFIG)
    assert artifact.severity is Severity.HIGH
    assert artifact.reasoning == [CRITICAL_ENFORCED]

    escalate(artifact, [], CONFIG)
    assert artifact.severity is Severity.HIGH


def test_critical_high_artifact_with_user_link_is_locked() -> None:
    artifact = _make_artifact(Severity.HIGH, changes=["DROP TABLE users"])

    escalate(artifact, [_make_edge("api:GET:/users", 1.0, user_defined=True)], CONFIG)

    assert artifact.severity is Severity.HIGH
    assert artifact.reasoning == [CRITICAL_LOCKED]


def test_severity_never_decreases() -> None:
    artifact = _make_artifact(Severity.HIGH)

    escalate(artifact, [], CONFIG)
    escalate(artifact, [_make_edge("api:GET:/users", 0.6)], CONFIG)

    assert artifact.severity is Severity.HIGH
    assert artifact.reasoning == []


def test_graph_root_cause_raises_one_level_per_run() -> None:
    artifact = _make_artifact()
    artifact.graph_metrics = _make_metrics(is_root_cause=True, blast_radius=3, path_depth=0, path_confidence=0.9)

    escalate(artifact, [_make_edge("api:GET:/users", 0.9)], CONFIG)

    assert artifact.severity is Severity.MEDIUM
    assert artifact.reasoning[0] == "Upgraded from low to medium severity: root cause impacting 3 artifact(s)"
    assert not any("medium to high" in line for line in artifact.reasoning)


def test_graph_root_cause_with_wide_blast_radius_raises_medium_to_high() -> None:
    artifact = _make_artifact(Severity.MEDIUM)
    artifact.graph_metrics = _make_metrics(is_root_cause=True, blast_radius=3, path_depth=0)

    escalate(artifact, [_make_edge("api:GET:/users", 0.9)], CONFIG)

    assert artifact.severity is Severity.HIGH
    assert artifact.reasoning[0] == "Upgraded from medium to high severity: root cause with blast radius 3"


def test_confident_impact_path_uses_blast_radius() -> None:
    artifact = _make_artifact()
    artifact.graph_metrics = _make_metrics(blast_radius=2, path_confidence=0.95)

    escalate(artifact, [_make_edge("api:GET:/users", 0.6)], CONFIG)

    assert artifact.severity is Severity.MEDIUM
    assert artifact.correlation_impact.cascade_component_count == 0
    assert "Upgraded from low to medium severity: impact path confidence 0.95 across 2 components" in artifact.reasoning


def test_graph_risk_score_escalates_to_high() -> None:
    artifact = _make_artifact(Severity.MEDIUM)
    artifact.graph_metrics = _make_metrics(risk_score=0.8, impact_by_relationship_kind={"api": 2, "database": 1})

    escalate(artifact, [_make_edge("api:GET:/users", 0.7)], CONFIG)

    assert artifact.severity is Severity.HIGH
    assert "Upgraded to high severity: blast radius risk score 0.80" in artifact.reasoning
    assert "Cross-layer impact: api:2, database:1" in artifact.reasoning


def test_graph_metrics_take_precedence_over_link_counting() -> None:
    artifact = _make_artifact()
    artifact.graph_metrics = _make_metrics()
    edges = [_make_edge("api:GET:/users", 0.85), _make_edge("api:POST:/users", 0.82)]

    escalate(artifact, edges, CONFIG)

    assert artifact.severity is Severity.LOW
    assert artifact.correlation_impact.graph_metrics is artifact.graph_metrics
