"""
Root-cause detection and impact analysis over the correlation graph.

Artifacts are nodes and correlation edges are directed links from the
artifact a strategy saw as the cause to the one it affects. Root causes are
found from degrees alone; the networkx graph is only built when graph
metrics are enabled.
"""

from __future__ import annotations

import logging
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import networkx as nx

from drift_flow.core.config import GraphOptions
from drift_flow.core.correlation_config import (
    DEFAULT_CORRELATE_MIN,
    DEFAULT_GRAPH_MAX_DEPTH,
    DEFAULT_GRAPH_PATH_AGGREGATION,
)
from drift_flow.core.models import (
    CorrelationEdge,
    DriftArtifact,
    GraphMetrics,
    ImpactPath,
    RootCauseRecord,
)

RISK_KINDS = ("api", "database", "infrastructure")


def find_root_causes(edges: List[CorrelationEdge], artifacts: List[DriftArtifact]) -> List[RootCauseRecord]:
    """
    Artifacts with outgoing but no incoming edges are root causes. When every
    artifact has an incoming edge, the one with the best ``out - 0.5 * in``
    balance is reported as the single likely root cause.
    """
    out_degree = Counter(edge.source_id for edge in edges)
    in_degree = Counter(edge.target_id for edge in edges)

    ordered_ids = list(dict.fromkeys([a.artifact_id for a in artifacts] + [e.source_id for e in edges]))

    roots = [
        RootCauseRecord(
            artifact_id=artifact_id,
            kind="root_cause",
            confidence=round(min(0.9, 0.6 + 0.1 * out_degree[artifact_id]), 2),
        )
        for artifact_id in ordered_ids
        if in_degree[artifact_id] == 0 and out_degree[artifact_id] > 0
    ]
    if roots or not edges:
        return roots

    best_id = None
    best_score = 0.0
    for artifact_id in ordered_ids:
        score = out_degree[artifact_id] - 0.5 * in_degree[artifact_id]
        if score > best_score:
            best_id, best_score = artifact_id, score
    if best_id is None:
        return []
    return [
        RootCauseRecord(
            artifact_id=best_id,
            kind="likely_root_cause",
            confidence=round(min(0.7, 0.4 + 0.1 * best_score), 2),
        )
    ]


class ArtifactGraph:
    """Directed artifact graph keeping only edges at or above ``min_score``."""

    def __init__(self, artifacts: Iterable[DriftArtifact], edges: Iterable[CorrelationEdge], min_score: float = 0.0):
        self.graph = nx.DiGraph()
        for artifact in artifacts:
            if artifact.artifact_id in self.graph:
                continue
            self.graph.add_node(
                artifact.artifact_id,
                kind=artifact.layer_type.value,
                file=artifact.file,
                severity=artifact.severity.value,
            )
        for edge in edges:
            if edge.final_score < min_score:
                continue
            for node in (edge.source_id, edge.target_id):
                if node not in self.graph:
                    self.graph.add_node(node, kind=node.split(":", 1)[0], file=None, severity="low")
            self.graph.add_edge(
                edge.source_id,
                edge.target_id,
                confidence=edge.final_score,
                label=edge.relationship,
            )

    @property
    def node_count(self) -> int:
        return self.graph.number_of_nodes()

    @property
    def edge_count(self) -> int:
        return self.graph.number_of_edges()

    def within_limits(self, node_limit: int, edge_limit: int) -> bool:
        return self.node_count <= node_limit and self.edge_count <= edge_limit

    def kind(self, node: str) -> str:
        return self.graph.nodes[node].get("kind", "unknown")

    def describe(self, node: str) -> str:
        data = self.graph.nodes[node]
        return f"{data.get('kind', 'unknown')}:{data.get('file') or node}"

    def strongest_outgoing(self, node: str) -> float:
        return max((data["confidence"] for _, _, data in self.graph.out_edges(node, data=True)), default=0.0)


@dataclass
class BlastRadius:
    total: int
    by_kind: Dict[str, int] = field(default_factory=dict)
    by_severity: Dict[str, int] = field(default_factory=dict)
    risk_score: float = 0.0


@dataclass
class PathExplanation:
    path: List[str]
    confidence: float
    hops: List[str]

    @property
    def text(self) -> str:
        return "\n".join(self.hops)


def _combine(current: float, edge_confidence: float, aggregation: str) -> float:
    if aggregation == "product":
        return current * edge_confidence
    return min(current, edge_confidence)


def impacted_nodes(
    graph: ArtifactGraph,
    sources: Iterable[str],
    max_depth: int = DEFAULT_GRAPH_MAX_DEPTH,
    min_confidence: float = DEFAULT_CORRELATE_MIN,
    aggregation: str = DEFAULT_GRAPH_PATH_AGGREGATION,
) -> Dict[str, ImpactPath]:
    """Breadth-first walk from ``sources`` keeping the best path confidence for every reachable artifact."""
    source_ids = [s for s in sources if s in graph.graph]
    excluded = set(source_ids)
    best: Dict[str, ImpactPath] = {}
    queue = deque((source, 1.0, 0, [source]) for source in source_ids)

    while queue:
        node, confidence, depth, path = queue.popleft()
        if depth >= max_depth:
            continue
        for _, neighbor, data in graph.graph.out_edges(node, data=True):
            if neighbor in excluded or neighbor in path:
                continue
            edge_confidence = data["confidence"]
            if edge_confidence < min_confidence:
                continue
            combined = _combine(confidence, edge_confidence, aggregation)
            if combined < min_confidence:
                continue
            current = best.get(neighbor)
            if current is not None and (
                combined < current.confidence
                or (combined == current.confidence and depth + 1 >= current.depth)
            ):
                continue
            new_path = path + [neighbor]
            best[neighbor] = ImpactPath(source_id=new_path[0], confidence=combined, depth=depth + 1, path=new_path)
            queue.append((neighbor, combined, depth + 1, new_path))
    return best


def blast_radius(graph: ArtifactGraph, impacted: Dict[str, ImpactPath]) -> BlastRadius:
    by_kind: Dict[str, int] = {}
    by_severity: Dict[str, int] = {}
    for node in impacted:
        data = graph.graph.nodes[node]
        kind = data.get("kind", "unknown")
        severity = data.get("severity", "low")
        by_kind[kind] = by_kind.get(kind, 0) + 1
        by_severity[severity] = by_severity.get(severity, 0) + 1

    weighted = sum(count for kind, count in by_kind.items() if kind in RISK_KINDS)
    risk = min(1.0, 0.2 * len(by_kind) + 0.3 * weighted)
    return BlastRadius(total=len(impacted), by_kind=by_kind, by_severity=by_severity, risk_score=round(risk, 2))


def explain_path(
    graph: ArtifactGraph,
    source: str,
    target: str,
    max_depth: int = DEFAULT_GRAPH_MAX_DEPTH,
    min_confidence: float = DEFAULT_CORRELATE_MIN,
) -> Optional[PathExplanation]:
    """Shortest path from ``source`` to ``target`` over edges at or above ``min_confidence``."""
    g = graph.graph
    view = nx.subgraph_view(g, filter_edge=lambda u, v: g[u][v]["confidence"] >= min_confidence)
    try:
        path = nx.shortest_path(view, source, target)
    except (nx.NetworkXNoPath, nx.NodeNotFound):
        return None
    if len(path) - 1 > max_depth or len(path) < 2:
        return None

    hops: List[str] = []
    confidence = 1.0
    for u, v in zip(path, path[1:]):
        data = g[u][v]
        confidence = min(confidence, data["confidence"])
        hops.append(f"{graph.describe(u)} --{data['label']}({data['confidence']:.0%})--> {graph.describe(v)}")
    return PathExplanation(path=path, confidence=confidence, hops=hops)


@dataclass
class GraphAnalysis:
    root_causes: List[RootCauseRecord]
    graph: Optional[ArtifactGraph] = None
    impacts: Dict[str, Dict[str, ImpactPath]] = field(default_factory=dict)
    blast: Dict[str, BlastRadius] = field(default_factory=dict)
    max_depth: int = DEFAULT_GRAPH_MAX_DEPTH
    min_confidence: float = DEFAULT_CORRELATE_MIN

    @property
    def metrics_enabled(self) -> bool:
        return self.graph is not None

    def explain(self, source: str, target: str) -> Optional[PathExplanation]:
        if self.graph is None:
            return None
        return explain_path(self.graph, source, target, self.max_depth, self.min_confidence)


@dataclass
class GraphAnalyzer:
    options: GraphOptions = field(default_factory=GraphOptions)
    correlate_min: float = DEFAULT_CORRELATE_MIN

    def analyze(self, artifacts: List[DriftArtifact], edges: List[CorrelationEdge]) -> GraphAnalysis:
        relevant = [edge for edge in edges if edge.final_score >= self.correlate_min]
        root_causes = find_root_causes(relevant, artifacts)

        by_id: Dict[str, List[DriftArtifact]] = {}
        for artifact in artifacts:
            by_id.setdefault(artifact.artifact_id, []).append(artifact)
        for record in root_causes:
            for artifact in by_id.get(record.artifact_id, []):
                artifact.root_cause = record

        analysis = GraphAnalysis(
            root_causes=root_causes,
            max_depth=self.options.max_depth,
            min_confidence=self.correlate_min,
        )
        if not self.options.enabled:
            return analysis

        graph = ArtifactGraph(artifacts, relevant, self.correlate_min)
        if not graph.within_limits(self.options.node_limit, self.options.edge_limit):
            logging.warning(
                "Drift graph: %d nodes / %d edges exceeds limits (%d / %d), skipping graph metrics",
                graph.node_count, graph.edge_count, self.options.node_limit, self.options.edge_limit,
            )
            return analysis
        analysis.graph = graph

        metrics: Dict[str, GraphMetrics] = {}
        paths: Dict[str, ImpactPath] = {}
        for record in root_causes:
            impacted = impacted_nodes(
                graph,
                [record.artifact_id],
                max_depth=self.options.max_depth,
                min_confidence=self.correlate_min,
                aggregation=self.options.path_aggregation,
            )
            radius = blast_radius(graph, impacted)
            analysis.impacts[record.artifact_id] = impacted
            analysis.blast[record.artifact_id] = radius

            metrics[record.artifact_id] = GraphMetrics(
                blast_radius=radius.total,
                risk_score=radius.risk_score,
                path_confidence=graph.strongest_outgoing(record.artifact_id),
                path_depth=0,
                is_root_cause=True,
                impact_by_relationship_kind=dict(radius.by_kind),
            )
            for node, path in impacted.items():
                if node in metrics and (metrics[node].is_root_cause or metrics[node].path_confidence >= path.confidence):
                    continue
                metrics[node] = GraphMetrics(
                    blast_radius=radius.total,
                    risk_score=radius.risk_score,
                    path_confidence=path.confidence,
                    path_depth=path.depth,
                    is_root_cause=False,
                    impact_by_relationship_kind=dict(radius.by_kind),
                )
                paths[node] = path

        for artifact_id, artifact_metrics in metrics.items():
            for artifact in by_id.get(artifact_id, []):
                artifact.graph_metrics = artifact_metrics
                artifact.impact_path = paths.get(artifact_id)

        logging.info(
            "Drift graph: nodes=%d edges=%d root_causes=%d impacted=%d",
            graph.node_count, graph.edge_count, len(root_causes), len(paths),
        )
        return analysis
