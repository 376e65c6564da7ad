"""
Cross-layer drift correlation.

The typical entry point is ``CorrelationEngine``:

    from drift_flow.core import CorrelationEngine, load_config

    result = CorrelationEngine(load_config()).run(artifacts)

The individual pipeline stages (normalization, rules, strategies,
aggregation, graph analysis, escalation) are importable on their own.
"""

from .config import CorrelationConfig, CorrelationRule, load_config
from .models import (
    CascadeImpact,
    CorrelationEdge,
    DriftArtifact,
    Evidence,
    GraphMetrics,
    LayerType,
    RootCauseRecord,
    Severity,
    Signal,
)
from .artifacts import normalize, pair_key
from .entity_matcher import best_match, variations
from .rules import resolve
from .aggregator import aggregate
from .graph_analyzer import GraphAnalyzer, find_root_causes
from .risk_escalator import escalate
from .correlation_engine import CorrelationEngine, CorrelationResult
from .report import CorrelationReportBuilder

__all__ = [
    "CascadeImpact",
    "CorrelationConfig",
    "CorrelationEdge",
    "CorrelationEngine",
    "CorrelationReportBuilder",
    "CorrelationResult",
    "CorrelationRule",
    "DriftArtifact",
    "Evidence",
    "GraphAnalyzer",
    "GraphMetrics",
    "LayerType",
    "RootCauseRecord",
    "Severity",
    "Signal",
    "aggregate",
    "best_match",
    "escalate",
    "find_root_causes",
    "load_config",
    "normalize",
    "pair_key",
    "resolve",
    "variations",
]
