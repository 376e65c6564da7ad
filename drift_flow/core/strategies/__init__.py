"""
Correlation strategies.

Each strategy is an independent object satisfying ``CorrelationStrategy``;
the engine composes them as a plain list. Cheap (``low`` budget) strategies
score every pair, the rest only score the pruned candidate set.
"""

from typing import List

from drift_flow.core.config import CorrelationConfig
from drift_flow.core.strategies.base import CorrelationStrategy, should_skip
from drift_flow.core.strategies.dependency import DependencyStrategy
from drift_flow.core.strategies.entity import EntityStrategy
from drift_flow.core.strategies.infrastructure import InfrastructureStrategy
from drift_flow.core.strategies.operation import OperationStrategy
from drift_flow.core.strategies.temporal import TemporalStrategy

STRATEGY_TYPES = (
    EntityStrategy,
    OperationStrategy,
    InfrastructureStrategy,
    DependencyStrategy,
    TemporalStrategy,
)


def build_strategies(config: CorrelationConfig) -> List[CorrelationStrategy]:
    """Instantiate every built-in strategy with its configured weight, budget and enablement."""
    strategies: List[CorrelationStrategy] = []
    for strategy_type in STRATEGY_TYPES:
        options = config.strategy_options(strategy_type.name)
        strategies.append(
            strategy_type(weight=options.weight, enabled=options.enabled, budget=options.budget)
        )
    return strategies


__all__ = [
    "CorrelationStrategy",
    "DependencyStrategy",
    "EntityStrategy",
    "InfrastructureStrategy",
    "OperationStrategy",
    "TemporalStrategy",
    "build_strategies",
    "should_skip",
]
