import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from drift_flow.core.correlation_config import (
    DEFAULT_BLOCK_MIN,
    DEFAULT_CORRELATE_MIN,
    DEFAULT_GRAPH_EDGE_LIMIT,
    DEFAULT_GRAPH_ENABLED,
    DEFAULT_GRAPH_MAX_DEPTH,
    DEFAULT_GRAPH_NODE_LIMIT,
    DEFAULT_GRAPH_PATH_AGGREGATION,
    DEFAULT_MAX_PAIRS_HIGH_COST,
    DEFAULT_STRATEGY_SETTINGS,
    DEFAULT_STRATEGY_WEIGHT,
    DEFAULT_TOP_K_PER_SOURCE,
    VALID_BUDGETS,
    VALID_PATH_AGGREGATIONS,
    VALID_RULE_TYPES,
)

DEFAULT_CONFIG_PATH = "driftflow.config.yaml"


def _clamp_unit(value: Any, name: str, default: float) -> float:
    """Coerce ``value`` into [0, 1], falling back to ``default`` when it is not a number."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        logging.warning(f"Invalid value for {name}: {value!r}, using default {default}")
        return default
    if math.isnan(number):
        logging.warning(f"Invalid value for {name}: NaN, using default {default}")
        return default
    if number < 0.0 or number > 1.0:
        clamped = min(1.0, max(0.0, number))
        logging.warning(f"{name}={number} is outside [0, 1], clamped to {clamped}")
        return clamped
    return number


def _positive_int(value: Any, name: str, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        logging.warning(f"Invalid value for {name}: {value!r}, using default {default}")
        return default
    if number < 1:
        logging.warning(f"{name}={number} must be >= 1, using default {default}")
        return default
    return number


def _flag(value: Any, name: str, default: Optional[bool]) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    logging.warning(f"Invalid value for {name}: {value!r}, expected true/false, using default {default}")
    return default


class StrategyOptions(BaseModel):
    """
    Per-strategy overrides. ``None`` means "use the strategy's own default",
    so a bare weight in YAML does not reset a strategy's budget or enablement.
    """
    weight: Optional[float] = None
    enabled: Optional[bool] = None
    budget: Optional[str] = None

    @field_validator("weight", mode="before")
    @classmethod
    def clamp_weight(cls, v):
        if v is None:
            return None
        return _clamp_unit(v, "strategy weight", DEFAULT_STRATEGY_WEIGHT)

    @field_validator("enabled", mode="before")
    @classmethod
    def check_enabled(cls, v):
        if v is None:
            return None
        return _flag(v, "strategy enabled", None)

    @field_validator("budget", mode="before")
    @classmethod
    def check_budget(cls, v):
        if v is None:
            return None
        budget = str(v).lower()
        if budget not in VALID_BUDGETS:
            logging.warning(f"Unknown strategy budget {v!r}, keeping the strategy default")
            return None
        return budget


class Thresholds(BaseModel):
    correlate_min: float = DEFAULT_CORRELATE_MIN
    block_min: float = DEFAULT_BLOCK_MIN

    @field_validator("correlate_min", mode="before")
    @classmethod
    def clamp_correlate_min(cls, v):
        return _clamp_unit(v, "thresholds.correlate_min", DEFAULT_CORRELATE_MIN)

    @field_validator("block_min", mode="before")
    @classmethod
    def clamp_block_min(cls, v):
        return _clamp_unit(v, "thresholds.block_min", DEFAULT_BLOCK_MIN)

    @model_validator(mode="after")
    def check_ordering(self):
        if self.correlate_min > self.block_min:
            logging.warning(
                f"thresholds.correlate_min ({self.correlate_min}) exceeds block_min ({self.block_min}), "
                f"using defaults {DEFAULT_CORRELATE_MIN}/{DEFAULT_BLOCK_MIN}"
            )
            self.correlate_min = DEFAULT_CORRELATE_MIN
            self.block_min = DEFAULT_BLOCK_MIN
        return self


class Limits(BaseModel):
    top_k_per_source: int = DEFAULT_TOP_K_PER_SOURCE
    max_pairs_high_cost: int = DEFAULT_MAX_PAIRS_HIGH_COST

    @field_validator("top_k_per_source", mode="before")
    @classmethod
    def check_top_k(cls, v):
        return _positive_int(v, "limits.top_k_per_source", DEFAULT_TOP_K_PER_SOURCE)

    @field_validator("max_pairs_high_cost", mode="before")
    @classmethod
    def check_max_pairs(cls, v):
        return _positive_int(v, "limits.max_pairs_high_cost", DEFAULT_MAX_PAIRS_HIGH_COST)


class GraphOptions(BaseModel):
    enabled: bool = DEFAULT_GRAPH_ENABLED
    max_depth: int = DEFAULT_GRAPH_MAX_DEPTH
    path_aggregation: str = DEFAULT_GRAPH_PATH_AGGREGATION  # min | product
    node_limit: int = DEFAULT_GRAPH_NODE_LIMIT
    edge_limit: int = DEFAULT_GRAPH_EDGE_LIMIT

    @field_validator("enabled", mode="before")
    @classmethod
    def check_enabled(cls, v):
        return _flag(v, "graph.enabled", DEFAULT_GRAPH_ENABLED)

    @field_validator("max_depth", mode="before")
    @classmethod
    def check_max_depth(cls, v):
        return _positive_int(v, "graph.max_depth", DEFAULT_GRAPH_MAX_DEPTH)

    @field_validator("node_limit", mode="before")
    @classmethod
    def check_node_limit(cls, v):
        return _positive_int(v, "graph.node_limit", DEFAULT_GRAPH_NODE_LIMIT)

    @field_validator("edge_limit", mode="before")
    @classmethod
    def check_edge_limit(cls, v):
        return _positive_int(v, "graph.edge_limit", DEFAULT_GRAPH_EDGE_LIMIT)

    @field_validator("path_aggregation", mode="before")
    @classmethod
    def check_aggregation(cls, v):
        aggregation = str(v).lower()
        if aggregation not in VALID_PATH_AGGREGATIONS:
            logging.warning(f"Unknown graph.path_aggregation {v!r}, using {DEFAULT_GRAPH_PATH_AGGREGATION}")
            return DEFAULT_GRAPH_PATH_AGGREGATION
        return aggregation


class CorrelationRule(BaseModel):
    """A user-authored explicit link or ignore directive."""
    type: str = "generic"
    source: str
    target: str
    description: Optional[str] = None
    reason: Optional[str] = None
    confidence: float = 1.0

    @field_validator("type", mode="before")
    @classmethod
    def check_type(cls, v):
        rule_type = str(v or "generic").lower()
        if rule_type not in VALID_RULE_TYPES:
            logging.warning(f"Unknown correlation rule type {v!r}, treating it as 'generic'")
            return "generic"
        return rule_type

    @field_validator("source", "target", mode="before")
    @classmethod
    def check_token(cls, v):
        if v is None or not str(v).strip():
            raise ValueError("Rule source and target must be non-empty")
        return str(v).strip()

    @field_validator("description", "reason", mode="before")
    @classmethod
    def check_text(cls, v):
        if v is None or isinstance(v, str):
            return v
        logging.warning(f"Ignoring non-text rule description/reason: {v!r}")
        return None

    @model_validator(mode="after")
    def fix_confidence(self):
        # Explicit links are certain by definition; ignore rules carry no score.
        self.confidence = 0.0 if self.is_ignore else 1.0
        return self

    @property
    def is_ignore(self) -> bool:
        return self.type == "ignore"


class CorrelationConfig(BaseModel):
    """
    Central configuration model for the correlation engine.
    """
    model_config = ConfigDict(extra="allow")

    correlation_rules: List[CorrelationRule] = Field(default_factory=list)
    strategy_weights: Dict[str, StrategyOptions] = Field(default_factory=dict)
    thresholds: Thresholds = Field(default_factory=Thresholds)
    limits: Limits = Field(default_factory=Limits)
    graph: GraphOptions = Field(default_factory=GraphOptions)

    @field_validator("correlation_rules", mode="before")
    @classmethod
    def drop_invalid_rules(cls, v):
        if v is None:
            return []
        if not isinstance(v, list):
            logging.warning("correlation_rules must be a list, ignoring it")
            return []
        rules = []
        for raw in v:
            if isinstance(raw, CorrelationRule):
                rules.append(raw)
                continue
            if not isinstance(raw, dict) or not raw.get("source") or not raw.get("target"):
                logging.warning(f"Skipping correlation rule without source/target: {raw!r}")
                continue
            try:
                rules.append(CorrelationRule.model_validate(raw))
            except ValidationError as e:
                logging.warning(f"Skipping invalid correlation rule {raw!r}: {e}")
        return rules

    @field_validator("strategy_weights", mode="before")
    @classmethod
    def expand_bare_weights(cls, v):
        if v is None:
            return {}
        if not isinstance(v, dict):
            logging.warning("strategy_weights must be a mapping, ignoring it")
            return {}
        expanded: Dict[str, Any] = {}
        for name, options in v.items():
            if isinstance(options, (int, float)) and not isinstance(options, bool):
                expanded[str(name)] = {"weight": options}
            elif isinstance(options, (dict, StrategyOptions)):
                expanded[str(name)] = options
            else:
                logging.warning(f"Ignoring strategy_weights entry for {name!r}: {options!r}")
        return expanded

    @field_validator("thresholds", "limits", "graph", mode="before")
    @classmethod
    def none_to_defaults(cls, v, info):
        if v is None:
            return {}
        if not isinstance(v, (dict, BaseModel)):
            logging.warning(f"{info.field_name} must be a mapping, got {v!r}, using defaults")
            return {}
        return v

    def strategy_options(self, name: str) -> StrategyOptions:
        """Resolved options for a strategy: user overrides on top of the built-in defaults."""
        budget, enabled = DEFAULT_STRATEGY_SETTINGS.get(name, ("low", True))
        override = self.strategy_weights.get(name, StrategyOptions())
        return StrategyOptions(
            weight=override.weight if override.weight is not None else DEFAULT_STRATEGY_WEIGHT,
            enabled=override.enabled if override.enabled is not None else enabled,
            budget=override.budget or budget,
        )

    @property
    def explicit_rules(self) -> List[CorrelationRule]:
        return [rule for rule in self.correlation_rules if not rule.is_ignore]


def load_config(
    config_path: Optional[str] = None,
    cli_args: Optional[Dict[str, Any]] = None
) -> CorrelationConfig:
    """
    Load correlation configuration from file and overrides.

    Priority:
    1. CLI Arguments (if provided and not None)
    2. Config File (if provided or found at default path)
    3. Default Values

    Args:
        config_path: Path to the YAML config file. If None, tries 'driftflow.config.yaml'.
        cli_args: Dictionary of top-level config keys to override.

    Returns:
        CorrelationConfig: The resolved configuration object.
    """
    config_data: Dict[str, Any] = {}

    target_path = config_path if config_path else DEFAULT_CONFIG_PATH
    path_obj = Path(target_path)

    if path_obj.exists() and path_obj.is_file():
        try:
            with open(path_obj, 'r', encoding='utf-8') as f:
                file_data = yaml.safe_load(f)
            if isinstance(file_data, dict):
                config_data.update(file_data)
            elif file_data is not None:
                logging.warning(f"Config file {target_path} does not contain a mapping, using defaults.")
            logging.info(f"Loaded correlation configuration from {target_path}")
        except (OSError, yaml.YAMLError) as e:
            logging.warning(f"Failed to load config file {target_path}: {e}")
    elif config_path:
        logging.warning(f"Config file not found at explicit path: {config_path}")
    else:
        logging.info(f"No config file found at {DEFAULT_CONFIG_PATH}, using defaults.")

    if cli_args:
        for key, value in cli_args.items():
            if value is not None:
                config_data[key] = value

    return CorrelationConfig(**config_data)
