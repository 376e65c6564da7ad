"""Default configuration values for cross-layer correlation."""

DEFAULT_CORRELATE_MIN = 0.55
DEFAULT_BLOCK_MIN = 0.80
DEFAULT_TOP_K_PER_SOURCE = 3
DEFAULT_MAX_PAIRS_HIGH_COST = 100

DEFAULT_GRAPH_ENABLED = True
DEFAULT_GRAPH_MAX_DEPTH = 3
DEFAULT_GRAPH_PATH_AGGREGATION = "min"  # min | product
DEFAULT_GRAPH_NODE_LIMIT = 2000
DEFAULT_GRAPH_EDGE_LIMIT = 6000

DEFAULT_STRATEGY_WEIGHT = 1.0
VALID_BUDGETS = ("low", "medium", "high")
VALID_RULE_TYPES = ("api_to_db", "iac_to_config", "ignore", "generic")
VALID_PATH_AGGREGATIONS = ("min", "product")

# name -> (budget, enabled)
DEFAULT_STRATEGY_SETTINGS = {
    "entity": ("low", True),
    "operation": ("low", True),
    "infrastructure": ("medium", True),
    "dependency": ("medium", True),
    "temporal": ("medium", False),
}

MAX_EDGE_EVIDENCE = 5
EVIDENCE_PER_SIGNAL = 2
HIGH_CONFIDENCE_SCORE = 0.9
