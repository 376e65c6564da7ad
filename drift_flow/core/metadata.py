"""
Metadata extraction for drift artifacts.

One pure function per layer variant scans an artifact's change text for
entities, CRUD operations, fields and dependencies. The result is derived
data: strategies use it as hints, nothing treats it as authoritative.
"""

import re
from typing import Callable, Dict, List, Optional, Set, Tuple

from drift_flow.core.models import ArtifactMetadata, DriftArtifact, LayerType

_METHOD_PREFIX = re.compile(r"^\s*(GET|POST|PUT|PATCH|DELETE|HEAD|OPTIONS)\s*[: ]\s*", re.IGNORECASE)
_VERSION_SEGMENT = re.compile(r"^v\d+(\.\d+)*$", re.IGNORECASE)
_PATH_PREFIXES = {"api", "rest"}

_TABLE_PATTERNS: List[Tuple[re.Pattern, float]] = [
    (re.compile(r"CREATE\s+TABLE:?\s+(?:IF\s+NOT\s+EXISTS\s+)?[`\"']?(\w+)[`\"']?", re.IGNORECASE), 1.0),
    (re.compile(r"ALTER\s+TABLE:?\s+(?:IF\s+EXISTS\s+)?[`\"']?(\w+)[`\"']?", re.IGNORECASE), 0.9),
    (re.compile(r"DROP\s+TABLE:?\s+(?:IF\s+EXISTS\s+)?[`\"']?(\w+)[`\"']?", re.IGNORECASE), 1.0),
    (re.compile(r"TRUNCATE(?:\s+TABLE)?:?\s+[`\"']?(\w+)[`\"']?", re.IGNORECASE), 1.0),
    (re.compile(r"UPDATE\s+[`\"']?(\w+)[`\"']?\s+SET", re.IGNORECASE), 0.8),
    (re.compile(r"INSERT\s+INTO\s+[`\"']?(\w+)[`\"']?", re.IGNORECASE), 0.8),
    (re.compile(r"DELETE\s+FROM\s+[`\"']?(\w+)[`\"']?", re.IGNORECASE), 0.8),
    (re.compile(r"FROM\s+[`\"']?(\w+)[`\"']?", re.IGNORECASE), 0.7),
    (re.compile(r"JOIN\s+[`\"']?(\w+)[`\"']?", re.IGNORECASE), 0.7),
]
_SQL_KEYWORDS = {
    "select", "from", "where", "and", "or", "as", "on", "set", "table", "if",
    "exists", "not", "into", "values", "column", "only", "cascade",
}

_COLUMN_PATTERN = re.compile(r"(?:ADD|DROP|ALTER|RENAME)\s+COLUMN\s+(?:IF\s+(?:NOT\s+)?EXISTS\s+)?[`\"']?(\w+)", re.IGNORECASE)
_API_FIELD_PATTERN = re.compile(r"(?:FIELD|PROPERTY|PARAMETER)_[A-Z_]+:\s*([\w.\-]+)")
_DEPENDENCY_PATTERN = re.compile(r"(?:DEPENDENCY(?:_[A-Z]+)?|[A-Z_]*VERSION_(?:BUMP|UPDATE)):\s*([@\w./\-]+)")
_CONFIG_KEY_PATTERN = re.compile(r"(?:CONFIG_KEY|ENV_VAR|PROPERTIES_KEY)_[A-Z]+:\s*([\w.\-]+)")
_RESOURCE_PATTERN = re.compile(r"RESOURCE_[A-Z_]+:\s*(?:[\w:.\-]+\s+-\s+)?([\w.\-]+)")

_API_PATH_OPERATIONS = [
    (re.compile(r"/(create|add|new)\b", re.IGNORECASE), "create"),
    (re.compile(r"/(get|list|search|find)\b", re.IGNORECASE), "read"),
    (re.compile(r"/(update|edit|modify)\b", re.IGNORECASE), "update"),
    (re.compile(r"/(delete|remove)\b", re.IGNORECASE), "delete"),
]
_API_CHANGE_OPERATIONS = [
    (("POST", "CREATE"), "create"),
    (("GET", "READ"), "read"),
    (("PUT", "PATCH", "UPDATE"), "update"),
    (("DELETE", "REMOVE"), "delete"),
]
_DB_OPERATIONS = [
    (re.compile(r"CREATE\s+TABLE|INSERT\s+INTO", re.IGNORECASE), "create"),
    (re.compile(r"\bSELECT\b", re.IGNORECASE), "read"),
    (re.compile(r"\bUPDATE\b|\bALTER\b", re.IGNORECASE), "update"),
    (re.compile(r"\bDELETE\b|\bDROP\b|\bTRUNCATE\b", re.IGNORECASE), "delete"),
]
_IAC_OPERATIONS = [
    ("RESOURCE_ADDITION", "create"),
    ("RESOURCE_MODIFICATION", "update"),
    ("PROPERTY_MODIFIED", "update"),
    ("RESOURCE_DELETION", "delete"),
]


def split_endpoint(endpoint: str) -> Tuple[Optional[str], str]:
    """Split ``"POST:/users"`` or ``"POST /users"`` into ``("POST", "/users")``."""
    if not endpoint:
        return None, ""
    match = _METHOD_PREFIX.match(endpoint)
    if match:
        return match.group(1).upper(), endpoint[match.end():]
    return None, endpoint


def _is_parameter(segment: str) -> bool:
    return segment.startswith("{") or segment.startswith(":") or segment.startswith("<")


def endpoint_entity(endpoint: str) -> Optional[str]:
    """
    Entity name an endpoint path refers to.

    Version segments, the ``api`` prefix and path parameters are dropped and
    the remaining segments joined with ``_``: ``/v1/users/{id}/orders`` names
    ``users_orders``, which is only a partial match for a ``users`` table.
    """
    _, path = split_endpoint(endpoint)
    segments = [s for s in path.strip().strip("/").split("/") if s]
    kept = [
        s.lower() for s in segments
        if not _is_parameter(s) and not _VERSION_SEGMENT.match(s) and s.lower() not in _PATH_PREFIXES
    ]
    return "_".join(kept) or None


def extract_table_names(sql_text: str) -> Dict[str, float]:
    """Table names mentioned in SQL text, mapped to the confidence of the strongest pattern that found them."""
    tables: Dict[str, float] = {}
    for pattern, confidence in _TABLE_PATTERNS:
        for match in pattern.finditer(sql_text):
            name = match.group(1).lower()
            if name in _SQL_KEYWORDS:
                continue
            if tables.get(name, 0.0) < confidence:
                tables[name] = confidence
    return tables


def detect_api_operations(artifact: DriftArtifact) -> List[str]:
    operations: List[str] = []
    paths = [split_endpoint(e)[1] for e in artifact.endpoints]
    if artifact.file:
        paths.append(artifact.file)
    for path in paths:
        for pattern, operation in _API_PATH_OPERATIONS:
            if pattern.search(path):
                operations.append(operation)
    for endpoint in artifact.endpoints:
        method, _ = split_endpoint(endpoint)
        if method:
            operations.extend(_operations_for_text(method))
    for change in artifact.changes:
        operations.extend(_operations_for_text(change))
    return operations


def _operations_for_text(text: str) -> List[str]:
    upper = text.upper()
    return [
        operation for keywords, operation in _API_CHANGE_OPERATIONS
        if any(re.search(rf"\b{keyword}\b", upper) for keyword in keywords)
    ]


def detect_db_operations(sql_text: str) -> List[str]:
    return [operation for pattern, operation in _DB_OPERATIONS if pattern.search(sql_text)]


def _api_metadata(artifact: DriftArtifact) -> ArtifactMetadata:
    entities: List[str] = []
    for endpoint in artifact.endpoints:
        entity = endpoint_entity(endpoint)
        if entity:
            entities.append(entity)
    if not entities and artifact.file:
        entities.extend(p.lower() for p in artifact.file.replace("\\", "/").split("/") if p and "." not in p and len(p) > 2)
    entities.extend(e.lower() for e in artifact.entities)

    fields: List[str] = []
    for change in artifact.changes:
        fields.extend(_API_FIELD_PATTERN.findall(change))

    return ArtifactMetadata(entities=entities, operations=detect_api_operations(artifact), fields=fields)


def _database_metadata(artifact: DriftArtifact) -> ArtifactMetadata:
    sql_text = " ".join(artifact.changes)
    entities = [e.lower() for e in artifact.entities]
    entities.extend(extract_table_names(sql_text))
    return ArtifactMetadata(
        entities=entities,
        operations=detect_db_operations(sql_text),
        fields=[f.lower() for f in _COLUMN_PATTERN.findall(sql_text)],
    )


def _infrastructure_metadata(artifact: DriftArtifact) -> ArtifactMetadata:
    entities = [r.lower() for r in artifact.resources]
    operations: List[str] = []
    for change in artifact.changes:
        entities.extend(r.lower() for r in _RESOURCE_PATTERN.findall(change))
        upper = change.upper()
        operations.extend(operation for marker, operation in _IAC_OPERATIONS if marker in upper)
    return ArtifactMetadata(entities=entities, operations=operations)


def _configuration_metadata(artifact: DriftArtifact) -> ArtifactMetadata:
    dependencies: List[str] = []
    fields: List[str] = []
    for change in artifact.changes:
        dependencies.extend(_DEPENDENCY_PATTERN.findall(change))
        fields.extend(_CONFIG_KEY_PATTERN.findall(change))
    return ArtifactMetadata(dependencies=dependencies, fields=fields)


_EXTRACTORS: Dict[LayerType, Callable[[DriftArtifact], ArtifactMetadata]] = {
    LayerType.API: _api_metadata,
    LayerType.DATABASE: _database_metadata,
    LayerType.INFRASTRUCTURE: _infrastructure_metadata,
    LayerType.CONFIGURATION: _configuration_metadata,
}


def extract_metadata(artifact: DriftArtifact) -> ArtifactMetadata:
    return _EXTRACTORS[artifact.layer_type](artifact)


def operation_set(artifact: DriftArtifact) -> Set[str]:
    return set(artifact.metadata.operations) if artifact.metadata else set()
