"""Artifact normalization: atomic expansion and canonical fingerprints."""

import dataclasses
import hashlib
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Union

from drift_flow.core.metadata import extract_metadata, split_endpoint
from drift_flow.core.models import DriftArtifact, LayerType, canonical_pair_key

# The item list that makes an artifact a bundle of several logical objects.
_PRIMARY_ITEMS = {
    LayerType.API: "endpoints",
    LayerType.DATABASE: "entities",
    LayerType.INFRASTRUCTURE: "resources",
}

_BRACE_PARAM = re.compile(r"\{\s*([^}]*?)\s*\}")
_COLON_PARAM = re.compile(r"(?<=/):(\w+)")


def norm_path(path: Optional[str]) -> str:
    """Slash-normalize a file path: ``./config//env.yaml/`` -> ``config/env.yaml``."""
    if not path:
        return ""
    normalized = re.sub(r"/+", "/", path.strip().replace("\\", "/"))
    while normalized.startswith("./"):
        normalized = normalized[2:]
    if len(normalized) > 1:
        normalized = normalized.rstrip("/")
    return normalized


def norm_api(endpoint: Optional[str]) -> str:
    """Fingerprint for an endpoint: ``POST:/V1/Users/{UserId}/`` -> ``api:POST:/v1/users/{userid}``."""
    if not endpoint:
        return "api:unknown"
    method, path = split_endpoint(endpoint)
    path = path.lower()
    path = _BRACE_PARAM.sub(lambda m: "{" + m.group(1) + "}", path)
    path = _COLON_PARAM.sub(lambda m: "{" + m.group(1) + "}", path)
    return f"api:{method or 'GET'}:{norm_path(path)}"


def compute_artifact_id(artifact: DriftArtifact) -> str:
    layer = artifact.layer_type
    if layer is LayerType.API and artifact.endpoints:
        return norm_api(artifact.endpoints[0])
    if layer is LayerType.DATABASE and artifact.entities:
        return f"db:table:{artifact.entities[0].strip().lower()}"
    if layer is LayerType.INFRASTRUCTURE and artifact.resources:
        resource_type = (artifact.resource_type or "resource").strip().lower()
        return f"iac:{resource_type}:{artifact.resources[0].strip().lower()}"
    if layer is LayerType.CONFIGURATION and artifact.file:
        return f"config:{norm_path(artifact.file)}"
    if artifact.file:
        return f"file:{norm_path(artifact.file)}"
    if artifact.name:
        return f"{layer.value}:{artifact.name.strip().lower()}"
    # Anonymous artifacts are keyed by their content so unrelated ones never merge.
    digest = hashlib.sha1("\n".join(artifact.changes).encode("utf-8")).hexdigest()[:12]
    return f"{layer.value}:{digest}"


def assign_fingerprint(artifact: DriftArtifact) -> str:
    """Compute and freeze ``artifact_id`` unless it is already set."""
    if artifact.artifact_id is None:
        artifact.artifact_id = compute_artifact_id(artifact)
    return artifact.artifact_id


def artifact_key(value: Union[DriftArtifact, str]) -> str:
    if isinstance(value, DriftArtifact):
        return assign_fingerprint(value)
    return value


def pair_key(first: Union[DriftArtifact, str], second: Union[DriftArtifact, str]) -> str:
    """Canonical undirected key for two artifacts (or two fingerprints)."""
    return canonical_pair_key(artifact_key(first), artifact_key(second))


def _clone_with_item(artifact: DriftArtifact, items_attr: str, item: str) -> DriftArtifact:
    copies = {
        "changes": list(artifact.changes),
        "reasoning": list(artifact.reasoning),
        "endpoints": list(artifact.endpoints),
        "entities": list(artifact.entities),
        "resources": list(artifact.resources),
    }
    copies[items_attr] = [item]
    return dataclasses.replace(artifact, artifact_id=None, metadata=None, **copies)


def expand_artifacts(artifacts: Iterable[DriftArtifact]) -> List[DriftArtifact]:
    """Split artifacts that bundle several endpoints/tables/resources into one artifact per item."""
    source = list(artifacts)
    expanded: List[DriftArtifact] = []
    for artifact in source:
        items_attr = _PRIMARY_ITEMS.get(artifact.layer_type)
        items = getattr(artifact, items_attr) if items_attr else []
        if len(items) > 1:
            expanded.extend(_clone_with_item(artifact, items_attr, item) for item in items)
        else:
            expanded.append(artifact)

    logging.info(f"Expanded {len(source)} drift artifacts into {len(expanded)} atomic artifacts")
    return expanded


def normalize(raw_artifacts: Iterable[Union[DriftArtifact, Dict[str, Any]]]) -> List[DriftArtifact]:
    """
    Turn analyzer output into atomic, fingerprinted artifacts.

    Records that cannot be parsed are logged and skipped so one bad analyzer
    record does not abort the whole analysis.
    """
    parsed: List[DriftArtifact] = []
    for raw in raw_artifacts:
        if isinstance(raw, DriftArtifact):
            parsed.append(raw)
            continue
        try:
            parsed.append(DriftArtifact.from_dict(raw))
        except ValueError as e:
            logging.warning(f"Skipping malformed drift artifact: {e}")

    artifacts = expand_artifacts(parsed)
    for artifact in artifacts:
        assign_fingerprint(artifact)
        if artifact.metadata is None:
            artifact.metadata = extract_metadata(artifact)
    return artifacts
