"""
Security-critical change detection.

The same predicate guards two places: ignore rules may not hide a critical
pair, and the escalator pins critical artifacts to high severity.
"""

import re
from typing import Iterable, List, Optional

from drift_flow.core.correlation_config import MAX_EDGE_EVIDENCE
from drift_flow.core.models import DriftArtifact, Evidence

_CRITICAL_PATTERNS = [
    # Destructive schema changes
    re.compile(r"DROP\s+(TABLE|COLUMN)|TRUNCATE|ALTER\s+TABLE.*(SET\s+NOT\s+NULL|\bTYPE\b)", re.IGNORECASE),
    # Vulnerable or tampered dependencies
    re.compile(r"CVE-|GHSA-|CVE_DETECTED|SECURITY_VULNERABILITY|MALICIOUS_PACKAGE|INTEGRITY_MISMATCH", re.IGNORECASE),
    # Network exposure
    re.compile(r"0\.0\.0\.0/0|::/0|SECURITY_GROUP_DELETION", re.IGNORECASE),
    # Secrets
    re.compile(r"SECRET_KEY_REMOVED|SECRET_KEY_ADDED", re.IGNORECASE),
]


def is_critical_text(text: str) -> bool:
    if not text:
        return False
    return any(pattern.search(text) for pattern in _CRITICAL_PATTERNS)


def artifact_text(artifact: DriftArtifact) -> str:
    parts: List[str] = list(artifact.changes)
    if artifact.file:
        parts.append(artifact.file)
    parts.extend(artifact.endpoints)
    parts.extend(artifact.entities)
    parts.extend(artifact.resources)
    if artifact.name:
        parts.append(artifact.name)
    return "\n".join(parts)


def is_critical_artifact(artifact: DriftArtifact) -> bool:
    return is_critical_text(artifact_text(artifact))


def is_critical_pair(first: DriftArtifact, second: DriftArtifact) -> bool:
    return is_critical_text(artifact_text(first) + "\n" + artifact_text(second))


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def dedupe_evidence(items: Iterable[Evidence], limit: Optional[int] = MAX_EDGE_EVIDENCE) -> List[Evidence]:
    """Drop repeated ``(reason, file, line)`` evidence, keeping first-seen order, up to ``limit`` items."""
    seen = set()
    result: List[Evidence] = []
    for item in items:
        key = (item.reason, item.file, item.line)
        if key in seen:
            continue
        seen.add(key)
        result.append(item)
        if limit is not None and len(result) >= limit:
            break
    return result
