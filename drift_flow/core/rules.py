"""User-defined correlation rules: explicit links and ignore directives."""

import fnmatch
import logging
from typing import Iterable, List, Set, Tuple

from drift_flow.core.config import CorrelationRule
from drift_flow.core.models import CorrelationEdge, DriftArtifact, Evidence, canonical_pair_key
from drift_flow.core.safety import is_critical_pair

USER_DEFINED_STRATEGY = "user_defined"


def _candidate_values(artifact: DriftArtifact) -> List[str]:
    values = [artifact.file, artifact.name, artifact.resource_type, artifact.artifact_id]
    values.extend(artifact.endpoints)
    values.extend(artifact.entities)
    values.extend(artifact.resources)
    return [value.lower() for value in values if value]


def match_token(artifact: DriftArtifact, token: str) -> bool:
    """
    Whether a rule token names ``artifact``.

    Tokens containing ``*`` or ``?`` are glob patterns; anything else matches
    by equality or substring. Matching is case-insensitive.
    """
    needle = (token or "").strip().lower()
    if not needle:
        return False
    is_glob = "*" in needle or "?" in needle
    for value in _candidate_values(artifact):
        if is_glob:
            if fnmatch.fnmatchcase(value, needle):
                return True
        elif value == needle or needle in value:
            return True
    return False


def resolve_token(artifacts: Iterable[DriftArtifact], token: str) -> List[DriftArtifact]:
    return [artifact for artifact in artifacts if match_token(artifact, token)]


def resolve_rule_pairs(artifacts: List[DriftArtifact], rule: CorrelationRule) -> List[Tuple[DriftArtifact, DriftArtifact]]:
    """Every (source, target) artifact pair a rule names, excluding self-pairs."""
    sources = resolve_token(artifacts, rule.source)
    targets = resolve_token(artifacts, rule.target)
    return [
        (source, target)
        for source in sources
        for target in targets
        if source.artifact_id != target.artifact_id
    ]


def _rule_evidence(rule: CorrelationRule) -> Evidence:
    reason = rule.description or rule.reason or f"User-defined {rule.type} correlation: {rule.source} -> {rule.target}"
    return Evidence(reason=reason)


def explicit_edge(source: DriftArtifact, target: DriftArtifact, rule: CorrelationRule) -> CorrelationEdge:
    return CorrelationEdge(
        source_id=source.artifact_id,
        target_id=target.artifact_id,
        relationships={rule.type},
        strategies=[USER_DEFINED_STRATEGY],
        scores={USER_DEFINED_STRATEGY: 1.0},
        weights={USER_DEFINED_STRATEGY: 1.0},
        final_score=1.0,
        evidence=[_rule_evidence(rule)],
        user_defined=True,
        rule=rule,
        explanation=f"{source.artifact_id} → {target.artifact_id} = 1.00 [user_defined:{rule.type}]",
    )


def resolve(artifacts: List[DriftArtifact], rules: Iterable[CorrelationRule]) -> Tuple[List[CorrelationEdge], Set[str]]:
    """
    Apply rules in order and return ``(explicit_edges, processed_pairs)``.

    The first rule to claim a pair wins. An ignore rule that would hide a
    security-critical pair is refused and the pair stays open to heuristics.
    """
    explicit_edges: List[CorrelationEdge] = []
    processed_pairs: Set[str] = set()
    ignored = 0
    refused = 0

    for rule in rules:
        for source, target in resolve_rule_pairs(artifacts, rule):
            key = canonical_pair_key(source.artifact_id, target.artifact_id)
            if key in processed_pairs:
                continue
            if rule.is_ignore:
                if is_critical_pair(source, target):
                    refused += 1
                    logging.warning(
                        f"Correlation: refusing ignore rule {rule.source} -> {rule.target} "
                        f"for security-critical pair {key}"
                    )
                    continue
                processed_pairs.add(key)
                ignored += 1
                continue
            processed_pairs.add(key)
            explicit_edges.append(explicit_edge(source, target, rule))

    if explicit_edges or ignored or refused:
        logging.info(
            "Correlation: rules produced %d explicit edges, ignored %d pairs, refused %d ignores",
            len(explicit_edges), ignored, refused,
        )
    return explicit_edges, processed_pairs
