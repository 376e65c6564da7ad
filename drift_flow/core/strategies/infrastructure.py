from dataclasses import dataclass
from typing import List, Optional, Set

from drift_flow.core.config import CorrelationConfig
from drift_flow.core.entity_matcher import match_names
from drift_flow.core.models import DriftArtifact, Evidence, LayerType, Signal
from drift_flow.core.strategies.base import iter_pairs, of_layer

IAC_FILE_HINTS = ("terraform", "cloudformation")
CONFIG_FILE_HINTS = ("env", "config")
API_HOSTING_TERMS = ("api", "gateway", "function", "lambda", "endpoint", "service")

INFRA_CONFIG_CONFIDENCE = 0.7
RESOURCE_DEPENDENCY_CONFIDENCE = 0.75
INFRA_HOSTS_API_CONFIDENCE = 0.75
RESOURCE_MATCH_MIN = 0.7


def _is_iac_file(path: Optional[str]) -> bool:
    if not path:
        return False
    lowered = path.lower()
    return lowered.endswith(".tf") or any(hint in lowered for hint in IAC_FILE_HINTS)


def _is_config_file(path: Optional[str]) -> bool:
    if not path:
        return False
    lowered = path.lower()
    return any(hint in lowered for hint in CONFIG_FILE_HINTS)


def _resource_names(artifact: DriftArtifact) -> List[str]:
    names = list(artifact.resources)
    if artifact.metadata:
        names.extend(artifact.metadata.entities)
    return list(dict.fromkeys(name.lower() for name in names))


@dataclass
class InfrastructureStrategy:
    """Links IaC changes to the configuration and APIs they deploy."""
    weight: float = 1.0
    enabled: bool = True
    budget: str = "medium"

    name = "infrastructure"

    def run(
        self,
        artifacts: List[DriftArtifact],
        config: CorrelationConfig,
        processed_pairs: Set[str],
        candidate_pairs: Optional[Set[str]] = None,
    ) -> List[Signal]:
        infra = of_layer(artifacts, LayerType.INFRASTRUCTURE)
        configs = of_layer(artifacts, LayerType.CONFIGURATION)
        apis = of_layer(artifacts, LayerType.API)
        signals: List[Signal] = []

        for resource, cfg in iter_pairs(self, infra, configs, processed_pairs, candidate_pairs):
            if _is_iac_file(resource.file) and _is_config_file(cfg.file):
                signals.append(
                    Signal(
                        source_id=resource.artifact_id,
                        target_id=cfg.artifact_id,
                        relationship="infra_affects_config",
                        confidence=INFRA_CONFIG_CONFIDENCE,
                        evidence=[Evidence(reason=f"Infrastructure file {resource.file} may affect config {cfg.file}", file=resource.file)],
                        strategy=self.name,
                    )
                )
            signal = self._resource_dependency(resource, cfg)
            if signal:
                signals.append(signal)

        for resource, api in iter_pairs(self, infra, apis, processed_pairs, candidate_pairs):
            hosting = [name for name in _resource_names(resource) if any(term in name for term in API_HOSTING_TERMS)]
            if not hosting:
                continue
            signals.append(
                Signal(
                    source_id=resource.artifact_id,
                    target_id=api.artifact_id,
                    relationship="infra_hosts_api",
                    confidence=INFRA_HOSTS_API_CONFIDENCE,
                    evidence=[Evidence(reason=f"Resource '{hosting[0]}' hosts API endpoints", file=resource.file)],
                    strategy=self.name,
                )
            )
        return signals

    def _resource_dependency(self, resource: DriftArtifact, cfg: DriftArtifact) -> Optional[Signal]:
        if not cfg.metadata:
            return None
        references = cfg.metadata.dependencies + cfg.metadata.fields
        best_score = 0.0
        best_pair = None
        for name in _resource_names(resource):
            for reference in references:
                score = match_names(name, reference).confidence
                if score > best_score:
                    best_score = score
                    best_pair = (name, reference)
        if best_pair is None or best_score <= RESOURCE_MATCH_MIN:
            return None
        return Signal(
            source_id=resource.artifact_id,
            target_id=cfg.artifact_id,
            relationship="resource_dependency",
            confidence=RESOURCE_DEPENDENCY_CONFIDENCE,
            evidence=[Evidence(reason=f"Resource '{best_pair[0]}' is referenced by '{best_pair[1]}'", file=cfg.file)],
            strategy=self.name,
        )
