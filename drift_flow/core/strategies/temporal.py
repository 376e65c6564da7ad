from dataclasses import dataclass
from typing import List, Optional, Set

from drift_flow.core.config import CorrelationConfig
from drift_flow.core.models import DriftArtifact, Evidence, Signal
from drift_flow.core.strategies.base import iter_pairs

TEMPORAL_CONFIDENCE = 0.65


def directory_of(path: Optional[str]) -> str:
    if not path:
        return ""
    normalized = path.replace("\\", "/")
    return normalized.rsplit("/", 1)[0] if "/" in normalized else ""


@dataclass
class TemporalStrategy:
    """
    Links artifacts whose files were changed in the same directory.

    Disabled by default: co-location is a weak hint and fires on many
    unrelated pairs in flat repositories.
    """
    weight: float = 1.0
    enabled: bool = False
    budget: str = "medium"

    name = "temporal"

    def run(
        self,
        artifacts: List[DriftArtifact],
        config: CorrelationConfig,
        processed_pairs: Set[str],
        candidate_pairs: Optional[Set[str]] = None,
    ) -> List[Signal]:
        signals: List[Signal] = []
        for index, first in enumerate(artifacts):
            if not first.file:
                continue
            directory = directory_of(first.file)
            later = [a for a in artifacts[index + 1:] if a.file and directory_of(a.file) == directory]
            for source, target in iter_pairs(self, [first], later, processed_pairs, candidate_pairs):
                signals.append(
                    Signal(
                        source_id=source.artifact_id,
                        target_id=target.artifact_id,
                        relationship="temporal_correlation",
                        confidence=TEMPORAL_CONFIDENCE,
                        evidence=[Evidence(reason=f"Changed together in {directory or '.'}/", file=target.file)],
                        strategy=self.name,
                    )
                )
        return signals
