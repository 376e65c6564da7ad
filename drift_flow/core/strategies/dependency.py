import re
from dataclasses import dataclass
from typing import List, Optional, Set

from drift_flow.core.config import CorrelationConfig
from drift_flow.core.models import DriftArtifact, Evidence, LayerType, Signal
from drift_flow.core.strategies.base import iter_pairs, of_layer

API_FRAMEWORKS = (
    "express", "fastify", "koa", "hapi", "swagger", "openapi",
    "fastapi", "flask", "django", "starlette",
)
DATABASE_LIBRARIES = (
    "sequelize", "typeorm", "prisma", "knex", "mongoose", "pg", "mysql",
    "sqlite", "sqlalchemy", "psycopg", "alembic",
)
DEPENDENCY_CONFIDENCE = 0.8

_NAME_SEPARATORS = re.compile(r"[-_/@.:]")


def dependency_matches(dependency: str, library: str) -> bool:
    """``@prisma/client`` matches ``prisma``; ``mysql2`` matches ``mysql``; ``pgp`` does not match ``pg``."""
    lowered = dependency.lower()
    if library in _NAME_SEPARATORS.split(lowered):
        return True
    return len(library) > 3 and library in lowered


def _matching(dependencies: List[str], libraries) -> List[str]:
    return [dep for dep in dependencies if any(dependency_matches(dep, lib) for lib in libraries)]


@dataclass
class DependencyStrategy:
    """Links package dependency changes to the API or database layer they drive."""
    weight: float = 1.0
    enabled: bool = True
    budget: str = "medium"

    name = "dependency"

    def run(
        self,
        artifacts: List[DriftArtifact],
        config: CorrelationConfig,
        processed_pairs: Set[str],
        candidate_pairs: Optional[Set[str]] = None,
    ) -> List[Signal]:
        manifests = [a for a in of_layer(artifacts, LayerType.CONFIGURATION) if a.metadata and a.metadata.dependencies]
        signals: List[Signal] = []

        for manifest in manifests:
            api_deps = _matching(manifest.metadata.dependencies, API_FRAMEWORKS)
            db_deps = _matching(manifest.metadata.dependencies, DATABASE_LIBRARIES)
            if api_deps:
                apis = of_layer(artifacts, LayerType.API)
                for _, api in iter_pairs(self, [manifest], apis, processed_pairs, candidate_pairs):
                    signals.append(self._signal(manifest, api, "dependency_affects_api", api_deps))
            if db_deps:
                tables = of_layer(artifacts, LayerType.DATABASE)
                for _, table in iter_pairs(self, [manifest], tables, processed_pairs, candidate_pairs):
                    signals.append(self._signal(manifest, table, "dependency_affects_db", db_deps))
        return signals

    def _signal(self, manifest: DriftArtifact, target: DriftArtifact, relationship: str, deps: List[str]) -> Signal:
        return Signal(
            source_id=manifest.artifact_id,
            target_id=target.artifact_id,
            relationship=relationship,
            confidence=DEPENDENCY_CONFIDENCE,
            evidence=[Evidence(reason=f"Dependency change: {', '.join(deps)}", file=manifest.file)],
            strategy=self.name,
        )
