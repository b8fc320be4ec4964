"""Shared, read-mostly state of one generation run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..config import ReflectiveCloneConfig
from ..errors import GenerationError, PackageFailure
from ..logging import get_logger
from ..models import Universe
from .graph import DependencyGraph
from .tags import DISABLED, GenerationPolicy, PackageDirectives

logger = get_logger("context")


@dataclass
class GenerationContext:
    """Everything the resolver and emitter need to know about a run.

    The orchestrator fills this in stage by stage on a single thread. Once
    per-package work starts it is only read, so workers can share it.
    """

    universe: Universe
    targets: List[str]
    bounds: List[str]
    reflective_clone: ReflectiveCloneConfig = field(default_factory=ReflectiveCloneConfig)
    directives: Dict[str, PackageDirectives] = field(default_factory=dict)
    policies: Dict[str, GenerationPolicy] = field(default_factory=dict)
    graph: Optional[DependencyGraph] = None
    failures: Dict[str, GenerationError] = field(default_factory=dict)

    def is_target(self, package: str) -> bool:
        return package in self.targets

    def policy(self, qualified: str) -> GenerationPolicy:
        return self.policies.get(qualified, DISABLED)

    def fail(self, package: str, error: GenerationError) -> None:
        """Record the first error of ``package``; later errors are only logged."""
        error.located(package=package)
        if package in self.failures:
            logger.debug("Additional error in %s: %s", package, error)
            return
        logger.error("%s", error)
        self.failures[package] = error

    def failed(self, package: str) -> bool:
        return package in self.failures

    def failure_list(self) -> List[PackageFailure]:
        return [PackageFailure(package=path, error=self.failures[path]) for path in sorted(self.failures)]


__all__ = ["GenerationContext"]
