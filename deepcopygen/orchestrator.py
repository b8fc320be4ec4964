"""Pipeline orchestration: directives, graph, strategies, emission, output."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from .analysis.context import GenerationContext
from .analysis.graph import build_graph
from .analysis.strategy import StrategyResolver, TypePlan
from .analysis.tags import (
    GenerationPolicy,
    PackageDirectives,
    interpret_package,
    resolve_package_policies,
)
from .config import GeneratorConfig
from .emit import EmittedPackage, PackageEmitter
from .errors import GenerationError, PackageFailure, UnresolvedTypeError
from .logging import get_logger
from .models import Package, Universe, split_qualified
from .output import OutputCoordinator, WriteResult


@dataclass
class GenerationResult:
    """Emitted code and failures of one run, before anything is written."""

    packages: List[EmittedPackage] = field(default_factory=list)
    failures: List[PackageFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def package(self, path: str) -> Optional[EmittedPackage]:
        for emitted in self.packages:
            if emitted.package == path:
                return emitted
        return None


@dataclass
class RunResult(GenerationResult):
    """A generation result together with the files it touched."""

    writes: List[WriteResult] = field(default_factory=list)


class Orchestrator:
    """Runs every generation stage for a set of input packages.

    A failing package never stops the others: its first error is recorded
    and it produces no output at all. Packages whose types call generated
    methods of a failed package fail as well.
    """

    def __init__(
        self,
        config: GeneratorConfig,
        coordinator: OutputCoordinator | None = None,
    ) -> None:
        self.config = config
        self.coordinator = coordinator or OutputCoordinator(config)
        self.logger = get_logger("orchestrator")

    def run(
        self,
        universe: Universe,
        packages: Sequence[str] | None = None,
        *,
        dry_run: bool = False,
    ) -> RunResult:
        """Generate code for ``packages`` and write one file per package."""
        generated = self.generate(universe, packages)
        result = RunResult(packages=generated.packages, failures=generated.failures)
        for emitted in generated.packages:
            if emitted.empty:
                self.logger.debug("No types to generate in %s", emitted.package)
                continue
            package = universe.package(emitted.package)
            if package is None:
                continue
            result.writes.append(self.coordinator.write(package, emitted, dry_run=dry_run))
        return result

    def generate(self, universe: Universe, packages: Sequence[str] | None = None) -> GenerationResult:
        """Analyze and render without touching the filesystem."""
        targets = sorted(set(packages)) if packages else [package.path for package in universe.packages()]
        bounds = list(self.config.bounding_packages) or list(targets)
        context = GenerationContext(
            universe=universe,
            targets=targets,
            bounds=bounds,
            reflective_clone=self.config.reflective_clone,
        )
        self.logger.info("Generating deep-copy code for %d package(s)", len(targets))

        for path in targets:
            if universe.package(path) is None:
                context.fail(path, UnresolvedTypeError("package not found in model", package=path))

        self._interpret_directives(context)
        self._resolve_policies(context)
        self._build_graph(context)

        live = [universe.package(path) for path in targets if not context.failed(path)]
        plans = self._resolve_strategies(context, [package for package in live if package is not None])
        self._propagate_failures(context, plans)

        emitted = self._emit(context, plans)
        return GenerationResult(packages=emitted, failures=context.failure_list())

    # Stages

    def _interpret_directives(self, context: GenerationContext) -> None:
        for package in context.universe.packages():
            try:
                context.directives[package.path] = interpret_package(package)
            except GenerationError as exc:
                if context.is_target(package.path):
                    context.fail(package.path, exc)
                else:
                    self.logger.warning("Ignoring directives of %s: %s", package.path, exc)
                context.directives[package.path] = PackageDirectives(path=package.path, enabled=False)

    def _resolve_policies(self, context: GenerationContext) -> None:
        for package in context.universe.packages():
            target = context.is_target(package.path)
            if context.failed(package.path):
                self._disable(context, package, "package failed")
                continue
            try:
                policies = resolve_package_policies(
                    package,
                    context.directives[package.path],
                    context.universe,
                    target=target,
                    bounds=context.bounds,
                )
            except GenerationError as exc:
                context.fail(package.path, exc)
                self._disable(context, package, "package failed")
                continue
            context.policies.update(policies)

    @staticmethod
    def _disable(context: GenerationContext, package: Package, reason: str) -> None:
        for decl in package.types:
            context.policies[decl.qualified_name] = GenerationPolicy(enabled=False, reason=reason)

    def _build_graph(self, context: GenerationContext) -> None:
        graph = build_graph(context.universe)
        context.graph = graph
        for path, error in sorted(graph.cycle_errors(context.universe).items()):
            if context.is_target(path):
                context.fail(path, error)
            else:
                self.logger.warning("%s", error)

    def _resolve_strategies(
        self, context: GenerationContext, packages: Sequence[Package]
    ) -> Dict[str, List[TypePlan]]:
        def resolve(package: Package) -> Tuple[str, List[TypePlan] | GenerationError]:
            try:
                return package.path, StrategyResolver(context).resolve_package(package)
            except GenerationError as exc:
                return package.path, exc

        if self.config.workers > 1 and len(packages) > 1:
            with ThreadPoolExecutor(max_workers=self.config.workers) as pool:
                outcomes = list(pool.map(resolve, packages))
        else:
            outcomes = [resolve(package) for package in packages]

        plans: Dict[str, List[TypePlan]] = {}
        for path, outcome in sorted(outcomes, key=lambda item: item[0]):
            if isinstance(outcome, GenerationError):
                context.fail(path, outcome)
            else:
                plans[path] = outcome
        return plans

    def _propagate_failures(self, context: GenerationContext, plans: Dict[str, List[TypePlan]]) -> None:
        changed = True
        while changed:
            changed = False
            for path in sorted(plans):
                error = self._dependency_error(context, path, plans[path])
                if error is not None:
                    context.fail(path, error)
                    del plans[path]
                    changed = True

    @staticmethod
    def _dependency_error(
        context: GenerationContext, path: str, plans: Sequence[TypePlan]
    ) -> Optional[GenerationError]:
        for plan in plans:
            for member, target in plan.generated_dependencies():
                owner, _ = split_qualified(target)
                if owner != path and context.failed(owner):
                    return UnresolvedTypeError(
                        f"copy methods of {target} are unavailable because package {owner} failed",
                        package=path,
                        type_name=plan.decl.name,
                        member=member,
                    )
        return None

    def _emit(self, context: GenerationContext, plans: Dict[str, List[TypePlan]]) -> List[EmittedPackage]:
        clone_function = context.reflective_clone.function

        def emit(path: str) -> EmittedPackage:
            package = context.universe.package(path)
            if package is None:
                raise ValueError(f"unknown package {path}")
            return PackageEmitter(package, plans[path], clone_function=clone_function).emit()

        paths = sorted(plans)
        if self.config.workers > 1 and len(paths) > 1:
            with ThreadPoolExecutor(max_workers=self.config.workers) as pool:
                emitted = list(pool.map(emit, paths))
        else:
            emitted = [emit(path) for path in paths]
        for item in emitted:
            self.logger.debug("%s: %s", item.package, ", ".join(item.types) or "nothing to generate")
        return emitted


__all__ = ["GenerationResult", "Orchestrator", "RunResult"]
