"""Analysis stages: directives, the dependency graph and copy strategies."""

from __future__ import annotations

from .context import GenerationContext
from .graph import DependencyGraph, build_graph
from .strategy import CopyPlan, Strategy, StrategyResolver, TypePlan
from .tags import GenerationPolicy, interpret_package, resolve_package_policies

__all__ = [
    "CopyPlan",
    "DependencyGraph",
    "GenerationContext",
    "GenerationPolicy",
    "Strategy",
    "StrategyResolver",
    "TypePlan",
    "build_graph",
    "interpret_package",
    "resolve_package_policies",
]
