"""Go source rendering for resolved copy plans."""

from __future__ import annotations

from .emitter import EmittedPackage, MethodRenderer, PackageEmitter
from .rendering import create_environment, render_template
from .writer import ImportTracker, SourceWriter

__all__ = [
    "EmittedPackage",
    "ImportTracker",
    "MethodRenderer",
    "PackageEmitter",
    "SourceWriter",
    "create_environment",
    "render_template",
]
