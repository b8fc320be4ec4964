"""Jinja environment for the generated file and method skeletons."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined

TEMPLATES_DIR = Path(__file__).with_name("templates")

FILE_TEMPLATE = "zz_generated.go.j2"
DEEPCOPY_INTO_TEMPLATE = "deepcopy_into.go.j2"
DEEPCOPY_TEMPLATE = "deepcopy.go.j2"
INTERFACE_METHOD_TEMPLATE = "interface_method.go.j2"


@lru_cache(maxsize=None)
def create_environment() -> Environment:
    """Return the shared environment; templates are compiled once per process."""
    loader = FileSystemLoader(str(TEMPLATES_DIR))
    return Environment(
        loader=loader,
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )


def render_template(name: str, /, **context: Any) -> str:
    return create_environment().get_template(name).render(**context)


__all__ = [
    "DEEPCOPY_INTO_TEMPLATE",
    "DEEPCOPY_TEMPLATE",
    "FILE_TEMPLATE",
    "INTERFACE_METHOD_TEMPLATE",
    "TEMPLATES_DIR",
    "create_environment",
    "render_template",
]
