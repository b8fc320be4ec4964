"""Per-package generated file assembly and writing."""

from __future__ import annotations

import difflib
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import GeneratorConfig
from .emit import EmittedPackage
from .emit.rendering import FILE_TEMPLATE, render_template
from .logging import get_logger
from .models import Package

GENERATED_MARKER = "// Code generated by deepcopy-gen. DO NOT EDIT."

STATUS_WRITTEN = "written"
STATUS_UNCHANGED = "unchanged"
STATUS_DRY_RUN = "dry-run"


@dataclass
class WriteResult:
    """Outcome of writing one generated file."""

    package: str
    path: Path
    status: str
    diff: str = ""

    @property
    def changed(self) -> bool:
        return self.status != STATUS_UNCHANGED


class OutputCoordinator:
    """Renders and writes one generated file per package."""

    def __init__(self, config: GeneratorConfig) -> None:
        self.config = config
        self.logger = get_logger("output")
        self._header: Optional[str] = None

    def render(self, emitted: EmittedPackage) -> str:
        """Return the full file text for ``emitted``."""
        return render_template(
            FILE_TEMPLATE,
            build_tag=self.config.build_tag,
            header=self._header_text(),
            marker=GENERATED_MARKER,
            package=emitted.name,
            imports=emitted.imports,
            body=emitted.body,
        )

    def target_path(self, package: Package) -> Path:
        """Return where the generated file of ``package`` lives."""
        if package.directory:
            directory = Path(package.directory)
            if not directory.is_absolute():
                directory = self.config.root / directory
        else:
            base = self.config.output_base or self.config.root
            directory = base / package.path
        return directory / self.config.output_file

    def write(self, package: Package, emitted: EmittedPackage, *, dry_run: bool = False) -> WriteResult:
        """Write the generated file unless its content is already up to date."""
        path = self.target_path(package)
        updated = self.render(emitted)
        original = ""
        if path.exists():
            original = path.read_text(encoding="utf-8")
        if original == updated:
            self.logger.debug("%s is up to date", path)
            return WriteResult(package=package.path, path=path, status=STATUS_UNCHANGED)

        diff = self._render_diff(original, updated, path.name)
        if dry_run:
            self.logger.info("Dry run: would update %s", path)
            return WriteResult(package=package.path, path=path, status=STATUS_DRY_RUN, diff=diff)

        path.parent.mkdir(parents=True, exist_ok=True)
        _replace(path, updated)
        self.logger.info("Wrote %s", path)
        return WriteResult(package=package.path, path=path, status=STATUS_WRITTEN, diff=diff)

    def _header_text(self) -> str:
        if self._header is None:
            self._header = self.config.header_text().rstrip()
        return self._header

    @staticmethod
    def _render_diff(original: str, updated: str, name: str) -> str:
        diff = difflib.unified_diff(
            original.splitlines(keepends=True),
            updated.splitlines(keepends=True),
            fromfile=f"{name} (original)",
            tofile=f"{name} (updated)",
        )
        return "".join(diff)


def _replace(path: Path, text: str) -> None:
    # Readers never see a partially written file.
    handle, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(handle, "w", encoding="utf-8") as stream:
            stream.write(text)
        os.replace(temp_name, path)
    except OSError:
        Path(temp_name).unlink(missing_ok=True)
        raise


def is_generated_file(path: Path, output_file: Optional[str] = None) -> bool:
    """Return True when ``path`` is a file written by this generator.

    Front-ends use this to skip generated files when parsing packages.
    """
    if output_file is not None and path.name != output_file:
        return False
    try:
        with path.open("r", encoding="utf-8") as stream:
            for _ in range(50):
                line = stream.readline()
                if not line:
                    break
                if line.strip() == GENERATED_MARKER:
                    return True
    except (OSError, UnicodeDecodeError):
        return False
    return False


__all__ = [
    "GENERATED_MARKER",
    "OutputCoordinator",
    "STATUS_DRY_RUN",
    "STATUS_UNCHANGED",
    "STATUS_WRITTEN",
    "WriteResult",
    "is_generated_file",
]
