"""Indentation-aware source writer and deterministic import naming."""

from __future__ import annotations

import re
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Set, Tuple

GO_KEYWORDS = frozenset(
    {
        "break",
        "case",
        "chan",
        "const",
        "continue",
        "default",
        "defer",
        "else",
        "fallthrough",
        "for",
        "func",
        "go",
        "goto",
        "if",
        "import",
        "interface",
        "map",
        "package",
        "range",
        "return",
        "select",
        "struct",
        "switch",
        "type",
        "var",
    }
)

_NON_IDENTIFIER = re.compile(r"[^A-Za-z0-9_]")


class SourceWriter:
    """Accumulates tab-indented lines of Go source."""

    def __init__(self, depth: int = 0) -> None:
        self._lines: List[str] = []
        self._depth = depth

    def line(self, text: str = "") -> None:
        self._lines.append("\t" * self._depth + text if text else "")

    @contextmanager
    def block(self, header: str, *, close: bool = True) -> Iterator[None]:
        """Write ``header {``, indent the body and optionally close it.

        Leaving a block open lets the caller continue with ``} else {``.
        """
        self.line(f"{header} {{" if header else "{")
        self._depth += 1
        try:
            yield
        finally:
            self._depth -= 1
            if close:
                self.line("}")

    def getvalue(self) -> str:
        """Return the lines written so far, each ending in a newline."""
        return "".join(line + "\n" for line in self._lines)


class ImportTracker:
    """Assigns local names to imported package paths.

    A path is named after its last element with ``.``, ``-`` and ``_``
    removed. When that name is taken, parent elements are prepended until it
    is unique. Names that collide with Go keywords get a leading underscore.
    Paths known up front are named in sorted order, so the same set of
    imports always yields the same names.
    """

    def __init__(
        self,
        local_package: str,
        paths: Iterable[str] = (),
        reserved: Iterable[str] = (),
    ) -> None:
        self.local_package = local_package
        self._reserved: Set[str] = set(reserved)
        self._names: Dict[str, str] = {}
        self._used: Set[str] = set()
        for path in sorted(set(paths)):
            if path != local_package:
                self._names[path] = self._assign(path)

    def local_name(self, path: str) -> str:
        """Return the name ``path`` is referred to by; empty for the local package."""
        if path == self.local_package:
            return ""
        self._used.add(path)
        name = self._names.get(path)
        if name is None:
            name = self._assign(path)
            self._names[path] = name
        return name

    @property
    def used(self) -> List[str]:
        return sorted(self._used)

    def imports(self) -> List[Tuple[str, str]]:
        """Return ``(name, path)`` pairs for every used import, sorted by path."""
        return [(self._names[path], path) for path in self.used]

    def _assign(self, path: str) -> str:
        taken = set(self._names.values()) | self._reserved
        segments = [segment for segment in path.split("/") if segment]
        candidate = ""
        for count in range(1, len(segments) + 1):
            candidate = _identifier("".join(segments[-count:]))
            if candidate and candidate not in taken:
                return candidate
        base = candidate or "pkg"
        suffix = 2
        while f"{base}{suffix}" in taken:
            suffix += 1
        return f"{base}{suffix}"


def _identifier(text: str) -> str:
    name = _NON_IDENTIFIER.sub("", text.replace("_", ""))
    if not name:
        return ""
    if name in GO_KEYWORDS or name[0].isdigit():
        return "_" + name
    return name


__all__ = ["GO_KEYWORDS", "ImportTracker", "SourceWriter"]
