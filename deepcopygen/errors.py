"""Error kinds raised while analyzing packages and emitting copy code."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence


class GenerationError(RuntimeError):
    """Base class for fatal per-package generation errors."""

    kind = "generation"

    def __init__(
        self,
        message: str,
        *,
        package: Optional[str] = None,
        type_name: Optional[str] = None,
        member: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.package = package
        self.type_name = type_name
        self.member = member

    def located(
        self,
        *,
        package: Optional[str] = None,
        type_name: Optional[str] = None,
        member: Optional[str] = None,
    ) -> "GenerationError":
        """Fill in location details that are not already known."""
        self.package = self.package or package
        self.type_name = self.type_name or type_name
        self.member = self.member or member
        return self

    def __str__(self) -> str:
        location = []
        if self.package:
            location.append(f"package {self.package}")
        if self.type_name:
            location.append(f"type {self.type_name}")
        if self.member:
            location.append(self.member)
        if not location:
            return self.message
        return f"{', '.join(location)}: {self.message}"


class DirectiveSyntaxError(GenerationError):
    """Raised for malformed or conflicting directive comments."""

    kind = "directive"


class CycleError(GenerationError):
    """Raised when types embed each other by value."""

    kind = "cycle"

    def __init__(self, path: Sequence[str], **kwargs: Optional[str]) -> None:
        self.path = list(path)
        super().__init__(
            "direct-value dependency cycle: " + " -> ".join(self.path), **kwargs
        )


class UnresolvedTypeError(GenerationError):
    """Raised when a referenced type has no usable copy strategy."""

    kind = "unresolved"


class MissingInterfaceMethodError(GenerationError):
    """Raised when an interface lacks its DeepCopy<Name> contract method."""

    kind = "interface"


class ModelError(ValueError):
    """Raised when the type model supplied by the front-end is malformed."""


@dataclass
class PackageFailure:
    """A package whose generation was aborted by a fatal error."""

    package: str
    error: GenerationError

    @property
    def message(self) -> str:
        return str(self.error)


__all__ = [
    "CycleError",
    "DirectiveSyntaxError",
    "GenerationError",
    "MissingInterfaceMethodError",
    "ModelError",
    "PackageFailure",
    "UnresolvedTypeError",
]
