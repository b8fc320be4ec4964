"""Core data models shared across deepcopy-gen components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple


class Kind(str, Enum):
    """Kinds of declarations and type expressions understood by the engine."""

    BUILTIN = "builtin"
    STRUCT = "struct"
    ALIAS = "alias"
    INTERFACE = "interface"
    OPAQUE = "opaque"
    NAMED = "named"
    POINTER = "pointer"
    SLICE = "slice"
    MAP = "map"
    ARRAY = "array"
    CHAN = "chan"
    FUNC = "func"


DECLARATION_KINDS = frozenset({Kind.STRUCT, Kind.ALIAS, Kind.INTERFACE, Kind.OPAQUE})

BUILTIN_VALUE_TYPES = frozenset(
    {
        "bool",
        "string",
        "int",
        "int8",
        "int16",
        "int32",
        "int64",
        "uint",
        "uint8",
        "uint16",
        "uint32",
        "uint64",
        "uintptr",
        "byte",
        "rune",
        "float32",
        "float64",
        "complex64",
        "complex128",
    }
)

# Builtin interfaces have no deep-copy method to call.
BUILTIN_INTERFACE_TYPES = frozenset({"error", "any", "interface{}"})


@dataclass(frozen=True)
class TypeRef:
    """An immutable type expression as written on a field or alias."""

    kind: Kind
    name: Optional[str] = None
    elem: Optional["TypeRef"] = None
    key: Optional["TypeRef"] = None
    length: Optional[int] = None
    text: Optional[str] = field(default=None, compare=False)

    @classmethod
    def builtin(cls, name: str) -> "TypeRef":
        return cls(kind=Kind.BUILTIN, name=name)

    @classmethod
    def named(cls, qualified: str) -> "TypeRef":
        return cls(kind=Kind.NAMED, name=qualified)

    @classmethod
    def pointer(cls, elem: "TypeRef") -> "TypeRef":
        return cls(kind=Kind.POINTER, elem=elem)

    @classmethod
    def slice(cls, elem: "TypeRef") -> "TypeRef":
        return cls(kind=Kind.SLICE, elem=elem)

    @classmethod
    def map(cls, key: "TypeRef", elem: "TypeRef") -> "TypeRef":
        return cls(kind=Kind.MAP, key=key, elem=elem)

    @classmethod
    def array(cls, length: int, elem: "TypeRef") -> "TypeRef":
        return cls(kind=Kind.ARRAY, length=length, elem=elem)

    @property
    def is_builtin_interface(self) -> bool:
        return self.kind is Kind.BUILTIN and self.name in BUILTIN_INTERFACE_TYPES

    def named_refs(self) -> Iterator["TypeRef"]:
        """Yield every named reference reachable inside this expression."""
        if self.kind is Kind.NAMED:
            yield self
        if self.key is not None:
            yield from self.key.named_refs()
        if self.elem is not None:
            yield from self.elem.named_refs()

    def __str__(self) -> str:
        if self.text:
            return self.text
        if self.kind in (Kind.BUILTIN, Kind.NAMED):
            return self.name or ""
        if self.kind is Kind.POINTER:
            return f"*{self.elem}"
        if self.kind is Kind.SLICE:
            return f"[]{self.elem}"
        if self.kind is Kind.MAP:
            return f"map[{self.key}]{self.elem}"
        if self.kind is Kind.ARRAY:
            return f"[{self.length}]{self.elem}"
        return self.kind.value


@dataclass
class Field:
    """A member of a struct declaration."""

    name: str
    type: TypeRef
    embedded: bool = False


@dataclass
class Method:
    """A method declared on a type or required by an interface."""

    name: str
    pointer_receiver: bool = False
    params: List[TypeRef] = field(default_factory=list)
    results: List[TypeRef] = field(default_factory=list)
    # False when the front-end only reported the method name.
    has_signature: bool = True


@dataclass
class TypeDecl:
    """A named type declaration supplied by the front-end."""

    name: str
    package: str
    kind: Kind
    fields: List[Field] = field(default_factory=list)
    underlying: Optional[TypeRef] = None
    comments: List[str] = field(default_factory=list)
    methods: Dict[str, Method] = field(default_factory=dict)

    @property
    def qualified_name(self) -> str:
        return qualify(self.package, self.name)

    @property
    def exported(self) -> bool:
        return bool(self.name) and self.name[0].isupper()


@dataclass
class Package:
    """A named collection of type declarations."""

    path: str
    name: str
    comments: List[str] = field(default_factory=list)
    types: List[TypeDecl] = field(default_factory=list)
    directory: Optional[str] = None

    def type(self, name: str) -> Optional[TypeDecl]:
        for decl in self.types:
            if decl.name == name:
                return decl
        return None


class Universe:
    """Arena of packages and their types addressed by qualified name."""

    def __init__(self, packages: List[Package] | None = None) -> None:
        self._packages: Dict[str, Package] = {}
        self._types: Dict[str, TypeDecl] = {}
        for package in packages or []:
            self.add(package)

    def add(self, package: Package) -> None:
        if package.path in self._packages:
            raise ValueError(f"Duplicate package {package.path!r}")
        self._packages[package.path] = package
        for decl in package.types:
            key = decl.qualified_name
            if key in self._types:
                raise ValueError(f"Duplicate type {key!r}")
            self._types[key] = decl

    def package(self, path: str) -> Optional[Package]:
        return self._packages.get(path)

    def packages(self) -> List[Package]:
        """Return packages in stable path order."""
        return [self._packages[path] for path in sorted(self._packages)]

    def type(self, qualified: str) -> Optional[TypeDecl]:
        return self._types.get(qualified)

    def types(self) -> List[TypeDecl]:
        """Return every type, packages in path order, types in declaration order."""
        return [decl for package in self.packages() for decl in package.types]

    def resolve(self, ref: TypeRef) -> Tuple[Kind, Optional[TypeDecl], TypeRef]:
        """Follow named types and aliases down to the underlying shape.

        Returns the shape kind, the last declaration visited (the struct,
        interface or opaque declaration, or the alias that introduced a
        composite shape) and the underlying type expression. An unknown name
        or an alias loop yields ``Kind.NAMED`` with no declaration.
        """
        seen: set = set()
        decl: Optional[TypeDecl] = None
        while ref.kind is Kind.NAMED:
            if ref.name in seen:
                return Kind.NAMED, None, ref
            seen.add(ref.name)
            found = self.type(ref.name or "")
            if found is None:
                return Kind.NAMED, None, ref
            decl = found
            if found.kind is Kind.ALIAS and found.underlying is not None:
                ref = found.underlying
                continue
            return found.kind, found, ref
        return ref.kind, decl, ref

    def __contains__(self, qualified: object) -> bool:
        return qualified in self._types

    def __len__(self) -> int:
        return len(self._types)


def qualify(package: str, name: str) -> str:
    return f"{package}.{name}"


def split_qualified(qualified: str) -> Tuple[str, str]:
    """Split `path.Name` at the last dot; the path itself may contain dots."""
    if "." not in qualified:
        return "", qualified
    path, _, name = qualified.rpartition(".")
    return path, name


__all__ = [
    "BUILTIN_INTERFACE_TYPES",
    "BUILTIN_VALUE_TYPES",
    "DECLARATION_KINDS",
    "Field",
    "Kind",
    "Method",
    "Package",
    "TypeDecl",
    "TypeRef",
    "Universe",
    "qualify",
    "split_qualified",
]
