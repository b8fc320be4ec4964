"""Directive comment parsing and generation policy resolution."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..errors import DirectiveSyntaxError, MissingInterfaceMethodError, UnresolvedTypeError
from ..logging import get_logger
from ..models import Kind, Package, TypeDecl, Universe, split_qualified

TAG_ENABLED = "k8s:deepcopy-gen"
TAG_INTERFACES = "k8s:deepcopy-gen:interfaces"
TAG_NONPOINTER_INTERFACES = "k8s:deepcopy-gen:nonpointer-interfaces"
VALUE_PACKAGE = "package"

# Defined pointer types cannot have methods; they are copied inline.
COPYABLE_SHAPES = frozenset({Kind.STRUCT, Kind.SLICE, Kind.MAP, Kind.ARRAY})

_TAG_PREFIX = "+"
_INTERFACE_NAME = re.compile(r"^[A-Za-z0-9_.~\-]+(?:/[A-Za-z0-9_.~\-]+)*\.([A-Za-z_][A-Za-z0-9_]*)$")

logger = get_logger("tags")


class Receiver(str, Enum):
    """Receiver kind used by generated interface methods."""

    POINTER = "pointer"
    VALUE = "value"


@dataclass(frozen=True)
class TypeDirectives:
    """Directive values found on one type declaration."""

    enabled: Optional[bool] = None
    interfaces: Tuple[str, ...] = ()
    nonpointer_interfaces: bool = False


@dataclass
class PackageDirectives:
    """Directive values found on a package and its types."""

    path: str
    enabled: bool
    types: Dict[str, TypeDirectives] = field(default_factory=dict)


@dataclass(frozen=True)
class InterfaceRequest:
    """An extra DeepCopy<Name> method a type must implement."""

    interface: str
    method: str


@dataclass(frozen=True)
class GenerationPolicy:
    """Resolved, string-free generation decision for one type."""

    enabled: bool
    reason: str
    opted_out: bool = False
    interfaces: Tuple[InterfaceRequest, ...] = ()
    receiver: Receiver = Receiver.POINTER
    emit_into: bool = False
    emit_clone: bool = False

    @property
    def emits_anything(self) -> bool:
        return self.enabled and (self.emit_into or self.emit_clone or bool(self.interfaces))


DISABLED = GenerationPolicy(enabled=False, reason="not requested")


def extract_comment_tags(lines: Iterable[str]) -> Dict[str, List[str]]:
    """Collect `+key=value` tags; a key may repeat and every value is kept.

    A tag without `=` gets the empty value. Surrounding double quotes on a
    value are removed.
    """
    tags: Dict[str, List[str]] = {}
    for raw in lines:
        line = raw.strip()
        if line.startswith("//"):
            line = line[2:].strip()
        if not line.startswith(_TAG_PREFIX):
            continue
        body = line[len(_TAG_PREFIX):]
        key, sep, value = body.partition("=")
        key = key.strip()
        if not key:
            continue
        value = value.strip() if sep else ""
        if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
            value = value[1:-1]
        tags.setdefault(key, []).append(value)
    return tags


def interpret_package(package: Package) -> PackageDirectives:
    """Parse package-level and type-level directives for ``package``."""
    package_tags = extract_comment_tags(package.comments)
    values = package_tags.get(TAG_ENABLED)
    enabled = False
    if values is not None:
        if len(values) > 1:
            raise DirectiveSyntaxError(
                f"found {len(values)} {TAG_ENABLED} package directives: {values}",
                package=package.path,
            )
        if values[0] != VALUE_PACKAGE:
            raise DirectiveSyntaxError(
                f"unsupported package {TAG_ENABLED} value {values[0]!r}, expected {VALUE_PACKAGE!r}",
                package=package.path,
            )
        enabled = True

    directives = PackageDirectives(path=package.path, enabled=enabled)
    for decl in package.types:
        try:
            directives.types[decl.name] = interpret_type(decl)
        except DirectiveSyntaxError as exc:
            raise exc.located(package=package.path, type_name=decl.name)
    return directives


def interpret_type(decl: TypeDecl) -> TypeDirectives:
    """Parse the directives attached to a single type declaration."""
    tags = extract_comment_tags(decl.comments)

    enabled: Optional[bool] = None
    values = tags.get(TAG_ENABLED)
    if values is not None:
        if len(values) > 1:
            raise DirectiveSyntaxError(f"found {len(values)} {TAG_ENABLED} directives: {values}")
        enabled = _parse_bool(values[0], TAG_ENABLED)

    interfaces = _parse_interfaces(tags.get(TAG_INTERFACES, []))

    nonpointer = False
    values = tags.get(TAG_NONPOINTER_INTERFACES)
    if values is not None:
        parsed = {_parse_bool(value, TAG_NONPOINTER_INTERFACES) for value in values}
        if len(parsed) > 1:
            raise DirectiveSyntaxError(f"conflicting {TAG_NONPOINTER_INTERFACES} directives: {values}")
        nonpointer = parsed.pop()

    return TypeDirectives(enabled=enabled, interfaces=interfaces, nonpointer_interfaces=nonpointer)


def _parse_bool(value: str, tag: str) -> bool:
    if value == "true":
        return True
    if value == "false":
        return False
    raise DirectiveSyntaxError(f"unsupported {tag} value {value!r}, expected 'true' or 'false'")


def _parse_interfaces(values: Sequence[str]) -> Tuple[str, ...]:
    result: List[str] = []
    by_short_name: Dict[str, str] = {}
    for value in values:
        for item in value.split(","):
            name = item.strip()
            if not name:
                continue
            match = _INTERFACE_NAME.match(name)
            if match is None:
                raise DirectiveSyntaxError(
                    f"unparsable {TAG_INTERFACES} entry {name!r}, expected <package path>.<Name>"
                )
            short = match.group(1)
            existing = by_short_name.get(short)
            if existing == name:
                continue
            if existing is not None:
                raise DirectiveSyntaxError(
                    f"interfaces {existing} and {name} would both generate DeepCopy{short}"
                )
            by_short_name[short] = name
            result.append(name)
    return tuple(result)


def is_copyable(decl: TypeDecl, universe: Universe) -> bool:
    """Return True when deep-copy methods may be generated for ``decl``.

    Exported structs qualify, as do exported named types whose underlying
    shape is a struct, slice, map or array. Named builtins, interfaces
    and opaque types never do.
    """
    if not decl.exported:
        return False
    if decl.kind is Kind.STRUCT:
        return True
    if decl.kind is not Kind.ALIAS or decl.underlying is None:
        return False
    shape, _, _ = universe.resolve(decl.underlying)
    return shape in COPYABLE_SHAPES


def in_bounds(package: str, bounds: Sequence[str]) -> bool:
    return any(package == bound or package.startswith(bound.rstrip("/") + "/") for bound in bounds)


def resolve_policy(
    decl: TypeDecl,
    package: PackageDirectives,
    universe: Universe,
    *,
    target: bool,
    bounds: Sequence[str],
) -> GenerationPolicy:
    """Combine directives with structural checks into a final policy."""
    directives = package.types.get(decl.name, TypeDirectives())
    requested = package.enabled if directives.enabled is None else directives.enabled
    if not requested:
        opted_out = directives.enabled is False
        reason = "opted out" if opted_out else "not requested"
        return GenerationPolicy(enabled=False, reason=reason, opted_out=opted_out)
    if not is_copyable(decl, universe):
        return GenerationPolicy(enabled=False, reason="not copyable")
    if not in_bounds(decl.package, bounds):
        return GenerationPolicy(enabled=False, reason="outside bounding packages")
    if not target:
        return GenerationPolicy(enabled=False, reason="not an input package")

    interfaces = tuple(_resolve_interfaces(decl, directives.interfaces, universe))
    reason = "type directive" if directives.enabled is not None else "package default"
    return GenerationPolicy(
        enabled=True,
        reason=reason,
        interfaces=interfaces,
        receiver=Receiver.VALUE if directives.nonpointer_interfaces else Receiver.POINTER,
        emit_into="DeepCopyInto" not in decl.methods,
        emit_clone="DeepCopy" not in decl.methods,
    )


def _resolve_interfaces(
    decl: TypeDecl, names: Sequence[str], universe: Universe
) -> Iterable[InterfaceRequest]:
    for name in names:
        interface = universe.type(name)
        if interface is None:
            raise UnresolvedTypeError(f"interface {name} not found", member=f"interface {name}")
        if interface.kind is not Kind.INTERFACE:
            raise MissingInterfaceMethodError(f"{name} is not an interface", member=f"interface {name}")
        method = "DeepCopy" + split_qualified(name)[1]
        if method not in interface.methods:
            raise MissingInterfaceMethodError(
                f"interface {name} does not declare {method}()", member=f"interface {name}"
            )
        if method in decl.methods:
            logger.debug("%s already implements %s; skipping", decl.qualified_name, method)
            continue
        yield InterfaceRequest(interface=name, method=method)


def resolve_package_policies(
    package: Package,
    directives: PackageDirectives,
    universe: Universe,
    *,
    target: bool,
    bounds: Sequence[str],
) -> Mapping[str, GenerationPolicy]:
    """Resolve policies for every type of ``package`` keyed by qualified name."""
    policies: Dict[str, GenerationPolicy] = {}
    for decl in package.types:
        try:
            policy = resolve_policy(decl, directives, universe, target=target, bounds=bounds)
        except (UnresolvedTypeError, MissingInterfaceMethodError) as exc:
            raise exc.located(package=package.path, type_name=decl.name)
        policies[decl.qualified_name] = policy
        logger.debug(
            "%s: %s (%s)",
            decl.qualified_name,
            "generate" if policy.enabled else "skip",
            policy.reason,
        )
    return policies


__all__ = [
    "DISABLED",
    "GenerationPolicy",
    "InterfaceRequest",
    "PackageDirectives",
    "Receiver",
    "TAG_ENABLED",
    "TAG_INTERFACES",
    "TAG_NONPOINTER_INTERFACES",
    "TypeDirectives",
    "extract_comment_tags",
    "in_bounds",
    "interpret_package",
    "interpret_type",
    "is_copyable",
    "resolve_package_policies",
    "resolve_policy",
]
