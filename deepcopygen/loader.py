"""Loading of the abstract type-and-comment model produced by a front-end.

The engine never parses Go source itself. A front-end (or a hand-written
fixture) describes packages, types, fields and comments in YAML or JSON, and
this module turns that description into a :class:`~deepcopygen.models.Universe`.
Field types are written as Go type expressions (``[]string``, ``*Sub``,
``map[string]example.com/other.Thing``); unqualified names resolve in the
declaring package.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, List, Mapping

import yaml

from .errors import ModelError
from .logging import get_logger
from .models import (
    BUILTIN_INTERFACE_TYPES,
    BUILTIN_VALUE_TYPES,
    DECLARATION_KINDS,
    Field,
    Kind,
    Method,
    Package,
    TypeDecl,
    TypeRef,
    Universe,
    qualify,
    split_qualified,
)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_QUALIFIED = re.compile(r"^[A-Za-z0-9_.~\-]+(?:/[A-Za-z0-9_.~\-]+)*\.[A-Za-z_][A-Za-z0-9_]*$")
_ARRAY_PREFIX = re.compile(r"^\[(\d+)\]")

logger = get_logger("loader")


def load_model(path: Path) -> Universe:
    """Read a YAML or JSON model file and build the universe it describes."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ModelError(f"Failed to read model {path}: {exc}") from exc
    try:
        data = yaml.safe_load(text) if text.strip() else {}
    except yaml.YAMLError as exc:
        raise ModelError(f"Failed to parse model {path.name}: {exc}") from exc
    universe = build_universe(data or {})
    logger.debug("Loaded %d packages, %d types from %s", len(universe.packages()), len(universe), path)
    return universe


def build_universe(data: Mapping[str, Any]) -> Universe:
    """Build a universe from an already decoded model mapping."""
    if not isinstance(data, Mapping):
        raise ModelError("model must contain a mapping at the root")
    raw_packages = data.get("packages", [])
    if not isinstance(raw_packages, list):
        raise ModelError("'packages' must be a list")

    universe = Universe()
    for index, raw in enumerate(raw_packages):
        if not isinstance(raw, Mapping):
            raise ModelError(f"packages[{index}] must be a mapping")
        package = _build_package(raw)
        try:
            universe.add(package)
        except ValueError as exc:
            raise ModelError(str(exc)) from exc
    return universe


def parse_type(expr: str, package: str) -> TypeRef:
    """Parse a Go type expression, resolving bare names against ``package``."""
    text = expr.strip()
    if not text:
        raise ModelError("empty type expression")
    return _parse(text, package)


def _parse(text: str, package: str) -> TypeRef:
    if text.startswith("*"):
        return TypeRef(kind=Kind.POINTER, elem=_parse(text[1:].strip(), package), text=text)
    if text.startswith("[]"):
        return TypeRef(kind=Kind.SLICE, elem=_parse(text[2:].strip(), package), text=text)
    array_match = _ARRAY_PREFIX.match(text)
    if array_match:
        elem_text = text[array_match.end():].strip()
        return TypeRef(
            kind=Kind.ARRAY,
            length=int(array_match.group(1)),
            elem=_parse(elem_text, package),
            text=text,
        )
    if text.startswith("map["):
        close = _matching_bracket(text, 3)
        key_text = text[4:close]
        elem_text = text[close + 1:].strip()
        if not key_text.strip() or not elem_text:
            raise ModelError(f"malformed map type {text!r}")
        return TypeRef(
            kind=Kind.MAP,
            key=_parse(key_text.strip(), package),
            elem=_parse(elem_text, package),
            text=text,
        )
    if text.startswith(("chan ", "chan<-", "<-chan")):
        return TypeRef(kind=Kind.CHAN, text=text)
    if text.startswith("func(") or text == "func":
        return TypeRef(kind=Kind.FUNC, text=text)
    compact = text.replace(" ", "")
    if compact == "interface{}" or text in BUILTIN_INTERFACE_TYPES:
        return TypeRef(kind=Kind.BUILTIN, name=compact, text=compact)
    if text.startswith(("struct{", "struct {", "interface{", "interface {")):
        raise ModelError(f"anonymous struct or interface types are not supported: {text!r}")
    if text in BUILTIN_VALUE_TYPES:
        return TypeRef.builtin(text)
    if _IDENTIFIER.match(text):
        return TypeRef.named(qualify(package, text))
    if _QUALIFIED.match(text):
        return TypeRef.named(text)
    raise ModelError(f"unparsable type expression {text!r}")


def _matching_bracket(text: str, start: int) -> int:
    depth = 0
    for index in range(start, len(text)):
        char = text[index]
        if char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
            if depth == 0:
                return index
    raise ModelError(f"unbalanced brackets in type expression {text!r}")


def _build_package(raw: Mapping[str, Any]) -> Package:
    path = raw.get("path")
    if not isinstance(path, str) or not path.strip():
        raise ModelError("package entries require a non-empty 'path'")
    path = path.strip().rstrip("/")
    name = raw.get("name") or path.rsplit("/", 1)[-1]
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ModelError(f"package {path}: invalid package name {name!r}")
    directory = raw.get("directory")
    if directory is not None and not isinstance(directory, str):
        raise ModelError(f"package {path}: 'directory' must be a string")

    raw_types = raw.get("types", [])
    if not isinstance(raw_types, list):
        raise ModelError(f"package {path}: 'types' must be a list")

    package = Package(
        path=path,
        name=name,
        comments=_as_comment_lines(raw.get("comments")),
        directory=directory,
    )
    for raw_type in raw_types:
        if not isinstance(raw_type, Mapping):
            raise ModelError(f"package {path}: type entries must be mappings")
        package.types.append(_build_type(raw_type, path))
    return package


def _build_type(raw: Mapping[str, Any], package: str) -> TypeDecl:
    name = raw.get("name")
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ModelError(f"package {package}: invalid type name {name!r}")
    kind = _declaration_kind(raw, package, name)

    decl = TypeDecl(
        name=name,
        package=package,
        kind=kind,
        comments=_as_comment_lines(raw.get("comments")),
    )
    where = qualify(package, name)
    try:
        if kind is Kind.STRUCT:
            decl.fields = [_build_field(item, package) for item in _as_list(raw.get("fields"))]
        elif kind is Kind.ALIAS:
            underlying = raw.get("underlying")
            if not isinstance(underlying, str):
                raise ModelError("alias types require an 'underlying' type expression")
            decl.underlying = parse_type(underlying, package)
        for item in _as_list(raw.get("methods")):
            method = _build_method(item, package)
            decl.methods[method.name] = method
    except ModelError as exc:
        raise ModelError(f"{where}: {exc}") from exc
    return decl


def _declaration_kind(raw: Mapping[str, Any], package: str, name: str) -> Kind:
    value = raw.get("kind")
    if value is None:
        if "underlying" in raw:
            return Kind.ALIAS
        return Kind.STRUCT
    try:
        kind = Kind(str(value).lower())
    except ValueError:
        kind = None
    if kind not in DECLARATION_KINDS:
        raise ModelError(f"{qualify(package, name)}: unsupported declaration kind {value!r}")
    return kind


def _build_field(raw: Any, package: str) -> Field:
    if not isinstance(raw, Mapping):
        raise ModelError("field entries must be mappings")
    expr = raw.get("type")
    if not isinstance(expr, str):
        raise ModelError("fields require a 'type' expression")
    ref = parse_type(expr, package)
    embedded = bool(raw.get("embedded", False))
    name = raw.get("name")
    if not name:
        if not embedded:
            raise ModelError(f"field of type {expr!r} requires a name")
        name = _embedded_name(ref)
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ModelError(f"invalid field name {name!r}")
    return Field(name=name, type=ref, embedded=embedded)


def _embedded_name(ref: TypeRef) -> str:
    target = ref.elem if ref.kind is Kind.POINTER and ref.elem is not None else ref
    if target.kind is not Kind.NAMED or not target.name:
        raise ModelError(f"embedded field type {ref} must be a named type")
    return split_qualified(target.name)[1]


def _build_method(raw: Any, package: str) -> Method:
    if isinstance(raw, str):
        return Method(name=raw, has_signature=False)
    if not isinstance(raw, Mapping):
        raise ModelError("method entries must be mappings or names")
    name = raw.get("name")
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ModelError(f"invalid method name {name!r}")
    return Method(
        name=name,
        pointer_receiver=bool(raw.get("pointer_receiver", False)),
        params=[parse_type(str(item), package) for item in _as_list(raw.get("params"))],
        results=[parse_type(str(item), package) for item in _as_list(raw.get("results"))],
        has_signature="params" in raw or "results" in raw,
    )


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    raise ModelError(f"expected a list, got {type(value).__name__}")


def _as_comment_lines(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return value.splitlines()
    if isinstance(value, list):
        return [str(item) for item in value]
    raise ModelError("comments must be a string or a list of lines")


__all__ = ["build_universe", "load_model", "parse_type"]
