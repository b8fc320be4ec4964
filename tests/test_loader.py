"""Tests for deepcopygen.loader."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from deepcopygen.errors import ModelError
from deepcopygen.loader import build_universe, load_model, parse_type
from deepcopygen.models import Kind, TypeRef
from tests._fixtures.model_builder import ModelBuilder

PKG = "example.com/app/config"


def test_parse_type_handles_composite_expressions() -> None:
    ref = parse_type("map[string][]*Sub", PKG)

    assert ref.kind is Kind.MAP
    assert ref.key == TypeRef.builtin("string")
    assert ref.elem is not None and ref.elem.kind is Kind.SLICE
    assert ref.elem.elem == TypeRef.pointer(TypeRef.named(f"{PKG}.Sub"))


def test_parse_type_handles_nested_map_keys_and_arrays() -> None:
    ref = parse_type("map[[2]int]map[string]int", PKG)
    assert ref.kind is Kind.MAP
    assert ref.key == TypeRef.array(2, TypeRef.builtin("int"))
    assert ref.elem == TypeRef.map(TypeRef.builtin("string"), TypeRef.builtin("int"))


def test_parse_type_resolves_qualified_names() -> None:
    ref = parse_type("*k8s.io/apimachinery/pkg/runtime.Object", PKG)
    assert ref == TypeRef.pointer(TypeRef.named("k8s.io/apimachinery/pkg/runtime.Object"))


def test_parse_type_marks_builtin_interfaces() -> None:
    assert parse_type("error", PKG).is_builtin_interface
    assert parse_type("interface {}", PKG).is_builtin_interface
    assert not parse_type("string", PKG).is_builtin_interface


@pytest.mark.parametrize("expr", ["chan int", "func(int) error"])
def test_parse_type_keeps_uncopyable_kinds(expr: str) -> None:
    assert parse_type(expr, PKG).kind in (Kind.CHAN, Kind.FUNC)


@pytest.mark.parametrize("expr", ["", "struct{ A int }", "map[string", "not a type!"])
def test_parse_type_rejects_unsupported_expressions(expr: str) -> None:
    with pytest.raises(ModelError):
        parse_type(expr, PKG)


def test_build_universe_reads_packages_types_and_methods() -> None:
    universe = build_universe(
        {
            "packages": [
                {
                    "path": PKG,
                    "comments": "+k8s:deepcopy-gen=package",
                    "types": [
                        {
                            "name": "Config",
                            "fields": [
                                {"name": "Name", "type": "string"},
                                {"type": "Meta", "embedded": True},
                            ],
                            "methods": [
                                "DeepCopyObject",
                                {"name": "DeepCopyInto", "params": ["*Config"]},
                            ],
                        },
                        {"name": "Meta", "kind": "struct"},
                        {"name": "Labels", "underlying": "map[string]string"},
                    ],
                }
            ]
        }
    )

    package = universe.package(PKG)
    assert package is not None
    assert package.name == "config"
    assert package.comments == ["+k8s:deepcopy-gen=package"]

    config = universe.type(f"{PKG}.Config")
    assert config is not None
    assert [member.name for member in config.fields] == ["Name", "Meta"]
    assert config.fields[1].embedded is True
    assert config.methods["DeepCopyObject"].has_signature is False
    assert config.methods["DeepCopyInto"].params == [TypeRef.pointer(TypeRef.named(f"{PKG}.Config"))]

    labels = universe.type(f"{PKG}.Labels")
    assert labels is not None and labels.kind is Kind.ALIAS


def test_build_universe_rejects_duplicate_types() -> None:
    with pytest.raises(ModelError, match="Duplicate type"):
        build_universe(
            {"packages": [{"path": PKG, "types": [{"name": "A"}, {"name": "A"}]}]}
        )


def test_build_universe_rejects_unknown_kinds() -> None:
    with pytest.raises(ModelError, match="unsupported declaration kind"):
        build_universe({"packages": [{"path": PKG, "types": [{"name": "A", "kind": "enum"}]}]})


def test_load_model_reads_yaml(model_builder: ModelBuilder) -> None:
    model_builder.package(PKG).struct("Config", {"Name": "string"})
    universe = load_model(model_builder.write())
    assert f"{PKG}.Config" in universe


def test_load_model_reads_json(tmp_path: Path) -> None:
    path = tmp_path / "model.json"
    path.write_text(json.dumps({"packages": [{"path": PKG, "types": [{"name": "A"}]}]}), encoding="utf-8")
    assert len(load_model(path)) == 1


def test_load_model_reports_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ModelError, match="Failed to read model"):
        load_model(tmp_path / "missing.yaml")
