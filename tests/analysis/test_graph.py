"""Tests for the dependency graph, cycle detection and ordering."""

from __future__ import annotations

from deepcopygen.analysis.graph import build_graph, find_cycles
from deepcopygen.errors import CycleError
from deepcopygen.models import TypeRef
from tests._fixtures.model_builder import ModelBuilder

PKG = "example.com/app/config"


def _q(name: str) -> str:
    return f"{PKG}.{name}"


def test_only_direct_value_containment_creates_edges(model_builder: ModelBuilder) -> None:
    (
        model_builder.package(PKG)
        .struct(
            "Config",
            {"Meta": "Meta", "Ptr": "*Sub", "List": "[]Sub", "Index": "map[string]Sub", "Pair": "[2]Item"},
        )
        .struct("Meta", {"Name": "string"})
        .struct("Sub", {"Value": "int"})
        .struct("Item", {"Value": "int"})
        .alias("Wrapper", "Meta")
    )
    graph = build_graph(model_builder.universe())

    assert graph.dependencies(_q("Config")) == [_q("Meta"), _q("Item")]
    assert graph.dependencies(_q("Wrapper")) == [_q("Meta")]
    assert graph.dependencies(_q("Sub")) == []
    assert graph.cycles == []


def test_order_places_dependencies_first(model_builder: ModelBuilder) -> None:
    (
        model_builder.package(PKG)
        .struct("Config", {"Name": "string", "Tags": "[]string", "Nested": "*Sub"})
        .struct("Sub", {"Value": "int"})
    )
    graph = build_graph(model_builder.universe())

    assert graph.order == [_q("Sub"), _q("Config")]
    assert graph.position(_q("Sub")) < graph.position(_q("Config"))


def test_independent_types_keep_declaration_order(model_builder: ModelBuilder) -> None:
    model_builder.package(PKG).struct("B").struct("A").struct("C")
    graph = build_graph(model_builder.universe())
    assert graph.order == [_q("B"), _q("A"), _q("C")]


def test_order_is_stable_across_builds(model_builder: ModelBuilder) -> None:
    (
        model_builder.package(PKG)
        .struct("Top", {"Left": "Left", "Right": "Right"})
        .struct("Left", {"Leaf": "Leaf"})
        .struct("Right", {"Leaf": "Leaf"})
        .struct("Leaf", {"Value": "int"})
    )
    first = build_graph(model_builder.universe())
    second = build_graph(model_builder.universe())

    assert first.order == second.order
    assert first.order == [_q("Leaf"), _q("Left"), _q("Right"), _q("Top")]


def test_value_cycle_is_reported_with_path(model_builder: ModelBuilder) -> None:
    (
        model_builder.package(PKG)
        .struct("A", {"B": "B"})
        .struct("B", {"A": "A"})
        .struct("Free", {"Next": "*Free"})
    )
    universe = model_builder.universe()
    graph = build_graph(universe)

    assert len(graph.cycles) == 1
    assert graph.cycles[0].path == [_q("A"), _q("B"), _q("A")]
    assert graph.cyclic() == {_q("A"), _q("B")}
    assert _q("Free") in graph.order
    assert _q("A") not in graph.order

    errors = graph.cycle_errors(universe)
    assert isinstance(errors[PKG], CycleError)
    assert "A -> " in errors[PKG].message


def test_self_reference_through_pointer_is_not_a_cycle() -> None:
    edges = {"a.Node": []}
    assert find_cycles(["a.Node"], edges) == []
    assert find_cycles(["a.Loop"], {"a.Loop": ["a.Loop"]})[0].path == ["a.Loop", "a.Loop"]


def test_assignability(model_builder: ModelBuilder) -> None:
    (
        model_builder.package(PKG)
        .struct("Plain", {"Name": "string", "Count": "int"})
        .struct("Holder", {"Plain": "Plain", "Pair": "[2]Plain"})
        .struct("Shared", {"Ptr": "*int"})
        .struct("Mixed", {"Shared": "Shared"})
        .alias("Phase", "string")
        .alias("Labels", "map[string]string")
        .struct("Loose", {"Err": "error"})
    )
    graph = build_graph(model_builder.universe())

    assert graph.is_assignable(TypeRef.named(_q("Plain")))
    assert graph.is_assignable(TypeRef.named(_q("Holder")))
    assert graph.is_assignable(TypeRef.named(_q("Phase")))
    assert graph.is_assignable(TypeRef.array(3, TypeRef.builtin("int")))
    assert not graph.is_assignable(TypeRef.named(_q("Shared")))
    assert not graph.is_assignable(TypeRef.named(_q("Mixed")))
    assert not graph.is_assignable(TypeRef.named(_q("Labels")))
    assert not graph.is_assignable(TypeRef.named(_q("Loose")))
    assert not graph.is_assignable(TypeRef.slice(TypeRef.builtin("int")))
    assert not graph.is_assignable(TypeRef.named("example.com/unknown.Type"))
