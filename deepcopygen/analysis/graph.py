"""Type dependency graph, cycle detection and deterministic ordering.

Only direct-value containment creates an edge: a struct field of a named type,
an array element, or the underlying type of an alias. Containment through a
pointer, slice or map is resolved by the generated code at copy time and never
constrains generation order, so it is left out of the graph.
"""

from __future__ import annotations

import heapq
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterator, List, Optional, Sequence, Set

from ..errors import CycleError
from ..logging import get_logger
from ..models import BUILTIN_VALUE_TYPES, Kind, TypeDecl, TypeRef, Universe

logger = get_logger("graph")


@dataclass(frozen=True)
class Cycle:
    """A strongly connected set of types and one closed path through it."""

    path: List[str]
    members: FrozenSet[str]


@dataclass
class DependencyGraph:
    """Direct-value dependencies between types of one run."""

    nodes: List[str]
    edges: Dict[str, List[str]]
    order: List[str] = field(default_factory=list)
    cycles: List["Cycle"] = field(default_factory=list)
    assignable: Dict[str, bool] = field(default_factory=dict)
    positions: Dict[str, int] = field(default_factory=dict)

    def dependencies(self, name: str) -> List[str]:
        return list(self.edges.get(name, []))

    def position(self, name: str) -> int:
        """Return the emission position of ``name``; cyclic types sort last."""
        return self.positions.get(name, len(self.order))

    def cyclic(self) -> Set[str]:
        return {node for cycle in self.cycles for node in cycle.members}

    def cycle_errors(self, universe: Universe) -> Dict[str, CycleError]:
        """Map each package owning a type on a cycle to the error to report."""
        errors: Dict[str, CycleError] = {}
        for cycle in self.cycles:
            for node in sorted(cycle.members):
                decl = universe.type(node)
                if decl is None or decl.package in errors:
                    continue
                errors[decl.package] = CycleError(cycle.path, package=decl.package, type_name=decl.name)
        return errors

    def is_assignable(self, ref: TypeRef) -> bool:
        """Return True when a plain value copy of ``ref`` is a deep copy."""
        if ref.kind is Kind.BUILTIN:
            return ref.name in BUILTIN_VALUE_TYPES
        if ref.kind is Kind.NAMED:
            return self.assignable.get(ref.name or "", False)
        if ref.kind is Kind.ARRAY and ref.elem is not None:
            return self.is_assignable(ref.elem)
        return False


def build_graph(universe: Universe) -> DependencyGraph:
    """Build the dependency graph, detect cycles and compute the emission order."""
    nodes = [decl.qualified_name for decl in universe.types()]
    edges: Dict[str, List[str]] = {}
    for decl in universe.types():
        targets: List[str] = []
        for name in direct_value_targets(decl):
            if name in universe and name not in targets:
                targets.append(name)
        edges[decl.qualified_name] = targets

    graph = DependencyGraph(nodes=nodes, edges=edges)
    graph.cycles = find_cycles(nodes, edges)
    for cycle in graph.cycles:
        logger.debug("Detected cycle %s", " -> ".join(cycle.path))

    rank = _preference_rank(universe)
    graph.order = _topological_order(nodes, edges, rank, graph.cyclic())
    graph.positions = {node: index for index, node in enumerate(graph.order)}
    graph.assignable = _compute_assignability(universe, graph.cyclic())
    return graph


def direct_value_targets(decl: TypeDecl) -> Iterator[str]:
    """Yield qualified names ``decl`` contains by value, in declaration order."""
    if decl.kind is Kind.STRUCT:
        for member in decl.fields:
            yield from _by_value(member.type)
    elif decl.kind is Kind.ALIAS and decl.underlying is not None:
        yield from _by_value(decl.underlying)


def _by_value(ref: TypeRef) -> Iterator[str]:
    if ref.kind is Kind.NAMED and ref.name:
        yield ref.name
    elif ref.kind is Kind.ARRAY and ref.elem is not None:
        yield from _by_value(ref.elem)


def _all_references(decl: TypeDecl) -> Iterator[str]:
    refs: List[TypeRef] = [member.type for member in decl.fields]
    if decl.underlying is not None:
        refs.append(decl.underlying)
    for ref in refs:
        for named in ref.named_refs():
            if named.name:
                yield named.name


def find_cycles(nodes: Sequence[str], edges: Dict[str, List[str]]) -> List["Cycle"]:
    """Return every strongly connected component that forms a cycle, with one closed path."""
    cycles: List[Cycle] = []
    position = {node: index for index, node in enumerate(nodes)}
    for component in _strongly_connected(nodes, edges):
        members = set(component)
        start = min(component, key=position.__getitem__)
        if len(component) == 1 and start not in edges.get(start, []):
            continue
        path = _cycle_path(start, members, edges)
        if path:
            cycles.append(Cycle(path=path, members=frozenset(members)))
    return cycles


def _strongly_connected(nodes: Sequence[str], edges: Dict[str, List[str]]) -> List[List[str]]:
    # Iterative Tarjan; components come out in reverse topological order.
    index_of: Dict[str, int] = {}
    lowlink: Dict[str, int] = {}
    on_stack: Set[str] = set()
    stack: List[str] = []
    components: List[List[str]] = []
    counter = 0

    for root in nodes:
        if root in index_of:
            continue
        work = [(root, iter(edges.get(root, [])))]
        index_of[root] = lowlink[root] = counter
        counter += 1
        stack.append(root)
        on_stack.add(root)
        while work:
            node, children = work[-1]
            advanced = False
            for child in children:
                if child not in index_of:
                    index_of[child] = lowlink[child] = counter
                    counter += 1
                    stack.append(child)
                    on_stack.add(child)
                    work.append((child, iter(edges.get(child, []))))
                    advanced = True
                    break
                if child in on_stack:
                    lowlink[node] = min(lowlink[node], index_of[child])
            if advanced:
                continue
            work.pop()
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[node])
            if lowlink[node] == index_of[node]:
                component: List[str] = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node:
                        break
                components.append(component)
    return components


def _cycle_path(start: str, members: Set[str], edges: Dict[str, List[str]]) -> List[str]:
    """Find a closed walk from ``start`` back to itself inside one component."""
    parents: Dict[str, Optional[str]] = {start: None}
    queue = [start]
    while queue:
        node = queue.pop(0)
        for child in edges.get(node, []):
            if child not in members:
                continue
            if child == start:
                path = [node]
                while parents[path[-1]] is not None:
                    path.append(parents[path[-1]])  # type: ignore[arg-type]
                path.reverse()
                return path + [start]
            if child not in parents:
                parents[child] = node
                queue.append(child)
    return []


def _preference_rank(universe: Universe) -> Dict[str, int]:
    """Post-order of a DFS over every reference, in declaration order.

    Referenced types rank before the types that use them; otherwise the
    declaration order is kept.
    """
    rank: Dict[str, int] = {}
    visited: Set[str] = set()
    for decl in universe.types():
        root = decl.qualified_name
        if root in visited:
            continue
        visited.add(root)
        work = [(root, _all_references(decl))]
        while work:
            node, children = work[-1]
            advanced = False
            for child in children:
                child_decl = universe.type(child)
                if child_decl is None or child in visited:
                    continue
                visited.add(child)
                work.append((child, _all_references(child_decl)))
                advanced = True
                break
            if not advanced:
                work.pop()
                rank[node] = len(rank)
    return rank


def _topological_order(
    nodes: Sequence[str],
    edges: Dict[str, List[str]],
    rank: Dict[str, int],
    excluded: Set[str],
) -> List[str]:
    pending: Dict[str, int] = {}
    dependents: Dict[str, List[str]] = {node: [] for node in nodes}
    for node in nodes:
        if node in excluded:
            continue
        deps = [dep for dep in edges.get(node, []) if dep not in excluded]
        pending[node] = len(deps)
        for dep in deps:
            dependents[dep].append(node)

    ready = [(rank[node], node) for node, count in pending.items() if count == 0]
    heapq.heapify(ready)
    order: List[str] = []
    while ready:
        _, node = heapq.heappop(ready)
        order.append(node)
        for dependent in dependents[node]:
            pending[dependent] -= 1
            if pending[dependent] == 0:
                heapq.heappush(ready, (rank[dependent], dependent))
    return order


def _compute_assignability(universe: Universe, cyclic: Set[str]) -> Dict[str, bool]:
    cache: Dict[str, bool] = {name: False for name in cyclic}

    def assignable(ref: TypeRef) -> bool:
        if ref.kind is Kind.BUILTIN:
            return ref.name in BUILTIN_VALUE_TYPES
        if ref.kind is Kind.ARRAY and ref.elem is not None:
            return assignable(ref.elem)
        if ref.kind is not Kind.NAMED or not ref.name:
            return False
        if ref.name in cache:
            return cache[ref.name]
        decl = universe.type(ref.name)
        if decl is None:
            return False
        # Direct-value chains are acyclic here, so the recursion terminates.
        if decl.kind is Kind.STRUCT:
            result = all(assignable(member.type) for member in decl.fields)
        elif decl.kind is Kind.ALIAS and decl.underlying is not None:
            result = assignable(decl.underlying)
        else:
            result = False
        cache[ref.name] = result
        return result

    for decl in universe.types():
        assignable(TypeRef.named(decl.qualified_name))
    return cache


__all__ = ["Cycle", "DependencyGraph", "build_graph", "direct_value_targets", "find_cycles"]
