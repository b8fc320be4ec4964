"""Copy strategy resolution for fields, container elements and alias underlyings.

Every reference reachable from a generated type is turned into a
:class:`CopyPlan` before any code is written. Resolution picks the first rule
that applies:

1. the value is assignable, so a plain copy is already deep;
2. the named type gets copy methods generated in this run;
3. the named type carries hand-written copy methods, or is disabled and is
   assumed to carry the conventional ``DeepCopyInto``/``DeepCopy`` pair;
4. an anonymous pointer, slice, map or array, or a defined pointer type,
   is copied inline, element by element;
5. an interface value is copied through its ``DeepCopy<Name>`` method;
6. a type with unknown structure falls back to a reflective clone function.

Anything else is an error attached to the field that referenced it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Set, Tuple

from ..errors import GenerationError, MissingInterfaceMethodError, UnresolvedTypeError
from ..logging import get_logger
from ..models import Field, Kind, Package, TypeDecl, TypeRef
from .context import GenerationContext
from .tags import GenerationPolicy

logger = get_logger("strategy")

# Shapes copied by reference whose zero value is nil.
REFERENCE_SHAPES = frozenset({Kind.POINTER, Kind.SLICE, Kind.MAP})
NILABLE_SHAPES = REFERENCE_SHAPES | {Kind.INTERFACE}


class Strategy(str, Enum):
    DIRECT_ASSIGN = "direct-assign"
    RECURSE_GENERATED = "recurse-generated"
    RECURSE_PREDEFINED = "recurse-predefined"
    INTERFACE_METHOD = "interface-method"
    REFLECTIVE_CLONE = "reflective-clone"


class CloneForm(str, Enum):
    """Result type of a ``DeepCopy()`` method."""

    POINTER = "pointer"  # DeepCopy() *T
    VALUE = "value"  # DeepCopy() T


@dataclass(frozen=True)
class CopyMethods:
    """Copy methods callable on a named type, generated or hand-written."""

    into: bool
    clone: Optional[CloneForm]


@dataclass(frozen=True)
class CopyPlan:
    """How one value is copied."""

    strategy: Strategy
    ref: TypeRef
    shape: Kind
    target: Optional[str] = None
    elem: Optional["CopyPlan"] = None
    methods: Optional[CopyMethods] = None
    method: Optional[str] = None

    @property
    def reference(self) -> bool:
        return self.shape in REFERENCE_SHAPES

    @property
    def nilable(self) -> bool:
        return self.shape in NILABLE_SHAPES

    @property
    def named(self) -> bool:
        return self.ref.kind is Kind.NAMED

    def walk(self) -> Iterator["CopyPlan"]:
        yield self
        if self.elem is not None:
            yield from self.elem.walk()


@dataclass
class FieldPlan:
    field: Field
    plan: CopyPlan


@dataclass
class TypePlan:
    """Everything the emitter needs to render the methods of one type."""

    decl: TypeDecl
    policy: GenerationPolicy
    shape: Kind
    methods: CopyMethods
    fields: List[FieldPlan] = field(default_factory=list)
    underlying: Optional[CopyPlan] = None

    @property
    def qualified_name(self) -> str:
        return self.decl.qualified_name

    @property
    def reference(self) -> bool:
        return self.shape in REFERENCE_SHAPES

    def plans(self) -> Iterator[Tuple[str, CopyPlan]]:
        """Yield ``(member, plan)`` for every plan, nested ones included."""
        for item in self.fields:
            for plan in item.plan.walk():
                yield f"field {item.field.name}", plan
        if self.underlying is not None:
            for plan in self.underlying.walk():
                yield "underlying type", plan

    def generated_dependencies(self) -> Iterator[Tuple[str, str]]:
        """Yield ``(member, qualified name)`` of generated methods this type calls."""
        for member, plan in self.plans():
            if plan.strategy is Strategy.RECURSE_GENERATED and plan.target:
                yield member, plan.target


class StrategyResolver:
    """Resolves copy plans for the types of one package.

    A resolver keeps a private method cache, so each worker uses its own
    instance while the shared context stays read-only.
    """

    def __init__(self, context: GenerationContext) -> None:
        self.context = context
        self.universe = context.universe
        self._methods: Dict[str, CopyMethods] = {}
        self._pointers: Set[str] = set()

    def resolve_package(self, package: Package) -> List[TypePlan]:
        """Resolve every type of ``package`` that gets code, in emission order."""
        plans: List[TypePlan] = []
        for decl in package.types:
            policy = self.context.policy(decl.qualified_name)
            if not policy.emits_anything:
                continue
            plans.append(self.resolve_type(decl, policy))
        graph = self.context.graph
        if graph is not None:
            plans.sort(key=lambda plan: graph.position(plan.qualified_name))
        return plans

    def resolve_type(self, decl: TypeDecl, policy: GenerationPolicy) -> TypePlan:
        try:
            methods = self.copy_methods(decl)
        except GenerationError as exc:
            raise exc.located(package=decl.package, type_name=decl.name)
        shape, base, underlying = self.universe.resolve(TypeRef.named(decl.qualified_name))
        plan = TypePlan(decl=decl, policy=policy, shape=shape, methods=methods)

        if shape is Kind.STRUCT and base is not None:
            for member in base.fields:
                try:
                    item = FieldPlan(field=member, plan=self.resolve(member.type, by_value=True))
                except GenerationError as exc:
                    raise exc.located(
                        package=decl.package, type_name=decl.name, member=f"field {member.name}"
                    )
                plan.fields.append(item)
        else:
            try:
                plan.underlying = self.resolve(underlying, by_value=True)
            except GenerationError as exc:
                raise exc.located(package=decl.package, type_name=decl.name, member="underlying type")

        for member, target_plan in plan.plans():
            if target_plan.named:
                logger.debug(
                    "%s %s: %s %s",
                    decl.qualified_name,
                    member,
                    target_plan.strategy.value,
                    target_plan.ref,
                )
        return plan

    def resolve(self, ref: TypeRef, *, by_value: bool = False) -> CopyPlan:
        """Resolve the plan for one type expression.

        ``by_value`` is True while ``ref`` is held inline by the generated type
        (struct field, array element, alias underlying) rather than behind a
        pointer, slice or map.
        """
        if ref.kind is Kind.BUILTIN:
            if ref.is_builtin_interface:
                raise MissingInterfaceMethodError(f"builtin interface {ref} has no DeepCopy method")
            return CopyPlan(strategy=Strategy.DIRECT_ASSIGN, ref=ref, shape=Kind.BUILTIN)
        if ref.kind in (Kind.CHAN, Kind.FUNC):
            raise UnresolvedTypeError(f"cannot deep-copy {ref.kind.value} type {ref}")
        if ref.kind is Kind.NAMED:
            return self._resolve_named(ref, by_value)
        if ref.kind is Kind.ARRAY and self._assignable(ref):
            return CopyPlan(strategy=Strategy.DIRECT_ASSIGN, ref=ref, shape=Kind.ARRAY)
        if ref.elem is None:
            raise UnresolvedTypeError(f"malformed type expression {ref}")
        elem = self.resolve(ref.elem, by_value=by_value and ref.kind is Kind.ARRAY)
        return CopyPlan(strategy=Strategy.RECURSE_GENERATED, ref=ref, shape=ref.kind, elem=elem)

    def _resolve_named(self, ref: TypeRef, by_value: bool) -> CopyPlan:
        name = ref.name or ""
        decl = self.universe.type(name)
        if decl is None:
            raise UnresolvedTypeError(f"type {name} not found")
        shape, base, _ = self.universe.resolve(ref)
        if shape is Kind.NAMED:
            raise UnresolvedTypeError(f"type {name} has no resolvable underlying type")

        if self._assignable(ref):
            return CopyPlan(strategy=Strategy.DIRECT_ASSIGN, ref=ref, shape=shape, target=name)

        if shape is Kind.BUILTIN:
            raise MissingInterfaceMethodError(f"{name} is a builtin interface without a DeepCopy method")
        if shape in (Kind.CHAN, Kind.FUNC):
            raise UnresolvedTypeError(f"cannot deep-copy {shape.value} type {name}")
        if shape is Kind.INTERFACE and base is not None:
            method = "DeepCopy" + base.name
            if method not in base.methods:
                raise MissingInterfaceMethodError(
                    f"interface {base.qualified_name} does not declare {method}()"
                )
            return CopyPlan(
                strategy=Strategy.INTERFACE_METHOD, ref=ref, shape=shape, target=name, method=method
            )
        if shape is Kind.OPAQUE:
            if not self.context.reflective_clone.enabled:
                raise UnresolvedTypeError(
                    f"structure of {name} is unknown and reflective cloning is disabled"
                )
            return CopyPlan(strategy=Strategy.REFLECTIVE_CLONE, ref=ref, shape=shape, target=name)
        if shape is Kind.POINTER:
            return self._resolve_defined_pointer(ref)

        policy = self.context.policy(name)
        declared = _declared_copy_methods(decl)
        if by_value and policy.opted_out and not declared:
            raise UnresolvedTypeError(
                f"{name} opted out of deep-copy generation and declares no DeepCopyInto or DeepCopy method"
            )
        methods = self.copy_methods(decl)
        generated = policy.enabled and (policy.emit_into or policy.emit_clone)
        if self.context.failed(decl.package) and (generated or not declared):
            raise UnresolvedTypeError(
                f"copy methods of {name} are unavailable because package {decl.package} failed"
            )
        strategy = Strategy.RECURSE_GENERATED if generated else Strategy.RECURSE_PREDEFINED
        return CopyPlan(strategy=strategy, ref=ref, shape=shape, target=name, methods=methods)

    def _resolve_defined_pointer(self, ref: TypeRef) -> CopyPlan:
        """Plan a named pointer type through its pointee.

        A defined pointer type has an empty method set, so it is copied inline
        like an anonymous pointer.
        """
        name = ref.name or ""
        if name in self._pointers:
            raise UnresolvedTypeError(f"pointer type {name} points to itself")
        _, _, underlying = self.universe.resolve(ref)
        if underlying.elem is None:
            raise UnresolvedTypeError(f"malformed pointer type {ref}")
        self._pointers.add(name)
        try:
            elem = self.resolve(underlying.elem)
        finally:
            self._pointers.discard(name)
        return CopyPlan(strategy=Strategy.RECURSE_GENERATED, ref=ref, shape=Kind.POINTER, elem=elem)

    def copy_methods(self, decl: TypeDecl) -> CopyMethods:
        """Return the copy methods callable on ``decl`` once generation is done.

        Hand-written methods are validated. Methods a type lacks are either
        generated in this run or, for a disabled type without any copy method,
        assumed to follow the conventional signatures.
        """
        key = decl.qualified_name
        cached = self._methods.get(key)
        if cached is not None:
            return cached

        self_ref = TypeRef.named(key)
        shape, _, _ = self.universe.resolve(self_ref)
        default_clone = CloneForm.VALUE if shape in REFERENCE_SHAPES else CloneForm.POINTER
        into = False
        clone: Optional[CloneForm] = None

        declared_into = decl.methods.get("DeepCopyInto")
        if declared_into is not None:
            if declared_into.has_signature and (
                declared_into.params != [TypeRef.pointer(self_ref)] or declared_into.results
            ):
                raise UnresolvedTypeError(
                    f"{key}.DeepCopyInto has an unexpected signature, expected DeepCopyInto(*{decl.name})"
                )
            into = True

        declared_clone = decl.methods.get("DeepCopy")
        if declared_clone is not None:
            clone = default_clone
            if declared_clone.has_signature:
                results = declared_clone.results
                if declared_clone.params or len(results) != 1:
                    raise UnresolvedTypeError(f"{key}.DeepCopy has an unexpected signature")
                if results[0] == TypeRef.pointer(self_ref):
                    clone = CloneForm.POINTER
                elif results[0] == self_ref:
                    clone = CloneForm.VALUE
                else:
                    raise UnresolvedTypeError(
                        f"{key}.DeepCopy returns {results[0]}, expected {decl.name} or *{decl.name}"
                    )

        policy = self.context.policy(key)
        if policy.enabled or (declared_into is None and declared_clone is None):
            into = True
            clone = clone or default_clone

        methods = CopyMethods(into=into, clone=clone)
        self._methods[key] = methods
        return methods

    def _assignable(self, ref: TypeRef) -> bool:
        graph = self.context.graph
        return graph.is_assignable(ref) if graph is not None else False


def _declared_copy_methods(decl: TypeDecl) -> Set[str]:
    return {name for name in ("DeepCopyInto", "DeepCopy") if name in decl.methods}


__all__ = [
    "CloneForm",
    "CopyMethods",
    "CopyPlan",
    "FieldPlan",
    "NILABLE_SHAPES",
    "REFERENCE_SHAPES",
    "Strategy",
    "StrategyResolver",
    "TypePlan",
]
