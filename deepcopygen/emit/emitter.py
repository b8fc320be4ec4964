"""Rendering of DeepCopyInto, DeepCopy and DeepCopy<Interface> methods."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from ..analysis.strategy import (
    REFERENCE_SHAPES,
    CloneForm,
    CopyPlan,
    FieldPlan,
    Strategy,
    TypePlan,
)
from ..analysis.tags import InterfaceRequest, Receiver
from ..logging import get_logger
from ..models import Kind, Package, TypeRef, split_qualified
from .rendering import (
    DEEPCOPY_INTO_TEMPLATE,
    DEEPCOPY_TEMPLATE,
    INTERFACE_METHOD_TEMPLATE,
    render_template,
)
from .writer import ImportTracker, SourceWriter

logger = get_logger("emit")

# Identifiers introduced by generated method bodies.
LOCAL_IDENTIFIERS = frozenset({"in", "out", "key", "val", "outVal", "i", "x", "c"})


@dataclass
class EmittedPackage:
    """Generated method text for one package, ready to be written out."""

    package: str
    name: str
    types: List[str] = field(default_factory=list)
    imports: List[Tuple[str, str]] = field(default_factory=list)
    body: str = ""

    @property
    def empty(self) -> bool:
        return not self.types


class PackageEmitter:
    """Renders the methods of every planned type of one package.

    Rendering runs twice: the first pass records which imports are actually
    referenced, the second renders with names assigned from that final set.
    """

    def __init__(self, package: Package, plans: Sequence[TypePlan], *, clone_function: str) -> None:
        self.package = package
        self.plans = list(plans)
        self.clone_function = clone_function

    def emit(self) -> EmittedPackage:
        reserved = LOCAL_IDENTIFIERS | {decl.name for decl in self.package.types}
        first_pass = ImportTracker(self.package.path, reserved=reserved)
        self._render(first_pass)
        tracker = ImportTracker(self.package.path, first_pass.used, reserved=reserved)
        body = self._render(tracker)
        emitted = EmittedPackage(
            package=self.package.path,
            name=self.package.name,
            types=[plan.decl.name for plan in self.plans],
            imports=tracker.imports(),
            body=body,
        )
        logger.debug("Rendered %d types for %s", len(emitted.types), self.package.path)
        return emitted

    def _render(self, tracker: ImportTracker) -> str:
        renderer = MethodRenderer(tracker, self.clone_function)
        chunks: List[str] = []
        for plan in self.plans:
            chunks.extend(renderer.render_type(plan))
        return "\n".join(chunks)


class MethodRenderer:
    """Turns copy plans into Go method text.

    Container copies follow one convention throughout: ``in`` and ``out`` are
    pointers to the source and destination container, rebound in a nested
    scope for every level of nesting.
    """

    def __init__(self, tracker: ImportTracker, clone_function: str) -> None:
        self.tracker = tracker
        self.clone_function = clone_function

    def render_type(self, plan: TypePlan) -> List[str]:
        """Return one chunk of source per generated method."""
        chunks: List[str] = []
        if plan.policy.emit_into:
            chunks.append(self._deep_copy_into(plan))
        if plan.policy.emit_clone:
            chunks.append(self._deep_copy(plan))
        for request in plan.policy.interfaces:
            chunks.append(self._interface_method(plan, request))
        return chunks

    # Type-level methods

    def _deep_copy_into(self, plan: TypePlan) -> str:
        if plan.reference and plan.underlying is not None:
            w = SourceWriter(depth=2)
            self._container(plan.underlying, plan.decl.name, w)
            return render_template(
                DEEPCOPY_INTO_TEMPLATE, name=plan.decl.name, reference=True, fixups=w.getvalue()
            )

        w = SourceWriter(depth=1)
        for item in plan.fields:
            self._field(item, w)
        underlying = plan.underlying
        if underlying is not None and underlying.strategy is not Strategy.DIRECT_ASSIGN:
            if underlying.shape is Kind.ARRAY and underlying.elem is not None:
                self._elements(underlying, w)
        return render_template(
            DEEPCOPY_INTO_TEMPLATE, name=plan.decl.name, reference=False, fixups=w.getvalue()
        )

    def _deep_copy(self, plan: TypePlan) -> str:
        return render_template(DEEPCOPY_TEMPLATE, name=plan.decl.name, reference=plan.reference)

    def _interface_method(self, plan: TypePlan, request: InterfaceRequest) -> str:
        clone = plan.methods.clone or CloneForm.POINTER
        pointer_receiver = not plan.reference and plan.policy.receiver is Receiver.POINTER
        if plan.reference:
            form = "checked"
        elif pointer_receiver:
            form = "checked" if clone is CloneForm.POINTER else "nil-receiver"
        else:
            form = "dereference" if clone is CloneForm.POINTER else "value"
        return render_template(
            INTERFACE_METHOD_TEMPLATE,
            name=plan.decl.name,
            method=request.method,
            interface=self.type_name(TypeRef.named(request.interface)),
            pointer_receiver=pointer_receiver,
            form=form,
        )

    # Members and values

    def _field(self, item: FieldPlan, w: SourceWriter) -> None:
        plan = item.plan
        # `*out = *in` already copied every assignable member.
        if plan.strategy is Strategy.DIRECT_ASSIGN:
            return
        name = item.field.name
        self._value(plan, f"in.{name}", f"out.{name}", w)

    def _value(self, plan: CopyPlan, src: str, dst: str, w: SourceWriter) -> None:
        """Deep-copy the addressable value ``src`` into the addressable ``dst``."""
        if plan.strategy is Strategy.DIRECT_ASSIGN:
            w.line(f"{dst} = {src}")
        elif plan.strategy is Strategy.INTERFACE_METHOD:
            with w.block(f"if {src} != nil"):
                w.line(f"{dst} = {_operand(src)}.{plan.method}()")
        elif plan.strategy is Strategy.REFLECTIVE_CLONE:
            w.line(f"{dst} = {self._reflective(src, plan.ref)}")
        elif plan.methods is not None:
            self._named_value(plan, src, dst, w)
        elif plan.shape in REFERENCE_SHAPES:
            with w.block(f"if {src} != nil"):
                w.line(f"in, out := &{src}, &{dst}")
                self._container(plan, self.type_name(plan.ref), w)
        elif plan.shape is Kind.ARRAY:
            with w.block(""):
                w.line(f"in, out := &{src}, &{dst}")
                self._elements(plan, w)
        else:
            raise ValueError(f"no rendering for {plan.strategy.value} plan of {plan.ref}")

    def _named_value(self, plan: CopyPlan, src: str, dst: str, w: SourceWriter) -> None:
        methods = plan.methods
        if methods is None:
            raise ValueError(f"copy methods of {plan.ref} were not resolved")
        receiver = _operand(src)
        if plan.reference:
            if methods.clone is CloneForm.VALUE:
                w.line(f"{dst} = {receiver}.DeepCopy()")
            elif methods.into:
                with w.block(f"if {src} != nil"):
                    w.line(f"{receiver}.DeepCopyInto(&{dst})")
            else:
                with w.block(f"if {src} != nil"):
                    w.line(f"{dst} = *{receiver}.DeepCopy()")
        elif methods.into:
            w.line(f"{receiver}.DeepCopyInto(&{dst})")
        elif methods.clone is CloneForm.POINTER:
            w.line(f"{dst} = *{receiver}.DeepCopy()")
        else:
            w.line(f"{dst} = {receiver}.DeepCopy()")

    # Containers; `in` and `out` point at the container being copied.

    def _container(self, plan: CopyPlan, type_expr: str, w: SourceWriter) -> None:
        if plan.shape is Kind.POINTER:
            self._pointer(plan, w)
        elif plan.shape is Kind.SLICE:
            w.line(f"*out = make({type_expr}, len(*in))")
            elem = _elem(plan)
            if elem.strategy is Strategy.DIRECT_ASSIGN:
                w.line("copy(*out, *in)")
            else:
                self._elements(plan, w)
        elif plan.shape is Kind.MAP:
            self._map(plan, type_expr, w)
        elif plan.shape is Kind.ARRAY:
            self._elements(plan, w)
        else:
            raise ValueError(f"{plan.ref} is not a container")

    def _elements(self, plan: CopyPlan, w: SourceWriter) -> None:
        with w.block("for i := range *in"):
            self._value(_elem(plan), "(*in)[i]", "(*out)[i]", w)

    def _pointer(self, plan: CopyPlan, w: SourceWriter) -> None:
        elem = _elem(plan)
        elem_type = self.type_name(elem.ref)
        allocate = f"*out = new({elem_type})"
        # Methods of the pointee are not promoted to a defined pointer type.
        source = f"({self.type_name(TypeRef.pointer(elem.ref))})(*in)" if plan.named else "(*in)"

        if elem.strategy is Strategy.DIRECT_ASSIGN:
            w.line(allocate)
            w.line("**out = **in")
        elif elem.methods is not None:
            methods = elem.methods
            if elem.reference:
                w.line(allocate)
                with w.block("if **in != nil"):
                    if methods.clone is CloneForm.VALUE:
                        w.line(f"**out = {source}.DeepCopy()")
                    elif methods.into:
                        w.line(f"{source}.DeepCopyInto(*out)")
                    else:
                        w.line(f"*out = {source}.DeepCopy()")
            elif methods.into:
                w.line(allocate)
                w.line(f"{source}.DeepCopyInto(*out)")
            elif methods.clone is CloneForm.POINTER:
                w.line(f"*out = {source}.DeepCopy()")
            else:
                w.line(f"x := {source}.DeepCopy()")
                w.line("*out = &x")
        elif elem.shape in REFERENCE_SHAPES:
            w.line(allocate)
            with w.block("if **in != nil"):
                w.line("in, out := *in, *out")
                self._container(elem, elem_type, w)
        else:
            w.line(allocate)
            self._value(elem, "**in", "**out", w)

    def _map(self, plan: CopyPlan, type_expr: str, w: SourceWriter) -> None:
        elem = _elem(plan)
        elem_type = self.type_name(elem.ref)
        w.line(f"*out = make({type_expr}, len(*in))")
        with w.block("for key, val := range *in"):
            if elem.strategy is Strategy.DIRECT_ASSIGN:
                w.line("(*out)[key] = val")
            elif elem.strategy is Strategy.INTERFACE_METHOD:
                with w.block("if val == nil", close=False):
                    w.line("(*out)[key] = nil")
                with w.block("} else"):
                    w.line(f"(*out)[key] = val.{elem.method}()")
            elif elem.strategy is Strategy.REFLECTIVE_CLONE:
                w.line(f"(*out)[key] = {self._reflective('val', elem.ref)}")
            elif elem.methods is not None:
                self._named_map_value(elem, elem_type, w)
            elif elem.shape in REFERENCE_SHAPES:
                w.line(f"var outVal {elem_type}")
                with w.block("if val == nil", close=False):
                    w.line("(*out)[key] = nil")
                with w.block("} else"):
                    w.line("in, out := &val, &outVal")
                    self._container(elem, elem_type, w)
                w.line("(*out)[key] = outVal")
            else:
                w.line(f"var outVal {elem_type}")
                self._value(elem, "val", "outVal", w)
                w.line("(*out)[key] = outVal")

    def _named_map_value(self, elem: CopyPlan, elem_type: str, w: SourceWriter) -> None:
        methods = elem.methods
        if methods is None:
            raise ValueError(f"copy methods of {elem.ref} were not resolved")
        if methods.clone is CloneForm.VALUE:
            w.line("(*out)[key] = val.DeepCopy()")
            return
        if methods.clone is CloneForm.POINTER and not elem.reference:
            w.line("(*out)[key] = *val.DeepCopy()")
            return
        if elem.reference:
            with w.block("if val == nil", close=False):
                w.line("(*out)[key] = nil")
            with w.block("} else"):
                w.line(f"var outVal {elem_type}")
                w.line("val.DeepCopyInto(&outVal)")
                w.line("(*out)[key] = outVal")
            return
        w.line(f"var outVal {elem_type}")
        w.line("val.DeepCopyInto(&outVal)")
        w.line("(*out)[key] = outVal")

    # Names

    def type_name(self, ref: TypeRef) -> str:
        """Render ``ref`` as it must be spelled inside the generated package."""
        if ref.kind is Kind.NAMED:
            path, name = split_qualified(ref.name or "")
            local = self.tracker.local_name(path)
            return f"{local}.{name}" if local else name
        if ref.kind is Kind.BUILTIN:
            return ref.name or ""
        if ref.kind is Kind.POINTER and ref.elem is not None:
            return "*" + self.type_name(ref.elem)
        if ref.kind is Kind.SLICE and ref.elem is not None:
            return "[]" + self.type_name(ref.elem)
        if ref.kind is Kind.ARRAY and ref.elem is not None:
            return f"[{ref.length}]{self.type_name(ref.elem)}"
        if ref.kind is Kind.MAP and ref.key is not None and ref.elem is not None:
            return f"map[{self.type_name(ref.key)}]{self.type_name(ref.elem)}"
        return str(ref)

    def _reflective(self, src: str, ref: TypeRef) -> str:
        path, function = split_qualified(self.clone_function)
        local = self.tracker.local_name(path)
        call = f"{local}.{function}" if local else function
        return f"{call}({src}).({self.type_name(ref)})"


def _elem(plan: CopyPlan) -> CopyPlan:
    if plan.elem is None:
        raise ValueError(f"container plan for {plan.ref} has no element plan")
    return plan.elem


def _operand(expr: str) -> str:
    """Parenthesize dereferences so a method call binds to the whole expression."""
    return f"({expr})" if expr.startswith("*") else expr


__all__ = ["EmittedPackage", "LOCAL_IDENTIFIERS", "MethodRenderer", "PackageEmitter"]
