"""Semantic model construction: class models, classification, container registry"""

import logging
from dataclasses import replace
from typing import Iterator, Optional

from .errors import (
    DeclarationError, ExposerError, IteratorError, ReceiverError, UnknownTargetError,
)
from .type_mapper import TypeMapper
from .types import (
    BindContext, BindInput, ClassModel, CtorDef, FieldDecl, FieldDef, FieldKind,
    FnDef, ImplDecl, Include, IterDef, MethodDecl, MethodDef, MethodKind, Receiver,
    StructDecl, TypeKind, Primitive, String, Object, Vector, Map, Option, Result,
    Reference, UniquePointer, Slice, strip_wrappers,
)

logger = logging.getLogger(__name__)

SELF = 'Self'
DEFAULT_CTOR = 'new'

FIELD_ATTRS = ('protected', 'readonly')
METHOD_ATTRS = ('protected', 'iter')

# inherent methods every generated handle already has
HANDLE_METHODS = ('as_ptr', 'as_ref', 'as_mut', 'from_ptr', 'from_unique', 'into_unique')

RECEIVER_KINDS = {
    Receiver.NONE: MethodKind.STATIC,
    Receiver.REF: MethodKind.CONST,
    Receiver.REF_MUT: MethodKind.MUTABLE,
}


def preprocess(bind_input: BindInput) -> BindContext:
    """Build the class models and container registry for a parsed bind! block"""
    ctx = BindContext()
    structs: list[StructDecl] = []
    impls: list[ImplDecl] = []

    for item in bind_input.items:
        if isinstance(item, Include):
            ctx.includes.append(item)
        elif isinstance(item, StructDecl):
            structs.append(item)
        elif isinstance(item, ImplDecl):
            impls.append(item)
        else:
            raise TypeError(f"Unknown bind item: {item!r}")

    # all names first, so field classification does not depend on order
    for struct in structs:
        if struct.name in ctx.models:
            raise DeclarationError(f"Duplicate struct '{struct.name}'")
        if struct.attrs:
            raise DeclarationError(
                f"Unknown attribute #[{struct.attrs[0].name}] on struct '{struct.name}'")
        ctx.models[struct.name] = ClassModel(
            name=struct.name,
            needs_exposer=any(f.has_attr('protected') for f in struct.fields),
        )

    for struct in structs:
        model = ctx.models[struct.name]
        model.fields = [_lower_field(model.name, decl, ctx.models) for decl in struct.fields]
        logger.debug("Registered struct %s (%d fields)", model.name, len(model.fields))

    for impl in impls:
        model = ctx.models.get(impl.target)
        if model is None:
            raise UnknownTargetError(impl.target)
        for decl in impl.methods:
            method = _lower_method(model.name, decl, ctx.models)
            if isinstance(method, FnDef) and method.is_protected:
                model.needs_exposer = True
            model.methods.append(method)

    for model in ctx.models.values():
        _check_exposer(model)
        _inject_default_ctor(model)
        _check_member_names(model)

    ctx.vec_defs, ctx.map_defs = ContainerCollector(ctx.models).collect()
    _check_flat_names(ctx)
    logger.debug("Container registry: %d vectors, %d maps", len(ctx.vec_defs), len(ctx.map_defs))
    return ctx


# ══════════════════════════════════════════════════════════════
# Fields
# ══════════════════════════════════════════════════════════════

def classify_field(ty: TypeKind, models: dict[str, ClassModel]) -> FieldKind:
    """Derive the accessor shape of a field from its type"""
    if isinstance(ty, Vector):
        return FieldKind.VEC
    if isinstance(ty, Map):
        return FieldKind.MAP
    if isinstance(ty, Option):
        return FieldKind.OPT_OBJ if _names_class(ty.inner, models) else FieldKind.OPT_VAL
    return FieldKind.OBJ if _names_class(ty, models) else FieldKind.VAL


def _names_class(ty: TypeKind, models: dict[str, ClassModel]) -> bool:
    ty = strip_wrappers(ty)
    return isinstance(ty, Object) and ty.name in models


def _lower_field(class_name: str, decl: FieldDecl, models: dict[str, ClassModel]) -> FieldDef:
    where = f"field '{class_name}.{decl.name}'"
    for attr in decl.attrs:
        if attr.name not in FIELD_ATTRS:
            raise DeclarationError(f"Unknown attribute #[{attr.name}] on {where}")

    ty = _resolve_self(decl.ty, class_name)
    if isinstance(ty, (Reference, Slice, Result)):
        raise DeclarationError(f"Type {ty} cannot be stored in a field", context=where)
    if isinstance(ty, Option) and not isinstance(ty.inner, (Primitive, String, Object)):
        raise DeclarationError(f"Optional fields must hold a value or an object, got {ty}",
                               context=where)
    _check_type(ty, models, where, is_return=True)

    return FieldDef(
        name=decl.name,
        ty=ty,
        is_protected=decl.has_attr('protected'),
        is_readonly=decl.has_attr('readonly'),
        kind=classify_field(ty, models),
    )


# ══════════════════════════════════════════════════════════════
# Methods
# ══════════════════════════════════════════════════════════════

def _lower_method(class_name: str, decl: MethodDecl, models: dict[str, ClassModel]) -> MethodDef:
    where = f"method '{class_name}::{decl.name}'"
    if decl.line:
        where = f"{where} (line {decl.line})"

    for attr in decl.attrs:
        if attr.name not in METHOD_ATTRS:
            raise DeclarationError(f"Unknown attribute #[{attr.name}]", context=where)

    if decl.receiver in (Receiver.VALUE, Receiver.VALUE_MUT):
        raise ReceiverError("Pass-by-value `self` is not supported. Use `&self` or `&mut self`",
                            context=where)

    if decl.has_attr('iter'):
        return _lower_iterator(class_name, decl, models, where)

    if decl.ret == Object(SELF):
        return _lower_ctor(class_name, decl, models, where)

    args = tuple(replace(a, ty=_resolve_self(a.ty, class_name)) for a in decl.args)
    for arg in args:
        _check_type(arg.ty, models, f"{where}, argument '{arg.name}'", is_return=False)

    ret = _resolve_self(decl.ret, class_name) if decl.ret is not None else None
    kind = RECEIVER_KINDS[decl.receiver]
    if ret is not None:
        _check_type(ret, models, where, is_return=True)
        _check_borrowed_return(ret, args, kind, where)

    return FnDef(
        name=decl.name,
        cpp_name=decl.cpp_name or decl.name,
        args=args,
        ret_ty=ret,
        kind=kind,
        is_protected=decl.has_attr('protected'),
    )


def _lower_ctor(class_name: str, decl: MethodDecl, models: dict[str, ClassModel],
                where: str) -> CtorDef:
    if decl.receiver is not Receiver.NONE:
        raise ReceiverError("Constructors must be static (no self)", context=where)
    if decl.has_attr('protected'):
        raise DeclarationError("#[protected] cannot be applied to a constructor", context=where)

    args = tuple(replace(a, ty=_resolve_self(a.ty, class_name)) for a in decl.args)
    for arg in args:
        _check_type(arg.ty, models, f"{where}, argument '{arg.name}'", is_return=False)

    return CtorDef(
        name=decl.name,
        args=args,
        cpp_name=decl.cpp_name or decl.name,
        is_user_defined=decl.cpp_name is not None,
    )


def _lower_iterator(class_name: str, decl: MethodDecl, models: dict[str, ClassModel],
                    where: str) -> IterDef:
    attr = decl.attr('iter')
    if not attr.has_args or 'Item' not in attr.args:
        raise IteratorError("Iterator attribute requires an Item type: #[iter(Item = T)]",
                            context=where)
    if decl.args:
        raise IteratorError("Iterator methods cannot take arguments", context=where)
    if decl.receiver is Receiver.NONE:
        raise ReceiverError("Iterator must take &self or &mut self", context=where)
    if decl.ret is not None:
        raise IteratorError("Iterator methods cannot declare a return type", context=where)
    if decl.cpp_name is not None:
        raise IteratorError("Iterator methods cannot be mapped to a native name", context=where)
    if decl.has_attr('protected'):
        raise DeclarationError("#[protected] cannot be applied to an iterator", context=where)

    yield_ty = _resolve_self(attr.args['Item'], class_name)
    is_iter_mut = decl.receiver is Receiver.REF_MUT

    if isinstance(yield_ty, Reference):
        if yield_ty.is_mut and not is_iter_mut:
            raise IteratorError(
                "Iterator producing mutable references (&mut T) must take &mut self",
                context=where)
        if not TypeMapper.is_object_value(yield_ty.inner):
            raise IteratorError(f"Borrowed iterator items must be objects, got {yield_ty}",
                                context=where)
    elif not isinstance(yield_ty, (Primitive, String, Object, Vector, Map)):
        raise IteratorError(f"Unsupported iterator item type {yield_ty}", context=where)

    _check_type(yield_ty, models, where, is_return=True)
    return IterDef(name=decl.name, yield_ty=yield_ty, cpp_name=decl.name, is_iter_mut=is_iter_mut)


def _check_borrowed_return(ret: TypeKind, args: tuple, kind: MethodKind, where: str):
    if not TypeMapper.contains_borrow(ret):
        return
    inner = ret.inner if isinstance(ret, (Option, Result)) else ret
    if kind is MethodKind.CONST and isinstance(inner, Reference) and inner.is_mut:
        raise DeclarationError("A `&self` method cannot return a mutable reference",
                               context=where)
    if kind is MethodKind.STATIC:
        borrowed = [a for a in args if TypeMapper.is_borrowed_arg(a.ty)]
        if len(borrowed) != 1:
            raise DeclarationError(
                "A static method returning a reference needs exactly one borrowed argument",
                context=where)


# ══════════════════════════════════════════════════════════════
# Types
# ══════════════════════════════════════════════════════════════

def _resolve_self(ty: Optional[TypeKind], class_name: str) -> Optional[TypeKind]:
    """Replace `Self` with the enclosing class anywhere inside a type"""
    if ty is None or isinstance(ty, (Primitive, String)):
        return ty
    if isinstance(ty, Object):
        return Object(class_name) if ty.name == SELF else ty
    if isinstance(ty, Map):
        return replace(ty, key=_resolve_self(ty.key, class_name),
                       value=_resolve_self(ty.value, class_name))
    return replace(ty, inner=_resolve_self(ty.inner, class_name))


def _check_type(ty: TypeKind, models: dict[str, ClassModel], where: str, is_return: bool,
                top: bool = True):
    """Reject types the bridge cannot carry in the given position"""
    def fail(message: str):
        raise DeclarationError(message, context=where)

    if isinstance(ty, (Primitive, String)):
        return

    if isinstance(ty, Object):
        if ty.name not in models:
            fail(f"Unknown type '{ty.name}'; declare it with a struct in the bind! block")
        return

    if isinstance(ty, Vector):
        _check_element(ty.inner, fail)
        _check_type(ty.inner, models, where, is_return, top=False)
        return

    if isinstance(ty, Map):
        if not isinstance(ty.key, (Primitive, String)):
            fail(f"Map keys must be primitives or String, got {ty.key}")
        _check_element(ty.value, fail)
        _check_type(ty.value, models, where, is_return, top=False)
        return

    if isinstance(ty, (Option, Result)):
        name = type(ty).__name__
        if not top:
            fail(f"{name} can only wrap a whole return type, got {ty}")
        if not is_return:
            fail(f"{name} type is not supported as function argument in FFI")
        if isinstance(ty.inner, (Option, Result, Slice)) or (
                isinstance(ty.inner, Reference) and isinstance(ty.inner.inner, Slice)):
            fail(f"Unsupported {name} payload: {ty}")
        _check_type(ty.inner, models, where, is_return, top=False)
        return

    if isinstance(ty, Reference):
        inner = ty.inner
        if isinstance(inner, Slice):
            if not isinstance(inner.inner, Primitive):
                fail(f"Slices must hold primitives, got {inner}")
            if is_return and ty.is_mut:
                fail(f"Mutable slices cannot be returned: {ty}")
            return
        if not isinstance(inner, (Primitive, String, Object, Vector, Map)):
            fail(f"Unsupported reference target: {ty}")
        _check_type(inner, models, where, is_return, top=False)
        return

    if isinstance(ty, UniquePointer):
        if not TypeMapper.is_object_value(ty.inner):
            fail(f"UniquePtr must hold an object, got {ty}")
        _check_type(ty.inner, models, where, is_return, top=False)
        return

    if isinstance(ty, Slice):
        fail(f"Slice must be behind a reference: {ty}")

    raise TypeError(f"Unknown type kind: {ty!r}")


def _check_element(elem: TypeKind, fail):
    if isinstance(elem, (Option, Result, Reference, Slice, UniquePointer)):
        fail(f"Containers cannot hold {elem}")


# ══════════════════════════════════════════════════════════════
# Whole-class checks
# ══════════════════════════════════════════════════════════════

def _check_exposer(model: ClassModel):
    if not model.needs_exposer:
        return
    for ctor in model.ctors:
        if ctor.is_user_defined:
            raise ExposerError(
                f"Error in struct '{model.name}': Constructor '{ctor.name}' defines a custom "
                f"C++ factory ('{ctor.cpp_name}'), but the struct also uses #[protected] "
                f"members. Custom factories are not supported with the Exposer pattern.")
    if model.iterators:
        raise ExposerError(
            f"Error in struct '{model.name}': the Exposer pattern is not supported for "
            f"iterators ('{model.iterators[0].name}')")


def _inject_default_ctor(model: ClassModel):
    if model.ctors:
        return
    model.methods.append(CtorDef(name=DEFAULT_CTOR, cpp_name=DEFAULT_CTOR))
    logger.debug("Injected default constructor for %s", model.name)


def _check_member_names(model: ClassModel):
    seen = set()
    names = []
    for f in model.fields:
        names.append(f.name)
        if f.has_setter:
            names.append(f.wrapper_set_name)
    names.extend(m.name for m in model.methods)
    for name in names:
        if name in HANDLE_METHODS:
            raise DeclarationError(
                f"Member '{name}' of struct '{model.name}' clashes with a handle method")
        if name in seen:
            raise DeclarationError(f"Duplicate member '{name}' in struct '{model.name}'")
        seen.add(name)


def _check_flat_names(ctx: BindContext):
    owners = {name: Object(name) for name in ctx.models}
    for ty in [*ctx.vec_defs, *ctx.map_defs]:
        name = TypeMapper.flat_name(ty)
        other = owners.setdefault(name, ty)
        if other != ty:
            raise DeclarationError(f"Generated name '{name}' is used by both {other} and {ty}")


# ══════════════════════════════════════════════════════════════
# Container registry
# ══════════════════════════════════════════════════════════════

class ContainerCollector:
    """Finds every vector and map instantiation the model refers to"""

    def __init__(self, models: dict[str, ClassModel]):
        self.models = models

    def collect(self) -> tuple[frozenset, frozenset]:
        vecs, maps = set(), set()
        for ty in self.model_types():
            self._visit(ty, vecs, maps)
        return frozenset(vecs), frozenset(maps)

    def model_types(self) -> Iterator[TypeKind]:
        for model in self.models.values():
            for f in model.fields:
                yield f.ty
            for method in model.methods:
                if isinstance(method, IterDef):
                    yield method.yield_ty
                    continue
                for arg in method.args:
                    yield arg.ty
                if isinstance(method, FnDef) and method.ret_ty is not None:
                    yield method.ret_ty

    def _visit(self, ty: TypeKind, vecs: set, maps: set):
        if isinstance(ty, Vector):
            vecs.add(ty)
            self._visit(ty.inner, vecs, maps)
        elif isinstance(ty, Map):
            maps.add(ty)
            self._visit(ty.key, vecs, maps)
            self._visit(ty.value, vecs, maps)
        elif isinstance(ty, (Option, Result, Reference, UniquePointer, Slice)):
            self._visit(ty.inner, vecs, maps)
