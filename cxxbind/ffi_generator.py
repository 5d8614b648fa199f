"""FFI Generator - generates the declarations inside the cxx bridge's extern block"""

from typing import Optional

from .type_mapper import TypeMapper
from .types import (
    Arg, BindContext, ClassModel, CtorDef, FieldDef, FieldKind, FnDef, IterDef,
    IterNames, MethodKind, TypeKind, Map, Vector, String,
)

LIFETIME = 'a'
RECEIVER = 'self_'


class FfiGenerator:
    """Projects the class models onto matched cxx declarations"""

    def __init__(self, ctx: BindContext):
        self.ctx = ctx

    def generate_items(self) -> list[str]:
        """Declarations for the body of `unsafe extern "C++"`"""
        lines = []
        for model in self.ctx.models.values():
            lines.extend(self._class_block(model))
        for vec in self.ctx.sorted_vecs():
            lines.extend(self._vec_block(vec))
        for map_def in self.ctx.sorted_maps():
            lines.extend(self._map_block(map_def))
        return lines

    @staticmethod
    def declare(rust_name: str, params: list[str], ret: Optional[str] = None,
                cxx_name: Optional[str] = None, lifetime: bool = False) -> list[str]:
        lines = []
        if cxx_name and cxx_name != rust_name:
            lines.append(f'#[cxx_name = "{cxx_name}"]')
        generics = f"<'{LIFETIME}>" if lifetime else ''
        sig = f"fn {rust_name}{generics}({', '.join(params)})"
        if ret:
            sig += f" -> {ret}"
        lines.append(sig + ';')
        return lines

    # ── classes ───────────────────────────────────────────────

    def _class_block(self, model: ClassModel) -> list[str]:
        lines = [f"// {model.name}"]
        if model.needs_exposer:
            lines.append(f'#[cxx_name = "{model.cxx_name}"]')
        lines.append(f"type {model.name};")

        for f in model.fields:
            lines.extend(self._field_decls(model, f))
        for method in model.methods:
            if isinstance(method, CtorDef):
                lines.extend(self._ctor_decl(model, method))
            elif isinstance(method, IterDef):
                lines.extend(self._iter_decls(model, method))
            else:
                lines.extend(self._fn_decl(model, method))
        lines.append("")
        return lines

    def _field_decls(self, model: ClassModel, f: FieldDef) -> list[str]:
        cls = model.name
        get_name = f.ffi_get_name(cls)
        get_cxx = f.ffi_get_name(model.cxx_name)
        set_name = f.ffi_set_name(cls)
        set_cxx = f.ffi_set_name(model.cxx_name)
        const_self = f"{RECEIVER}: &{cls}"
        mut_self = f"{RECEIVER}: Pin<&mut {cls}>"

        if f.kind is FieldKind.VAL:
            lines = self.declare(get_name, [const_self], TypeMapper.ffi_type(f.ty, True),
                                 cxx_name=get_cxx)
            if f.has_setter:
                lines += self.declare(set_name, [mut_self, f"value: {TypeMapper.ffi_type(f.ty, False)}"],
                                      cxx_name=set_cxx)
            return lines

        if f.kind is FieldKind.OPT_VAL:
            ret = TypeMapper.ffi_type(f.ty, True)
            return self.declare(get_name, [const_self], ret, cxx_name=get_cxx)

        is_mut = not f.is_readonly
        receiver = mut_self if is_mut else const_self
        target = TypeMapper.borrow(f.element, is_mut)

        if f.kind is FieldKind.OPT_OBJ:
            return self.declare(get_name, [receiver], f"Result<{target}>", cxx_name=get_cxx)

        lines = self.declare(get_name, [receiver], target, cxx_name=get_cxx)
        if f.has_setter:
            value = f"value: UniquePtr<{TypeMapper.name_only(f.element)}>"
            lines += self.declare(set_name, [mut_self, value], cxx_name=set_cxx)
        return lines

    def _ctor_decl(self, model: ClassModel, ctor: CtorDef) -> list[str]:
        cxx_name = ctor.cpp_name if ctor.is_user_defined else ctor.ffi_name(model.cxx_name)
        params = [self._param(arg) for arg in ctor.args]
        return self.declare(ctor.ffi_name(model.name), params, f"UniquePtr<{model.name}>",
                            cxx_name=cxx_name)

    def _fn_decl(self, model: ClassModel, fn: FnDef) -> list[str]:
        cls = model.name
        borrowed = sum(1 for arg in fn.args if TypeMapper.is_borrowed_arg(arg.ty))
        params = []
        if fn.kind is not MethodKind.STATIC:
            borrowed += 1

        # an ambiguous borrowed return is tied to the receiver
        lifetime = TypeMapper.contains_borrow(fn.ret_ty) and borrowed > 1
        lt = LIFETIME if lifetime else None
        lt_prefix = f"'{LIFETIME} " if lifetime else ''
        if fn.kind is MethodKind.CONST:
            params.append(f"{RECEIVER}: &{lt_prefix}{cls}")
        elif fn.kind is MethodKind.MUTABLE:
            params.append(f"{RECEIVER}: Pin<&{lt_prefix}mut {cls}>")
        params.extend(self._param(arg) for arg in fn.args)

        ret = TypeMapper.ffi_type(fn.ret_ty, True, lt) if fn.ret_ty is not None else None
        return self.declare(fn.ffi_name(cls), params, ret, cxx_name=fn.ffi_name(model.cxx_name),
                            lifetime=lifetime)

    def _iter_decls(self, model: ClassModel, it: IterDef) -> list[str]:
        cls = model.name
        names = IterNames.of(cls, it.name)
        receiver = f"{RECEIVER}: Pin<&mut {cls}>" if it.is_iter_mut else f"{RECEIVER}: &{cls}"
        lines = [f"type {names.ctx_name};"]
        lines += self.declare(names.new_fn, [receiver], f"UniquePtr<{names.ctx_name}>")
        lines += self.declare(names.next_fn, [f"ctx: Pin<&mut {names.ctx_name}>"],
                              self.iter_item_type(it))
        return lines

    @staticmethod
    def iter_item_type(it: IterDef) -> str:
        if not it.is_item_owned:
            return f"Result<{TypeMapper.borrow(it.item, it.is_item_mut)}>"
        if TypeMapper.is_object_value(it.item):
            return f"UniquePtr<{TypeMapper.name_only(it.item)}>"
        return f"Result<{TypeMapper.ffi_type(it.item, True)}>"

    @staticmethod
    def _param(arg: Arg) -> str:
        return f"{arg.name}: {TypeMapper.ffi_type(arg.ty, False)}"

    # ── containers ────────────────────────────────────────────

    @staticmethod
    def element_ret_type(elem: TypeKind, lifetime: Optional[str] = None) -> str:
        """How a container element is read back"""
        if TypeMapper.is_object_value(elem):
            return TypeMapper.borrow(elem, False, lifetime)
        return TypeMapper.ffi_type(elem, True)

    def _vec_block(self, vec: Vector) -> list[str]:
        alias = TypeMapper.flat_name(vec)
        elem = vec.inner
        const_self = f"v: &{alias}"
        mut_self = f"v: Pin<&mut {alias}>"

        lines = [f"// {vec.dsl()}", f"type {alias};"]
        lines += self.declare(f"{alias}_len", [const_self], 'usize')
        lines += self.declare(f"{alias}_get", [const_self, 'index: usize'],
                              f"Result<{self.element_ret_type(elem)}>")
        if TypeMapper.is_object_value(elem):
            lines += self.declare(f"{alias}_get_mut", [mut_self, 'index: usize'],
                                  f"Result<{TypeMapper.borrow(elem, True)}>")
            value = f"UniquePtr<{TypeMapper.name_only(elem)}>"
        else:
            value = TypeMapper.ffi_type(elem, False)
            lines += self.declare(f"{alias}_set", [mut_self, 'index: usize', f"value: {value}"],
                                  'Result<()>')
        if TypeMapper.is_slice_element(elem):
            lines += self.declare(f"{alias}_as_slice", [const_self], f"&[{elem.name}]")
            lines += self.declare(f"{alias}_as_mut_slice", [mut_self], f"&mut [{elem.name}]")
        lines += self.declare(f"{alias}_push", [mut_self, f"value: {value}"])
        lines.append("")
        return lines

    def _map_block(self, map_def: Map) -> list[str]:
        alias = TypeMapper.flat_name(map_def)
        ctx_name = f"{alias}_IterCtx"
        key_arg = TypeMapper.ffi_type(map_def.key, False)

        # a &str key is a second borrowed input
        lifetime = isinstance(map_def.key, String) and TypeMapper.is_object_value(map_def.value)
        lt = LIFETIME if lifetime else None
        lt_prefix = f"'{LIFETIME} " if lifetime else ''

        lines = [f"// {map_def.dsl()}", f"type {alias};", f"type {ctx_name};"]
        lines += self.declare(f"{alias}_len", [f"m: &{alias}"], 'usize')
        lines += self.declare(f"{alias}_get", [f"m: &{lt_prefix}{alias}", f"key: {key_arg}"],
                              f"Result<{self.element_ret_type(map_def.value, lt)}>",
                              lifetime=lifetime)
        lines += self.declare(f"{alias}_iter_new", [f"m: &{alias}"], f"UniquePtr<{ctx_name}>")
        lines += self.declare(f"{alias}_iter_key", [f"ctx: &{ctx_name}"],
                              TypeMapper.ffi_type(map_def.key, True))
        lines += self.declare(f"{alias}_iter_val", [f"ctx: &{ctx_name}"],
                              self.element_ret_type(map_def.value))
        lines += self.declare(f"{alias}_iter_step", [f"ctx: Pin<&mut {ctx_name}>"])
        lines += self.declare(f"{alias}_iter_is_end", [f"ctx: &{ctx_name}"], 'bool')
        lines.append("")
        return lines
