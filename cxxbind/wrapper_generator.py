"""Wrapper Generator - generates the safe Rust API over the cxx bridge"""

from typing import Optional

from .type_mapper import DEFAULT_LIFETIME, HANDLE, TypeMapper
from .types import (
    Arg, BindContext, ClassModel, CtorDef, FieldDef, FieldKind, FnDef, IterDef,
    IterNames, MethodKind, TypeKind, Map, Object, Option, Reference, Vector,
)

INDENT = "    "

# expressions that dereference raw pointers or bypass Pin
UNSAFE_MARKERS = ('as_ptr()', 'from_ptr(', 'get_unchecked_mut', 'new_unchecked')

CONST = f'{HANDLE}::Const'
MUT = f'{HANDLE}::Mut'
STATIC_LIFETIME = "'a"


def const_self() -> str:
    return '&*self.as_ptr()'


def mut_self() -> str:
    return 'std::pin::Pin::new_unchecked(&mut *self.as_ptr())'


def needs_unsafe(lines: list[str]) -> bool:
    return any(marker in line for line in lines for marker in UNSAFE_MARKERS)


def unsafe_block(lines: list[str]) -> list[str]:
    """Wrap statements in `unsafe { }` when they need it"""
    if not needs_unsafe(lines):
        return lines
    if len(lines) == 1:
        return [f"unsafe {{ {lines[0]} }}"]
    return ["unsafe {", *(INDENT + line for line in lines), "}"]


def function(signature: str, body: list[str], wrap: bool = True) -> list[str]:
    if wrap:
        body = unsafe_block(body)
    lines = [f"pub {signature} {{"]
    lines.extend(INDENT + line for line in body)
    lines.append("}")
    return lines


def let_binding(name: str, ty: str, expr_lines: list[str]) -> list[str]:
    expr_lines = unsafe_block(expr_lines)
    if len(expr_lines) == 1:
        return [f"let {name}: {ty} = {expr_lines[0]};"]
    return [f"let {name}: {ty} = {{", *(INDENT + line for line in expr_lines), "};"]


class WrapperGenerator:
    """Generates tag types, handle impls and iterator adapters per class and container"""

    def __init__(self, ctx: BindContext):
        self.ctx = ctx

    def generate_items(self) -> list[str]:
        lines = []
        for model in self.ctx.models.values():
            lines.extend(self._class_wrapper(model))
        for vec in self.ctx.sorted_vecs():
            lines.extend(self._vec_wrapper(vec))
        for map_def in self.ctx.sorted_maps():
            lines.extend(self._map_wrapper(map_def))
        return lines

    def generate(self) -> str:
        return "\n".join(self.generate_items())

    # ── shared pieces ─────────────────────────────────────────

    @staticmethod
    def _tag_impls(tag: str, ffi_name: str) -> list[str]:
        return [
            f"impl {HANDLE}::CppClass for {tag} {{",
            f"    type FfiType = ffi::{ffi_name};",
            "}",
        ]

    @staticmethod
    def _generic_impl(tag: str) -> str:
        return (f"impl<'a, M: {HANDLE}::Mode, S: {HANDLE}::Storage<{tag}>> "
                f"{HANDLE}::CppObject<'a, {tag}, M, S> {{")

    @staticmethod
    def _mut_impl(tag: str) -> str:
        return (f"impl<'a, S: {HANDLE}::Storage<{tag}>> "
                f"{HANDLE}::CppObject<'a, {tag}, {MUT}, S> {{")

    @staticmethod
    def _impl_block(header: str, fns: list[list[str]]) -> list[str]:
        if not fns:
            return []
        lines = [header]
        for idx, fn_lines in enumerate(fns):
            if idx:
                lines.append("")
            lines.extend(INDENT + line for line in fn_lines)
        lines.append("}")
        lines.append("")
        return lines

    @staticmethod
    def _params(args, lifetime: Optional[str] = None) -> list[str]:
        params = []
        for arg in args:
            lt = lifetime if TypeMapper.is_borrowed_arg(arg.ty) else None
            params.append(f"{arg.name}: {TypeMapper.wrapper_arg_type(arg.ty, lt)}")
        return params

    @staticmethod
    def _call_args(args) -> list[str]:
        return [TypeMapper.arg_conversion(arg.ty, arg.name) for arg in args]

    @staticmethod
    def _ref_handle(ty: TypeKind, mode: str) -> str:
        return TypeMapper.handle_type(ty, mode)

    # ── classes ───────────────────────────────────────────────

    def _class_wrapper(self, model: ClassModel) -> list[str]:
        tag = model.name
        lines = [
            f"// {model.name}",
            "#[derive(Clone, Copy, Debug)]",
            f"pub struct {tag};",
            "",
        ]
        lines.extend(self._tag_impls(tag, model.name))
        lines.append("")
        lines.extend([
            f"impl {HANDLE}::CppTypeAliases for {tag} {{",
            f"    type Owned = {HANDLE}::CppObject<'static, {tag}, {MUT}, {HANDLE}::Owned>;",
            f"    type Ref<'a> = {HANDLE}::CppObject<'a, {tag}, {CONST}, {HANDLE}::Ref>;",
            f"    type Mut<'a> = {HANDLE}::CppObject<'a, {tag}, {MUT}, {HANDLE}::Ref>;",
            "}",
            "",
        ])

        statics, shared, mutable = [], [], []
        for f in model.fields:
            shared.append(self._getter(model, f))
            if f.has_setter:
                mutable.append(self._setter(model, f))
        for method in model.methods:
            if isinstance(method, CtorDef):
                statics.append(self._ctor(model, method))
            elif isinstance(method, IterDef):
                target = mutable if method.is_iter_mut else shared
                target.append(self._iter_method(model, method))
            elif method.kind is MethodKind.STATIC:
                statics.append(self._function(model, method))
            elif method.kind is MethodKind.CONST:
                shared.append(self._function(model, method))
            else:
                mutable.append(self._function(model, method))

        lines.extend(self._impl_block(f"impl {tag} {{", statics))
        lines.extend(self._impl_block(self._generic_impl(tag), shared))
        lines.extend(self._impl_block(self._mut_impl(tag), mutable))
        for it in model.iterators:
            lines.extend(self._iter_adapter(model, it))
        return lines

    def _getter(self, model: ClassModel, f: FieldDef) -> list[str]:
        get_fn = f"ffi::{f.ffi_get_name(model.name)}"

        if f.kind is FieldKind.VAL:
            ret = TypeMapper.wrapper_ret_type(f.ty)
            return function(f"fn {f.name}(&self) -> {ret}", [f"{get_fn}({const_self()})"])

        if f.kind is FieldKind.OPT_VAL:
            ret = TypeMapper.wrapper_ret_type(f.ty)
            body = TypeMapper.ret_conversion(f.ty, f"{get_fn}({const_self()})")
            return function(f"fn {f.name}(&self) -> {ret}", body)

        # object-shaped fields hand out a handle borrowing self
        elem = f.element
        if f.is_readonly:
            mode, receiver, is_mut = CONST, const_self(), False
        else:
            mode, receiver, is_mut = 'M', mut_self(), True
        handle = self._ref_handle(elem, mode)
        call = f"{get_fn}({receiver})"

        if f.kind is FieldKind.OPT_OBJ:
            body = TypeMapper.ret_conversion(Option(Reference(elem, is_mut)), call)
            return function(f"fn {f.name}(&self) -> Option<{handle}>", body)
        return function(f"fn {f.name}(&self) -> {handle}",
                        [TypeMapper.ref_to_handle(call, is_mut)])

    def _setter(self, model: ClassModel, f: FieldDef) -> list[str]:
        set_fn = f"ffi::{f.ffi_set_name(model.name)}"
        value_ty = f.ty if f.kind is FieldKind.VAL else f.element
        sig = f"fn {f.wrapper_set_name}(&mut self, value: {TypeMapper.wrapper_arg_type(value_ty)})"
        value = TypeMapper.arg_conversion(value_ty, 'value')
        return function(sig, [f"{set_fn}({mut_self()}, {value});"])

    def _ctor(self, model: ClassModel, ctor: CtorDef) -> list[str]:
        params = ', '.join(self._params(ctor.args))
        call = f"ffi::{ctor.ffi_name(model.name)}({', '.join(self._call_args(ctor.args))})"
        sig = f"fn {ctor.name}({params}) -> {TypeMapper.owned_type(Object(model.name))}"
        return function(sig, [f"{HANDLE}::CppObject::from_unique({call})"])

    def _function(self, model: ClassModel, fn: FnDef) -> list[str]:
        # a static borrowed return lives as long as its single borrowed argument
        named = fn.kind is MethodKind.STATIC and TypeMapper.contains_borrow(fn.ret_ty)
        lifetime = STATIC_LIFETIME if named else None
        params = self._params(fn.args, lifetime)
        call_args = self._call_args(fn.args)
        if fn.kind is MethodKind.CONST:
            params.insert(0, '&self')
            call_args.insert(0, const_self())
        elif fn.kind is MethodKind.MUTABLE:
            params.insert(0, '&mut self')
            call_args.insert(0, mut_self())

        call = f"ffi::{fn.ffi_name(model.name)}({', '.join(call_args)})"
        generics = f"<{lifetime}>" if lifetime else ''
        sig = f"fn {fn.name}{generics}({', '.join(params)})"
        if fn.ret_ty is None:
            return function(sig, [f"{call};"])
        sig += f" -> {TypeMapper.wrapper_ret_type(fn.ret_ty, lifetime or DEFAULT_LIFETIME)}"
        return function(sig, TypeMapper.ret_conversion(fn.ret_ty, call))

    # ── iterators ─────────────────────────────────────────────

    def _iter_method(self, model: ClassModel, it: IterDef) -> list[str]:
        names = IterNames.of(model.name, it.name)
        receiver = mut_self() if it.is_iter_mut else const_self()
        self_param = '&mut self' if it.is_iter_mut else '&self'
        ctx = let_binding('ctx', f"cxx::UniquePtr<ffi::{names.ctx_name}>",
                          [f"ffi::{names.new_fn}({receiver})"])
        body = [
            *ctx,
            f"{names.struct_name} {{",
            "    ctx,",
            "    done: false,",
            "    _marker: std::marker::PhantomData,",
            "}",
        ]
        return function(f"fn {it.name}({self_param}) -> {names.struct_name}<'_>", body, wrap=False)

    def _iter_adapter(self, model: ClassModel, it: IterDef) -> list[str]:
        names = IterNames.of(model.name, it.name)
        item_ty = TypeMapper.wrapper_ret_type(it.yield_ty, "'a")
        next_call = f"ffi::{names.next_fn}(self.ctx.pin_mut())"
        item = let_binding('item', 'Option<Self::Item>',
                           TypeMapper.ret_conversion(Option(it.yield_ty), next_call))
        lines = [
            "#[allow(non_camel_case_types)]",
            f"pub struct {names.struct_name}<'a> {{",
            f"    ctx: cxx::UniquePtr<ffi::{names.ctx_name}>,",
            "    done: bool,",
            "    _marker: std::marker::PhantomData<&'a ()>,",
            "}",
            "",
            f"impl<'a> Iterator for {names.struct_name}<'a> {{",
            f"    type Item = {item_ty};",
            "",
            "    fn next(&mut self) -> Option<Self::Item> {",
            "        if self.done {",
            "            return None;",
            "        }",
        ]
        lines.extend(INDENT * 2 + line for line in item)
        lines.extend([
            "        self.done = item.is_none();",
            "        item",
            "    }",
            "}",
            "",
            f"impl<'a> std::iter::FusedIterator for {names.struct_name}<'a> {{}}",
            "",
        ])
        return lines

    # ── containers ────────────────────────────────────────────

    @staticmethod
    def element_ret(elem: TypeKind, lifetime: str = "'_") -> str:
        """Wrapper type a container element is read back as"""
        if TypeMapper.is_object_value(elem):
            return TypeMapper.handle_type(elem, CONST, lifetime)
        return TypeMapper.wrapper_ret_type(elem, lifetime)

    @staticmethod
    def _element_read(elem: TypeKind) -> TypeKind:
        if TypeMapper.is_object_value(elem):
            return Reference(elem)
        return elem

    def _vec_wrapper(self, vec: Vector) -> list[str]:
        alias = TypeMapper.flat_name(vec)
        tag = TypeMapper.rust_tag(vec)
        elem = vec.inner
        elem_ret = self.element_ret(elem)
        get_call = f"ffi::{alias}_get({const_self()}, index)"

        shared = [
            function("fn len(&self) -> usize", [f"ffi::{alias}_len({const_self()})"]),
            function("fn is_empty(&self) -> bool", ["self.len() == 0"]),
            function(f"fn get(&self, index: usize) -> Option<{elem_ret}>",
                     TypeMapper.ret_conversion(Option(self._element_read(elem)), get_call)),
            function(f"fn iter(&self) -> impl Iterator<Item = {elem_ret}> + '_",
                     ["(0..self.len()).filter_map(move |i| self.get(i))"]),
        ]

        value_ty = TypeMapper.wrapper_arg_type(elem)
        value = TypeMapper.arg_conversion(elem, 'value')
        mutable = [function(f"fn push(&mut self, value: {value_ty})",
                            [f"ffi::{alias}_push({mut_self()}, {value});"])]
        if TypeMapper.is_object_value(elem):
            mutable.extend(self._vec_object_mut(alias, elem))
        else:
            mutable.append(function(f"fn set(&mut self, index: usize, value: {value_ty})", [
                "let len = self.len();",
                'assert!(index < len, "index out of bounds: the len is {} but the index is {}", len, index);',
                *unsafe_block([f"ffi::{alias}_set({mut_self()}, index, {value}).unwrap();"]),
            ], wrap=False))

        if TypeMapper.is_slice_element(elem):
            name = elem.name
            shared.append(function(f"fn as_slice(&self) -> &[{name}]",
                                   [f"ffi::{alias}_as_slice({const_self()})"]))
            mutable.extend([
                function(f"fn as_mut_slice(&mut self) -> &mut [{name}]",
                         [f"ffi::{alias}_as_mut_slice({mut_self()})"]),
                function(f"fn get_mut(&mut self, index: usize) -> Option<&mut {name}>",
                         ["self.as_mut_slice().get_mut(index)"]),
                function(f"fn iter_mut(&mut self) -> std::slice::IterMut<'_, {name}>",
                         ["self.as_mut_slice().iter_mut()"]),
            ])

        lines = [f"// {vec.dsl()}"]
        lines.extend(self._tag_impls(tag, alias))
        lines.append("")
        lines.extend(self._impl_block(self._generic_impl(tag), shared))
        lines.extend(self._impl_block(self._mut_impl(tag), mutable))
        return lines

    def _vec_object_mut(self, alias: str, elem: TypeKind) -> list[list[str]]:
        handle = self._ref_handle(elem, MUT)
        get_mut_call = f"ffi::{alias}_get_mut({mut_self()}, index)"
        get_mut = function(f"fn get_mut(&mut self, index: usize) -> Option<{handle}>",
                           TypeMapper.ret_conversion(Option(Reference(elem, True)), get_mut_call))
        # elements at distinct indices never alias
        item = TypeMapper.ref_to_handle('val', True)
        iter_mut = function(f"fn iter_mut(&mut self) -> impl Iterator<Item = {handle}> + '_", [
            "let ptr = self.as_ptr();",
            "(0..self.len()).filter_map(move |i| unsafe {",
            f"    ffi::{alias}_get_mut(std::pin::Pin::new_unchecked(&mut *ptr), i)",
            "        .ok()",
            f"        .map(|val| {item})",
            "})",
        ], wrap=False)
        return [get_mut, iter_mut]

    def _map_wrapper(self, map_def: Map) -> list[str]:
        alias = TypeMapper.flat_name(map_def)
        tag = TypeMapper.rust_tag(map_def)
        iter_name = f"{alias}_Iter"
        value = map_def.value
        key_arg = Arg('key', map_def.key)
        get_call = f"ffi::{alias}_get({const_self()}, {TypeMapper.arg_conversion(map_def.key, 'key')})"

        ctx = let_binding('ctx', f"cxx::UniquePtr<ffi::{alias}_IterCtx>",
                          [f"ffi::{alias}_iter_new({const_self()})"])
        shared = [
            function("fn len(&self) -> usize", [f"ffi::{alias}_len({const_self()})"]),
            function("fn is_empty(&self) -> bool", ["self.len() == 0"]),
            function(f"fn get(&self, {self._params([key_arg])[0]}) -> Option<{self.element_ret(value)}>",
                     TypeMapper.ret_conversion(Option(self._element_read(value)), get_call)),
            function(f"fn iter(&self) -> {iter_name}<'_>", [
                *ctx,
                f"{iter_name} {{ ctx, _marker: std::marker::PhantomData }}",
            ], wrap=False),
        ]

        key_ret = TypeMapper.wrapper_ret_type(map_def.key, "'a")
        val_ret = self.element_ret(value, "'a")
        val = let_binding('val', val_ret, TypeMapper.ret_conversion(
            self._element_read(value), f"ffi::{alias}_iter_val(&self.ctx)"))

        lines = [f"// {map_def.dsl()}"]
        lines.extend(self._tag_impls(tag, alias))
        lines.append("")
        lines.extend(self._impl_block(self._generic_impl(tag), shared))
        lines.extend([
            "#[allow(non_camel_case_types)]",
            f"pub struct {iter_name}<'a> {{",
            f"    ctx: cxx::UniquePtr<ffi::{alias}_IterCtx>,",
            "    _marker: std::marker::PhantomData<&'a ()>,",
            "}",
            "",
            f"impl<'a> Iterator for {iter_name}<'a> {{",
            f"    type Item = ({key_ret}, {val_ret});",
            "",
            "    fn next(&mut self) -> Option<Self::Item> {",
            f"        if ffi::{alias}_iter_is_end(&self.ctx) {{",
            "            return None;",
            "        }",
            f"        let key = ffi::{alias}_iter_key(&self.ctx);",
            *(INDENT * 2 + line for line in val),
            f"        ffi::{alias}_iter_step(self.ctx.pin_mut());",
            "        Some((key, val))",
            "    }",
            "}",
            "",
            f"impl<'a> std::iter::FusedIterator for {iter_name}<'a> {{}}",
            "",
        ])
        return lines
