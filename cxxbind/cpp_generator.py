"""C++ Generator - generates the native shim header consumed by the cxx bridge"""

from typing import Optional

from .templates import BRIDGE_DETAIL, Shape, render
from .type_mapper import TypeMapper
from .types import (
    BindContext, ClassModel, CtorDef, FieldDef, FieldKind, FnDef, GeneratorConfig,
    IterDef, IterNames, MethodDef, MethodKind, Vector,
)

STANDARD_INCLUDES = (
    '<memory>',
    '<optional>',
    '<stdexcept>',
    '<string>',
    '<type_traits>',
    '<unordered_map>',
    '<utility>',
    '<vector>',
)


class CppGenerator:
    """Generates accessor shims over the modeled C++ classes"""

    def __init__(self, ctx: BindContext, config: Optional[GeneratorConfig] = None):
        self.ctx = ctx
        self.config = config or GeneratorConfig()

    def generate(self) -> str:
        lines = self._preamble()
        lines.extend(self._generate_vectors())
        lines.extend(self._generate_maps())
        for model in self.ctx.models.values():
            lines.extend(self._generate_class(model))
        return "\n".join(lines)

    def _preamble(self) -> list[str]:
        lines = [
            "// AUTO-GENERATED - DO NOT EDIT",
            "#pragma once",
            "",
            '#include "rust/cxx.h"',
        ]
        if self.config.helper_header:
            lines.append(f'#include "{self.config.helper_header}"')
        for inc in self.ctx.includes:
            if inc.is_system:
                lines.append(f"#include {inc.path}")
            else:
                lines.append(f'#include "{inc.path}"')
        lines.append("")
        lines.extend(f"#include {header}" for header in STANDARD_INCLUDES)
        lines.append("")
        if not self.config.helper_header:
            lines.append(BRIDGE_DETAIL)
            lines.append("")
        return lines

    # ── containers ────────────────────────────────────────────

    @staticmethod
    def vector_shapes(vec: Vector) -> list[Shape]:
        shapes = [Shape.VEC_PTR_OPS if vec.is_ptr else Shape.VEC_OPS]
        if TypeMapper.is_object_value(vec.inner):
            shapes.append(Shape.VEC_GET_MUT)
        else:
            shapes.append(Shape.VEC_SET)
        if TypeMapper.is_slice_element(vec.inner):
            shapes.append(Shape.VEC_SLICE)
        return shapes

    def _generate_vectors(self) -> list[str]:
        lines = []
        for vec in self.ctx.sorted_vecs():
            alias = TypeMapper.flat_name(vec)
            elem = TypeMapper.cpp_type(vec.inner)
            lines.append(f"using {alias} = {TypeMapper.cpp_type(vec)};")
            lines.extend(render(shape, alias=alias, elem=elem) for shape in self.vector_shapes(vec))
            lines.append("")
        return lines

    def _generate_maps(self) -> list[str]:
        lines = []
        for map_def in self.ctx.sorted_maps():
            alias = TypeMapper.flat_name(map_def)
            lines.append(f"using {alias} = {TypeMapper.cpp_type(map_def)};")
            lines.append(render(Shape.MAP_OPS, alias=alias))
            lines.append(render(Shape.MAP_ITER, alias=alias))
            lines.append("")
        return lines

    # ── classes ───────────────────────────────────────────────

    def _generate_class(self, model: ClassModel) -> list[str]:
        lines = [f"// {model.name}"]
        if model.needs_exposer:
            lines.extend(self._exposer_class(model))

        cls = model.cxx_name
        for f in model.fields:
            lines.extend(self._field_shims(cls, f))
        for method in model.methods:
            lines.extend(self._method_shims(model, method))
        lines.append("")
        return lines

    def _exposer_class(self, model: ClassModel) -> list[str]:
        """Subclass re-exposing protected members under their own names"""
        base = model.name
        members = [f.name for f in model.protected_fields]
        members.extend(dict.fromkeys(f.cpp_name for f in model.protected_functions))
        lines = [
            f"class {model.cxx_name} : public {base} {{",
            "public:",
            f"    using {base}::{base};",
        ]
        lines.extend(f"    using {base}::{name};" for name in members)
        lines.append("};")
        lines.append("")
        return lines

    @staticmethod
    def field_shapes(f: FieldDef) -> list[Shape]:
        if f.kind is FieldKind.VAL:
            return [Shape.VAL_GET] if f.is_readonly else [Shape.VAL_GET, Shape.VAL_SET]
        if f.kind in (FieldKind.OBJ, FieldKind.VEC, FieldKind.MAP):
            if f.is_readonly:
                return [Shape.OBJ_GET_CONST]
            if f.kind is FieldKind.OBJ:
                return [Shape.OBJ_GET, Shape.OBJ_SET]
            return [Shape.OBJ_GET]
        if f.kind is FieldKind.OPT_VAL:
            return [Shape.OPT_VAL_GET]
        if f.kind is FieldKind.OPT_OBJ:
            return [Shape.OPT_OBJ_GET_CONST] if f.is_readonly else [Shape.OPT_OBJ_GET]
        raise ValueError(f"Unknown field kind: {f.kind}")

    @staticmethod
    def function_shape(fn: FnDef) -> Shape:
        if fn.kind is MethodKind.STATIC:
            return Shape.STATIC_METHOD
        if fn.kind is MethodKind.CONST:
            return Shape.OP_CALL_CONST if fn.is_call_operator else Shape.METHOD_CONST
        return Shape.OP_CALL if fn.is_call_operator else Shape.METHOD

    @staticmethod
    def iterator_shapes(it: IterDef) -> tuple[Shape, Shape]:
        """(context shape, next shape)"""
        ctx_shape = Shape.ITER_CTX if it.is_iter_mut else Shape.ITER_CTX_CONST
        if not it.is_item_owned:
            return ctx_shape, Shape.ITER_MUT if it.is_item_mut else Shape.ITER_REF
        if TypeMapper.is_object_value(it.item):
            return ctx_shape, Shape.ITER_OWNED_OBJ
        return ctx_shape, Shape.ITER_OWNED_VAL

    def _field_shims(self, cls: str, f: FieldDef) -> list[str]:
        params = {
            'cls': cls,
            'field': f.name,
            'get_fn': f.ffi_get_name(cls),
            'set_fn': f.ffi_set_name(cls),
        }
        return [render(shape, **params) for shape in self.field_shapes(f)]

    def _method_shims(self, model: ClassModel, method: MethodDef) -> list[str]:
        cls = model.cxx_name
        if isinstance(method, CtorDef):
            if method.is_user_defined:
                return []
            return [render(Shape.CTOR, cls=cls, ctor_fn=method.ffi_name(cls))]

        if isinstance(method, FnDef):
            return [render(self.function_shape(method), cls=cls,
                           fn=method.ffi_name(cls), cpp_method=method.cpp_name)]

        names = IterNames.of(model.name, method.name)
        ctx_shape, next_shape = self.iterator_shapes(method)
        return [
            render(ctx_shape, cls=cls, ctx=names.ctx_name, new_fn=names.new_fn),
            render(next_shape, ctx=names.ctx_name, next_fn=names.next_fn,
                   item=TypeMapper.cpp_type(method.item)),
        ]
