"""Type mapping from bind DSL types to C++, cxx FFI and safe wrapper types"""

from typing import Optional

from .errors import DeclarationError
from .types import (
    PRIMITIVES, TypeKind, Primitive, String, Object, Vector, Map,
    Option, Result, Reference, UniquePointer, Slice,
)

HANDLE = 'handle'
DEFAULT_LIFETIME = "'_"


class TypeMapper:
    """Projects TypeKind values onto the three emitted surfaces"""

    CPP_TYPES = {
        'i8': 'int8_t',
        'u8': 'uint8_t',
        'i16': 'int16_t',
        'u16': 'uint16_t',
        'i32': 'int32_t',
        'u32': 'uint32_t',
        'i64': 'int64_t',
        'u64': 'uint64_t',
        'f32': 'float',
        'f64': 'double',
        'bool': 'bool',
        'usize': 'size_t',
        'isize': 'rust::isize',
    }

    STRING_FLAT_NAME = 'String'

    @classmethod
    def is_primitive(cls, name: str) -> bool:
        return name in PRIMITIVES

    @classmethod
    def is_object_value(cls, ty: TypeKind) -> bool:
        """Types that cross the boundary behind a pointer"""
        return isinstance(ty, (Object, Vector, Map))

    @classmethod
    def is_slice_element(cls, ty: TypeKind) -> bool:
        """Vector elements stored contiguously; std::vector<bool> is packed"""
        return isinstance(ty, Primitive) and ty.name != 'bool'

    # ── naming ────────────────────────────────────────────────

    @classmethod
    def flat_name(cls, ty: TypeKind) -> str:
        """Canonical symbol name used for monomorphized containers"""
        if isinstance(ty, (Primitive, Object)):
            return ty.name
        if isinstance(ty, String):
            return cls.STRING_FLAT_NAME
        if isinstance(ty, Vector):
            prefix = 'Vec_Ptr' if ty.is_ptr else 'Vec'
            return f"{prefix}_{cls.flat_name(ty.inner)}"
        if isinstance(ty, Map):
            prefix = 'Map_Ptr' if ty.is_val_ptr else 'Map'
            return f"{prefix}_{cls.flat_name(ty.key)}_{cls.flat_name(ty.value)}"
        if isinstance(ty, (Reference, UniquePointer, Option, Result)):
            return cls.flat_name(ty.inner)
        if isinstance(ty, Slice):
            raise DeclarationError(f"Slice cannot be used in flat name: {ty}")
        raise TypeError(f"Unknown type kind: {ty!r}")

    @classmethod
    def cpp_type(cls, ty: TypeKind) -> str:
        """Full C++ spelling of a type"""
        if isinstance(ty, Primitive):
            return cls.CPP_TYPES[ty.name]
        if isinstance(ty, String):
            return 'std::string'
        if isinstance(ty, Object):
            return ty.name
        if isinstance(ty, Vector):
            inner = cls.cpp_type(ty.inner)
            if ty.is_ptr:
                inner = f'std::unique_ptr<{inner}>'
            return f'std::vector<{inner}>'
        if isinstance(ty, Map):
            value = cls.cpp_type(ty.value)
            if ty.is_val_ptr:
                value = f'std::unique_ptr<{value}>'
            return f'std::unordered_map<{cls.cpp_type(ty.key)}, {value}>'
        if isinstance(ty, UniquePointer):
            return f'std::unique_ptr<{cls.cpp_type(ty.inner)}>'
        if isinstance(ty, Option):
            return f'std::optional<{cls.cpp_type(ty.inner)}>'
        if isinstance(ty, Reference):
            return cls.cpp_type(ty.inner)
        if isinstance(ty, (Result, Slice)):
            raise DeclarationError(f"Type has no C++ spelling: {ty}")
        raise TypeError(f"Unknown type kind: {ty!r}")

    # ── FFI declaration types ─────────────────────────────────

    @classmethod
    def name_only(cls, ty: TypeKind) -> str:
        """FFI type name of a value that sits behind a pointer"""
        if isinstance(ty, (Primitive, Object)):
            return ty.name
        if isinstance(ty, String):
            return 'CxxString'
        if isinstance(ty, (Vector, Map)):
            return cls.flat_name(ty)
        raise DeclarationError(f"Unexpected type for name extraction: {ty}")

    @classmethod
    def borrow(cls, ty: TypeKind, is_mut: bool, lifetime: Optional[str] = None) -> str:
        """`&T` / `Pin<&mut T>` for an opaque type"""
        lt = f"'{lifetime} " if lifetime else ''
        name = cls.name_only(ty)
        if is_mut:
            return f'Pin<&{lt}mut {name}>'
        return f'&{lt}{name}'

    @classmethod
    def ffi_type(cls, ty: TypeKind, is_return: bool, lifetime: Optional[str] = None) -> str:
        """Low-level type used inside the cxx bridge declaration"""
        if isinstance(ty, Primitive):
            return ty.name

        if isinstance(ty, String):
            return 'String' if is_return else '&str'

        if isinstance(ty, (Object, Vector, Map)):
            return f'UniquePtr<{cls.name_only(ty)}>'

        if isinstance(ty, Reference):
            return cls._ffi_reference(ty, is_return, lifetime)

        if isinstance(ty, Option):
            if not is_return:
                raise DeclarationError("Option type is not supported as function argument in FFI")
            if cls.is_object_value(ty.inner):
                return cls.ffi_type(ty.inner, True)
            return f'Result<{cls.ffi_type(ty.inner, True, lifetime)}>'

        if isinstance(ty, Result):
            if not is_return:
                raise DeclarationError("Result type is not supported as function argument in FFI")
            return f'Result<{cls.ffi_type(ty.inner, True, lifetime)}>'

        if isinstance(ty, UniquePointer):
            return f'UniquePtr<{cls.name_only(ty.inner)}>'

        if isinstance(ty, Slice):
            raise DeclarationError(f"Slice must be behind a reference: {ty}")

        raise TypeError(f"Unknown type kind: {ty!r}")

    @classmethod
    def _ffi_reference(cls, ty: Reference, is_return: bool, lifetime: Optional[str]) -> str:
        lt = f"'{lifetime} " if lifetime else ''
        inner = ty.inner

        if isinstance(inner, Slice):
            elem = cls.name_only(inner.inner)
            return f'&{lt}mut [{elem}]' if ty.is_mut else f'&{lt}[{elem}]'

        if isinstance(inner, String):
            if ty.is_mut:
                return cls.borrow(inner, True, lifetime)
            # std::string copies out through return_convert
            return 'String' if is_return else f'&{lt}str'

        if isinstance(inner, Primitive):
            return f'&{lt}mut {inner.name}' if ty.is_mut else f'&{lt}{inner.name}'

        if cls.is_object_value(inner):
            return cls.borrow(inner, ty.is_mut, lifetime)

        raise DeclarationError(f"Unsupported reference target: {ty}")

    @classmethod
    def contains_borrow(cls, ty: Optional[TypeKind]) -> bool:
        """Whether the FFI form of a type carries a reference"""
        if ty is None:
            return False
        if isinstance(ty, Reference):
            return not (isinstance(ty.inner, String) and not ty.is_mut)
        if isinstance(ty, (Option, Result)):
            return cls.contains_borrow(ty.inner)
        return False

    @classmethod
    def is_borrowed_arg(cls, ty: TypeKind) -> bool:
        return isinstance(ty, (Reference, String))

    # ── safe wrapper types ────────────────────────────────────

    @classmethod
    def rust_tag(cls, ty: TypeKind) -> str:
        """Tag type naming a modeled type in the wrapper layer"""
        if isinstance(ty, (Object, Primitive)):
            return ty.name
        if isinstance(ty, String):
            return 'String'
        if isinstance(ty, Vector):
            tag = 'CppVectorPtr' if ty.is_ptr else 'CppVector'
            return f'{HANDLE}::{tag}<{cls.rust_tag(ty.inner)}>'
        if isinstance(ty, Map):
            tag = 'CppMapPtr' if ty.is_val_ptr else 'CppMap'
            return f'{HANDLE}::{tag}<{cls.rust_tag(ty.key)}, {cls.rust_tag(ty.value)}>'
        if isinstance(ty, UniquePointer):
            return cls.rust_tag(ty.inner)
        raise DeclarationError(f"Type {ty} cannot be used as a tag")

    @classmethod
    def handle_type(cls, ty: TypeKind, mode: str, lifetime: str = "'_") -> str:
        """A borrowed handle over an object-shaped type"""
        return f'{HANDLE}::CppObject<{lifetime}, {cls.rust_tag(ty)}, {mode}, {HANDLE}::Ref>'

    @classmethod
    def owned_type(cls, ty: TypeKind) -> str:
        return f'{HANDLE}::CppOwned<{cls.rust_tag(ty)}>'

    @staticmethod
    def _ref_prefix(lifetime: Optional[str]) -> str:
        """`&` or `&'a ` for a named lifetime"""
        if lifetime is None or lifetime == DEFAULT_LIFETIME:
            return '&'
        return f'&{lifetime} '

    @classmethod
    def wrapper_arg_type(cls, ty: TypeKind, lifetime: Optional[str] = None) -> str:
        """Ergonomic argument type; `lifetime` names the outer borrow of a borrowed argument"""
        amp = cls._ref_prefix(lifetime)
        if isinstance(ty, Reference):
            inner = ty.inner
            if isinstance(inner, Slice):
                elem = cls.name_only(inner.inner)
                return f'{amp}mut [{elem}]' if ty.is_mut else f'{amp}[{elem}]'
            if isinstance(inner, String):
                return f'std::pin::Pin<{amp}mut cxx::CxxString>' if ty.is_mut else f'{amp}str'
            if cls.is_object_value(inner):
                tag = cls.rust_tag(inner)
                if ty.is_mut:
                    return f"{amp}mut {HANDLE}::CppMut<'_, {tag}>"
                return f"{HANDLE}::CppRef<{lifetime or DEFAULT_LIFETIME}, {tag}>"
            if isinstance(inner, Primitive):
                return f'{amp}mut {inner.name}' if ty.is_mut else f'{amp}{inner.name}'
            raise DeclarationError(f"Unsupported arg type: {ty}")

        if isinstance(ty, UniquePointer) or cls.is_object_value(ty):
            return cls.owned_type(ty)
        if isinstance(ty, Primitive):
            return ty.name
        if isinstance(ty, String):
            return f'{amp}str'
        raise DeclarationError(f"Unsupported arg type: {ty}")

    @classmethod
    def wrapper_ret_type(cls, ty: TypeKind, lifetime: str = "'_") -> str:
        """Ergonomic return type"""
        amp = cls._ref_prefix(lifetime)
        if isinstance(ty, Reference):
            inner = ty.inner
            if isinstance(inner, Slice):
                elem = cls.name_only(inner.inner)
                return f'{amp}mut [{elem}]' if ty.is_mut else f'{amp}[{elem}]'
            if cls.is_object_value(inner):
                mode = f'{HANDLE}::Mut' if ty.is_mut else f'{HANDLE}::Const'
                return cls.handle_type(inner, mode, lifetime)
            if isinstance(inner, String):
                if ty.is_mut:
                    return f'std::pin::Pin<{amp}mut cxx::CxxString>'
                return 'String'
            if isinstance(inner, Primitive):
                return f'{amp}mut {inner.name}' if ty.is_mut else inner.name
            raise DeclarationError(f"Unsupported return type: {ty}")

        if isinstance(ty, Option):
            return f'Option<{cls.wrapper_ret_type(ty.inner, lifetime)}>'
        if isinstance(ty, Result):
            return f'Result<{cls.wrapper_ret_type(ty.inner, lifetime)}, cxx::Exception>'
        if isinstance(ty, UniquePointer) or cls.is_object_value(ty):
            return cls.owned_type(ty)
        if isinstance(ty, String):
            return 'String'
        if isinstance(ty, Primitive):
            return ty.name
        raise DeclarationError(f"Unsupported return type: {ty}")

    # ── conversions ───────────────────────────────────────────

    @classmethod
    def arg_conversion(cls, ty: TypeKind, arg_name: str) -> str:
        """Expression turning a wrapper argument into its FFI form"""
        if isinstance(ty, Reference) and cls.is_object_value(ty.inner):
            if ty.is_mut:
                return f'std::pin::Pin::new_unchecked(&mut *{arg_name}.as_ptr())'
            return f'&*{arg_name}.as_ptr()'
        if isinstance(ty, UniquePointer) or cls.is_object_value(ty):
            return f'{arg_name}.inner'
        return arg_name

    @classmethod
    def ref_to_handle(cls, expr: str, is_mut: bool) -> str:
        """Wrap a borrowed FFI result into a Ref-storage handle"""
        if is_mut:
            return f'{HANDLE}::CppObject::from_ptr({expr}.get_unchecked_mut() as *mut _)'
        return f'{HANDLE}::CppObject::from_ptr({expr} as *const _ as *mut _)'

    @classmethod
    def ret_conversion(cls, ty: TypeKind, ffi_expr: str) -> list[str]:
        """Statements turning an FFI result into the wrapper result; the last line is the value"""
        if isinstance(ty, Option):
            inner = ty.inner
            if cls.is_object_value(inner):
                return [
                    f'let val = {ffi_expr};',
                    'if val.is_null() {',
                    '    None',
                    '} else {',
                    f'    Some({HANDLE}::CppObject::from_unique(val))',
                    '}',
                ]
            inner_conv = cls.ret_conversion(inner, 'val')
            if len(inner_conv) == 1:
                ok_arm = [f'    Ok(val) => Some({inner_conv[0]}),']
            else:
                ok_arm = ['    Ok(val) => Some({']
                ok_arm.extend(f'        {line}' for line in inner_conv)
                ok_arm.append('    }),')
            return [f'match {ffi_expr} {{', *ok_arm, '    Err(_) => None,', '}']

        if isinstance(ty, Result):
            inner_conv = cls.ret_conversion(ty.inner, 'val')
            if len(inner_conv) != 1:
                raise DeclarationError(f"Unsupported Result payload: {ty}")
            if inner_conv[0] == 'val':
                return [ffi_expr]
            return [f'{ffi_expr}.map(|val| {inner_conv[0]})']

        if isinstance(ty, Reference):
            inner = ty.inner
            if cls.is_object_value(inner):
                return [cls.ref_to_handle(ffi_expr, ty.is_mut)]
            if isinstance(inner, Primitive) and not ty.is_mut:
                return [f'*{ffi_expr}']
            return [ffi_expr]

        if isinstance(ty, UniquePointer) or cls.is_object_value(ty):
            return [f'{HANDLE}::CppObject::from_unique({ffi_expr})']

        return [ffi_expr]
