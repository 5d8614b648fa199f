"""Data types for the bind DSL: type IR, parsed AST and semantic model"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


PRIMITIVES = (
    'i8', 'u8', 'i16', 'u16', 'i32', 'u32', 'i64', 'u64',
    'f32', 'f64', 'bool', 'usize', 'isize',
)


# ══════════════════════════════════════════════════════════════
# Type IR
# ══════════════════════════════════════════════════════════════

class TypeKind:
    """Base of the closed set of type shapes"""

    __slots__ = ()

    def __str__(self) -> str:
        return self.dsl()

    def dsl(self) -> str:
        """Render the type back in DSL syntax"""
        raise NotImplementedError


@dataclass(frozen=True)
class Primitive(TypeKind):
    name: str

    def dsl(self) -> str:
        return self.name


@dataclass(frozen=True)
class String(TypeKind):

    def dsl(self) -> str:
        return 'String'


@dataclass(frozen=True)
class Object(TypeKind):
    """A named class, modeled or not"""
    name: str

    def dsl(self) -> str:
        return self.name


@dataclass(frozen=True)
class Vector(TypeKind):
    inner: TypeKind
    is_ptr: bool = False

    def dsl(self) -> str:
        inner = f'UniquePtr<{self.inner.dsl()}>' if self.is_ptr else self.inner.dsl()
        return f'Vec<{inner}>'


@dataclass(frozen=True)
class Map(TypeKind):
    key: TypeKind
    value: TypeKind
    is_val_ptr: bool = False

    def dsl(self) -> str:
        value = f'UniquePtr<{self.value.dsl()}>' if self.is_val_ptr else self.value.dsl()
        return f'Map<{self.key.dsl()}, {value}>'


@dataclass(frozen=True)
class Option(TypeKind):
    inner: TypeKind

    def dsl(self) -> str:
        return f'Option<{self.inner.dsl()}>'


@dataclass(frozen=True)
class Result(TypeKind):
    """Fallible return; defined for completeness, not produced by the DSL"""
    inner: TypeKind

    def dsl(self) -> str:
        return f'Result<{self.inner.dsl()}>'


@dataclass(frozen=True)
class Reference(TypeKind):
    inner: TypeKind
    is_mut: bool = False

    def dsl(self) -> str:
        prefix = '&mut ' if self.is_mut else '&'
        return f'{prefix}{self.inner.dsl()}'


@dataclass(frozen=True)
class UniquePointer(TypeKind):
    inner: TypeKind

    def dsl(self) -> str:
        return f'UniquePtr<{self.inner.dsl()}>'


@dataclass(frozen=True)
class Slice(TypeKind):
    """Only valid directly inside a Reference"""
    inner: TypeKind

    def dsl(self) -> str:
        return f'[{self.inner.dsl()}]'


ALL_TYPE_KINDS = (
    Primitive, String, Object, Vector, Map,
    Option, Result, Reference, UniquePointer, Slice,
)


def make_vector(inner: TypeKind) -> Vector:
    """Build a vector, collapsing a UniquePtr element into is_ptr"""
    if isinstance(inner, UniquePointer):
        return Vector(inner.inner, is_ptr=True)
    return Vector(inner)


def make_map(key: TypeKind, value: TypeKind) -> Map:
    """Build a map, collapsing a UniquePtr value into is_val_ptr"""
    if isinstance(value, UniquePointer):
        return Map(key, value.inner, is_val_ptr=True)
    return Map(key, value)


def strip_wrappers(ty: TypeKind) -> TypeKind:
    """Peel references and unique pointers off a type"""
    while isinstance(ty, (Reference, UniquePointer)):
        ty = ty.inner
    return ty


# ══════════════════════════════════════════════════════════════
# Parsed AST
# ══════════════════════════════════════════════════════════════

@dataclass
class Include:
    path: str

    @property
    def is_system(self) -> bool:
        return self.path.startswith('<') and self.path.endswith('>')


@dataclass
class Attribute:
    """`#[name]` or `#[name(Key = Type)]`"""
    name: str
    args: dict[str, TypeKind] = field(default_factory=dict)
    has_args: bool = False


class Receiver(Enum):
    NONE = 'none'
    REF = '&self'
    REF_MUT = '&mut self'
    VALUE = 'self'
    VALUE_MUT = 'mut self'


@dataclass
class Arg:
    """Method parameter"""
    name: str
    ty: TypeKind


@dataclass
class FieldDecl:
    name: str
    ty: TypeKind
    attrs: list[Attribute] = field(default_factory=list)

    def has_attr(self, name: str) -> bool:
        return any(a.name == name for a in self.attrs)


@dataclass
class MethodDecl:
    name: str
    receiver: Receiver = Receiver.NONE
    args: list[Arg] = field(default_factory=list)
    ret: Optional[TypeKind] = None
    cpp_name: Optional[str] = None
    attrs: list[Attribute] = field(default_factory=list)
    line: int = 0

    def has_attr(self, name: str) -> bool:
        return any(a.name == name for a in self.attrs)

    def attr(self, name: str) -> Optional[Attribute]:
        return next((a for a in self.attrs if a.name == name), None)


@dataclass
class StructDecl:
    name: str
    fields: list[FieldDecl] = field(default_factory=list)
    attrs: list[Attribute] = field(default_factory=list)


@dataclass
class ImplDecl:
    target: str
    methods: list[MethodDecl] = field(default_factory=list)


BindItem = Union[Include, StructDecl, ImplDecl]


@dataclass
class BindInput:
    """Complete parsed bind! block"""
    items: list[BindItem] = field(default_factory=list)


# ══════════════════════════════════════════════════════════════
# Semantic model
# ══════════════════════════════════════════════════════════════

class FieldKind(Enum):
    VAL = 'val'
    OBJ = 'obj'
    OPT_VAL = 'opt_val'
    OPT_OBJ = 'opt_obj'
    VEC = 'vec'
    MAP = 'map'


class MethodKind(Enum):
    STATIC = 'static'
    CONST = 'const'
    MUTABLE = 'mutable'


@dataclass(frozen=True)
class FieldDef:
    name: str
    ty: TypeKind
    is_protected: bool = False
    is_readonly: bool = False
    kind: FieldKind = FieldKind.VAL

    def ffi_get_name(self, class_name: str) -> str:
        return f"{class_name}_get_{self.name}"

    def ffi_set_name(self, class_name: str) -> str:
        return f"{class_name}_set_{self.name}"

    @property
    def wrapper_set_name(self) -> str:
        return f"set_{self.name}"

    @property
    def has_setter(self) -> bool:
        """Only plain values and objects can be assigned"""
        return not self.is_readonly and self.kind in (FieldKind.VAL, FieldKind.OBJ)

    @property
    def element(self) -> TypeKind:
        """The value type behind Option/Reference/UniquePtr markers"""
        ty = self.ty
        if isinstance(ty, Option):
            ty = ty.inner
        return strip_wrappers(ty)


@dataclass(frozen=True)
class CtorDef:
    name: str
    args: tuple[Arg, ...] = ()
    cpp_name: str = ''
    is_user_defined: bool = False

    def ffi_name(self, class_name: str) -> str:
        return f"make_{class_name}_{self.name}"


@dataclass(frozen=True)
class IterDef:
    name: str
    yield_ty: TypeKind
    cpp_name: str = ''
    is_iter_mut: bool = False

    @property
    def is_item_owned(self) -> bool:
        return not isinstance(self.yield_ty, Reference)

    @property
    def is_item_mut(self) -> bool:
        return isinstance(self.yield_ty, Reference) and self.yield_ty.is_mut

    @property
    def item(self) -> TypeKind:
        """Yield type without the borrow marker"""
        if isinstance(self.yield_ty, Reference):
            return self.yield_ty.inner
        return self.yield_ty


@dataclass(frozen=True)
class FnDef:
    name: str
    cpp_name: str
    args: tuple[Arg, ...] = ()
    ret_ty: Optional[TypeKind] = None
    kind: MethodKind = MethodKind.STATIC
    is_protected: bool = False

    def ffi_name(self, class_name: str) -> str:
        return f"{class_name}_method_{self.name}"

    @property
    def is_call_operator(self) -> bool:
        return self.cpp_name == 'operator()'


MethodDef = Union[CtorDef, IterDef, FnDef]


@dataclass
class IterNames:
    struct_name: str
    ctx_name: str
    new_fn: str
    next_fn: str

    @classmethod
    def of(cls, class_name: str, method_name: str) -> 'IterNames':
        return cls(
            struct_name=f"{class_name}_{method_name}_Iter",
            ctx_name=f"{class_name}_{method_name}_IterCtx",
            new_fn=f"{class_name}_{method_name}_iter_new",
            next_fn=f"{class_name}_{method_name}_iter_next",
        )


@dataclass
class ClassModel:
    """One modeled C++ class"""
    name: str
    fields: list[FieldDef] = field(default_factory=list)
    methods: list[MethodDef] = field(default_factory=list)
    needs_exposer: bool = False

    @property
    def cxx_name(self) -> str:
        """Name of the native type the shim accessors are defined on"""
        if self.needs_exposer:
            return f"{self.name}_Exposer"
        return self.name

    @property
    def ctors(self) -> list[CtorDef]:
        return [m for m in self.methods if isinstance(m, CtorDef)]

    @property
    def iterators(self) -> list[IterDef]:
        return [m for m in self.methods if isinstance(m, IterDef)]

    @property
    def functions(self) -> list[FnDef]:
        return [m for m in self.methods if isinstance(m, FnDef)]

    @property
    def protected_fields(self) -> list[FieldDef]:
        return [f for f in self.fields if f.is_protected]

    @property
    def protected_functions(self) -> list[FnDef]:
        return [f for f in self.functions if f.is_protected]


@dataclass
class BindContext:
    """Result of preprocessing: symbol table plus container registry"""
    includes: list[Include] = field(default_factory=list)
    models: dict[str, ClassModel] = field(default_factory=dict)
    vec_defs: frozenset = frozenset()
    map_defs: frozenset = frozenset()

    def is_class(self, name: str) -> bool:
        return name in self.models

    def sorted_vecs(self) -> list[Vector]:
        from .type_mapper import TypeMapper
        return sorted(self.vec_defs, key=TypeMapper.flat_name)

    def sorted_maps(self) -> list[Map]:
        from .type_mapper import TypeMapper
        return sorted(self.map_defs, key=TypeMapper.flat_name)


# ══════════════════════════════════════════════════════════════
# Configuration
# ══════════════════════════════════════════════════════════════

@dataclass
class GeneratorConfig:
    """Output-wide settings shared by the generators.

    ``helper_header`` names a header providing the ``bridge_detail``
    conversion helpers; when unset the shim carries its own copy.
    """
    helper_header: Optional[str] = None
    shim_header: str = 'cxxbind_shim.hh'
