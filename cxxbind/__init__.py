"""
cxxbind - C++/Rust Binding Generator Package

Parses a Rust-like bind! DSL describing C++ classes and generates:
  1. A C++ shim header of accessor functions
  2. A cxx bridge declaring those functions to Rust
  3. A safe Rust wrapper over a Const/Mut, Ref/Owned handle family
"""

from .types import (
    TypeKind, Primitive, String, Object, Vector, Map, Option, Result,
    Reference, UniquePointer, Slice, BindInput, BindContext, ClassModel,
    FieldDef, FieldKind, CtorDef, FnDef, IterDef, MethodKind, GeneratorConfig,
)
from .errors import (
    BindError, DslSyntaxError, DeclarationError, ReceiverError, IteratorError,
    UnknownTargetError, ExposerError,
)
from .parser import BindParser, extract_dsl, parse_bind
from .preprocessor import preprocess, classify_field
from .type_mapper import TypeMapper
from .cpp_generator import CppGenerator
from .ffi_generator import FfiGenerator
from .common_generator import CommonGenerator
from .wrapper_generator import WrapperGenerator
from .rust_generator import RustGenerator
from .bridge import generate_artifacts, render_sources, write_if_changed

__all__ = [
    'TypeKind', 'Primitive', 'String', 'Object', 'Vector', 'Map', 'Option', 'Result',
    'Reference', 'UniquePointer', 'Slice', 'BindInput', 'BindContext', 'ClassModel',
    'FieldDef', 'FieldKind', 'CtorDef', 'FnDef', 'IterDef', 'MethodKind', 'GeneratorConfig',
    'BindError', 'DslSyntaxError', 'DeclarationError', 'ReceiverError', 'IteratorError',
    'UnknownTargetError', 'ExposerError',
    'BindParser', 'extract_dsl', 'parse_bind', 'preprocess', 'classify_field',
    'TypeMapper', 'CppGenerator', 'FfiGenerator', 'CommonGenerator',
    'WrapperGenerator', 'RustGenerator',
    'generate_artifacts', 'render_sources', 'write_if_changed',
]
