# tests/test_parser.py
"""
Tests for the bind! DSL parser: source text -> BindInput.
"""

import pytest

from cxxbind.errors import DslSyntaxError
from cxxbind.parser import extract_dsl, parse_bind, tokenize
from cxxbind.types import (
    Include, ImplDecl, Receiver, StructDecl, Primitive, String, Object, Vector,
    Map, Option, Reference, Slice,
)


class TestExtract:

    def test_finds_block(self):
        source = 'use x;\nbind! {\n    struct A { x: i32 }\n}\nfn main() {}\n'
        assert extract_dsl(source).strip() == 'struct A { x: i32 }'

    def test_missing_block(self):
        assert extract_dsl('fn main() {}') is None

    def test_unbalanced_block(self):
        assert extract_dsl('bind! { struct A {') is None

    def test_skips_mention_in_comments(self):
        source = (
            '// expand with bind! { struct Wrong {} }\n'
            '/* outer /* nested bind! { } */ still comment } */\n'
            'bind! { struct A { x: i32 } }\n'
        )
        assert extract_dsl(source).strip() == 'struct A { x: i32 }'

    def test_skips_macro_definition(self):
        source = 'macro_rules! bind { ($($t:tt)*) => {}; }\nbind!{ struct A {} }'
        assert extract_dsl(source).strip() == 'struct A {}'

    def test_braces_in_comments_and_literals(self):
        body = (
            '\n    // closing } in a comment\n'
            '    /* { */\n'
            '    include!("odd}name.hh");\n'
            '    struct A { x: i32 }\n'
        )
        source = f'const OPEN: char = \'{{\';\nconst RAW: &str = r#"bind! {{ "}}"#;\nbind! {{{body}}}\n'
        assert extract_dsl(source) == body

    def test_lifetimes_are_not_char_literals(self):
        source = "fn f<'a>(x: &'a str) -> &'a str { x }\nbind! { struct A {} }"
        assert extract_dsl(source).strip() == 'struct A {}'

    def test_string_mention_is_ignored(self):
        assert extract_dsl('let s = "bind! { struct A {} }";') is None


class TestTokenize:

    def test_tracks_lines(self):
        tokens = tokenize('struct A {\n    x: i32,\n}')
        x = next(t for t in tokens if t.value == 'x')
        assert (x.line, x.column) == (2, 5)

    def test_skips_comments(self):
        tokens = tokenize('// line\n/* block\n */ struct')
        assert [t.value for t in tokens] == ['struct']

    def test_unexpected_character(self):
        with pytest.raises(DslSyntaxError, match="Unexpected character"):
            tokenize('struct A { x: i32 $ }')


class TestParseItems:

    def test_empty(self):
        assert parse_bind('').items == []

    def test_includes(self):
        items = parse_bind('include!("test.hh"); include!("<vector>");').items
        assert items == [Include('test.hh'), Include('<vector>')]
        assert not items[0].is_system
        assert items[1].is_system

    def test_struct(self):
        struct = parse_bind('struct A { #[readonly] x: i32, y: Vec<UniquePtr<B>>, }').items[0]
        assert isinstance(struct, StructDecl)
        assert struct.name == 'A'
        assert [f.name for f in struct.fields] == ['x', 'y']
        assert struct.fields[0].has_attr('readonly')
        assert struct.fields[1].ty == Vector(Object('B'), is_ptr=True)

    def test_struct_without_trailing_comma(self):
        struct = parse_bind('struct A { x: i32, y: f64 }').items[0]
        assert [f.ty for f in struct.fields] == [Primitive('i32'), Primitive('f64')]

    def test_impl(self):
        impl = parse_bind('''
            impl A {
                fn with_id(id: i32) -> Self = make_a;
                fn call(&self, x: i32) -> i32 = "operator()";
                fn reset(&mut self);
            }
        ''').items[0]
        assert isinstance(impl, ImplDecl)
        ctor, call, reset = impl.methods
        assert ctor.receiver is Receiver.NONE
        assert ctor.ret == Object('Self')
        assert ctor.cpp_name == 'make_a'
        assert call.receiver is Receiver.REF
        assert call.cpp_name == 'operator()'
        assert reset.receiver is Receiver.REF_MUT
        assert reset.ret is None
        assert reset.line == 5

    def test_by_value_receivers(self):
        impl = parse_bind('impl A { fn a(self); fn b(mut self, x: i32); }').items[0]
        assert impl.methods[0].receiver is Receiver.VALUE
        assert impl.methods[1].receiver is Receiver.VALUE_MUT
        assert impl.methods[1].args[0].name == 'x'

    def test_iter_attribute(self):
        method = parse_bind('impl A { #[iter(Item = &Config)] fn items(&self); }').items[0].methods[0]
        attr = method.attr('iter')
        assert attr.has_args
        assert attr.args['Item'] == Reference(Object('Config'))

    def test_bare_attribute(self):
        method = parse_bind('impl A { #[iter] fn items(&self); }').items[0].methods[0]
        assert method.has_attr('iter')
        assert not method.attr('iter').has_args


class TestParseTypes:

    def parse_field_type(self, text):
        return parse_bind(f'struct A {{ f: {text} }}').items[0].fields[0].ty

    def test_string_and_primitive(self):
        assert self.parse_field_type('String') == String()
        assert self.parse_field_type('usize') == Primitive('usize')

    def test_path_keeps_last_segment(self):
        assert self.parse_field_type('crate::ffi::Config') == Object('Config')

    def test_map(self):
        assert self.parse_field_type('Map<String, Vec<i32>>') == \
            Map(String(), Vector(Primitive('i32')))

    def test_map_of_unique_ptr(self):
        assert self.parse_field_type('Map<i32, UniquePtr<B>>') == \
            Map(Primitive('i32'), Object('B'), is_val_ptr=True)

    def test_references_and_slices(self):
        assert self.parse_field_type('&mut [u8]') == Reference(Slice(Primitive('u8')), is_mut=True)

    def test_option(self):
        assert self.parse_field_type('Option<i32>') == Option(Primitive('i32'))


class TestParseErrors:

    def test_position_in_error(self):
        with pytest.raises(DslSyntaxError) as exc:
            parse_bind('struct A { x i32 }')
        assert (exc.value.line, exc.value.column) == (1, 14)
        assert "Expected ':'" in str(exc.value)
        assert str(exc.value).startswith("line 1, column 14")

    def test_error_line(self):
        with pytest.raises(DslSyntaxError) as exc:
            parse_bind('struct A {\n    x: i32,\n    y i32\n}')
        assert exc.value.line == 3

    def test_generic_arity(self):
        with pytest.raises(DslSyntaxError, match="Expected exactly 2 generic arguments for Map"):
            parse_bind('struct A { m: Map<i32> }')

    def test_unknown_generic(self):
        with pytest.raises(DslSyntaxError, match="Unknown generic type 'HashMap'"):
            parse_bind('struct A { m: HashMap<i32, i32> }')

    def test_generic_without_arguments(self):
        with pytest.raises(DslSyntaxError, match="Expected type arguments for Vec"):
            parse_bind('struct A { v: Vec }')

    def test_unknown_item(self):
        with pytest.raises(DslSyntaxError, match="Expected include!, struct, or impl"):
            parse_bind('enum A {}')

    def test_truncated_input(self):
        with pytest.raises(DslSyntaxError, match="end of input"):
            parse_bind('impl A { fn f(&self)')

    def test_attribute_before_impl(self):
        with pytest.raises(DslSyntaxError, match=r"#\[readonly\] is only allowed on struct") as exc:
            parse_bind('#[readonly]\nimpl A { fn f(&self); }')
        assert exc.value.line == 2

    def test_attribute_before_include(self):
        with pytest.raises(DslSyntaxError, match=r"#\[exposer\] is only allowed on struct"):
            parse_bind('#[exposer] include!("a.hh");')

    def test_trailing_attribute(self):
        with pytest.raises(DslSyntaxError, match="found end of input"):
            parse_bind('struct A { x: i32 } #[exposer]')
