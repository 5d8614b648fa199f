# tests/test_rust_generator.py
"""
Tests for the assembled Rust output: handle module, bridge and wrappers.
"""

from cxxbind.rust_generator import RustGenerator
from cxxbind.types import GeneratorConfig


class TestLayout:

    def test_header(self, config_ctx):
        text = RustGenerator(config_ctx).generate()
        assert text.startswith("// AUTO-GENERATED - DO NOT EDIT\n")

    def test_section_order(self, config_ctx):
        text = RustGenerator(config_ctx).generate()
        assert text.index('pub mod handle {') < text.index('#[cxx::bridge]') < \
            text.index('pub struct Config;')

    def test_bridge_block(self, config_ctx):
        lines = RustGenerator(config_ctx).generate().splitlines()
        start = lines.index('#[cxx::bridge]')
        assert lines[start + 1] == 'mod ffi {'
        assert lines[start + 2] == '    unsafe extern "C++" {'
        assert lines[start + 3] == '        include!("test.hh");'
        assert lines[start + 4] == '        include!("cxxbind_shim.hh");'
        assert '        type Config;' in lines
        assert '        fn make_Config_new() -> UniquePtr<Config>;' in lines

    def test_bridge_closes_without_blank_line(self, config_ctx):
        lines = RustGenerator(config_ctx).generate().splitlines()
        start = lines.index('#[cxx::bridge]')
        end = lines.index('    }', start)
        assert lines[end - 1].strip() != ''
        assert lines[end + 1] == '}'

    def test_shim_header_from_config(self, config_ctx):
        text = RustGenerator(config_ctx, GeneratorConfig(shim_header='out/shim.hh')).generate()
        assert 'include!("out/shim.hh");' in text

    def test_system_include(self, build):
        text = RustGenerator(build('include!("<vector>"); struct A { x: i32 }')).generate()
        assert '        include!(<vector>);' in text
