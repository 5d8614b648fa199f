# tests/test_bridge.py
"""
Tests for file generation and the command line entry point.
"""

import importlib.util
from pathlib import Path

import pytest

from cxxbind import BindError, DslSyntaxError, GeneratorConfig
from cxxbind.bridge import generate_artifacts, render_sources, write_if_changed

SCRIPT = Path(__file__).parent.parent / "bin" / "generate_bindings.py"

LIB_RS = '''
use std::fmt;

bind! {
    include!("inventory.hh");
    struct Item {
        id: i32,
        label: String,
    }
    impl Item {
        fn new() -> Self;
    }
}
'''


@pytest.fixture
def lib_rs(tmp_path):
    path = tmp_path / "lib.rs"
    path.write_text(LIB_RS)
    return path


@pytest.fixture
def cli():
    spec = importlib.util.spec_from_file_location("generate_bindings", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class TestWriteIfChanged:

    def test_rewrites_only_on_change(self, tmp_path):
        path = tmp_path / "out.rs"
        assert write_if_changed(path, "a") is True
        assert write_if_changed(path, "a") is False
        assert write_if_changed(path, "b") is True
        assert path.read_text() == "b"

    def test_creates_parent_directories(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "out.hh"
        assert write_if_changed(path, "x") is True
        assert path.exists()


class TestGenerateArtifacts:

    def test_first_run_writes_both(self, lib_rs, tmp_path):
        rust_out, cpp_out = tmp_path / "gen" / "lib_bindings.rs", tmp_path / "gen" / "lib_shim.hh"
        results = generate_artifacts(lib_rs, rust_out, cpp_out)
        assert [r.path for r in results] == [rust_out, cpp_out]
        assert all(r.written for r in results)
        assert 'include!("lib_shim.hh");' in rust_out.read_text()
        assert '#include "inventory.hh"' in cpp_out.read_text()
        assert 'namespace bridge_detail {' in cpp_out.read_text()

    def test_second_run_is_unchanged(self, lib_rs, tmp_path):
        rust_out, cpp_out = tmp_path / "lib_bindings.rs", tmp_path / "lib_shim.hh"
        generate_artifacts(lib_rs, rust_out, cpp_out)
        results = generate_artifacts(lib_rs, rust_out, cpp_out)
        assert not any(r.written for r in results)

    def test_missing_block(self, tmp_path):
        src = tmp_path / "empty.rs"
        src.write_text("fn main() {}\n")
        with pytest.raises(DslSyntaxError, match="No bind!"):
            generate_artifacts(src, tmp_path / "a.rs", tmp_path / "a.hh")

    def test_bad_declaration_writes_nothing(self, tmp_path):
        src = tmp_path / "bad.rs"
        src.write_text("bind! { struct A { x: Missing } }")
        rust_out, cpp_out = tmp_path / "a.rs", tmp_path / "a.hh"
        with pytest.raises(BindError):
            generate_artifacts(src, rust_out, cpp_out)
        assert not rust_out.exists()
        assert not cpp_out.exists()

    def test_config_propagates(self, lib_rs, tmp_path):
        config = GeneratorConfig(helper_header="rt/detail.hh", shim_header="rt/shim.hh")
        rust_out, cpp_out = tmp_path / "lib.rs.out", tmp_path / "lib.hh"
        generate_artifacts(lib_rs, rust_out, cpp_out, config)
        assert '#include "rt/detail.hh"' in cpp_out.read_text()
        assert 'include!("rt/shim.hh");' in rust_out.read_text()

    def test_render_sources(self):
        rust_src, cpp_src = render_sources("struct A { x: i32 }")
        assert "pub struct A;" in rust_src
        assert "inline auto A_get_x(const A &obj)" in cpp_src


class TestCommandLine:

    def test_generates_then_reports_unchanged(self, cli, lib_rs, tmp_path, capsys):
        out = tmp_path / "gen"
        assert cli.main([str(lib_rs), "-o", str(out)]) == 0
        first = capsys.readouterr().out
        assert f"Generated: {out / 'lib_bindings.rs'}" in first
        assert f"Generated: {out / 'lib_shim.hh'}" in first
        assert "Generation completed in" in first

        assert cli.main([str(lib_rs), "-o", str(out)]) == 0
        assert "Unchanged:" in capsys.readouterr().out

    def test_custom_names(self, cli, lib_rs, tmp_path):
        out = tmp_path / "gen"
        assert cli.main([str(lib_rs), "-o", str(out), "--rust-out", "b.rs",
                         "--cpp-out", "b.hh", "--helper-header", "x/y.hh"]) == 0
        assert 'include!("b.hh");' in (out / "b.rs").read_text()
        assert '#include "x/y.hh"' in (out / "b.hh").read_text()

    def test_error_exit_code(self, cli, tmp_path, capsys):
        src = tmp_path / "none.rs"
        src.write_text("fn main() {}\n")
        assert cli.main([str(src), "-o", str(tmp_path)]) == 1
        assert capsys.readouterr().err.startswith("error: No bind!")

    def test_missing_source(self, cli, tmp_path, capsys):
        assert cli.main([str(tmp_path / "absent.rs"), "-o", str(tmp_path)]) == 1
        assert "error:" in capsys.readouterr().err
