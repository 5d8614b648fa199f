#!/usr/bin/env python3
"""
Smoke test that generates bindings for the sample crate and checks them.

Run:
    python samples/tests/python/samples_test.py
"""

import sys
import tempfile
from pathlib import Path

ROOT = Path(__file__).resolve().parents[3]
sys.path.insert(0, str(ROOT))

from cxxbind import generate_artifacts

SAMPLE = ROOT / "samples" / "example" / "src" / "lib.rs"


def check(label, condition):
    print(f"  {'PASS' if condition else 'FAIL'}: {label}")
    return condition


def test_config(rust, cpp):
    """Plain value fields get a getter and a setter everywhere"""
    print("Testing Config...")
    passed = True
    for field in ("id", "value", "name"):
        passed &= check(f"Config_get_{field} in shim", f"Config_get_{field}(" in cpp)
        passed &= check(f"Config_set_{field} in bridge", f"fn Config_set_{field}(" in rust)
        passed &= check(f"set_{field} in wrapper", f"pub fn set_{field}(" in rust)
    passed &= check("default factory", "make_Config_new" in cpp and "fn make_Config_new()" in rust)
    return passed


def test_methods(rust, cpp):
    """Readonly fields have no setter symbol"""
    print("\nTesting Methods...")
    passed = True
    passed &= check("no Methods_set_id", "Methods_set_id" not in rust + cpp)
    passed &= check("no Methods_set_config", "Methods_set_config" not in rust + cpp)
    passed &= check("static add", "fn Methods_method_add(v: i32, w: i32) -> i32;" in rust)
    passed &= check("optional return", "pub fn optional_id(&self, flag: bool) -> Option<i32>" in rust)
    return passed


def test_containers(rust, cpp):
    """Container instantiations are registered once each"""
    print("\nTesting containers...")
    passed = True
    passed &= check("Vec_Config alias", cpp.count("using Vec_Config = std::vector<Config>;") == 1)
    passed &= check("Vec_String alias", "using Vec_String = std::vector<std::string>;" in cpp)
    passed &= check("Map_i32_String", "type Map_i32_String;" in rust)
    passed &= check("Map_String_Config", "type Map_String_Config_IterCtx;" in rust)
    passed &= check("Vec_String set", "fn Vec_String_set(v: Pin<&mut Vec_String>, index: usize, value: &str)" in rust)
    passed &= check("Vec_Config iter_mut", "ffi::Vec_Config_get_mut(" in rust and "pub fn iter_mut(" in rust)
    passed &= check("helpers embedded", "namespace bridge_detail {" in cpp)
    return passed


def test_iterators(rust, cpp):
    print("\nTesting iterators...")
    passed = True
    passed &= check("items adapter", "pub struct ConfigContainer_items_Iter<'a>" in rust)
    passed &= check("drain adapter", "pub struct ConfigContainer_drain_Iter<'a>" in rust)
    passed &= check("fused", "FusedIterator for ConfigContainer_drain_Iter" in rust)
    return passed


def test_exposer(rust, cpp):
    print("\nTesting Counter exposer...")
    passed = True
    passed &= check("exposer class", "class Counter_Exposer : public Counter {" in cpp)
    passed &= check("re-exposed field", "using Counter::count;" in cpp)
    passed &= check("re-exposed method", "using Counter::bump;" in cpp)
    passed &= check("bridge cxx_name", '#[cxx_name = "Counter_Exposer"]' in rust)
    return passed


def main():
    with tempfile.TemporaryDirectory() as tmp:
        out = Path(tmp)
        generate_artifacts(SAMPLE, out / "lib_bindings.rs", out / "lib_shim.hh")
        rust = (out / "lib_bindings.rs").read_text()
        cpp = (out / "lib_shim.hh").read_text()

    results = [
        test_config(rust, cpp),
        test_methods(rust, cpp),
        test_containers(rust, cpp),
        test_iterators(rust, cpp),
        test_exposer(rust, cpp),
    ]

    print()
    if all(results):
        print("All sample checks passed")
        return 0
    print("Some sample checks FAILED")
    return 1


if __name__ == "__main__":
    sys.exit(main())
