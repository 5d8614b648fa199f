#!/usr/bin/env python3
"""
C++/Rust Binding Generator

Reads the bind! block from a Rust source file and generates:
  1. The Rust bindings (handle module, cxx bridge, safe wrappers)
  2. The C++ shim header the bridge includes

Usage:
    python generate_bindings.py src/lib.rs --output-dir generated/
    python generate_bindings.py src/lib.rs -o generated/ --helper-header bridge/detail.hh -v
"""

import argparse
import logging
import sys
import time
from pathlib import Path

# Add parent directory to path so cxxbind package can be found
sys.path.insert(0, str(Path(__file__).parent.parent))

from cxxbind import BindError, GeneratorConfig, generate_artifacts


def configure_logging(verbosity: int):
    """0 -> WARNING, 1 -> INFO, 2+ -> DEBUG on stderr"""
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
    root = logging.getLogger("cxxbind")
    root.setLevel(level)
    root.handlers = [handler]


def main(argv=None):
    start_time = time.perf_counter()

    parser = argparse.ArgumentParser(description="Generate C++/Rust bindings from a bind! block")
    parser.add_argument("source", help="Rust source file containing the bind! block")
    parser.add_argument("--output-dir", "-o", default="generated", help="Output directory")
    parser.add_argument("--rust-out", default="", help="Rust output file name (default: <stem>_bindings.rs)")
    parser.add_argument("--cpp-out", default="", help="C++ shim header name (default: <stem>_shim.hh)")
    parser.add_argument("--helper-header", default="", help="Header providing the bridge_detail helpers instead of embedding them")
    parser.add_argument("--verbose", "-v", action="count", default=0, help="Increase log verbosity")
    args = parser.parse_args(argv)

    configure_logging(args.verbose)

    source = Path(args.source)
    stem = source.stem.replace("-", "_")
    output_dir = Path(args.output_dir)
    rust_out = output_dir / (args.rust_out or f"{stem}_bindings.rs")
    cpp_out = output_dir / (args.cpp_out or f"{stem}_shim.hh")

    config = GeneratorConfig(shim_header=cpp_out.name)
    if args.helper_header:
        config.helper_header = args.helper_header

    try:
        results = generate_artifacts(source, rust_out, cpp_out, config)
    except (BindError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    for result in results:
        status = "Generated" if result.written else "Unchanged"
        print(f"{status}: {result.path}")

    elapsed = time.perf_counter() - start_time
    print(f"Generation completed in {elapsed*1000:.2f} ms")
    return 0


if __name__ == "__main__":
    sys.exit(main())
