"""Build glue: turn a Rust source with a bind! block into the generated files"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .cpp_generator import CppGenerator
from .errors import DslSyntaxError
from .parser import extract_dsl, parse_bind
from .preprocessor import preprocess
from .rust_generator import RustGenerator
from .types import GeneratorConfig

logger = logging.getLogger(__name__)


@dataclass
class GeneratedFile:
    path: Path
    written: bool


def write_if_changed(path: Path, content: str) -> bool:
    """Write content unless the file already holds it; returns whether it was written"""
    path = Path(path)
    if path.exists() and path.read_text() == content:
        logger.debug("Unchanged: %s", path)
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return True


def render_sources(dsl: str, config: Optional[GeneratorConfig] = None) -> tuple[str, str]:
    """(rust source, C++ shim header) for the body of a bind! block"""
    config = config or GeneratorConfig()
    ctx = preprocess(parse_bind(dsl))
    logger.info("Modeled %d classes, %d vectors, %d maps",
                len(ctx.models), len(ctx.vec_defs), len(ctx.map_defs))
    return RustGenerator(ctx, config).generate(), CppGenerator(ctx, config).generate()


def generate_artifacts(src: Path, rust_out: Path, cpp_out: Path,
                       config: Optional[GeneratorConfig] = None) -> list[GeneratedFile]:
    """Generate both outputs for a source file.

    Both files are rendered before either is written, so a failing
    declaration leaves the previous outputs untouched. The Rust side
    includes the shim under the name of ``cpp_out`` unless the config
    names it explicitly.
    """
    src, rust_out, cpp_out = Path(src), Path(rust_out), Path(cpp_out)
    if config is None:
        config = GeneratorConfig(shim_header=cpp_out.name)

    dsl = extract_dsl(src.read_text())
    if dsl is None:
        raise DslSyntaxError(f"No bind! {{ ... }} block found in {src}")

    rust_src, cpp_src = render_sources(dsl, config)
    return [
        GeneratedFile(rust_out, write_if_changed(rust_out, rust_src)),
        GeneratedFile(cpp_out, write_if_changed(cpp_out, cpp_src)),
    ]
