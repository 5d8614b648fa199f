"""Rust Generator - assembles the bridge module and the safe wrappers"""

from typing import Optional

from .common_generator import CommonGenerator
from .ffi_generator import FfiGenerator
from .types import BindContext, GeneratorConfig
from .wrapper_generator import WrapperGenerator

BRIDGE_INDENT = " " * 8


class RustGenerator:
    """Generates the Rust source included by the crate using the bindings"""

    def __init__(self, ctx: BindContext, config: Optional[GeneratorConfig] = None):
        self.ctx = ctx
        self.config = config or GeneratorConfig()

    def generate(self) -> str:
        lines = [
            "// AUTO-GENERATED - DO NOT EDIT",
            "",
            CommonGenerator().generate_handle_module(),
            "",
        ]
        lines.extend(self._bridge())
        lines.append("")
        lines.extend(WrapperGenerator(self.ctx).generate_items())
        return "\n".join(lines)

    def _bridge(self) -> list[str]:
        lines = [
            "#[cxx::bridge]",
            "mod ffi {",
            '    unsafe extern "C++" {',
        ]
        for inc in self.ctx.includes:
            if inc.is_system:
                lines.append(f"        include!({inc.path});")
            else:
                lines.append(f'        include!("{inc.path}");')
        lines.append(f'        include!("{self.config.shim_header}");')
        lines.append("")
        for item in FfiGenerator(self.ctx).generate_items():
            lines.append(f"{BRIDGE_INDENT}{item}" if item else "")
        while lines[-1] == "":
            lines.pop()
        lines.extend([
            "    }",
            "}",
        ])
        return lines
