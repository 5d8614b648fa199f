"""Generation-time errors.

Every error raised while turning a bind! block into code is fatal: the
pipeline stops at the first one and nothing is written.

    BindError
    ├── DslSyntaxError       malformed DSL text
    ├── DeclarationError     unsupported type position or broken invariant
    │   ├── ReceiverError    pass-by-value or wrong receiver kind
    │   └── IteratorError    malformed #[iter] method
    ├── UnknownTargetError   impl block for an undeclared struct
    └── ExposerError         protected members combined with an unsupported feature
"""

from typing import Optional


class BindError(Exception):
    """Base class for all generation errors"""

    def __init__(self, message: str, *, context: Optional[str] = None):
        self.message = message
        self.context = context
        super().__init__(self._format())

    def _format(self) -> str:
        if self.context:
            return f"{self.context}: {self.message}"
        return self.message


class DslSyntaxError(BindError):
    """The bind! block does not follow the DSL grammar"""

    def __init__(self, message: str, line: int = 0, column: int = 0):
        self.line = line
        self.column = column
        context = f"line {line}, column {column}" if line else None
        super().__init__(message, context=context)


class DeclarationError(BindError):
    """A type is used where the bridge cannot represent it"""


class ReceiverError(DeclarationError):
    pass


class IteratorError(DeclarationError):
    pass


class UnknownTargetError(BindError):
    """An impl block names a struct that was never declared"""

    def __init__(self, target: str):
        self.target = target
        super().__init__(f"Impl block found for undefined struct '{target}'")


class ExposerError(BindError):
    pass
