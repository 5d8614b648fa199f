"""Rust-like bind! DSL parser"""

import re
from dataclasses import dataclass
from typing import Optional

from .errors import DslSyntaxError
from .types import (
    Arg, Attribute, BindInput, FieldDecl, ImplDecl, Include, MethodDecl,
    Receiver, StructDecl, TypeKind, Primitive, String, Object, Option,
    Reference, UniquePointer, Slice, PRIMITIVES, make_map, make_vector,
)

TOKEN_RE = re.compile(r'''
    (?P<ws>\s+)
  | (?P<line_comment>//[^\n]*)
  | (?P<block_comment>/\*.*?\*/)
  | (?P<string>"(?:[^"\\]|\\.)*")
  | (?P<arrow>->)
  | (?P<path>::)
  | (?P<ident>[A-Za-z_]\w*)
  | (?P<punct>[#\[\](){}<>,;:&!=])
''', re.VERBOSE | re.DOTALL)

SKIPPED = ('ws', 'line_comment', 'block_comment')

# host Rust source, scanned only for the macro and its braces
SOURCE_RE = re.compile(r'''
    (?P<line_comment>//[^\n]*)
  | (?P<block_comment>/\*)
  | (?P<raw_string>\bb?r\#*")
  | (?P<string>"(?:[^"\\]|\\.)*")
  | (?P<char>'(?:[^'\\\n]|\\(?:u\{[0-9A-Fa-f]*\}|x[0-9A-Fa-f]{2}|.))')
  | (?P<bind>\bbind!\s*\{)
  | (?P<open>\{)
  | (?P<close>\})
''', re.VERBOSE | re.DOTALL)

COMMENT_DELIM_RE = re.compile(r'/\*|\*/')

# generic name -> number of type arguments
GENERICS = {'Vec': 1, 'Map': 2, 'Option': 1, 'UniquePtr': 1}


@dataclass
class Token:
    kind: str
    value: str
    line: int
    column: int


def _skip_block_comment(source: str, pos: int) -> int:
    """Position just past a block comment opened before `pos`; block comments nest"""
    depth = 1
    while depth:
        m = COMMENT_DELIM_RE.search(source, pos)
        if not m:
            return len(source)
        depth += 1 if m.group() == '/*' else -1
        pos = m.end()
    return pos


def extract_dsl(source: str) -> Optional[str]:
    """Return the body of the first `bind! { ... }` block in a Rust source file

    Comments, string literals and character literals are skipped both while
    looking for the macro and while matching its braces.
    """
    content_start = None
    depth = 0
    pos = 0
    while True:
        m = SOURCE_RE.search(source, pos)
        if not m:
            return None
        kind = m.lastgroup
        pos = m.end()

        if kind == 'block_comment':
            pos = _skip_block_comment(source, pos)
        elif kind == 'raw_string':
            close = '"' + '#' * m.group().count('#')
            end = source.find(close, pos)
            if end < 0:
                return None
            pos = end + len(close)
        elif kind in ('line_comment', 'string', 'char'):
            continue
        elif content_start is None:
            if kind == 'bind':
                content_start = pos
        elif kind in ('bind', 'open'):
            depth += 1
        elif depth == 0:
            return source[content_start:m.start()]
        else:
            depth -= 1


def tokenize(content: str) -> list[Token]:
    tokens = []
    line, line_start = 1, 0
    pos = 0
    while pos < len(content):
        m = TOKEN_RE.match(content, pos)
        if not m:
            raise DslSyntaxError(f"Unexpected character {content[pos]!r}", line, pos - line_start + 1)
        kind = m.lastgroup
        text = m.group()
        if kind not in SKIPPED:
            tokens.append(Token(kind, text, line, pos - line_start + 1))
        newlines = text.count('\n')
        if newlines:
            line += newlines
            line_start = m.start() + text.rfind('\n') + 1
        pos = m.end()
    return tokens


class BindParser:
    """Parses the body of a bind! block into a BindInput"""

    def __init__(self, content: str):
        self.tokens = tokenize(content)
        self.pos = 0

    # ── token helpers ─────────────────────────────────────────

    def _peek(self, offset: int = 0) -> Optional[Token]:
        idx = self.pos + offset
        return self.tokens[idx] if idx < len(self.tokens) else None

    def _at(self, value: str, offset: int = 0) -> bool:
        tok = self._peek(offset)
        return tok is not None and tok.kind != 'string' and tok.value == value

    def _error(self, message: str) -> DslSyntaxError:
        tok = self._peek()
        if tok is None:
            last = self.tokens[-1] if self.tokens else None
            where = f"{message}, found end of input"
            return DslSyntaxError(where, last.line if last else 0, last.column if last else 0)
        return DslSyntaxError(f"{message}, found {tok.value!r}", tok.line, tok.column)

    def _next(self) -> Token:
        tok = self._peek()
        if tok is None:
            raise self._error("Unexpected end of input")
        self.pos += 1
        return tok

    def _expect(self, value: str) -> Token:
        if not self._at(value):
            raise self._error(f"Expected {value!r}")
        return self._next()

    def _expect_ident(self) -> str:
        tok = self._peek()
        if tok is None or tok.kind != 'ident':
            raise self._error("Expected identifier")
        self.pos += 1
        return tok.value

    def _accept(self, value: str) -> bool:
        if self._at(value):
            self.pos += 1
            return True
        return False

    # ── items ─────────────────────────────────────────────────

    def parse(self) -> BindInput:
        result = BindInput()
        while self._peek() is not None:
            attrs = self._parse_attrs()
            if attrs and not self._at('struct'):
                raise self._error(f"Attribute #[{attrs[0].name}] is only allowed on struct")
            if self._at('include') and self._at('!', 1):
                result.items.append(self._parse_include())
            elif self._at('struct'):
                result.items.append(self._parse_struct(attrs))
            elif self._at('impl'):
                result.items.append(self._parse_impl())
            else:
                raise self._error("Expected include!, struct, or impl")
        return result

    def _parse_include(self) -> Include:
        self._expect('include')
        self._expect('!')
        self._expect('(')
        tok = self._next()
        if tok.kind != 'string':
            self.pos -= 1
            raise self._error("Expected string literal")
        self._expect(')')
        self._expect(';')
        return Include(path=_unquote(tok.value))

    def _parse_struct(self, attrs: list[Attribute]) -> StructDecl:
        self._expect('struct')
        struct = StructDecl(name=self._expect_ident(), attrs=attrs)
        self._expect('{')
        while not self._at('}'):
            struct.fields.append(self._parse_field())
            if not self._accept(','):
                break
        self._expect('}')
        return struct

    def _parse_field(self) -> FieldDecl:
        attrs = self._parse_attrs()
        name = self._expect_ident()
        self._expect(':')
        return FieldDecl(name=name, ty=self._parse_type(), attrs=attrs)

    def _parse_impl(self) -> ImplDecl:
        self._expect('impl')
        impl = ImplDecl(target=self._expect_ident())
        self._expect('{')
        while not self._at('}'):
            impl.methods.append(self._parse_method())
        self._expect('}')
        return impl

    def _parse_method(self) -> MethodDecl:
        attrs = self._parse_attrs()
        line = self._peek().line if self._peek() else 0
        self._expect('fn')
        method = MethodDecl(name=self._expect_ident(), attrs=attrs, line=line)

        self._expect('(')
        method.receiver = self._parse_receiver()
        while not self._at(')'):
            arg_name = self._expect_ident()
            self._expect(':')
            method.args.append(Arg(name=arg_name, ty=self._parse_type()))
            if not self._accept(','):
                break
        self._expect(')')

        if self._accept('->'):
            method.ret = self._parse_type()

        if self._accept('='):
            tok = self._next()
            if tok.kind == 'string':
                method.cpp_name = _unquote(tok.value)
            elif tok.kind == 'ident':
                method.cpp_name = tok.value
            else:
                self.pos -= 1
                raise self._error("Expected native name after '='")

        self._expect(';')
        return method

    def _parse_receiver(self) -> Receiver:
        if self._at('&'):
            if self._at('self', 1):
                self.pos += 2
                receiver = Receiver.REF
            elif self._at('mut', 1) and self._at('self', 2):
                self.pos += 3
                receiver = Receiver.REF_MUT
            else:
                return Receiver.NONE
        elif self._at('self'):
            self.pos += 1
            receiver = Receiver.VALUE
        elif self._at('mut') and self._at('self', 1):
            self.pos += 2
            receiver = Receiver.VALUE_MUT
        else:
            return Receiver.NONE
        self._accept(',')
        return receiver

    def _parse_attrs(self) -> list[Attribute]:
        attrs = []
        while self._at('#'):
            self._next()
            self._expect('[')
            attr = Attribute(name=self._expect_ident())
            if self._accept('('):
                attr.has_args = True
                while not self._at(')'):
                    key = self._expect_ident()
                    self._expect('=')
                    attr.args[key] = self._parse_type()
                    if not self._accept(','):
                        break
                self._expect(')')
            self._expect(']')
            attrs.append(attr)
        return attrs

    # ── types ─────────────────────────────────────────────────

    def _parse_type(self) -> TypeKind:
        if self._accept('&'):
            is_mut = self._accept('mut')
            return Reference(self._parse_type(), is_mut=is_mut)

        if self._accept('['):
            inner = self._parse_type()
            self._expect(']')
            return Slice(inner)

        name = self._expect_ident()
        while self._accept('::'):
            name = self._expect_ident()

        if not self._at('<'):
            if name in GENERICS:
                raise self._error(f"Expected type arguments for {name}")
            return _named_type(name)

        if name not in GENERICS:
            raise self._error(f"Unknown generic type {name!r}")
        self._expect('<')
        args = [self._parse_type()]
        while self._accept(','):
            args.append(self._parse_type())
        self._expect('>')

        arity = GENERICS[name]
        if len(args) != arity:
            noun = "argument" if arity == 1 else "arguments"
            raise self._error(f"Expected exactly {arity} generic {noun} for {name}")

        if name == 'Vec':
            return make_vector(args[0])
        if name == 'Map':
            return make_map(args[0], args[1])
        if name == 'Option':
            return Option(args[0])
        return UniquePointer(args[0])


def _named_type(name: str) -> TypeKind:
    if name == 'String':
        return String()
    if name in PRIMITIVES:
        return Primitive(name)
    return Object(name)


def _unquote(literal: str) -> str:
    return re.sub(r'\\(.)', r'\1', literal[1:-1])


def parse_bind(content: str) -> BindInput:
    """Parse the body of a bind! block"""
    return BindParser(content).parse()
