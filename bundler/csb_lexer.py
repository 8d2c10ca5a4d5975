#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import List, Optional


# ==========================
# Tokens and lexer
# ==========================

class TokenKind(Enum):
    # Special
    EOF = auto()

    IDENT = auto()  # identifier, including contextual keywords (var, record, global, ...)
    NUMBER = auto()  # 42, 0x1F, 1_000L, 3.5e2f, .5m
    CHAR = auto()  # 'a', '\n'
    STRING = auto()  # "text", @"verbatim", """raw"""
    INTERPOLATED_STRING = auto()  # $"text {hole}"
    PREDEFINED_TYPE = auto()  # int, string, object, ...
    KEYWORD = auto()  # any other reserved keyword (if, return, public, ...)

    # Keywords the parser branches on
    NAMESPACE = auto()
    USING = auto()
    CLASS = auto()
    STRUCT = auto()
    INTERFACE = auto()
    ENUM = auto()
    DELEGATE = auto()
    NEW = auto()
    THIS = auto()
    BASE = auto()
    TRUE = auto()
    FALSE = auto()
    NULL = auto()
    STATIC = auto()
    OPERATOR = auto()
    EVENT = auto()
    IMPLICIT = auto()
    EXPLICIT = auto()
    EXTERN = auto()
    TYPEOF = auto()
    SIZEOF = auto()
    DEFAULT = auto()
    FOREACH = auto()
    IN = auto()
    OUT = auto()
    REF = auto()
    PARAMS = auto()
    IS = auto()
    AS = auto()

    # Punctuation
    LBRACE = auto()  # {
    RBRACE = auto()  # }
    LPAREN = auto()  # (
    RPAREN = auto()  # )
    LBRACKET = auto()  # [
    RBRACKET = auto()  # ]
    COMMA = auto()  # ,
    SEMI = auto()  # ;
    COLON = auto()  # :
    DOUBLE_COLON = auto()  # ::
    DOT = auto()  # .
    QUESTION = auto()  # ?
    QUESTION_DOT = auto()  # ?.
    ARROW = auto()  # =>
    EQ = auto()  # =
    LT = auto()  # <
    GT = auto()  # > (">>" is always lexed as two GT tokens)
    BANG = auto()  # !
    STAR = auto()  # *
    TILDE = auto()  # ~
    OP = auto()  # any other operator, text preserved (==, +=, &&, ??, ...)


KEYWORDS = {
    "namespace": TokenKind.NAMESPACE,
    "using": TokenKind.USING,
    "class": TokenKind.CLASS,
    "struct": TokenKind.STRUCT,
    "interface": TokenKind.INTERFACE,
    "enum": TokenKind.ENUM,
    "delegate": TokenKind.DELEGATE,
    "new": TokenKind.NEW,
    "this": TokenKind.THIS,
    "base": TokenKind.BASE,
    "true": TokenKind.TRUE,
    "false": TokenKind.FALSE,
    "null": TokenKind.NULL,
    "static": TokenKind.STATIC,
    "operator": TokenKind.OPERATOR,
    "event": TokenKind.EVENT,
    "implicit": TokenKind.IMPLICIT,
    "explicit": TokenKind.EXPLICIT,
    "extern": TokenKind.EXTERN,
    "typeof": TokenKind.TYPEOF,
    "sizeof": TokenKind.SIZEOF,
    "default": TokenKind.DEFAULT,
    "foreach": TokenKind.FOREACH,
    "in": TokenKind.IN,
    "out": TokenKind.OUT,
    "ref": TokenKind.REF,
    "params": TokenKind.PARAMS,
    "is": TokenKind.IS,
    "as": TokenKind.AS,
}

PREDEFINED_TYPES = {
    "bool", "byte", "sbyte", "char", "decimal", "double", "float", "int", "uint",
    "long", "ulong", "short", "ushort", "object", "string", "void",
}

OTHER_KEYWORDS = {
    "abstract", "break", "case", "catch", "checked", "const", "continue", "do",
    "else", "finally", "fixed", "for", "goto", "if", "internal", "lock",
    "override", "private", "protected", "public", "readonly", "return", "sealed",
    "stackalloc", "switch", "throw", "try", "unchecked", "unsafe", "virtual",
    "volatile", "while",
}

# Longest first: the lexer takes the first operator that matches.
OPERATORS = [
    "<<=", "??=", "...",
    "::", "?.", "=>", "==", "!=", "<=", ">=", "&&", "||", "++", "--", "+=", "-=",
    "*=", "/=", "%=", "&=", "|=", "^=", "->", "??", "<<", "..",
]

SINGLE_CHAR_KINDS = {
    "{": TokenKind.LBRACE,
    "}": TokenKind.RBRACE,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    "[": TokenKind.LBRACKET,
    "]": TokenKind.RBRACKET,
    ",": TokenKind.COMMA,
    ";": TokenKind.SEMI,
    ":": TokenKind.COLON,
    ".": TokenKind.DOT,
    "?": TokenKind.QUESTION,
    "=": TokenKind.EQ,
    "<": TokenKind.LT,
    ">": TokenKind.GT,
    "!": TokenKind.BANG,
    "*": TokenKind.STAR,
    "~": TokenKind.TILDE,
}

MULTI_CHAR_KINDS = {
    "::": TokenKind.DOUBLE_COLON,
    "?.": TokenKind.QUESTION_DOT,
    "=>": TokenKind.ARROW,
}

OPERATOR_CHARS = "+-/%&|^"


@dataclass
class Token:
    kind: TokenKind
    text: str
    line: int
    column: int
    # Source offsets [start, end) of the token text in the lexed source.
    start: int = 0
    end: int = 0
    # Tokenized holes of an interpolated string, each terminated by EOF.
    holes: Optional[List[List["Token"]]] = field(default=None, repr=False, compare=False)

    def __repr__(self) -> str:
        return f"{self.text!r}" if self.kind != TokenKind.EOF else "end-of-file"


@dataclass
class LexerError(Exception):
    message: str
    filename: str
    line: int
    column: int


def keyword_kind(word: str) -> TokenKind:
    if word in KEYWORDS:
        return KEYWORDS[word]
    if word in PREDEFINED_TYPES:
        return TokenKind.PREDEFINED_TYPE
    if word in OTHER_KEYWORDS:
        return TokenKind.KEYWORD
    return TokenKind.IDENT


class Lexer:
    def __init__(
        self,
        source: str,
        filename: str = "<input>",
        *,
        line: int = 1,
        column: int = 1,
        offset: int = 0,
    ) -> None:
        # A UTF-8 byte order mark is not part of the program text.
        if offset == 0 and source.startswith("\ufeff"):
            source = source[1:]
        self.source = source
        self.filename = filename
        self.length = len(source)
        self.index = 0
        self.line = line
        self.column = column
        # Added to token offsets; non-zero when lexing an interpolation hole.
        self.offset = offset

    @classmethod
    def from_source(cls, source: str) -> "Lexer":
        return cls(source)

    # --- low-level char utilities ---

    def _at_end(self) -> bool:
        return self.index >= self.length

    def _peek(self, ahead: int = 0) -> str:
        pos = self.index + ahead
        if pos >= self.length:
            return "\0"
        return self.source[pos]

    def _advance(self) -> str:
        c = self._peek()
        if not self._at_end():
            self.index += 1
            if c == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1
        return c

    def _error(self, message: str, line: Optional[int] = None, column: Optional[int] = None) -> LexerError:
        return LexerError(
            message,
            self.filename,
            self.line if line is None else line,
            self.column if column is None else column,
        )

    # --- main API ---

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        while True:
            tok = self._next_token()
            tokens.append(tok)
            if tok.kind is TokenKind.EOF:
                break
        return tokens

    def _make(self, kind: TokenKind, text: str, line: int, column: int, start: int) -> Token:
        return Token(kind, text, line, column, start + self.offset, self.index + self.offset)

    def _next_token(self) -> Token:
        self._skip_ws_and_comments()
        start_line, start_col, start = self.line, self.column, self.index

        if self._at_end():
            return self._make(TokenKind.EOF, "", start_line, start_col, start)

        c = self._peek()

        # string literal prefixes: $"..", @"..", $@"..", @$"..", $$"""..."""
        if c in ("$", "@") and self._starts_string_literal():
            return self._read_prefixed_string(start_line, start_col, start)

        if c == '"':
            if self._peek(1) == '"' and self._peek(2) == '"':
                self._read_raw_string(start_line, start_col)
            else:
                self._read_regular_string(start_line, start_col)
            self._skip_utf8_suffix()
            return self._make(TokenKind.STRING, self.source[start:self.index], start_line, start_col, start)

        if c == "'":
            self._read_char_literal(start_line, start_col)
            return self._make(TokenKind.CHAR, self.source[start:self.index], start_line, start_col, start)

        # identifiers / keywords; '@' makes a keyword usable as identifier
        if c == "@" and (self._peek(1).isalpha() or self._peek(1) == "_"):
            self._advance()
            text = self._read_identifier()
            return self._make(TokenKind.IDENT, text, start_line, start_col, start)

        if c.isalpha() or c == "_":
            text = self._read_identifier()
            return self._make(keyword_kind(text), text, start_line, start_col, start)

        if c.isdigit() or (c == "." and self._peek(1).isdigit()):
            self._read_number()
            return self._make(TokenKind.NUMBER, self.source[start:self.index], start_line, start_col, start)

        if c == "?" and self._peek(1) == "." and self._peek(2).isdigit():
            # conditional followed by a real literal: `a ?.5 : 1`
            self._advance()
            return self._make(TokenKind.QUESTION, c, start_line, start_col, start)

        for op in OPERATORS:
            if self.source.startswith(op, self.index):
                for _ in op:
                    self._advance()
                kind = MULTI_CHAR_KINDS.get(op, TokenKind.OP)
                return self._make(kind, op, start_line, start_col, start)

        if c in SINGLE_CHAR_KINDS:
            self._advance()
            return self._make(SINGLE_CHAR_KINDS[c], c, start_line, start_col, start)

        if c in OPERATOR_CHARS:
            self._advance()
            return self._make(TokenKind.OP, c, start_line, start_col, start)

        raise self._error(f"[LEX-0040] unexpected character {c!r}", start_line, start_col)

    # --- identifiers and numbers ---

    def _read_identifier(self) -> str:
        chars = [self._advance()]
        while self._peek().isalnum() or self._peek() == "_":
            chars.append(self._advance())
        return "".join(chars)

    def _read_number(self) -> None:
        if self._peek() == "0" and self._peek(1) in ("x", "X", "b", "B"):
            self._advance()
            self._advance()
            while self._peek().isalnum() or self._peek() == "_":
                self._advance()
            return
        while self._peek().isdigit() or self._peek() == "_":
            self._advance()
        if self._peek() == "." and self._peek(1).isdigit():
            self._advance()
            while self._peek().isdigit() or self._peek() == "_":
                self._advance()
        if self._peek() in ("e", "E") and (
            self._peek(1).isdigit() or (self._peek(1) in ("+", "-") and self._peek(2).isdigit())
        ):
            self._advance()
            if self._peek() in ("+", "-"):
                self._advance()
            while self._peek().isdigit():
                self._advance()
        # type suffixes: u, l, ul, lu, f, d, m (any case)
        while self._peek() in ("u", "U", "l", "L", "f", "F", "d", "D", "m", "M"):
            self._advance()

    # --- character and string literals ---

    def _read_char_literal(self, start_line: int, start_col: int) -> None:
        self._advance()  # opening '
        while True:
            ch = self._peek()
            if ch in ("\0", "\n"):
                raise self._error("[LEX-0020] unterminated char literal", start_line, start_col)
            if ch == "\\":
                self._advance()
                self._advance()
                continue
            self._advance()
            if ch == "'":
                return

    def _read_regular_string(self, start_line: int, start_col: int) -> None:
        self._advance()  # opening "
        while True:
            ch = self._peek()
            if ch in ("\0", "\n"):
                raise self._error("[LEX-0010] unterminated string literal", start_line, start_col)
            if ch == "\\":
                self._advance()
                self._advance()
                continue
            self._advance()
            if ch == '"':
                return

    def _read_verbatim_string(self, start_line: int, start_col: int) -> None:
        self._advance()  # opening "
        while True:
            ch = self._peek()
            if ch == "\0":
                raise self._error("[LEX-0011] unterminated verbatim string literal", start_line, start_col)
            self._advance()
            if ch == '"':
                if self._peek() == '"':
                    self._advance()
                    continue
                return

    def _read_raw_string(self, start_line: int, start_col: int) -> None:
        quotes = 0
        while self._peek() == '"':
            self._advance()
            quotes += 1
        closing = '"' * quotes
        while True:
            if self._at_end():
                raise self._error("[LEX-0011] unterminated raw string literal", start_line, start_col)
            if self.source.startswith(closing, self.index):
                for _ in range(quotes):
                    self._advance()
                return
            self._advance()

    def _skip_utf8_suffix(self) -> None:
        if self._peek() in ("u", "U") and self._peek(1) == "8":
            self._advance()
            self._advance()

    def _starts_string_literal(self) -> bool:
        pos = self.index
        while pos < self.length and self.source[pos] in ("$", "@"):
            pos += 1
        return pos > self.index and pos < self.length and self.source[pos] == '"'

    def _read_prefixed_string(self, start_line: int, start_col: int, start: int) -> Token:
        dollars = 0
        verbatim = False
        while self._peek() in ("$", "@"):
            if self._advance() == "$":
                dollars += 1
            else:
                verbatim = True

        if self._peek(1) == '"' and self._peek(2) == '"':
            # Raw (interpolated) strings are kept opaque.
            self._read_raw_string(start_line, start_col)
            kind = TokenKind.INTERPOLATED_STRING if dollars else TokenKind.STRING
            return self._make(kind, self.source[start:self.index], start_line, start_col, start)

        if not dollars:
            self._read_verbatim_string(start_line, start_col)
            return self._make(TokenKind.STRING, self.source[start:self.index], start_line, start_col, start)

        holes = self._read_interpolated_string(verbatim, start_line, start_col)
        tok = self._make(TokenKind.INTERPOLATED_STRING, self.source[start:self.index], start_line, start_col, start)
        tok.holes = holes
        return tok

    def _read_interpolated_string(self, verbatim: bool, start_line: int, start_col: int) -> List[List[Token]]:
        holes: List[List[Token]] = []
        self._advance()  # opening "
        while True:
            ch = self._peek()
            if ch == "\0" or (ch == "\n" and not verbatim):
                raise self._error("[LEX-0010] unterminated string literal", start_line, start_col)
            if ch == "\\" and not verbatim:
                self._advance()
                self._advance()
                continue
            if ch == '"':
                self._advance()
                if verbatim and self._peek() == '"':
                    self._advance()
                    continue
                return holes
            if ch == "{":
                if self._peek(1) == "{":
                    self._advance()
                    self._advance()
                    continue
                self._advance()
                holes.append(self._read_interpolation_hole())
                continue
            if ch == "}" and self._peek(1) == "}":
                self._advance()
            self._advance()

    def _read_interpolation_hole(self) -> List[Token]:
        """
        Read the expression part of one `{...}` hole and tokenize it.
        Alignment (`,n`) and format (`:fmt`) parts are skipped.
        """
        hole_line, hole_col, hole_start = self.line, self.column, self.index
        depth = 0
        expr_end: Optional[int] = None
        while True:
            ch = self._peek()
            if ch == "\0":
                raise self._error("[LEX-0050] unterminated interpolation hole", hole_line, hole_col)
            if ch in ('"', "'") and expr_end is None:
                # nested literal inside the hole expression
                if ch == '"':
                    self._read_regular_string(self.line, self.column)
                else:
                    self._read_char_literal(self.line, self.column)
                continue
            if ch in "([{":
                depth += 1
            elif ch in ")]":
                depth -= 1
            elif ch == "}":
                if depth == 0:
                    if expr_end is None:
                        expr_end = self.index
                    self._advance()
                    break
                depth -= 1
            elif ch in (",", ":") and depth == 0 and expr_end is None:
                expr_end = self.index
            self._advance()

        text = self.source[hole_start:expr_end]
        sub = Lexer(text, self.filename, line=hole_line, column=hole_col, offset=self.offset + hole_start)
        return sub.tokenize()

    # --- trivia ---

    def _at_line_start(self) -> bool:
        pos = self.index - 1
        while pos >= 0 and self.source[pos] in (" ", "\t"):
            pos -= 1
        return pos < 0 or self.source[pos] == "\n"

    def _skip_ws_and_comments(self) -> None:
        while True:
            c = self._peek()
            if c in (" ", "\t", "\r", "\n", "\f", "\v"):
                self._advance()
                continue
            if c == "/" and self._peek(1) == "/":
                while self._peek() not in ("\n", "\0"):
                    self._advance()
                continue
            if c == "/" and self._peek(1) == "*":
                line, column = self.line, self.column
                self._advance()  # '/'
                self._advance()  # '*'
                while True:
                    if self._at_end():
                        raise self._error("[LEX-0070] unterminated block comment", line, column)
                    if self._peek() == "*" and self._peek(1) == "/":
                        self._advance()
                        self._advance()
                        break
                    self._advance()
                continue
            if c == "#" and self._at_line_start():
                # preprocessor directive: #region, #if, #pragma, ...
                while self._peek() not in ("\n", "\0"):
                    self._advance()
                continue
            break
