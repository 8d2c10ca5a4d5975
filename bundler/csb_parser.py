#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass
from typing import List, Optional, Set

from csb_ast import (
    Span, TypeRef, UsingDirective, Param, MemberKind, LocalDecl, MemberDecl, TypeDecl, NamespaceDecl, SourceFile,
    Expr, NameExpr, MemberAccessExpr, InvocationExpr, ObjectCreationExpr, ArrayCreationExpr, ElementAccessExpr,
    GroupExpr, LiteralExpr, InterpolatedStringExpr, ThisExpr, BaseExpr)
from csb_lexer import TokenKind, Token, Lexer

# ==========================
# Parser
# ==========================

# Parsing is structural: declarations are parsed fully, member bodies are read as
# forests of postfix chains (names, member accesses, invocations, creations).
# Operators and statement keywords between chains are skipped.

MODIFIER_KEYWORDS = {
    "public", "private", "protected", "internal", "abstract", "sealed", "override",
    "virtual", "readonly", "const", "unsafe", "volatile", "fixed",
}

CONTEXTUAL_MODIFIERS = {"partial", "async", "required", "file", "scoped"}

# Contextual keywords that never start a local declaration type.
NON_TYPE_WORDS = {
    "await", "yield", "nameof", "when", "and", "or", "not", "async", "with",
    "from", "select", "where", "orderby", "group", "let", "join", "into", "on",
    "equals", "by", "ascending", "descending",
}

# Tokens that may follow a generic type argument list inside an expression.
TYPE_ARG_FOLLOW = {
    TokenKind.LPAREN, TokenKind.RPAREN, TokenKind.RBRACKET, TokenKind.RBRACE, TokenKind.COLON,
    TokenKind.SEMI, TokenKind.COMMA, TokenKind.DOT, TokenKind.QUESTION_DOT, TokenKind.QUESTION,
    TokenKind.LBRACKET, TokenKind.IDENT, TokenKind.GT, TokenKind.EOF,
}

# Tokens that may follow the name in `Type name`.
DECL_FOLLOW = {
    TokenKind.EQ, TokenKind.SEMI, TokenKind.COMMA, TokenKind.RPAREN, TokenKind.IN, TokenKind.COLON, TokenKind.ARROW,
}

CLOSERS = {TokenKind.RPAREN, TokenKind.RBRACKET, TokenKind.RBRACE}

LITERAL_KINDS = {
    TokenKind.CHAR: "char",
    TokenKind.STRING: "string",
    TokenKind.TRUE: "bool",
    TokenKind.FALSE: "bool",
    TokenKind.NULL: "null",
}


@dataclass
class ParseError(Exception):
    message: str
    token: Optional[Token] = None
    filename: Optional[str] = None


def number_literal_kind(text: str) -> str:
    """Map a numeric literal to the name of its C# type."""
    lower = text.lower().replace("_", "")
    if lower.startswith(("0x", "0b")):
        suffix = lower[2:].lstrip("0123456789abcdef") if lower.startswith("0x") else lower[2:].lstrip("01")
    else:
        if lower.endswith("f"):
            return "float"
        if lower.endswith("m"):
            return "decimal"
        if lower.endswith("d") or "." in lower or "e" in lower:
            return "double"
        suffix = lower.lstrip("0123456789")
    if suffix in ("ul", "lu"):
        return "ulong"
    if suffix == "l":
        return "long"
    if suffix == "u":
        return "uint"
    return "int"


class Parser:
    def __init__(self, tokens: List[Token], filename: Optional[str] = None, source: Optional[str] = None) -> None:
        self.tokens = tokens
        self.index = 0
        self.filename = filename
        # Lexed source text; type declarations keep a verbatim slice of it.
        self.source = source
        # Locals of the member body being parsed.
        self._locals: List[LocalDecl] = []

    @classmethod
    def from_source(cls, source: str, filename: Optional[str] = None) -> "Parser":
        lexer = Lexer(source, filename or "<input>")
        tokens = lexer.tokenize()
        return cls(tokens, filename, lexer.source)

    # --- token utilities ---

    def _peek(self, ahead: int = 0) -> Token:
        pos = min(self.index + ahead, len(self.tokens) - 1)
        return self.tokens[pos]

    def _last(self) -> Token:
        return self.tokens[self.index - 1 if self.index > 0 else 0]

    def _at_end(self) -> bool:
        return self._peek().kind is TokenKind.EOF

    def _advance(self) -> Token:
        tok = self._peek()
        if not self._at_end():
            self.index += 1
        return tok

    def _check(self, kind: TokenKind) -> bool:
        return self._peek().kind is kind

    def _check_word(self, word: str, ahead: int = 0) -> bool:
        tok = self._peek(ahead)
        return tok.kind is TokenKind.IDENT and tok.text == word

    def _match(self, *kinds: TokenKind) -> bool:
        if self._peek().kind in kinds:
            self._advance()
            return True
        return False

    def _expect(self, kind: TokenKind, msg: str) -> Token:
        if not self._check(kind):
            raise ParseError(f"{msg}, got {self._peek()} instead", self._peek(), self.filename)
        return self._advance()

    def _span_start(self) -> Span:
        here = self._peek()
        return Span(here.line, here.column, here.line, here.column)

    def _extend_span(self, start: Span) -> Span:
        here = self._last()
        return Span(
            start.start_line,
            start.start_column,
            here.line,
            here.column + len(here.text),
        )

    def _skip_balanced(self, open_kind: TokenKind, close_kind: TokenKind) -> None:
        depth = 0
        while not self._at_end():
            tok = self._advance()
            if tok.kind is open_kind:
                depth += 1
            elif tok.kind is close_kind:
                depth -= 1
                if depth == 0:
                    return
        raise ParseError(f"[PAR-0095] unbalanced '{open_kind.name.lower()}'", self._peek(), self.filename)

    def _skip_attributes(self) -> None:
        while self._check(TokenKind.LBRACKET):
            self._skip_balanced(TokenKind.LBRACKET, TokenKind.RBRACKET)

    def _declaration_text(self, start: int, end: int) -> str:
        if self.source is None:
            return ""
        lines = self.source[start:end].replace("\r\n", "\n").split("\n")
        while lines and not lines[0].strip():
            lines.pop(0)
        return "\n".join(lines)

    # --- entry point ---

    def parse_source_file(self, filename: Optional[str] = None) -> SourceFile:
        if filename is not None:
            self.filename = filename

        start = self._span_start()
        usings: List[UsingDirective] = []
        types: List[TypeDecl] = []
        namespaces: List[NamespaceDecl] = []
        self._parse_namespace_body(usings, types, namespaces, None, top_level=True)
        self._expect(TokenKind.EOF, "[PAR-0001] expected end of file")
        return SourceFile(usings, types, namespaces, filename=self.filename, span=self._extend_span(start))

    # --- namespaces and using directives ---

    def _parse_namespace_body(
        self,
        usings: List[UsingDirective],
        types: List[TypeDecl],
        namespaces: List[NamespaceDecl],
        closing: Optional[TokenKind],
        top_level: bool = False,
    ) -> None:
        while not self._at_end() and not (closing is not None and self._check(closing)):
            tok = self._peek()
            if tok.kind is TokenKind.EXTERN and self._check_word("alias", 1):
                # extern alias X;
                while not self._match(TokenKind.SEMI) and not self._at_end():
                    self._advance()
            elif tok.kind is TokenKind.USING or (
                self._check_word("global") and self._peek(1).kind is TokenKind.USING
            ):
                usings.append(self._parse_using_directive())
            elif tok.kind is TokenKind.NAMESPACE:
                namespaces.append(self._parse_namespace())
            elif tok.kind is TokenKind.SEMI:
                self._advance()
            elif self._looks_like_type_declaration():
                decl = self._parse_type_declaration()
                if decl is not None:
                    types.append(decl)
            elif top_level:
                self._skip_global_statement()
            else:
                raise ParseError(
                    f"[PAR-0020] expected type declaration, got {tok} instead", tok, self.filename)

    def _skip_global_statement(self) -> None:
        # top-level statements and local functions carry no declarations
        while not self._at_end() and not self._match(TokenKind.SEMI):
            tok = self._peek()
            if tok.kind in CLOSERS:
                raise ParseError(f"[PAR-0096] unexpected {tok} in top-level statement", tok, self.filename)
            if self._looks_like_type_declaration():
                return
            item = self._parse_item()
            if item is not None:
                self._try_local_declaration(item)

    def _parse_using_directive(self) -> UsingDirective:
        # [global] using [static] [Alias =] Name ;
        start = self._span_start()
        is_global = False
        if self._check_word("global"):
            self._advance()
            is_global = True
        self._expect(TokenKind.USING, "[PAR-0010] expected 'using'")
        is_static = self._match(TokenKind.STATIC)
        alias: Optional[str] = None
        if self._check(TokenKind.IDENT) and self._peek(1).kind is TokenKind.EQ:
            alias = self._advance().text
            self._advance()
        target = self._parse_type()
        self._expect(TokenKind.SEMI, "[PAR-0011] expected ';' after using directive")
        return UsingDirective(target, alias, is_static, is_global, span=self._extend_span(start))

    def _parse_namespace(self) -> NamespaceDecl:
        # namespace A.B { ... }   or   namespace A.B;
        start = self._span_start()
        self._expect(TokenKind.NAMESPACE, "[PAR-0012] expected 'namespace'")
        parts = [self._expect(TokenKind.IDENT, "[PAR-0012] expected namespace name").text]
        while self._match(TokenKind.DOT):
            parts.append(self._expect(TokenKind.IDENT, "[PAR-0012] expected namespace name").text)
        ns = NamespaceDecl(".".join(parts))

        if self._match(TokenKind.SEMI):
            ns.is_file_scoped = True
            self._parse_namespace_body(ns.usings, ns.types, ns.namespaces, None)
        else:
            self._expect(TokenKind.LBRACE, "[PAR-0013] expected '{' after namespace name")
            self._parse_namespace_body(ns.usings, ns.types, ns.namespaces, TokenKind.RBRACE)
            self._expect(TokenKind.RBRACE, "[PAR-0014] expected '}' after namespace body")
            self._match(TokenKind.SEMI)
        ns.span = self._extend_span(start)
        return ns

    # --- type declarations ---

    def _is_modifier(self, ahead: int = 0) -> bool:
        tok = self._peek(ahead)
        if tok.kind in (TokenKind.STATIC, TokenKind.EXTERN, TokenKind.NEW, TokenKind.REF):
            return self._peek(ahead + 1).kind is not TokenKind.LPAREN
        if tok.kind is TokenKind.KEYWORD:
            return tok.text in MODIFIER_KEYWORDS
        if tok.kind is TokenKind.IDENT and tok.text in CONTEXTUAL_MODIFIERS:
            nxt = self._peek(ahead + 1)
            return nxt.kind not in (TokenKind.EQ, TokenKind.SEMI, TokenKind.LPAREN, TokenKind.DOT,
                                    TokenKind.COMMA, TokenKind.LT, TokenKind.RPAREN)
        return False

    def _is_type_keyword(self, ahead: int = 0) -> bool:
        tok = self._peek(ahead)
        if tok.kind in (TokenKind.CLASS, TokenKind.STRUCT, TokenKind.INTERFACE, TokenKind.ENUM, TokenKind.DELEGATE):
            return True
        return tok.text == "record" and tok.kind is TokenKind.IDENT and self._peek(ahead + 1).kind in (
            TokenKind.IDENT, TokenKind.CLASS, TokenKind.STRUCT)

    def _looks_like_type_declaration(self) -> bool:
        saved = self.index
        try:
            self._skip_attributes()
            while self._is_modifier():
                self._advance()
            return self._is_type_keyword()
        except ParseError:
            return False
        finally:
            self.index = saved

    def _parse_type_declaration(self) -> Optional[TypeDecl]:
        """
        Parse one class/struct/interface/enum/record declaration.
        Delegate declarations are skipped and yield None.
        """
        full_start = self._last().end if self.index > 0 else 0
        self._skip_attributes()
        start = self._span_start()

        modifiers: List[str] = []
        while self._is_modifier():
            modifiers.append(self._advance().text)

        tok = self._peek()
        if tok.kind is TokenKind.DELEGATE:
            while not self._match(TokenKind.SEMI):
                if self._at_end():
                    raise ParseError("[PAR-0023] expected ';' after delegate declaration", tok, self.filename)
                self._advance()
            return None

        if not self._is_type_keyword():
            raise ParseError(f"[PAR-0020] expected type declaration, got {tok} instead", tok, self.filename)
        keyword = self._advance().text
        if keyword == "record" and self._check(TokenKind.CLASS):
            self._advance()
        elif keyword == "record" and self._check(TokenKind.STRUCT):
            self._advance()
            keyword = "record struct"

        name_tok = self._expect(TokenKind.IDENT, "[PAR-0021] expected type name")
        decl = TypeDecl(keyword, name_tok.text, modifiers=modifiers, filename=self.filename)

        if self._check(TokenKind.LT):
            decl.type_params = self._parse_type_parameter_list()
        if self._check(TokenKind.LPAREN):
            decl.params = self._parse_parameter_list(TokenKind.LPAREN, TokenKind.RPAREN)

        if self._match(TokenKind.COLON):
            decl.base_types.append(self._parse_type())
            if self._check(TokenKind.LPAREN):
                decl.base_args = self._parse_argument_list(TokenKind.LPAREN, TokenKind.RPAREN)
            while self._match(TokenKind.COMMA):
                decl.base_types.append(self._parse_type())

        self._skip_constraints()

        if self._check(TokenKind.LBRACE):
            if decl.is_enum:
                self._parse_enum_body(decl)
            else:
                self._parse_type_body(decl)
            self._match(TokenKind.SEMI)
        elif not self._match(TokenKind.SEMI):
            raise ParseError(
                f"[PAR-0022] expected '{{' after type header, got {self._peek()} instead", self._peek(), self.filename)

        decl.span = self._extend_span(start)
        decl.text = self._declaration_text(full_start, self._last().end)
        return decl

    def _skip_constraints(self) -> None:
        # where T : class, new()
        while self._check_word("where"):
            while not self._at_end() and self._peek().kind not in (TokenKind.LBRACE, TokenKind.SEMI, TokenKind.ARROW):
                if self._check(TokenKind.LPAREN):
                    self._skip_balanced(TokenKind.LPAREN, TokenKind.RPAREN)
                else:
                    self._advance()

    def _parse_type_parameter_list(self) -> List[str]:
        self._expect(TokenKind.LT, "[PAR-0063] expected '<'")
        names: List[str] = []
        while True:
            self._skip_attributes()
            self._match(TokenKind.IN, TokenKind.OUT)
            names.append(self._expect(TokenKind.IDENT, "[PAR-0063] expected type parameter name").text)
            if not self._match(TokenKind.COMMA):
                break
        self._expect(TokenKind.GT, "[PAR-0063] expected '>' after type parameters")
        return names

    def _parse_type_body(self, decl: TypeDecl) -> None:
        self._expect(TokenKind.LBRACE, "[PAR-0022] expected '{' after type header")
        while not self._check(TokenKind.RBRACE) and not self._at_end():
            if self._match(TokenKind.SEMI):
                continue
            if self._looks_like_type_declaration():
                nested = self._parse_type_declaration()
                if nested is not None:
                    decl.nested_types.append(nested)
                continue
            decl.members.extend(self._parse_member(decl))
        self._expect(TokenKind.RBRACE, "[PAR-0030] expected '}' after type body")

    def _parse_enum_body(self, decl: TypeDecl) -> None:
        self._expect(TokenKind.LBRACE, "[PAR-0022] expected '{' after type header")
        while not self._check(TokenKind.RBRACE):
            self._skip_attributes()
            start = self._span_start()
            name = self._expect(TokenKind.IDENT, "[PAR-0050] expected enum member name").text
            init: List[Expr] = []
            if self._match(TokenKind.EQ):
                init = self._parse_items({TokenKind.COMMA, TokenKind.RBRACE})
            decl.members.append(
                MemberDecl(MemberKind.ENUM_MEMBER, name, None, body=init, span=self._extend_span(start)))
            if not self._match(TokenKind.COMMA):
                break
        self._expect(TokenKind.RBRACE, "[PAR-0051] expected '}' after enum body")

    # --- members ---

    def _parse_member(self, decl: TypeDecl) -> List[MemberDecl]:
        saved_locals = self._locals
        self._locals = []
        try:
            members = self._parse_member_inner(decl)
        finally:
            locals_ = self._locals
            self._locals = saved_locals
        for member in members:
            member.locals = locals_
        return members

    def _parse_member_inner(self, decl: TypeDecl) -> List[MemberDecl]:
        self._skip_attributes()
        start = self._span_start()
        modifiers: List[str] = []
        while self._is_modifier():
            modifiers.append(self._advance().text)

        # destructor
        if self._match(TokenKind.TILDE):
            name = self._expect(TokenKind.IDENT, "[PAR-0040] expected member name").text
            params = self._parse_parameter_list(TokenKind.LPAREN, TokenKind.RPAREN)
            body = self._parse_member_body()
            return [MemberDecl(MemberKind.DESTRUCTOR, "~" + name, None, params, modifiers=modifiers, body=body,
                               span=self._extend_span(start))]

        # conversion operator
        if self._check(TokenKind.IMPLICIT) or self._check(TokenKind.EXPLICIT):
            which = self._advance().text
            self._expect(TokenKind.OPERATOR, "[PAR-0043] expected 'operator' after conversion keyword")
            target = self._parse_type()
            params = self._parse_parameter_list(TokenKind.LPAREN, TokenKind.RPAREN)
            body = self._parse_member_body()
            return [MemberDecl(MemberKind.CONVERSION, f"op_{which.capitalize()}", target, params,
                               modifiers=modifiers, body=body, span=self._extend_span(start))]

        # constructor
        if self._check(TokenKind.IDENT) and self._peek().text == decl.name and self._peek(1).kind is TokenKind.LPAREN:
            self._advance()
            params = self._parse_parameter_list(TokenKind.LPAREN, TokenKind.RPAREN)
            body: List[Expr] = []
            if self._match(TokenKind.COLON):
                init_start = self._span_start()
                tok = self._advance()
                if tok.kind not in (TokenKind.THIS, TokenKind.BASE):
                    raise ParseError(
                        f"[PAR-0045] expected 'this' or 'base' in constructor initializer, got {tok} instead",
                        tok, self.filename)
                target: Expr = ThisExpr(span=init_start) if tok.kind is TokenKind.THIS else BaseExpr(span=init_start)
                args = self._parse_argument_list(TokenKind.LPAREN, TokenKind.RPAREN)
                body.append(InvocationExpr(target, args, span=self._extend_span(init_start)))
            body.extend(self._parse_member_body())
            return [MemberDecl(MemberKind.CONSTRUCTOR, decl.name, None, params, modifiers=modifiers, body=body,
                               span=self._extend_span(start))]

        is_event = self._match(TokenKind.EVENT)
        member_type = self._parse_type()

        # operator
        if self._match(TokenKind.OPERATOR):
            op_parts: List[str] = []
            while not self._check(TokenKind.LPAREN) and not self._at_end():
                op_parts.append(self._advance().text)
            params = self._parse_parameter_list(TokenKind.LPAREN, TokenKind.RPAREN)
            body = self._parse_member_body()
            return [MemberDecl(MemberKind.OPERATOR, "operator" + "".join(op_parts), member_type, params,
                               modifiers=modifiers, body=body, span=self._extend_span(start))]

        # indexer
        if self._match(TokenKind.THIS):
            params = self._parse_parameter_list(TokenKind.LBRACKET, TokenKind.RBRACKET)
            body = self._parse_property_body()
            return [MemberDecl(MemberKind.INDEXER, "this[]", member_type, params, modifiers=modifiers, body=body,
                               span=self._extend_span(start))]

        name = self._expect(TokenKind.IDENT, "[PAR-0040] expected member name").text
        type_params: List[str] = []
        # explicit interface implementation: IFoo.Bar, IFoo<T>.Bar
        while True:
            if self._check(TokenKind.LT):
                type_params = self._parse_type_parameter_list()
            if self._check(TokenKind.DOT) and self._peek(1).kind in (TokenKind.IDENT, TokenKind.THIS):
                self._advance()
                if self._match(TokenKind.THIS):
                    params = self._parse_parameter_list(TokenKind.LBRACKET, TokenKind.RBRACKET)
                    body = self._parse_property_body()
                    return [MemberDecl(MemberKind.INDEXER, "this[]", member_type, params, modifiers=modifiers,
                                       body=body, span=self._extend_span(start))]
                name = self._advance().text
                type_params = []
                continue
            break

        if self._check(TokenKind.LPAREN):
            params = self._parse_parameter_list(TokenKind.LPAREN, TokenKind.RPAREN)
            self._skip_constraints()
            body = self._parse_member_body()
            return [MemberDecl(MemberKind.METHOD, name, member_type, params, type_params, modifiers, body,
                               span=self._extend_span(start))]

        kind = MemberKind.EVENT if is_event else MemberKind.PROPERTY
        if self._check(TokenKind.LBRACE) or self._check(TokenKind.ARROW):
            body = self._parse_property_body()
            return [MemberDecl(kind, name, member_type, modifiers=modifiers, body=body,
                               span=self._extend_span(start))]

        # one or more fields (or field-like events)
        kind = MemberKind.EVENT if is_event else MemberKind.FIELD
        members: List[MemberDecl] = []
        while True:
            init: List[Expr] = []
            if self._check(TokenKind.LBRACKET):
                # fixed-size buffer
                self._skip_balanced(TokenKind.LBRACKET, TokenKind.RBRACKET)
            if self._match(TokenKind.EQ):
                init = self._parse_items({TokenKind.COMMA, TokenKind.SEMI})
            members.append(MemberDecl(kind, name, member_type, modifiers=list(modifiers), body=init,
                                      span=self._extend_span(start)))
            if not self._match(TokenKind.COMMA):
                break
            name = self._expect(TokenKind.IDENT, "[PAR-0040] expected member name").text
        self._expect(TokenKind.SEMI, "[PAR-0041] expected ';' after field declaration")
        return members

    def _parse_member_body(self) -> List[Expr]:
        if self._check(TokenKind.LBRACE):
            return [self._parse_block()]
        if self._match(TokenKind.ARROW):
            items = self._parse_items({TokenKind.SEMI})
            self._expect(TokenKind.SEMI, "[PAR-0044] expected ';' after expression body")
            return items
        if self._match(TokenKind.SEMI):
            return []
        raise ParseError(f"[PAR-0042] expected method body, got {self._peek()} instead", self._peek(), self.filename)

    def _parse_property_body(self) -> List[Expr]:
        # { get; set; } [= init;]   or   => expr;
        if self._match(TokenKind.ARROW):
            items = self._parse_items({TokenKind.SEMI})
            self._expect(TokenKind.SEMI, "[PAR-0044] expected ';' after expression body")
            return items
        body = [self._parse_block()]
        if self._match(TokenKind.EQ):
            body.extend(self._parse_items({TokenKind.SEMI}))
            self._expect(TokenKind.SEMI, "[PAR-0044] expected ';' after property initializer")
        return body

    def _parse_parameter_list(self, open_kind: TokenKind, close_kind: TokenKind) -> List[Param]:
        self._expect(open_kind, "[PAR-0061] expected parameter list")
        params: List[Param] = []
        if self._match(close_kind):
            return params
        while True:
            self._skip_attributes()
            start = self._span_start()
            modifier: Optional[str] = None
            while self._peek().kind in (TokenKind.REF, TokenKind.OUT, TokenKind.IN, TokenKind.PARAMS,
                                        TokenKind.THIS) or self._check_word("scoped") or (
                    self._peek().kind is TokenKind.KEYWORD and self._peek().text == "readonly"):
                modifier = self._advance().text
            param_type = self._parse_type()
            name = self._expect(TokenKind.IDENT, "[PAR-0060] expected parameter name").text
            default: List[Expr] = []
            if self._match(TokenKind.EQ):
                default = self._parse_items({TokenKind.COMMA, close_kind})
            params.append(Param(name, param_type, modifier, default, span=self._extend_span(start)))
            if not self._match(TokenKind.COMMA):
                break
        if close_kind is TokenKind.RPAREN:
            self._expect(close_kind, "[PAR-0061] expected ')' after parameters")
        else:
            self._expect(close_kind, "[PAR-0062] expected ']' after indexer parameters")
        return params

    # --- types ---

    def _parse_type(self, allow_array: bool = True) -> TypeRef:
        start = self._span_start()
        tok = self._peek()

        if tok.kind is TokenKind.LPAREN:
            # tuple type: (int, Point p)
            self._advance()
            elements: List[TypeRef] = []
            while True:
                elements.append(self._parse_type())
                self._match(TokenKind.IDENT)
                if not self._match(TokenKind.COMMA):
                    break
            self._expect(TokenKind.RPAREN, "[PAR-0072] expected ')' after tuple type")
            ref = TypeRef("(tuple)", elements, is_tuple=True)
        elif tok.kind is TokenKind.PREDEFINED_TYPE:
            self._advance()
            ref = TypeRef(tok.text)
        elif tok.kind is TokenKind.IDENT:
            self._advance()
            alias: Optional[str] = None
            name = tok.text
            if self._match(TokenKind.DOUBLE_COLON):
                alias = name
                name = self._expect(TokenKind.IDENT, "[PAR-0094] expected identifier after '::'").text
            type_args: List[TypeRef] = []
            if self._check(TokenKind.LT):
                type_args = self._parse_type_argument_list()
            while self._check(TokenKind.DOT) and self._peek(1).kind is TokenKind.IDENT:
                self._advance()
                name += "." + self._advance().text
                type_args = self._parse_type_argument_list() if self._check(TokenKind.LT) else []
            ref = TypeRef(name, type_args, alias)
        else:
            raise ParseError(f"[PAR-0070] expected type, got {tok} instead", tok, self.filename)

        while True:
            if self._check(TokenKind.QUESTION) and not ref.is_nullable and ref.array_rank == 0:
                self._advance()
                ref.is_nullable = True
            elif self._check(TokenKind.STAR):
                self._advance()
            elif allow_array and self._check(TokenKind.LBRACKET) and self._peek(1).kind in (
                    TokenKind.RBRACKET, TokenKind.COMMA):
                self._advance()
                while self._match(TokenKind.COMMA):
                    pass
                self._expect(TokenKind.RBRACKET, "[PAR-0093] expected ']' in array type")
                ref.array_rank += 1
            else:
                break
        ref.span = self._extend_span(start)
        return ref

    def _parse_type_argument_list(self) -> List[TypeRef]:
        self._expect(TokenKind.LT, "[PAR-0071] expected '<'")
        args: List[TypeRef] = []
        if self._check(TokenKind.GT) or self._check(TokenKind.COMMA):
            # unbound generic: Dictionary<,>
            while self._match(TokenKind.COMMA):
                pass
        else:
            args.append(self._parse_type())
            while self._match(TokenKind.COMMA):
                args.append(self._parse_type())
        self._expect(TokenKind.GT, "[PAR-0071] expected '>' after type arguments")
        return args

    def _try_type_arguments(self) -> List[TypeRef]:
        """Speculatively read `<...>` after a name inside an expression."""
        saved = self.index
        try:
            args = self._parse_type_argument_list()
        except ParseError:
            self.index = saved
            return []
        if self._peek().kind in TYPE_ARG_FOLLOW:
            return args
        self.index = saved
        return []

    # --- member bodies ---

    def _parse_block(self) -> GroupExpr:
        start = self._span_start()
        self._expect(TokenKind.LBRACE, "[PAR-0090] expected '{'")
        items = self._parse_items({TokenKind.RBRACE})
        self._expect(TokenKind.RBRACE, "[PAR-0090] expected '}' after block")
        return GroupExpr(items, span=self._extend_span(start))

    def _parse_items(self, stops: Set[TokenKind]) -> List[Expr]:
        items: List[Expr] = []
        while True:
            tok = self._peek()
            if tok.kind is TokenKind.EOF or tok.kind in stops or tok.kind in CLOSERS:
                return items
            declared = len(self._locals)
            expr = self._parse_item()
            if expr is None:
                continue
            items.append(expr)
            if self._check(TokenKind.ARROW):
                self._record_lambda_parameters(expr, typed=len(self._locals) > declared)
                continue
            init = self._try_local_declaration(expr)
            if init is not None:
                items.append(init)

    def _record_lambda_parameters(self, head: Expr, typed: bool) -> None:
        # x => ...   (a, b) => ...   typed heads were recorded as declarations
        if typed:
            return
        names = head.items if isinstance(head, GroupExpr) else [head]
        if not all(isinstance(n, NameExpr) and not n.type_args for n in names):
            return
        for n in names:
            self._locals.append(LocalDecl(n.name, None, is_lambda=True, declarator=n, span=n.span))

    def _parse_item(self) -> Optional[Expr]:
        start = self._span_start()
        kind = self._peek().kind

        if kind is TokenKind.LPAREN:
            group = self._parse_group(TokenKind.LPAREN, TokenKind.RPAREN, "[PAR-0091] expected ')' after expression")
            return self._parse_postfix(group, start)
        if kind is TokenKind.LBRACE:
            return self._parse_block()
        if kind is TokenKind.LBRACKET:
            # collection expression [a, b] or attribute on a lambda
            return self._parse_group(TokenKind.LBRACKET, TokenKind.RBRACKET, "[PAR-0093] expected ']'")
        if kind is TokenKind.FOREACH:
            return self._parse_foreach()
        if kind in (TokenKind.IDENT, TokenKind.PREDEFINED_TYPE, TokenKind.THIS, TokenKind.BASE, TokenKind.NEW,
                    TokenKind.NUMBER, TokenKind.CHAR, TokenKind.STRING, TokenKind.INTERPOLATED_STRING,
                    TokenKind.TRUE, TokenKind.FALSE, TokenKind.NULL, TokenKind.TYPEOF, TokenKind.SIZEOF,
                    TokenKind.DEFAULT):
            primary = self._parse_primary()
            return self._parse_postfix(primary, start)

        # operator, statement keyword, separator
        self._advance()
        return None

    def _parse_group(self, open_kind: TokenKind, close_kind: TokenKind, msg: str) -> GroupExpr:
        start = self._span_start()
        self._expect(open_kind, msg)
        items = self._parse_items({close_kind})
        self._expect(close_kind, msg)
        return GroupExpr(items, span=self._extend_span(start))

    def _parse_foreach(self) -> Optional[Expr]:
        # foreach (T x in source)
        start = self._span_start()
        self._advance()
        if not self._check(TokenKind.LPAREN):
            return None
        self._advance()
        first_local = len(self._locals)
        header = self._parse_items({TokenKind.IN, TokenKind.RPAREN})
        source: List[Expr] = []
        if self._match(TokenKind.IN):
            source = self._parse_items({TokenKind.RPAREN})
        self._expect(TokenKind.RPAREN, "[PAR-0091] expected ')' after foreach header")
        if len(self._locals) > first_local and source:
            local = self._locals[-1]
            local.is_foreach = True
            local.init = source[0] if len(source) == 1 else GroupExpr(source)
        return GroupExpr(header + source, span=self._extend_span(start))

    def _try_local_declaration(self, expr: Expr) -> Optional[Expr]:
        """
        Recognize `T name` after a chain that reads as a type.
        Records a LocalDecl and returns its initializer, if any.
        """
        decl_type = self._expr_as_type(expr)
        if decl_type is None:
            return None
        ahead = 0
        nullable = False
        if self._check(TokenKind.QUESTION) and self._peek(1).kind is TokenKind.IDENT:
            ahead = 1
            nullable = True
        name_tok = self._peek(ahead)
        follow = self._peek(ahead + 1)
        if name_tok.kind is not TokenKind.IDENT:
            return None
        if follow.kind is TokenKind.OP:
            # pattern variable: x is Point p && ...
            if nullable or follow.text not in ("&&", "||"):
                return None
        elif follow.kind not in DECL_FOLLOW or (nullable and follow.kind is TokenKind.COLON):
            # `cond ? a : b` is not a nullable declaration
            return None
        if nullable:
            self._advance()
            decl_type.is_nullable = True
        self._advance()
        local = LocalDecl(name_tok.text, None if decl_type.name == "var" else decl_type, span=expr.span)
        self._locals.append(local)
        if not self._match(TokenKind.EQ):
            return None
        if self._peek().kind in CLOSERS or self._peek().kind in (TokenKind.SEMI, TokenKind.COMMA, TokenKind.EOF):
            return None
        init = self._parse_item()
        local.init = init
        return init

    def _expr_as_type(self, expr: Expr) -> Optional[TypeRef]:
        if isinstance(expr, NameExpr):
            if expr.name in NON_TYPE_WORDS:
                return None
            return TypeRef(expr.name, list(expr.type_args), expr.alias, span=expr.span)
        if isinstance(expr, MemberAccessExpr) and not expr.is_conditional:
            inner = self._expr_as_type(expr.target)
            if inner is None or inner.type_args or inner.array_rank:
                return None
            return TypeRef(f"{inner.name}.{expr.name}", list(expr.type_args), inner.alias, span=expr.span)
        if isinstance(expr, ElementAccessExpr) and all(
                isinstance(a, GroupExpr) and not a.items for a in expr.args):
            inner = self._expr_as_type(expr.target)
            if inner is None:
                return None
            inner.array_rank += 1
            return inner
        return None

    def _parse_primary(self) -> Expr:
        start = self._span_start()
        tok = self._advance()
        kind = tok.kind

        if kind is TokenKind.IDENT or kind is TokenKind.PREDEFINED_TYPE:
            alias: Optional[str] = None
            name = tok.text
            if kind is TokenKind.IDENT and self._check(TokenKind.DOUBLE_COLON):
                self._advance()
                alias = name
                name = self._expect(TokenKind.IDENT, "[PAR-0094] expected identifier after '::'").text
            type_args: List[TypeRef] = []
            if kind is TokenKind.IDENT and self._check(TokenKind.LT):
                type_args = self._try_type_arguments()
            return NameExpr(name, type_args, alias, span=self._extend_span(start))
        if kind is TokenKind.THIS:
            return ThisExpr(span=self._extend_span(start))
        if kind is TokenKind.BASE:
            return BaseExpr(span=self._extend_span(start))
        if kind is TokenKind.NEW:
            return self._parse_creation(start)
        if kind is TokenKind.NUMBER:
            return LiteralExpr(number_literal_kind(tok.text), tok.text, span=self._extend_span(start))
        if kind is TokenKind.INTERPOLATED_STRING:
            holes: List[Expr] = []
            for hole_tokens in tok.holes or []:
                sub = Parser(hole_tokens, self.filename, self.source)
                sub._locals = self._locals
                items = sub._parse_items(set())
                if items:
                    holes.append(items[0] if len(items) == 1 else GroupExpr(items, span=items[0].span))
            return InterpolatedStringExpr(holes, span=self._extend_span(start))
        if kind in (TokenKind.TYPEOF, TokenKind.SIZEOF, TokenKind.DEFAULT):
            if self._check(TokenKind.LPAREN):
                self._skip_balanced(TokenKind.LPAREN, TokenKind.RPAREN)
            literal_kind = {TokenKind.TYPEOF: "type", TokenKind.SIZEOF: "int"}.get(kind, "default")
            return LiteralExpr(literal_kind, tok.text, span=self._extend_span(start))
        return LiteralExpr(LITERAL_KINDS[kind], tok.text, span=self._extend_span(start))

    def _parse_creation(self, start: Span) -> Expr:
        # new T(args) { init }, new T[n], new[] { ... }, new() { ... }, new { X = 1 }
        if self._check(TokenKind.LPAREN):
            args = self._parse_argument_list(TokenKind.LPAREN, TokenKind.RPAREN)
            init = self._parse_initializer() if self._check(TokenKind.LBRACE) else []
            return ObjectCreationExpr(None, args, init, span=self._extend_span(start))
        if self._check(TokenKind.LBRACKET):
            self._skip_balanced(TokenKind.LBRACKET, TokenKind.RBRACKET)
            items = self._parse_initializer() if self._check(TokenKind.LBRACE) else []
            return ArrayCreationExpr(None, items, span=self._extend_span(start))
        if self._check(TokenKind.LBRACE):
            items = self._parse_initializer()
            return GroupExpr(items, span=self._extend_span(start))

        created = self._parse_type(allow_array=False)
        if self._check(TokenKind.LPAREN):
            args = self._parse_argument_list(TokenKind.LPAREN, TokenKind.RPAREN)
            init = self._parse_initializer() if self._check(TokenKind.LBRACE) else []
            return ObjectCreationExpr(created, args, init, span=self._extend_span(start))
        if self._check(TokenKind.LBRACE):
            init = self._parse_initializer()
            return ObjectCreationExpr(created, [], init, span=self._extend_span(start))
        if self._check(TokenKind.LBRACKET):
            sizes = self._parse_argument_list(TokenKind.LBRACKET, TokenKind.RBRACKET)
            while self._check(TokenKind.LBRACKET):
                self._skip_balanced(TokenKind.LBRACKET, TokenKind.RBRACKET)
            items = self._parse_initializer() if self._check(TokenKind.LBRACE) else []
            return ArrayCreationExpr(created, sizes + items, span=self._extend_span(start))
        raise ParseError(
            f"[PAR-0080] expected '(', '[' or '{{' after type in 'new' expression, got {self._peek()} instead",
            self._peek(), self.filename)

    def _parse_initializer(self) -> List[Expr]:
        self._expect(TokenKind.LBRACE, "[PAR-0090] expected '{'")
        items = self._parse_items({TokenKind.RBRACE})
        self._expect(TokenKind.RBRACE, "[PAR-0090] expected '}' after initializer")
        return items

    def _parse_argument_list(self, open_kind: TokenKind, close_kind: TokenKind) -> List[Expr]:
        self._expect(open_kind, "[PAR-0092] expected argument list")
        args: List[Expr] = []
        if not self._check(close_kind):
            while True:
                args.append(self._parse_argument(close_kind))
                if not self._match(TokenKind.COMMA):
                    break
        if close_kind is TokenKind.RPAREN:
            self._expect(close_kind, "[PAR-0092] expected ')' after arguments")
        else:
            self._expect(close_kind, "[PAR-0093] expected ']' after index arguments")
        return args

    def _parse_argument(self, close_kind: TokenKind) -> Expr:
        start = self._span_start()
        if self._check(TokenKind.IDENT) and self._peek(1).kind is TokenKind.COLON:
            # named argument
            self._advance()
            self._advance()
        while self._peek().kind in (TokenKind.REF, TokenKind.OUT, TokenKind.IN):
            self._advance()
        items = self._parse_items({TokenKind.COMMA, close_kind})
        if len(items) == 1:
            return items[0]
        return GroupExpr(items, span=self._extend_span(start))

    def _parse_postfix(self, expr: Expr, start: Span) -> Expr:
        while True:
            tok = self._peek()
            if tok.kind in (TokenKind.DOT, TokenKind.QUESTION_DOT) and self._peek(1).kind in (
                    TokenKind.IDENT, TokenKind.PREDEFINED_TYPE):
                self._advance()
                name = self._advance().text
                type_args = self._try_type_arguments() if self._check(TokenKind.LT) else []
                expr = MemberAccessExpr(expr, name, type_args, tok.kind is TokenKind.QUESTION_DOT,
                                        span=self._extend_span(start))
            elif tok.kind is TokenKind.LPAREN:
                args = self._parse_argument_list(TokenKind.LPAREN, TokenKind.RPAREN)
                expr = InvocationExpr(expr, args, span=self._extend_span(start))
            elif tok.kind is TokenKind.LBRACKET:
                args = self._parse_argument_list(TokenKind.LBRACKET, TokenKind.RBRACKET)
                expr = ElementAccessExpr(expr, args, span=self._extend_span(start))
            elif tok.kind is TokenKind.QUESTION and self._peek(1).kind is TokenKind.LBRACKET \
                    and self._peek(2).kind is not TokenKind.RBRACKET:
                # conditional element access a?[i]
                self._advance()
            elif tok.kind is TokenKind.BANG and self._peek(1).kind in (
                    TokenKind.DOT, TokenKind.QUESTION_DOT, TokenKind.LBRACKET):
                # null-forgiving a!.b
                self._advance()
            else:
                return expr
