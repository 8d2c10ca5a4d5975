#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import List, Optional


# ==========================
# Syntax tree definitions
# ==========================


@dataclass
class Span:
    start_line: int
    start_column: int
    end_line: int
    end_column: int


@dataclass
class Node:
    span: Optional[Span] = field(default=None, repr=False, compare=False, kw_only=True)


# --- types ---

@dataclass
class TypeRef(Node):
    name: str  # as written: "int", "Pair", "Solvers.Util.Pair", "(tuple)"
    type_args: List["TypeRef"] = field(default_factory=list)  # of the last name segment
    alias: Optional[str] = None  # "global" in global::System.Math
    array_rank: int = 0  # number of [] suffixes
    is_nullable: bool = False  # trailing ?
    is_tuple: bool = False  # (int, Point); elements in type_args

    @property
    def parts(self) -> List[str]:
        return self.name.split(".")

    @property
    def simple_name(self) -> str:
        return self.parts[-1]

    def element_type(self) -> "TypeRef":
        """The type of one element of this array type."""
        return TypeRef(self.name, self.type_args, self.alias, self.array_rank - 1, False, self.is_tuple,
                       span=self.span)

    def format(self) -> str:
        if self.is_tuple:
            text = "(" + ", ".join(a.format() for a in self.type_args) + ")"
        else:
            text = self.name if self.alias is None else f"{self.alias}::{self.name}"
            if self.type_args:
                text += "<" + ", ".join(a.format() for a in self.type_args) + ">"
        if self.is_nullable:
            text += "?"
        return text + "[]" * self.array_rank


# --- declarations ---

@dataclass
class UsingDirective(Node):
    target: TypeRef  # namespace or type named by the directive
    alias: Optional[str] = None  # using A = X.Y;
    is_static: bool = False  # using static X.Y;
    is_global: bool = False  # global using X;

    @property
    def name(self) -> str:
        return self.target.name


@dataclass
class Param(Node):
    name: str
    type: Optional[TypeRef]
    modifier: Optional[str] = None  # ref, out, in, this, params
    default: List["Expr"] = field(default_factory=list)

    @property
    def is_params(self) -> bool:
        return self.modifier == "params"

    @property
    def has_default(self) -> bool:
        return bool(self.default)


class MemberKind(Enum):
    FIELD = auto()
    PROPERTY = auto()
    METHOD = auto()
    CONSTRUCTOR = auto()
    DESTRUCTOR = auto()
    OPERATOR = auto()
    CONVERSION = auto()
    INDEXER = auto()
    EVENT = auto()
    ENUM_MEMBER = auto()


@dataclass
class LocalDecl(Node):
    """A local variable declared inside a member body (`T x`, `var x = e`, `foreach (var x in e)`, `x => e`)."""
    name: str
    type: Optional[TypeRef]  # None for `var` and untyped lambda parameters
    init: Optional["Expr"] = None  # initializer, or the iterated collection for foreach
    is_foreach: bool = False
    is_lambda: bool = False
    # The NameExpr naming an untyped lambda parameter.
    declarator: Optional["Expr"] = field(default=None, repr=False, compare=False)


@dataclass
class MemberDecl(Node):
    kind: MemberKind
    name: str
    type: Optional[TypeRef]  # field/property/event type, method return type
    params: List[Param] = field(default_factory=list)
    type_params: List[str] = field(default_factory=list)
    modifiers: List[str] = field(default_factory=list)
    body: List["Expr"] = field(default_factory=list)  # body, initializers, ctor initializer
    locals: List[LocalDecl] = field(default_factory=list)

    @property
    def is_static(self) -> bool:
        return "static" in self.modifiers or "const" in self.modifiers


@dataclass
class TypeDecl(Node):
    keyword: str  # class, struct, interface, enum, record, record struct, ...
    name: str
    type_params: List[str] = field(default_factory=list)
    base_types: List[TypeRef] = field(default_factory=list)
    members: List[MemberDecl] = field(default_factory=list)
    nested_types: List["TypeDecl"] = field(default_factory=list)
    modifiers: List[str] = field(default_factory=list)
    params: List[Param] = field(default_factory=list)  # primary constructor parameters
    base_args: List["Expr"] = field(default_factory=list)  # record Derived(int X) : Base(X)
    text: str = field(default="", repr=False, compare=False)  # verbatim source incl. leading trivia
    filename: Optional[str] = field(default=None, repr=False, compare=False)

    @property
    def is_enum(self) -> bool:
        return self.keyword == "enum"


@dataclass
class NamespaceDecl(Node):
    name: str
    usings: List[UsingDirective] = field(default_factory=list)
    types: List[TypeDecl] = field(default_factory=list)
    namespaces: List["NamespaceDecl"] = field(default_factory=list)
    is_file_scoped: bool = False


@dataclass
class SourceFile(Node):
    usings: List[UsingDirective]
    types: List[TypeDecl]
    namespaces: List[NamespaceDecl]
    filename: Optional[str] = field(default=None, repr=False, compare=False, kw_only=True)


# --- expressions ---

class Expr(Node):
    pass


@dataclass
class NameExpr(Expr):
    name: str
    type_args: List[TypeRef] = field(default_factory=list)
    alias: Optional[str] = None  # global::Name


@dataclass
class MemberAccessExpr(Expr):
    target: Expr
    name: str
    type_args: List[TypeRef] = field(default_factory=list)
    is_conditional: bool = False  # a?.b


@dataclass
class InvocationExpr(Expr):
    callee: Expr
    args: List[Expr]


@dataclass
class ObjectCreationExpr(Expr):
    type: Optional[TypeRef]  # None for target-typed new(...)
    args: List[Expr]
    initializer: List[Expr] = field(default_factory=list)


@dataclass
class ArrayCreationExpr(Expr):
    type: Optional[TypeRef]  # element type; None for new[] { ... }
    items: List[Expr]  # sizes and initializer elements


@dataclass
class ElementAccessExpr(Expr):
    target: Expr
    args: List[Expr]


@dataclass
class GroupExpr(Expr):
    """Parenthesized expressions, blocks, lambdas, and arguments made of several parts."""
    items: List[Expr]


@dataclass
class LiteralExpr(Expr):
    kind: str  # int, long, double, string, char, bool, null, ...
    text: str


@dataclass
class InterpolatedStringExpr(Expr):
    holes: List[Expr]


@dataclass
class ThisExpr(Expr):
    pass


@dataclass
class BaseExpr(Expr):
    pass
