#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import List, Optional, Tuple

from csb_ast import MemberDecl, TypeDecl, UsingDirective


class UnitKind(Enum):
    CLASS = auto()  # class, struct, interface, record
    ENUM = auto()


@dataclass(frozen=True)
class ImportDirective:
    """A using directive as visible at a declaration site."""
    name: str  # namespace, or type for `using static` / alias targets
    alias: Optional[str] = None
    is_static: bool = False
    is_global: bool = False

    @property
    def is_plain(self) -> bool:
        return self.alias is None and not self.is_static

    @classmethod
    def from_directive(cls, directive: UsingDirective) -> "ImportDirective":
        target = directive.target.format() if directive.alias is not None else directive.name
        if directive.target.alias is not None and directive.alias is None:
            target = f"{directive.target.alias}::{directive.name}"
        return cls(target, directive.alias, directive.is_static, directive.is_global)

    def render(self) -> str:
        if self.alias is not None:
            return f"using {self.alias} = {self.name};"
        if self.is_static:
            return f"using static {self.name};"
        return f"using {self.name};"


@dataclass(eq=False)
class Unit:
    """
    A namespace-level class or enum: the granularity of bundling.

    Top-level declarations sharing one namespace and simple name make up
    one unit: partial parts of one project and generic arity variants. A
    later non-partial duplicate is ignored. Nested types belong to their
    outermost unit.
    """
    namespace: str  # "" for the global namespace
    name: str
    kind: UnitKind
    decls: List[TypeDecl] = field(default_factory=list, repr=False)
    # Using directives visible at the declaration site(s), outermost first.
    imports: List[ImportDirective] = field(default_factory=list, repr=False)
    # Position in workspace declaration order.
    order: int = 0

    @property
    def qualified_name(self) -> str:
        return f"{self.namespace}.{self.name}" if self.namespace else self.name

    @property
    def is_enum(self) -> bool:
        return self.kind is UnitKind.ENUM

    @property
    def keyword(self) -> str:
        return self.decls[0].keyword if self.decls else "class"

    @property
    def filenames(self) -> List[str]:
        return list(dict.fromkeys(d.filename for d in self.decls if d.filename is not None))

    @property
    def text(self) -> str:
        """Verbatim declaration text; partial parts are joined in declaration order."""
        return "\n\n".join(d.text for d in self.decls)


class SymbolKind(Enum):
    NAMESPACE = auto()
    TYPE = auto()
    METHOD = auto()
    CONSTRUCTOR = auto()
    FIELD = auto()
    PROPERTY = auto()
    EVENT = auto()
    ENUM_MEMBER = auto()
    EXTERNAL = auto()  # resolved, but declared outside the workspace sources


class Confidence(Enum):
    RESOLVED = auto()
    AMBIGUOUS = auto()
    UNRESOLVED = auto()


@dataclass(frozen=True)
class Symbol:
    """
    The semantic entity an expression refers to.

    Identity is the qualified name, kind and confidence; the declaration
    references are carried along for locating the declaring unit.
    """
    qualified_name: str
    kind: SymbolKind
    confidence: Confidence = Confidence.RESOLVED
    candidates: Tuple["Symbol", ...] = ()
    reason: Optional[str] = None
    # Immediately containing type declaration (the type itself for TYPE symbols).
    container: Optional[TypeDecl] = field(default=None, compare=False, repr=False)
    declaration: Optional[TypeDecl | MemberDecl] = field(default=None, compare=False, repr=False)

    @property
    def is_resolved(self) -> bool:
        return self.confidence is Confidence.RESOLVED

    @property
    def is_external(self) -> bool:
        return self.kind is SymbolKind.EXTERNAL

    @classmethod
    def external(cls, name: str) -> "Symbol":
        return cls(name, SymbolKind.EXTERNAL)

    @classmethod
    def unresolved(cls, name: str, reason: str) -> "Symbol":
        return cls(name, SymbolKind.EXTERNAL, Confidence.UNRESOLVED, reason=reason)

    @classmethod
    def ambiguous(cls, name: str, candidates: List["Symbol"]) -> "Symbol":
        kind = candidates[0].kind if candidates else SymbolKind.EXTERNAL
        return cls(name, kind, Confidence.AMBIGUOUS, tuple(candidates))

    def describe_candidates(self) -> str:
        return ", ".join(c.qualified_name for c in self.candidates)
