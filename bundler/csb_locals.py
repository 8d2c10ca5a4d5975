#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, List, Optional, Tuple

from csb_ast import Node, Span, TypeRef, TypeDecl, MemberDecl, LocalDecl, Param


class LocalKind(Enum):
    PRIMARY_PARAM = auto()  # primary constructor parameter of a class or record
    PARAM = auto()
    LOCAL = auto()
    FOREACH = auto()
    LAMBDA_PARAM = auto()


@dataclass
class LocalSymbol:
    """
    A single local binding: parameter, local variable, or lambda parameter.
    """
    name: str
    kind: LocalKind
    type_ref: Optional[TypeRef]
    decl: Node  # Param | LocalDecl

    @property
    def position(self) -> Tuple[int, int]:
        span = self.decl.span
        return (span.start_line, span.start_column) if span is not None else (0, 0)


@dataclass
class Scope:
    """
    A scope for locals inside a type or member.

    Member bodies are not split into blocks: one member scope holds every
    local the body declares, so a name may be bound more than once.
    Lookup picks the binding declared closest before the use site; a name
    declared only after it is looked up in the parent scope.
    """
    parent: Optional[Scope]
    symbols: Dict[str, List[LocalSymbol]] = field(default_factory=dict)

    def lookup(self, name: str, at: Optional[Span] = None) -> Optional[LocalSymbol]:
        scope: Optional[Scope] = self
        while scope is not None:
            syms = scope.symbols.get(name)
            if syms:
                found = _closest_before(syms, at)
                if found is not None:
                    return found
            scope = scope.parent
        return None


def _closest_before(syms: List[LocalSymbol], at: Optional[Span]) -> Optional[LocalSymbol]:
    if at is None:
        return syms[0]
    here = (at.start_line, at.start_column)
    best: Optional[LocalSymbol] = None
    for sym in syms:
        if sym.position <= here and (best is None or sym.position >= best.position):
            best = sym
    return best


@dataclass
class MemberEnv:
    """
    Environment for a single member: the member AST and its scope.
    Type-level expressions (base constructor arguments) have member=None.
    """
    type_decl: TypeDecl
    member: Optional[MemberDecl]
    scope: Scope


class LocalScopeResolver:
    """
    Builds scopes for every member of a set of type declarations.

    Public API:

        resolver = LocalScopeResolver()
        env = resolver.member_env(type_decl, member)
        type_scope = resolver.type_scope(type_decl)

    Design choices:

    - Primary constructor parameters live in the type scope.
    - Parameters and every local of a member body live in the member scope,
      a child of the type scope.
    - Nested types get a fresh type scope; locals of outer types are not visible.
    """

    def __init__(self) -> None:
        # Node id -> Scope / MemberEnv
        # We avoid using AST nodes as dict keys directly because dataclasses
        # are unhashable by default.
        self._type_scopes: Dict[int, Scope] = {}
        self._member_envs: Dict[int, MemberEnv] = {}

    def type_scope(self, decl: TypeDecl) -> Scope:
        scope = self._type_scopes.get(id(decl))
        if scope is None:
            scope = Scope(parent=None)
            for param in decl.params:
                self._declare(scope, param.name, LocalKind.PRIMARY_PARAM, param.type, param)
            self._type_scopes[id(decl)] = scope
        return scope

    def member_env(self, decl: TypeDecl, member: MemberDecl) -> MemberEnv:
        env = self._member_envs.get(id(member))
        if env is None:
            scope = Scope(parent=self.type_scope(decl))
            for param in member.params:
                self._declare(scope, param.name, LocalKind.PARAM, param.type, param)
            for local in member.locals:
                self._declare(scope, local.name, self._local_kind(local), local.type, local)
            env = MemberEnv(decl, member, scope)
            self._member_envs[id(member)] = env
        return env

    def _local_kind(self, local: LocalDecl) -> LocalKind:
        if local.is_lambda:
            return LocalKind.LAMBDA_PARAM
        if local.is_foreach:
            return LocalKind.FOREACH
        return LocalKind.LOCAL

    def _declare(
            self,
            scope: Scope,
            name: str,
            kind: LocalKind,
            type_ref: Optional[TypeRef],
            decl: Param | LocalDecl,
    ) -> LocalSymbol:
        sym = LocalSymbol(name=name, kind=kind, type_ref=type_ref, decl=decl)
        scope.symbols.setdefault(name, []).append(sym)
        return sym
