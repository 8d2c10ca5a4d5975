#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from csb_ast import (
    ArrayCreationExpr, ElementAccessExpr, Expr, GroupExpr, InterpolatedStringExpr, InvocationExpr,
    MemberAccessExpr, ObjectCreationExpr, TypeDecl,
)
from csb_context import BundleContext
from csb_diagnostics import Diagnostic, diag_from_node
from csb_logger import log_debug
from csb_service import LanguageService
from csb_symbols import Confidence, Symbol, Unit


@dataclass
class CollectionRun:
    """State of one collect() call."""
    unit: Unit
    filename: Optional[str]
    symbols: Dict[Symbol, None] = field(default_factory=dict)
    diagnostics: List[Diagnostic] = field(default_factory=list)


class ReferenceCollector:
    """
    Collects the symbols a unit references through invocations, object
    creations and member accesses.

    Resolution policy:
      - invocation / member access: only a single RESOLVED symbol is kept;
        AMBIGUOUS and UNRESOLVED results are dropped with a diagnostic.
      - object creation: an AMBIGUOUS constructor keeps its first candidate
        and always reports every candidate.
    Diagnostics never abort collection.
    """

    def __init__(self, service: LanguageService, context: Optional[BundleContext] = None):
        self.service = service
        self.context = context or BundleContext.default()

    def collect(self, unit: Unit, diagnostics: Optional[List[Diagnostic]] = None) -> List[Symbol]:
        """
        Return the symbols referenced by every declaration of `unit`, first-seen
        order, without duplicates. Diagnostics are appended to `diagnostics`.
        """
        symbols: Dict[Symbol, None] = {}
        for decl in unit.decls:
            run = CollectionRun(unit, decl.filename)
            self._collect_type(decl, run)
            symbols.update(run.symbols)
            if diagnostics is not None:
                diagnostics.extend(run.diagnostics)
        log_debug(self.context, f"Collected {len(symbols)} symbol(s) from '{unit.qualified_name}'")
        return list(symbols)

    def _collect_type(self, decl: TypeDecl, run: CollectionRun) -> None:
        for expr in decl.base_args:
            self._visit(expr, run)
        for param in decl.params:
            for expr in param.default:
                self._visit(expr, run)
        for member in decl.members:
            for param in member.params:
                for expr in param.default:
                    self._visit(expr, run)
            for expr in member.body:
                self._visit(expr, run)
        for nested in decl.nested_types:
            self._collect_type(nested, run)

    def _visit(self, expr: Expr, run: CollectionRun) -> None:
        if isinstance(expr, InvocationExpr):
            self._accept_single(expr, run)
            callee = expr.callee
            # The callee names the invoked symbol itself; only its receiver is visited.
            if isinstance(callee, MemberAccessExpr):
                self._visit(callee.target, run)
            else:
                self._visit(callee, run)
            for arg in expr.args:
                self._visit(arg, run)
        elif isinstance(expr, ObjectCreationExpr):
            self._accept_construction(expr, run)
            for arg in expr.args:
                self._visit(arg, run)
            for item in expr.initializer:
                self._visit(item, run)
        elif isinstance(expr, MemberAccessExpr):
            self._accept_single(expr, run)
            self._visit(expr.target, run)
        elif isinstance(expr, GroupExpr):
            for item in expr.items:
                self._visit(item, run)
        elif isinstance(expr, ElementAccessExpr):
            self._visit(expr.target, run)
            for arg in expr.args:
                self._visit(arg, run)
        elif isinstance(expr, ArrayCreationExpr):
            for item in expr.items:
                self._visit(item, run)
        elif isinstance(expr, InterpolatedStringExpr):
            for hole in expr.holes:
                self._visit(hole, run)

    def _accept_single(self, expr: Expr, run: CollectionRun) -> None:
        symbol = self.service.resolve_reference(expr)
        if symbol is None:
            return
        if symbol.confidence is Confidence.RESOLVED:
            run.symbols.setdefault(symbol, None)
        elif symbol.confidence is Confidence.AMBIGUOUS:
            self._warn(run, expr, f"[COL-0020] ambiguous reference '{symbol.qualified_name}' dropped; "
                                  f"candidates: {symbol.describe_candidates()}")
        else:
            self._warn(run, expr, self._unresolved_message(symbol))

    def _accept_construction(self, expr: ObjectCreationExpr, run: CollectionRun) -> None:
        symbol = self.service.resolve_reference(expr)
        if symbol is None:
            return
        if symbol.confidence is Confidence.RESOLVED:
            run.symbols.setdefault(symbol, None)
        elif symbol.confidence is Confidence.AMBIGUOUS and symbol.candidates:
            chosen = symbol.candidates[0]
            run.symbols.setdefault(chosen, None)
            self._warn(run, expr, f"[COL-0030] ambiguous construction '{symbol.qualified_name}', "
                                  f"using '{chosen.qualified_name}'; candidates: {symbol.describe_candidates()}")
        else:
            self._warn(run, expr, self._unresolved_message(symbol))

    def _unresolved_message(self, symbol: Symbol) -> str:
        message = f"[COL-0010] unresolved reference '{symbol.qualified_name}' dropped"
        if symbol.reason:
            message += f": {symbol.reason}"
        return message

    def _warn(self, run: CollectionRun, expr: Expr, message: str) -> None:
        diag = diag_from_node(
            "warning", message, unit_name=run.unit.qualified_name, filename=run.filename, node=expr)
        run.diagnostics.append(diag)
        log_debug(self.context, diag.format())
