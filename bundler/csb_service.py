#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from pathlib import Path
from typing import Dict, List, Optional, Protocol

from csb_ast import Expr
from csb_binder import Binder
from csb_context import BundleContext
from csb_diagnostics import Diagnostic
from csb_symbols import ImportDirective, Symbol, Unit
from csb_workspace import Workspace


class LanguageService(Protocol):
    """
    What the bundling core needs from a language front end.

    The core (locator, collector, closure walker, emitter) only talks to this
    protocol, so it runs unchanged against the C# service below or a fake.
    """

    def find_unit(self, namespace: str, simple_name: str) -> Optional[Unit]:
        """The namespace-level class or enum with exactly this namespace and name."""
        ...

    def resolve_reference(self, expression: Expr) -> Optional[Symbol]:
        """The symbol an invocation, object creation or member access refers to."""
        ...

    def declaring_unit_of(self, symbol: Symbol) -> Optional[Unit]:
        """The namespace-level unit whose declaration contains the symbol's declaration."""
        ...

    def enclosing_namespace(self, unit: Unit) -> Optional[str]:
        ...

    def imports_of(self, namespace: str) -> List[ImportDirective]:
        """Using directives visible at the declarations of a namespace."""
        ...

    def units_in_namespace(self, namespace: str) -> List[Unit]:
        """Every unit the namespace declares, in workspace declaration order."""
        ...

    def declares_namespace(self, namespace: str) -> bool:
        ...

    def global_imports(self) -> List[ImportDirective]:
        ...


class CSharpLanguageService:
    """
    LanguageService over C# sources: a Workspace (documents parsed once)
    and a Binder built over it.
    """

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace
        self.binder = Binder(workspace)

    @classmethod
    def open(cls, locator: str | Path, context: Optional[BundleContext] = None) -> "CSharpLanguageService":
        """Load a .sln, .csproj or directory; raises WorkspaceLoadError."""
        return cls(Workspace.load(locator, context))

    @classmethod
    def from_sources(
        cls,
        sources: Dict[str, str],
        context: Optional[BundleContext] = None,
        implicit_usings: bool = False,
    ) -> "CSharpLanguageService":
        return cls(Workspace.from_sources(sources, context, implicit_usings=implicit_usings))

    @property
    def context(self) -> BundleContext:
        return self.workspace.context

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return self.workspace.diagnostics

    def find_unit(self, namespace: str, simple_name: str) -> Optional[Unit]:
        return self.binder.find_unit(namespace, simple_name)

    def resolve_reference(self, expression: Expr) -> Optional[Symbol]:
        return self.binder.resolve(expression)

    def declaring_unit_of(self, symbol: Symbol) -> Optional[Unit]:
        if symbol.container is None:
            return None
        return self.binder.unit_of_declaration(symbol.container)

    def enclosing_namespace(self, unit: Unit) -> Optional[str]:
        if self.binder.units.get(unit.qualified_name) is not unit:
            return None
        return unit.namespace

    def imports_of(self, namespace: str) -> List[ImportDirective]:
        return self.binder.imports_of(namespace)

    def units_in_namespace(self, namespace: str) -> List[Unit]:
        return self.binder.units_in_namespace(namespace)

    def declares_namespace(self, namespace: str) -> bool:
        return self.binder.declares_namespace(namespace)

    def global_imports(self) -> List[ImportDirective]:
        return self.binder.global_imports()

    def all_units(self) -> List[Unit]:
        return list(self.binder.units.values())
