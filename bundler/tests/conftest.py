#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

from __future__ import annotations

import sys
from pathlib import Path
from textwrap import dedent
from typing import Dict, List, Optional

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from csb_ast import InvocationExpr, MemberDecl, MemberKind, NameExpr, TypeDecl
from csb_context import BundleContext, ClosurePolicy, LogLevel
from csb_service import CSharpLanguageService
from csb_symbols import ImportDirective, Symbol, SymbolKind, Unit, UnitKind

SDK_CSPROJ = """\
<Project Sdk="Microsoft.NET.Sdk">
  <PropertyGroup>
    <TargetFramework>net8.0</TargetFramework>
  </PropertyGroup>
</Project>
"""


@pytest.fixture
def temp_project(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture
def write_cs_file(temp_project: Path):
    """Write C# source to `<temp_project>/<rel_path>`, creating directories."""

    def _write(rel_path: str, content: str) -> Path:
        file_path = temp_project / rel_path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(dedent(content))
        return file_path

    return _write


@pytest.fixture
def write_csproj(temp_project: Path):
    """Write an SDK-style project file; `content` defaults to a minimal project."""

    def _write(rel_path: str, content: Optional[str] = None) -> Path:
        file_path = temp_project / rel_path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(dedent(content) if content is not None else SDK_CSPROJ)
        return file_path

    return _write


@pytest.fixture
def write_sln(temp_project: Path):
    """Write a solution file listing `projects` as (name, relative .csproj path) pairs."""

    def _write(rel_path: str, projects: List[tuple[str, str]]) -> Path:
        lines = ["Microsoft Visual Studio Solution File, Format Version 12.00"]
        for i, (name, rel) in enumerate(projects):
            guid = f"{{00000000-0000-0000-0000-{i:012d}}}"
            lines.append(
                f'Project("{{FAE04EC0-301F-11D3-BF4B-00C04F79EFBC}}") = "{name}", "{rel}", "{guid}"')
            lines.append("EndProject")
        file_path = temp_project / rel_path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text("\n".join(lines) + "\n")
        return file_path

    return _write


@pytest.fixture
def quiet_context() -> BundleContext:
    return BundleContext(log_level=LogLevel.SILENT)


@pytest.fixture
def make_service(quiet_context: BundleContext):
    """Build a CSharpLanguageService over in-memory sources.

    Usage:
        def test_something(make_service):
            service = make_service({
                "Geo/Point.cs": '''
                    namespace Geo { public class Point { } }
                ''',
            })
    """

    def _make(sources: Dict[str, str], policy: ClosurePolicy = ClosurePolicy.WIDE,
              implicit_usings: bool = False) -> CSharpLanguageService:
        quiet_context.policy = policy
        texts = {name: dedent(text) for name, text in sources.items()}
        return CSharpLanguageService.from_sources(texts, quiet_context, implicit_usings=implicit_usings)

    return _make


def has_error_code(diagnostics, code: str) -> bool:
    """Check if any diagnostic contains the given code.

    Args:
        diagnostics: List of Diagnostic objects
        code: Code string like "COL-0010" or "[COL-0010]"

    Returns:
        True if any diagnostic message contains the code
    """
    if not code.startswith("["):
        code = f"[{code}]"
    return any(code in d.message for d in diagnostics)


def unit_names(units: List[Unit]) -> List[str]:
    return [u.qualified_name for u in units]


class FakeLanguageService:
    """
    LanguageService double with a declared reference graph.

    Each unit gets one synthetic method whose body holds one invocation per
    outgoing reference; resolving an invocation yields a symbol on the target
    unit's declaration.

        fake = FakeLanguageService()
        fake.add_unit("A.Root", refs=["B.Dep"])
        fake.add_unit("B.Dep")
    """

    def __init__(self) -> None:
        self.units: Dict[str, Unit] = {}
        self.refs: Dict[str, List[str]] = {}
        self.symbols: Dict[str, Symbol] = {}
        self.imports: Dict[str, List[ImportDirective]] = {}
        # Units whose enclosing namespace cannot be materialized.
        self.detached: set[str] = set()
        self.resolve_calls = 0

    def add_unit(self, qualified_name: str, refs: Optional[List[str]] = None,
                 kind: UnitKind = UnitKind.CLASS, keyword: str = "class") -> Unit:
        namespace, _, name = qualified_name.rpartition(".")
        if kind is UnitKind.ENUM:
            keyword = "enum"
        decl = TypeDecl(keyword, name, text=f"{keyword} {name} {{ }}")
        unit = Unit(namespace, name, kind, [decl], order=len(self.units))
        self.units[qualified_name] = unit
        self.refs[qualified_name] = list(refs or [])
        body = [InvocationExpr(NameExpr(target), []) for target in self.refs[qualified_name]]
        decl.members.append(MemberDecl(MemberKind.METHOD, "Run", None, body=body))
        return unit

    def set_symbol(self, target: str, symbol: Symbol) -> None:
        """Make references to `target` resolve to `symbol` instead of the unit's TYPE symbol."""
        self.symbols[target] = symbol

    # --- LanguageService ---

    def find_unit(self, namespace: str, simple_name: str) -> Optional[Unit]:
        return self.units.get(f"{namespace}.{simple_name}" if namespace else simple_name)

    def resolve_reference(self, expression) -> Optional[Symbol]:
        self.resolve_calls += 1
        if not isinstance(expression, InvocationExpr) or not isinstance(expression.callee, NameExpr):
            return None
        target = expression.callee.name
        if target in self.symbols:
            return self.symbols[target]
        unit = self.units.get(target)
        if unit is None:
            return Symbol.external(target)
        return Symbol(target, SymbolKind.TYPE, container=unit.decls[0], declaration=unit.decls[0])

    def declaring_unit_of(self, symbol: Symbol) -> Optional[Unit]:
        for unit in self.units.values():
            if any(d is symbol.container for d in unit.decls):
                return unit
        return None

    def enclosing_namespace(self, unit: Unit) -> Optional[str]:
        if unit.qualified_name in self.detached:
            return None
        return unit.namespace

    def imports_of(self, namespace: str) -> List[ImportDirective]:
        return list(self.imports.get(namespace, []))

    def units_in_namespace(self, namespace: str) -> List[Unit]:
        return [u for u in self.units.values() if u.namespace == namespace]

    def declares_namespace(self, namespace: str) -> bool:
        return any(u.namespace == namespace or u.namespace.startswith(namespace + ".")
                   for u in self.units.values())

    def global_imports(self) -> List[ImportDirective]:
        return []


@pytest.fixture
def fake_service() -> FakeLanguageService:
    return FakeLanguageService()
