#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import pytest

from csb_errors import NamespaceDeclarationMissingError, RootNotFoundError
from csb_locator import DeclarationLocator
from csb_symbols import Symbol, SymbolKind, UnitKind


def test_locate_root_finds_class(fake_service):
    root = fake_service.add_unit("Solvers.Geometry.Convex")

    assert DeclarationLocator(fake_service).locate_root("Solvers.Geometry.Convex") is root


@pytest.mark.parametrize("keyword", ["struct", "record", "record struct"])
def test_locate_root_accepts_other_static_containers(fake_service, keyword):
    root = fake_service.add_unit("N.Root", keyword=keyword)

    assert DeclarationLocator(fake_service).locate_root("N.Root") is root


def test_unqualified_root_is_rejected(fake_service):
    fake_service.add_unit("Convex")

    with pytest.raises(RootNotFoundError) as excinfo:
        DeclarationLocator(fake_service).locate_root("Convex")

    assert "namespace-qualified" in excinfo.value.message
    assert excinfo.value.format().startswith("error: [CSB-0010]")


def test_missing_root(fake_service):
    fake_service.add_unit("A.Other")

    with pytest.raises(RootNotFoundError) as excinfo:
        DeclarationLocator(fake_service).locate_root("A.Missing")

    assert excinfo.value.qualified_name == "A.Missing"
    assert "'A.Missing' not found" in excinfo.value.message


def test_namespace_must_match_exactly(fake_service):
    fake_service.add_unit("Solvers.Geometry.Convex")

    with pytest.raises(RootNotFoundError):
        DeclarationLocator(fake_service).locate_root("Geometry.Convex")


@pytest.mark.parametrize("kind, keyword", [(UnitKind.ENUM, "enum"), (UnitKind.CLASS, "interface")])
def test_enums_and_interfaces_cannot_be_roots(fake_service, kind, keyword):
    fake_service.add_unit("N.Root", kind=kind, keyword=keyword)

    with pytest.raises(RootNotFoundError):
        DeclarationLocator(fake_service).locate_root("N.Root")


def test_root_without_materialized_namespace(fake_service):
    fake_service.add_unit("N.Root")
    fake_service.detached.add("N.Root")

    with pytest.raises(NamespaceDeclarationMissingError) as excinfo:
        DeclarationLocator(fake_service).locate_root("N.Root")

    assert excinfo.value.namespace == "N"
    assert excinfo.value.format().startswith("error: [CSB-0020]")


def test_locate_declaring_unit(fake_service):
    dep = fake_service.add_unit("N.Dep")
    locator = DeclarationLocator(fake_service)
    resolved = Symbol("N.Dep", SymbolKind.TYPE, container=dep.decls[0], declaration=dep.decls[0])

    assert locator.locate_declaring_unit(resolved) is dep
    assert locator.locate_declaring_unit(Symbol.external("Console.WriteLine")) is None
    assert locator.locate_declaring_unit(Symbol.unresolved("N.Gone", "missing")) is None
    assert locator.locate_declaring_unit(Symbol.ambiguous("Move", [resolved])) is None


def test_locate_root_in_real_workspace(make_service):
    service = make_service({
        "A.cs": """
            namespace Outer.Inner
            {
                public class Root { public static int Solve() => 0; }
            }
            """,
    })

    unit = DeclarationLocator(service).locate_root("Outer.Inner.Root")
    assert unit.namespace == "Outer.Inner"
    assert unit.filenames == ["A.cs"]
