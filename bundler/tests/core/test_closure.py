#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import threading

import pytest

from conftest import has_error_code, unit_names
from csb_ast import TypeDecl
from csb_closure import ClosureWalker
from csb_context import BundleContext, ClosurePolicy, LogLevel
from csb_errors import BundleCancelledError, InternalBundlerError, RootNotFoundError
from csb_symbols import Unit, UnitKind


def walker_for(service, policy=ClosurePolicy.NARROW):
    return ClosureWalker(service, BundleContext(policy=policy, log_level=LogLevel.SILENT))


class CancelAfter:
    """Reports cancellation once it has been polled more than `polls` times."""

    def __init__(self, polls: int):
        self.polls = polls

    def is_set(self) -> bool:
        self.polls -= 1
        return self.polls < 0


@pytest.fixture
def layered(fake_service):
    fake_service.add_unit("A.Root", refs=["B.X"])
    fake_service.add_unit("A.Helper")
    fake_service.add_unit("B.X", refs=["C.Z"])
    fake_service.add_unit("B.Sibling")
    fake_service.add_unit("C.Z")
    return fake_service


def test_narrow_follows_only_referenced_units(layered):
    bundle = walker_for(layered, ClosurePolicy.NARROW).bundle("A.Root")

    assert bundle.qualified_names == ["A.Root", "B.X", "C.Z"]
    assert bundle.root is layered.units["A.Root"]
    assert bundle.policy is ClosurePolicy.NARROW
    assert bundle.dependency_namespaces == {"A.Root": ["B"], "B.X": ["C"], "C.Z": []}


def test_wide_pulls_in_every_unit_of_a_dependency_namespace(layered):
    bundle = walker_for(layered, ClosurePolicy.WIDE).bundle("A.Root")

    # A.Helper shares the root's namespace but nothing references A
    assert bundle.qualified_names == ["A.Root", "B.X", "C.Z", "B.Sibling"]
    assert bundle.dependency_namespaces["B.Sibling"] == []
    assert bundle.namespaces() == ["A", "B", "C"]


def test_depth_first_preorder_with_cycle(fake_service):
    fake_service.add_unit("A.Root", refs=["B.X", "A.Y"])
    fake_service.add_unit("B.X", refs=["A.Y", "C.Z"])
    fake_service.add_unit("A.Y")
    fake_service.add_unit("C.Z", refs=["A.Root"])

    bundle = walker_for(fake_service).bundle("A.Root")

    assert bundle.qualified_names == ["A.Root", "B.X", "A.Y", "C.Z"]
    assert bundle.dependency_namespaces["C.Z"] == ["A"]
    assert bundle.dependency_namespaces["A.Root"] == ["B"]


def test_enums_are_visited_but_not_expanded(fake_service):
    fake_service.add_unit("A.Root", refs=["A.Color"])
    fake_service.add_unit("A.Color", refs=["B.X"], kind=UnitKind.ENUM)
    fake_service.add_unit("B.X")

    bundle = walker_for(fake_service).bundle("A.Root")

    assert bundle.qualified_names == ["A.Root", "A.Color"]
    assert fake_service.resolve_calls == 1


def test_external_references_end_the_walk(fake_service):
    fake_service.add_unit("A.Root", refs=["Console", "Math"])

    bundle = walker_for(fake_service).bundle("A.Root")

    assert unit_names(bundle.units) == ["A.Root"]
    assert bundle.dependency_namespaces == {"A.Root": []}
    assert bundle.diagnostics == []


def test_walk_is_repeatable(layered):
    walker = walker_for(layered, ClosurePolicy.WIDE)

    first = walker.bundle("A.Root")
    second = walker.bundle("A.Root")

    assert first.qualified_names == second.qualified_names
    assert len(set(first.qualified_names)) == len(first.qualified_names)


def test_long_chain_does_not_hit_recursion_limit(fake_service):
    count = 3000
    for i in range(count):
        refs = [f"Chain.N{i + 1}"] if i + 1 < count else []
        fake_service.add_unit(f"Chain.N{i}", refs=refs)

    bundle = walker_for(fake_service).bundle("Chain.N0")

    assert len(bundle.units) == count
    assert bundle.qualified_names[-1] == f"Chain.N{count - 1}"


def test_dependency_without_namespace_is_skipped(layered):
    layered.detached.add("B.X")

    bundle = walker_for(layered).bundle("A.Root")

    assert bundle.qualified_names == ["A.Root"]
    assert has_error_code(bundle.diagnostics, "CLO-0010")
    assert bundle.diagnostics[0].unit_name == "A.Root"


def test_collector_diagnostics_are_carried_in_the_bundle(fake_service):
    from csb_symbols import Symbol
    fake_service.add_unit("A.Root", refs=["Gone"])
    fake_service.set_symbol("Gone", Symbol.unresolved("Gone", "missing"))

    bundle = walker_for(fake_service).bundle("A.Root")

    assert has_error_code(bundle.diagnostics, "COL-0010")


def test_cancellation_before_start(layered):
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(BundleCancelledError) as excinfo:
        walker_for(layered).bundle("A.Root", cancel)

    assert excinfo.value.visited == []
    assert excinfo.value.format().startswith("error: [CSB-0050]")


def test_cancellation_mid_walk_discards_state(layered):
    with pytest.raises(BundleCancelledError) as excinfo:
        walker_for(layered).bundle("A.Root", CancelAfter(2))

    assert excinfo.value.visited == ["A.Root", "B.X"]


def test_distinct_units_with_same_name_are_an_internal_error(fake_service):
    fake_service.add_unit("A.Root", refs=["A.Root"])
    impostor = Unit("A", "Root", UnitKind.CLASS, [TypeDecl("class", "Root", text="class Root { }")])
    fake_service.declaring_unit_of = lambda symbol: impostor

    with pytest.raises(InternalBundlerError) as excinfo:
        walker_for(fake_service).bundle("A.Root")

    assert "[ICE-0010]" in excinfo.value.format()


def test_missing_root_propagates(fake_service):
    with pytest.raises(RootNotFoundError):
        walker_for(fake_service).bundle("A.Nowhere")
