#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from csb_collector import ReferenceCollector
from csb_context import BundleContext, ClosurePolicy
from csb_diagnostics import Diagnostic
from csb_errors import BundleCancelledError, InternalBundlerError
from csb_locator import DeclarationLocator
from csb_logger import log_debug, log_info, log_stage
from csb_service import LanguageService
from csb_symbols import Unit


@dataclass
class TraversalState:
    """
    Mutable state of one closure walk. Created per run and passed explicitly;
    never shared between runs.
    """
    # Qualified name -> unit, in discovery order.
    visited: Dict[str, Unit] = field(default_factory=dict)
    # Qualified name -> namespaces of the unit's located dependencies, first-seen order.
    dependency_namespaces: Dict[str, List[str]] = field(default_factory=dict)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    def mark_visited(self, unit: Unit) -> bool:
        """Insert `unit` unless already present; True if it was newly inserted."""
        existing = self.visited.get(unit.qualified_name)
        if existing is not None:
            if existing is not unit:
                raise InternalBundlerError(
                    f"[ICE-0010] two distinct units share the qualified name '{unit.qualified_name}'")
            return False
        self.visited[unit.qualified_name] = unit
        return True


@dataclass
class Bundle:
    """Result of a closure walk: what the emitter serializes."""
    root: Unit
    units: List[Unit]  # discovery order, root first
    dependency_namespaces: Dict[str, List[str]]
    diagnostics: List[Diagnostic]
    policy: ClosurePolicy

    @property
    def qualified_names(self) -> List[str]:
        return [u.qualified_name for u in self.units]

    def namespaces(self) -> List[str]:
        return list(dict.fromkeys(u.namespace for u in self.units))


class ClosureWalker:
    """
    Computes the dependency closure of a root class.

    The walk is a depth-first pre-order over units with an explicit stack:
      - a unit is marked visited when popped, and expanded only if newly marked
      - its successors are pushed in reverse, so the first one is processed next
      - enum units are visited but never expanded
    This visits units in exactly the order of the recursive formulation
    without its recursion-depth limit.

    Successors of a unit under each ClosurePolicy:
      - NARROW: the declaring units of its resolved references
      - WIDE:   for each such dependency, every unit of the dependency's
                namespace (declaration order), then the dependency itself
    """

    def __init__(self, service: LanguageService, context: Optional[BundleContext] = None):
        self.service = service
        self.context = context or BundleContext.default()
        self.locator = DeclarationLocator(service, self.context)
        self.collector = ReferenceCollector(service, self.context)

    def bundle(self, root_name: str, cancel: Optional[threading.Event] = None) -> Bundle:
        """
        Walk the closure of `root_name`.

        Raises RootNotFoundError / NamespaceDeclarationMissingError if the root
        cannot be located, and BundleCancelledError if `cancel` gets set.
        """
        log_stage(self.context, "Walking closure of", root_name)
        policy = self.context.policy
        root = self.locator.locate_root(root_name)
        state = TraversalState()

        stack: List[Unit] = [root]
        while stack:
            if cancel is not None and cancel.is_set():
                raise BundleCancelledError(list(state.visited))
            unit = stack.pop()
            if not state.mark_visited(unit):
                continue
            if unit.is_enum:
                log_debug(self.context, f"Visited enum '{unit.qualified_name}' (not expanded)")
                state.dependency_namespaces[unit.qualified_name] = []
                continue
            successors = self._expand(unit, state, policy)
            log_debug(self.context, f"Visited '{unit.qualified_name}': {len(successors)} successor(s)")
            stack.extend(reversed(successors))

        log_info(self.context, f"Closure of '{root_name}' has {len(state.visited)} unit(s)")
        return Bundle(
            root=root,
            units=list(state.visited.values()),
            dependency_namespaces=state.dependency_namespaces,
            diagnostics=state.diagnostics,
            policy=policy,
        )

    def _expand(self, unit: Unit, state: TraversalState, policy: ClosurePolicy) -> List[Unit]:
        successors: Dict[str, Unit] = {}
        namespaces: Dict[str, None] = {}
        for symbol in self.collector.collect(unit, state.diagnostics):
            dep = self.locator.locate_declaring_unit(symbol)
            if dep is None:
                continue
            namespace = self.locator.enclosing_namespace(dep)
            if namespace is None:
                state.diagnostics.append(Diagnostic(
                    kind="warning",
                    message=f"[CLO-0010] dependency '{dep.qualified_name}' has no enclosing namespace; skipped",
                    unit_name=unit.qualified_name,
                ))
                continue
            if namespace and namespace != unit.namespace:
                namespaces.setdefault(namespace, None)
            if policy is ClosurePolicy.WIDE:
                for sibling in self.service.units_in_namespace(namespace):
                    successors.setdefault(sibling.qualified_name, sibling)
            successors.setdefault(dep.qualified_name, dep)
        state.dependency_namespaces[unit.qualified_name] = list(namespaces)
        return list(successors.values())
