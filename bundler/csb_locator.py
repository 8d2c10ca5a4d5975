#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from typing import Optional

from csb_context import BundleContext
from csb_errors import NamespaceDeclarationMissingError, RootNotFoundError
from csb_logger import log_debug
from csb_service import LanguageService
from csb_symbols import Symbol, Unit, UnitKind

# Declarations that can carry the scaffold's static entry method.
ROOT_KEYWORDS = {"class", "struct", "record", "record struct"}


class DeclarationLocator:
    """
    Maps names and symbols to the namespace-level units that declare them.

    - locate_root: the unit named by a fully qualified class name, or a terminal error.
    - locate_declaring_unit: the unit declaring a resolved symbol, or None for
      symbols without a source declaration (platform types and members, namespaces).
    """

    def __init__(self, service: LanguageService, context: Optional[BundleContext] = None):
        self.service = service
        self.context = context or BundleContext.default()

    def locate_root(self, qualified_name: str) -> Unit:
        namespace, _, simple_name = qualified_name.rpartition(".")
        if not namespace or not simple_name:
            raise RootNotFoundError(
                qualified_name, f"root '{qualified_name}' must be a namespace-qualified class name")

        unit = self.service.find_unit(namespace, simple_name)
        if unit is None or unit.kind is not UnitKind.CLASS or unit.keyword not in ROOT_KEYWORDS:
            raise RootNotFoundError(qualified_name)

        if self.service.enclosing_namespace(unit) != namespace:
            raise NamespaceDeclarationMissingError(qualified_name, namespace)

        log_debug(self.context, f"Root '{qualified_name}' found in {', '.join(unit.filenames) or '<memory>'}")
        return unit

    def locate_declaring_unit(self, symbol: Symbol) -> Optional[Unit]:
        if not symbol.is_resolved or symbol.is_external:
            return None
        return self.service.declaring_unit_of(symbol)

    def enclosing_namespace(self, unit: Unit) -> Optional[str]:
        return self.service.enclosing_namespace(unit)
