"""
Bundling context for cross-cutting options.

This module defines the BundleContext dataclass which holds options that
affect multiple stages of a bundling run (closure policy, scaffold shape,
logging).
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import List


class LogLevel(IntEnum):
    """Hierarchical logging levels for the bundler."""
    SILENT = 0      # No logging
    ERROR = 3       # Error messages only
    WARNING = 6     # Warning messages (default)
    INFO = 10       # General progress messages (-v)
    DEBUG = 30      # Detailed traversal information (-vvv)


class ClosurePolicy(Enum):
    """
    How many sibling units of a referenced namespace are pulled into a bundle.

    WIDE:   every class/enum declared by the namespace of a discovered dependency.
    NARROW: only the units actually referenced.
    """
    WIDE = "wide"
    NARROW = "narrow"


DEFAULT_FILE_USINGS = [
    "System",
    "System.Linq",
    "System.Drawing",
    "System.Collections.Generic",
]


@dataclass
class BundleContext:
    """
    Holds cross-cutting options that affect multiple bundling stages.

    Attributes:
        policy:                 Namespace expansion policy for the closure walk.
        entry_method:           Static method of the root class invoked by the scaffold.
        scaffold_namespace:     Namespace wrapping the generated Program class.
        default_usings:         File-level using directives always emitted first.
        hoist_platform_usings:  If True, plain usings of namespaces that no workspace
                                source declares are emitted once at file level.
        log_rich_format:        If True, emit logs in rich format: timestamps and levels.
        log_level:              Current logging level.
    """
    policy: ClosurePolicy = ClosurePolicy.WIDE
    entry_method: str = "Solve"
    scaffold_namespace: str = "CSharpContestProject"
    default_usings: List[str] = field(default_factory=lambda: list(DEFAULT_FILE_USINGS))
    hoist_platform_usings: bool = True
    log_rich_format: bool = False
    log_level: LogLevel = LogLevel.WARNING

    @staticmethod
    def default() -> 'BundleContext':
        """Create a BundleContext with default settings."""
        return BundleContext(log_level=LogLevel.WARNING)
