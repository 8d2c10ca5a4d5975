#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from __future__ import annotations

from typing import List, Optional


class BundleError(Exception):
    """
    Base class for terminal bundling failures.

    A BundleError aborts the run before any artifact is written. Non-fatal
    conditions are reported as Diagnostics instead.
    """

    code = "CSB-0000"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def format(self) -> str:
        return f"error: [{self.code}] {self.message}"


class RootNotFoundError(BundleError):
    """The root identifier has no matching namespace + class in the workspace."""

    code = "CSB-0010"

    def __init__(self, qualified_name: str, reason: Optional[str] = None):
        message = reason or f"class '{qualified_name}' not found in workspace"
        super().__init__(message)
        self.qualified_name = qualified_name


class NamespaceDeclarationMissingError(BundleError):
    """The root was found but its enclosing namespace could not be materialized."""

    code = "CSB-0020"

    def __init__(self, qualified_name: str, namespace: str):
        super().__init__(
            f"namespace declaration '{namespace}' for class '{qualified_name}' not found"
        )
        self.qualified_name = qualified_name
        self.namespace = namespace


class WorkspaceLoadError(BundleError):
    """The workspace locator does not name a loadable solution, project or directory."""

    code = "CSB-0030"


class OutputWriteError(BundleError):
    """Writing the artifact failed; nothing was left at the target path."""

    code = "CSB-0040"

    def __init__(self, path: str, cause: OSError):
        super().__init__(f"cannot write {path}: {cause}")
        self.path = path
        self.cause = cause


class BundleCancelledError(BundleError):
    """The run was cancelled from outside; its traversal state was discarded."""

    code = "CSB-0050"

    def __init__(self, visited: List[str]):
        super().__init__(f"bundling cancelled after visiting {len(visited)} unit(s)")
        self.visited = visited


class InternalBundlerError(RuntimeError):
    """
    Bundler bug / violated traversal invariant.
    Not for user mistakes (those are Diagnostics or BundleErrors).
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def format(self) -> str:
        message = self.message
        if "[ICE-" not in message:
            message = f"[ICE-9999] {message}"
        return f"internal bundler error: {message}"
