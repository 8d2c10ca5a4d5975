#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

# Directories of build output that never hold project sources.
EXCLUDED_DIRS = {"bin", "obj"}

# Global usings the .NET SDK adds when <ImplicitUsings> is enabled.
SDK_IMPLICIT_USINGS = [
    "System",
    "System.Collections.Generic",
    "System.IO",
    "System.Linq",
    "System.Net.Http",
    "System.Threading",
    "System.Threading.Tasks",
]

# Project("{FAE04EC0-...}") = "Name", "rel\path\Name.csproj", "{GUID}"
SLN_PROJECT_RE = re.compile(r'^Project\("[^"]*"\)\s*=\s*"([^"]*)"\s*,\s*"([^"]*)"', re.MULTILINE)
IMPLICIT_USINGS_RE = re.compile(r"<ImplicitUsings>\s*(enable|true)\s*</ImplicitUsings>", re.IGNORECASE)
COMPILE_INCLUDE_RE = re.compile(r'<Compile\s+Include="([^"]+)"', re.IGNORECASE)
DEFAULT_ITEMS_OFF_RE = re.compile(r"<EnableDefaultCompileItems>\s*false\s*</EnableDefaultCompileItems>",
                                  re.IGNORECASE)


@dataclass
class ProjectPaths:
    """
    One C# project of a workspace.

    - root: directory holding the project sources
    - project_file: the .csproj, or None for a bare source directory
    """
    name: str
    root: Path
    project_file: Optional[Path] = None
    implicit_usings: bool = False
    # Explicit <Compile Include> items when default globbing is disabled.
    explicit_sources: Optional[List[Path]] = None

    def document_paths(self) -> List[Path]:
        """
        Return the project's .cs documents, ordered by relative path.

        SDK-style globbing: every **/*.cs under the project root except
        files below bin/ or obj/.
        """
        if self.explicit_sources is not None:
            return sorted((p for p in self.explicit_sources if p.is_file()),
                          key=lambda p: self._relative_key(p))
        docs = []
        for path in self.root.rglob("*.cs"):
            rel = path.relative_to(self.root)
            if any(part in EXCLUDED_DIRS for part in rel.parts[:-1]):
                continue
            if path.is_file():
                docs.append(path)
        return sorted(docs, key=lambda p: self._relative_key(p))

    def _relative_key(self, path: Path) -> Tuple[str, ...]:
        try:
            return path.relative_to(self.root).parts
        except ValueError:
            return path.parts


@dataclass
class WorkspacePaths:
    """
    Projects making up a workspace, in load order.

    A workspace locator is a .sln file, a .csproj file, or a directory.
    Project order is solution order (or sorted path order for a directory).
    """
    locator: Path
    projects: List[ProjectPaths] = field(default_factory=list)
    # Projects named by the solution whose project file does not exist.
    missing: List[Path] = field(default_factory=list)

    @classmethod
    def discover(cls, locator: str | Path) -> "WorkspacePaths":
        """
        Build the project list for `locator`.

        Raises FileNotFoundError if the locator does not exist, and
        ValueError if it is a file that is neither .sln nor .csproj.
        """
        path = Path(locator)
        if not path.exists():
            raise FileNotFoundError(f"workspace '{locator}' does not exist")

        ws = cls(path)
        if path.is_dir():
            project_files = sorted(
                (p for p in path.rglob("*.csproj")
                 if not any(part in EXCLUDED_DIRS for part in p.relative_to(path).parts[:-1])),
                key=lambda p: p.relative_to(path).parts,
            )
            if project_files:
                for project_file in project_files:
                    ws.projects.append(read_project(project_file))
            else:
                ws.projects.append(ProjectPaths(path.name or str(path), path))
        elif path.suffix.lower() == ".sln":
            for name, rel in parse_solution(path.read_text(encoding="utf-8-sig")):
                if not rel.lower().endswith(".csproj"):
                    # solution folders and non-C# projects
                    continue
                project_file = path.parent / Path(*rel.replace("\\", "/").split("/"))
                if not project_file.is_file():
                    ws.missing.append(project_file)
                    continue
                ws.projects.append(read_project(project_file, name))
        elif path.suffix.lower() == ".csproj":
            ws.projects.append(read_project(path))
        else:
            raise ValueError(f"workspace '{locator}' is not a .sln, .csproj or directory")
        return ws


def parse_solution(text: str) -> List[Tuple[str, str]]:
    """Return (name, relative path) for every Project entry of a .sln file."""
    return [(m.group(1), m.group(2)) for m in SLN_PROJECT_RE.finditer(text)]


def read_project(project_file: Path, name: Optional[str] = None) -> ProjectPaths:
    text = project_file.read_text(encoding="utf-8-sig")
    project = ProjectPaths(
        name or project_file.stem,
        project_file.parent,
        project_file,
        implicit_usings=IMPLICIT_USINGS_RE.search(text) is not None,
    )
    if DEFAULT_ITEMS_OFF_RE.search(text):
        project.explicit_sources = [
            project_file.parent / Path(*include.replace("\\", "/").split("/"))
            for include in COMPILE_INCLUDE_RE.findall(text)
        ]
    return project
