#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from csb_ast import SourceFile
from csb_context import BundleContext
from csb_diagnostics import Diagnostic, diag_from_token
from csb_errors import WorkspaceLoadError
from csb_lexer import Lexer, LexerError
from csb_logger import log_debug, log_info, log_stage
from csb_parser import Parser, ParseError
from csb_paths import ProjectPaths, WorkspacePaths


@dataclass
class Document:
    """One parsed source document of a project."""
    path: Path
    project: ProjectPaths
    source_file: SourceFile

    @property
    def filename(self) -> str:
        return str(self.path)


@dataclass
class Workspace:
    """
    Loaded workspace:
      - projects in load order
      - parsed documents, ordered by project order then relative path
      - diagnostics for documents that were skipped

    Entry points:
      - Workspace.load(locator): discover projects and parse every document.
      - Workspace.from_sources({name: text}): in-memory workspace for tests and tools.
    """
    projects: List[ProjectPaths] = field(default_factory=list)
    documents: List[Document] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    context: BundleContext = field(default_factory=BundleContext.default, repr=False)
    # Parsed files by resolved path; a file shared by two projects is parsed once.
    document_cache: Dict[str, Document] = field(default_factory=dict, repr=False)

    @classmethod
    def load(cls, locator: str | Path, context: Optional[BundleContext] = None) -> "Workspace":
        """
        Load the workspace named by `locator` (.sln, .csproj or directory).

        Raises WorkspaceLoadError if the locator cannot be opened. Documents
        that fail to lex or parse are skipped with a [WSP-0010] diagnostic.
        """
        ws = cls(context=context or BundleContext.default())
        log_stage(ws.context, "Loading workspace", str(locator))
        try:
            paths = WorkspacePaths.discover(locator)
        except (OSError, ValueError) as e:
            raise WorkspaceLoadError(f"cannot load workspace: {e}") from e

        for missing in paths.missing:
            ws.report(Diagnostic(
                kind="warning",
                message=f"[WSP-0020] project file not found: {missing}",
                filename=str(missing),
            ))

        for project in paths.projects:
            ws.add_project(project)

        log_info(ws.context, f"Loaded {len(ws.documents)} document(s) from {len(ws.projects)} project(s)")
        return ws

    @classmethod
    def from_sources(
        cls,
        sources: Dict[str, str],
        context: Optional[BundleContext] = None,
        project_name: str = "Workspace",
        implicit_usings: bool = False,
    ) -> "Workspace":
        """Build a single-project workspace from in-memory sources, in name order."""
        ws = cls(context=context or BundleContext.default())
        project = ProjectPaths(project_name, Path("."), implicit_usings=implicit_usings)
        ws.projects.append(project)
        for name in sorted(sources):
            ws._add_document(Path(name), project, sources[name])
        return ws

    def add_project(self, project: ProjectPaths) -> None:
        log_debug(self.context, f"Loading project '{project.name}' from {project.root}")
        self.projects.append(project)
        for path in project.document_paths():
            key = str(path.resolve())
            if key in self.document_cache:
                log_debug(self.context, f"Document {path} already loaded (cache hit)")
                continue
            try:
                text = path.read_text(encoding="utf-8-sig")
            except (OSError, UnicodeDecodeError) as e:
                self.report(Diagnostic(
                    kind="warning",
                    message=f"[WSP-0010] document skipped: cannot read: {e}",
                    filename=str(path),
                ))
                continue
            doc = self._add_document(path, project, text)
            if doc is not None:
                self.document_cache[key] = doc

    def _add_document(self, path: Path, project: ProjectPaths, text: str) -> Optional[Document]:
        source_file = self._parse_source(text, str(path))
        if source_file is None:
            return None
        doc = Document(path, project, source_file)
        self.documents.append(doc)
        return doc

    def _parse_source(self, text: str, file_path: str) -> Optional[SourceFile]:
        log_debug(self.context, f"Lexing {file_path}")
        try:
            lexer = Lexer(text, filename=file_path)
            tokens = lexer.tokenize()
            log_debug(self.context, f"Lexed {len(tokens)} token(s) from {file_path}")
            parser = Parser(tokens, file_path, lexer.source)
            return parser.parse_source_file(filename=file_path)
        except LexerError as e:
            self.report(Diagnostic(
                kind="warning",
                message=f"[WSP-0010] document skipped: {e.message}",
                filename=e.filename,
                line=e.line,
                column=e.column,
            ))
        except ParseError as e:
            self.report(diag_from_token(
                kind="warning",
                message=f"[WSP-0010] document skipped: {e.message}",
                filename=e.filename or file_path,
                token=e.token,
            ))
        return None

    def report(self, diag: Diagnostic) -> None:
        self.diagnostics.append(diag)
        log_debug(self.context, diag.format())
