#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import argparse
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

from csb_ast_printer import format_source_file
from csb_closure import Bundle, ClosureWalker
from csb_context import BundleContext, ClosurePolicy, LogLevel
from csb_diagnostics import Diagnostic
from csb_emitter import BundleEmitter
from csb_errors import BundleError, InternalBundlerError
from csb_lexer import Lexer, LexerError, TokenKind
from csb_logger import log_error, log_warning
from csb_parser import ParseError, Parser
from csb_service import CSharpLanguageService

ENV_ENTRY_METHOD = "CSBUNDLE_ENTRY_METHOD"
ENV_POLICY = "CSBUNDLE_POLICY"


def _load_file_lines(path: str, cache: Dict[str, List[str]]) -> List[str]:
    if path not in cache:
        text = Path(path).read_text(encoding="utf-8-sig")
        cache[path] = text.splitlines()
    return cache[path]


def print_diagnostics(diagnostics: List[Diagnostic], context: BundleContext) -> None:
    file_cache: Dict[str, List[str]] = {}

    for diag in diagnostics:
        print_diagnostic_with_snippet(diag, file_cache, context)


def print_diagnostic_with_snippet(diag: Diagnostic, file_cache: Dict[str, List[str]],
                                  context: Optional[BundleContext] = None) -> None:
    emit = log_error if diag.kind == "error" else log_warning
    emit(context, diag.format())

    if not diag.filename or diag.line is None:
        return

    try:
        lines = _load_file_lines(diag.filename, file_cache)
    except (OSError, UnicodeDecodeError):
        # Can't read file; fall back to header only
        return

    line_idx = diag.line - 1
    if not (0 <= line_idx < len(lines)):
        return

    src_line = lines[line_idx]

    width = max(5, len(str(diag.line)))
    gutter = f"{diag.line:>{width}} | "
    emit(context, gutter + src_line)

    if diag.column is None:
        return

    start_col = max(1, diag.column)
    if diag.end_line is None or diag.end_column is None:
        end_col = start_col
    elif diag.end_line == diag.line:
        end_col = max(start_col, diag.end_column)
    else:
        end_col = len(src_line) + 1

    caret_width = max(1, end_col - start_col)
    caret_prefix = " " * width + " | " + " " * (start_col - 1)
    emit(context, caret_prefix + "^" * caret_width)


def build_bundle_context(args: argparse.Namespace) -> BundleContext:
    """Build a BundleContext from command-line arguments and environment defaults."""
    verbosity = getattr(args, "verbosity", 0)
    if verbosity >= 3:
        log_level = LogLevel.DEBUG
    elif verbosity >= 1:
        log_level = LogLevel.INFO
    else:
        log_level = LogLevel.WARNING

    context = BundleContext(
        log_rich_format=getattr(args, "log", False),
        log_level=log_level,
    )
    context.policy = ClosurePolicy(getattr(args, "policy", None) or os.getenv(ENV_POLICY) or "wide")
    context.entry_method = getattr(args, "entry_method", None) or os.getenv(ENV_ENTRY_METHOD) or "Solve"
    scaffold_namespace = getattr(args, "scaffold_namespace", None)
    if scaffold_namespace:
        context.scaffold_namespace = scaffold_namespace
    if getattr(args, "no_hoist", False):
        context.hoist_platform_usings = False
    return context


def _open_workspace(args: argparse.Namespace, context: BundleContext) -> Optional[CSharpLanguageService]:
    try:
        service = CSharpLanguageService.open(args.workspace, context)
    except BundleError as e:
        log_error(context, e.format())
        return None
    print_diagnostics(service.diagnostics, context)
    return service


def _walk(service: CSharpLanguageService, args: argparse.Namespace, context: BundleContext) -> Optional[Bundle]:
    walker = ClosureWalker(service, context)
    try:
        bundle = walker.bundle(args.root)
    except (BundleError, InternalBundlerError) as e:
        log_error(context, e.format())
        return None
    print_diagnostics(bundle.diagnostics, context)
    return bundle


def cmd_bundle(args: argparse.Namespace) -> int:
    """Bundle a root class and its dependency closure into <output_dir>/<Root>.cs."""
    context = build_bundle_context(args)
    service = _open_workspace(args, context)
    if service is None:
        return 1
    bundle = _walk(service, args, context)
    if bundle is None:
        return 1

    emitter = BundleEmitter(service, context)
    if args.stdout:
        sys.stdout.write(emitter.render_text(bundle))
        return 0
    try:
        path = emitter.write(bundle, args.output_dir)
    except BundleError as e:
        log_error(context, e.format())
        return 1
    print(f"Generated {path}")
    return 0


def cmd_deps(args: argparse.Namespace) -> int:
    """Print the closure of a root class in discovery order, with each unit's dependency namespaces."""
    context = build_bundle_context(args)
    service = _open_workspace(args, context)
    if service is None:
        return 1
    bundle = _walk(service, args, context)
    if bundle is None:
        return 1

    for unit in bundle.units:
        kind = "enum" if unit.is_enum else unit.keyword
        deps = bundle.dependency_namespaces.get(unit.qualified_name, [])
        suffix = f"  -> {', '.join(deps)}" if deps else ""
        print(f"{kind:<14} {unit.qualified_name}{suffix}")
    return 0


def cmd_units(args: argparse.Namespace) -> int:
    """List the units of a workspace, grouped by namespace."""
    context = build_bundle_context(args)
    service = _open_workspace(args, context)
    if service is None:
        return 1

    by_namespace: Dict[str, List[str]] = {}
    for unit in service.all_units():
        if args.namespace is not None and unit.namespace != args.namespace:
            continue
        kind = "enum" if unit.is_enum else unit.keyword
        by_namespace.setdefault(unit.namespace, []).append(f"    {kind:<14} {unit.name}")

    for namespace in sorted(by_namespace):
        print(f"=== namespace {namespace or '<global>'} ===")
        for line in by_namespace[namespace]:
            print(line)
        print()
    return 0


def _read_source(path: Path, context: BundleContext) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        log_error(context, f"error: [CSB-0030] cannot read {path}: {e}")
        return None


def cmd_ast(args: argparse.Namespace) -> int:
    """Pretty-print the syntax tree of one C# file."""
    context = build_bundle_context(args)
    path = Path(args.file)
    text = _read_source(path, context)
    if text is None:
        return 1
    try:
        source_file = Parser.from_source(text, filename=str(path)).parse_source_file(filename=str(path))
    except LexerError as e:
        log_error(context, f"{path}:{e.line}:{e.column}: error: {e.message}")
        return 1
    except ParseError as e:
        location = f"{path}:{e.token.line}:{e.token.column}" if e.token is not None else str(path)
        log_error(context, f"{location}: error: {e.message}")
        return 1
    print(format_source_file(source_file))
    return 0


def cmd_tok(args: argparse.Namespace) -> int:
    """Dump the lexer tokens of one C# file."""
    context = build_bundle_context(args)
    path = Path(args.file)
    text = _read_source(path, context)
    if text is None:
        return 1
    try:
        tokens = Lexer(text, filename=str(path)).tokenize()
    except LexerError as e:
        log_error(context, f"{path}:{e.line}:{e.column}: error: {e.message}")
        return 1

    for tok in tokens:
        if not args.include_eof and tok.kind is TokenKind.EOF:
            continue
        # Format: file:line:col: KIND  'text'
        print(
            f"{path}:{tok.line}:{tok.column}:\t"
            f"{tok.kind.name:<20} {tok.text!r}"
        )
    return 0


def _add_workspace_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("workspace", help="Solution (.sln), project (.csproj) or source directory")


def _add_policy_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--policy",
        choices=[p.value for p in ClosurePolicy],
        default=None,
        help=f"Namespace expansion policy (default: ${ENV_POLICY} or 'wide')",
    )


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(prog="csbundle", description="C# dependency-closure bundler")
    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to run")

    parser.add_argument("-v", "--verbose",
                        action='count',
                        default=0,
                        dest='verbosity',
                        help="Increase verbosity: -v=INFO, -vvv=DEBUG")
    parser.add_argument("-l", "--log",
                        action='store_true',
                        default=False,
                        help="Enable rich log formatting (timestamps, levels)")

    ###########################
    # bundle command
    ###########################
    p_bundle = subparsers.add_parser("bundle", help="Bundle a class and its dependencies into one file")
    _add_workspace_arg(p_bundle)
    p_bundle.add_argument("root", help="Fully qualified name of the root class (e.g. 'Solvers.Geometry.Convex')")
    p_bundle.add_argument("output_dir", help="Directory receiving <Root>.cs")
    _add_policy_arg(p_bundle)
    p_bundle.add_argument("--entry-method", default=None,
                          help=f"Static method called by the scaffold (default: ${ENV_ENTRY_METHOD} or 'Solve')")
    p_bundle.add_argument("--scaffold-namespace", default=None,
                          help="Namespace of the generated Program class (default: CSharpContestProject)")
    p_bundle.add_argument("--no-hoist", action="store_true",
                          help="Do not hoist platform using directives to file level")
    p_bundle.add_argument("--stdout", action="store_true",
                          help="Write the bundle to stdout instead of <output_dir>")
    p_bundle.set_defaults(func=cmd_bundle)

    ###########################
    # deps command
    ###########################
    p_deps = subparsers.add_parser("deps", help="Print the dependency closure of a class")
    _add_workspace_arg(p_deps)
    p_deps.add_argument("root", help="Fully qualified name of the root class")
    _add_policy_arg(p_deps)
    p_deps.set_defaults(func=cmd_deps)

    ###########################
    # units command
    ###########################
    p_units = subparsers.add_parser("units", help="List the classes and enums of a workspace")
    _add_workspace_arg(p_units)
    p_units.add_argument("--namespace", "-n", default=None, help="Only list units of this namespace")
    p_units.set_defaults(func=cmd_units)

    ###########################
    # ast command
    ###########################
    p_ast = subparsers.add_parser("ast", help="Pretty-print the syntax tree of a C# file")
    p_ast.add_argument("file", help="C# source file")
    p_ast.set_defaults(func=cmd_ast)

    ###########################
    # tok command
    ###########################
    p_tok = subparsers.add_parser("tok", help="Dump lexer tokens of a C# file", aliases=["tokens"])
    p_tok.add_argument("--include-eof", "-I", action="store_true",
                       help="Include the EOF token in the output")
    p_tok.add_argument("file", help="C# source file")
    p_tok.set_defaults(func=cmd_tok)

    args = parser.parse_args(argv)

    policy = os.getenv(ENV_POLICY)
    if policy and policy not in [p.value for p in ClosurePolicy]:
        parser.error(f"invalid ${ENV_POLICY} value '{policy}' (expected 'wide' or 'narrow')")

    rc = args.func(args)
    raise SystemExit(rc)


if __name__ == "__main__":
    main()
