#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import fields, is_dataclass
from enum import Enum
from typing import Any, List

from csb_ast import Node, SourceFile, Span


def _format_span(span: Span | None) -> str:
    if span is None:
        return ""
    return f" @{span.start_line}:{span.start_column}-{span.end_line}:{span.end_column}"


def _is_child(value: Any) -> bool:
    if isinstance(value, Node):
        return True
    return isinstance(value, list) and any(isinstance(v, Node) for v in value)


def _format_scalar(value: Any) -> str:
    if isinstance(value, Enum):
        return value.name
    return repr(value)


def format_node(node: Any, indent: int = 0) -> List[str]:
    """
    Reflection-based syntax tree pretty-printer.

    - Shows the node class name.
    - Prints scalar fields and lists of names inline, skipping unset values
      (None, False, 0, empty lists) and fields hidden from repr (declaration
      text, back references).
    - Prints child nodes and lists of nodes on indented lines.
    - Appends a span annotation like `@1:1-7:1` when available.
    """
    ind = "  " * indent

    if isinstance(node, list):
        lines: List[str] = []
        for elem in node:
            lines.extend(format_node(elem, indent))
        return lines

    if isinstance(node, Node) and is_dataclass(node):
        simple_parts = []
        child_fields = []
        for f in fields(node):
            if f.name == "span" or not f.repr:
                continue
            value = getattr(node, f.name)
            if _is_child(value):
                child_fields.append((f.name, value))
            elif value:
                simple_parts.append((f.name, value))

        header = node.__class__.__name__
        if simple_parts:
            inner = ", ".join(f"{name}={_format_scalar(value)}" for name, value in simple_parts)
            header = f"{header}({inner})"
        header += _format_span(node.span)

        lines = [ind + header]
        for name, value in child_fields:
            lines.append(ind + "  " + f"{name}:")
            lines.extend(format_node(value, indent + 2))
        return lines

    return [ind + repr(node)]


def format_source_file(source_file: SourceFile) -> str:
    """Pretty-print a parsed source file as a string."""
    return "\n".join(format_node(source_file, indent=0))
