#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import os
from dataclasses import dataclass
from typing import Optional

from csb_ast import Node
from csb_lexer import Token


DIAGNOSTIC_CODE_FAMILIES = {
    "LEX": [
        "LEX-0010",
        "LEX-0011",
        "LEX-0020",
        "LEX-0040",
        "LEX-0050",
        "LEX-0070",
    ],
    "PAR": [
        "PAR-0001",
        "PAR-0010",
        "PAR-0011",
        "PAR-0012",
        "PAR-0013",
        "PAR-0014",
        "PAR-0020",
        "PAR-0021",
        "PAR-0022",
        "PAR-0023",
        "PAR-0030",
        "PAR-0040",
        "PAR-0041",
        "PAR-0042",
        "PAR-0043",
        "PAR-0044",
        "PAR-0045",
        "PAR-0050",
        "PAR-0051",
        "PAR-0060",
        "PAR-0061",
        "PAR-0062",
        "PAR-0063",
        "PAR-0070",
        "PAR-0071",
        "PAR-0072",
        "PAR-0080",
        "PAR-0090",
        "PAR-0091",
        "PAR-0092",
        "PAR-0093",
        "PAR-0094",
        "PAR-0095",
        "PAR-0096",
    ],
    "WSP": [
        "WSP-0010",
        "WSP-0020",
        "WSP-0030",
    ],
    "COL": [
        "COL-0010",
        "COL-0020",
        "COL-0030",
    ],
    "CLO": [
        "CLO-0010",
    ],
    # CSB codes belong to terminal BundleErrors and ICE codes to internal
    # bundler errors; both are raised, not reported, and are excluded here.
}


@dataclass
class Diagnostic:
    kind: str  # "error" or "warning"
    message: str
    unit_name: Optional[str] = None  # qualified name of the unit being processed
    filename: Optional[str] = None  # file path

    # Primary location (start of the span)
    line: Optional[int] = None
    column: Optional[int] = None

    # Optional end of span (exclusive)
    end_line: Optional[int] = None
    end_column: Optional[int] = None

    @property
    def code(self) -> Optional[str]:
        if self.message.startswith("[") and "]" in self.message:
            return self.message[1:self.message.index("]")]
        return None

    # Return the one-line header; snippets will be printed at the call site
    def format(self) -> str:
        loc = ""
        if self.filename is not None:
            loc += f"{os.path.abspath(str(self.filename))}"
        if self.line is not None:
            loc += f":{self.line}"
            if self.column is not None:
                loc += f":{self.column}"
        if self.unit_name is not None:
            loc += f"({self.unit_name})"
        if loc:
            loc += ": "
        return f"{loc}{self.kind}: {self.message}"


def diag_from_node(
        kind: str,
        message: str,
        *,
        unit_name: Optional[str],
        filename: Optional[str],
        node: Optional[Node],
) -> Diagnostic:
    line = column = end_line = end_column = None
    if node is not None and node.span is not None:
        s = node.span
        line = s.start_line
        column = s.start_column
        end_line = s.end_line
        end_column = s.end_column
    return Diagnostic(
        kind=kind,
        message=message,
        unit_name=unit_name,
        filename=filename,
        line=line,
        column=column,
        end_line=end_line,
        end_column=end_column,
    )


def diag_from_token(
        kind: str,
        message: str,
        *,
        filename: Optional[str],
        token: Optional[Token],
) -> Diagnostic:
    line = column = None
    if token is not None:
        line = token.line
        column = token.column
    return Diagnostic(
        kind=kind,
        message=message,
        filename=filename,
        line=line,
        column=column,
    )
