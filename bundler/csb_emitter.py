#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

from csb_closure import Bundle
from csb_context import BundleContext
from csb_errors import OutputWriteError
from csb_logger import log_debug, log_info
from csb_service import LanguageService
from csb_symbols import ImportDirective, Unit

IO_CONTRACT_COMMENT = [
    "/*******",
    "* Read input from Console",
    "* Use: Console.WriteLine to output your result to STDOUT.",
    "* Use: Console.Error.WriteLine to output debugging information to STDERR;",
    "*/",
]


class BundleEmitter:
    """
    Serializes a Bundle into one C# source file.

    Layout:
      1. the I/O contract comment and file-level usings (defaults, then
         hoisted platform namespaces)
      2. the scaffold namespace with Program.Main calling <Root>.<entry>()
      3. one namespace block per unit in discovery order: usings for the
         unit's dependency namespaces and the bundled namespaces it imports,
         its alias / static usings, then its declaration text verbatim

    Output is deterministic: the same bundle always renders to the same bytes.
    """

    def __init__(self, service: LanguageService, context: Optional[BundleContext] = None):
        self.service = service
        self.context = context or BundleContext.default()

    def render(self, bundle: Bundle) -> bytes:
        return self.render_text(bundle).encode("utf-8")

    def render_text(self, bundle: Bundle) -> str:
        lines: List[str] = list(IO_CONTRACT_COMMENT)
        lines.append("")
        for directive in self._file_usings(bundle):
            lines.append(directive)
        lines.append("")
        lines.extend(self._scaffold(bundle.root))
        for unit in bundle.units:
            lines.append("")
            lines.extend(self._unit_block(unit, bundle))
        return "\n".join(lines) + "\n"

    def write(self, bundle: Bundle, output_dir: str | Path) -> Path:
        """
        Write `<output_dir>/<Root>.cs` atomically and return its path.
        Raises OutputWriteError; no partial file is left behind.
        """
        data = self.render(bundle)
        path = Path(output_dir) / f"{bundle.root.name}.cs"
        tmp_name: Optional[str] = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                    mode="wb", dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False) as f:
                tmp_name = f.name
                f.write(data)
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            raise OutputWriteError(str(path), e) from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
        log_info(self.context, f"Wrote {len(data)} byte(s) to {path}")
        return path

    # --- file level ---

    def _file_usings(self, bundle: Bundle) -> List[str]:
        directives: Dict[str, None] = {}
        for name in self.context.default_usings:
            directives.setdefault(f"using {name};", None)
        if self.context.hoist_platform_usings:
            for imp in self._hoisted_imports(bundle):
                directives.setdefault(imp.render(), None)
        # The global namespace has no block to carry usings.
        for unit in bundle.units:
            if unit.namespace:
                continue
            for name in self._unit_namespaces(unit, bundle):
                directives.setdefault(f"using {name};", None)
            for imp in unit.imports:
                if not imp.is_plain:
                    directives.setdefault(imp.render(), None)
        return list(directives)

    def _hoisted_imports(self, bundle: Bundle) -> List[ImportDirective]:
        hoisted: List[ImportDirective] = []
        candidates: List[ImportDirective] = []
        for namespace in bundle.namespaces():
            candidates.extend(self.service.imports_of(namespace))
        candidates.extend(self.service.global_imports())
        for imp in candidates:
            if imp.is_plain and self.service.declares_namespace(imp.name):
                continue
            if not imp.is_plain and not imp.is_global:
                # alias and static usings stay in their unit's block
                continue
            plain = ImportDirective(imp.name, imp.alias, imp.is_static)
            if plain not in hoisted:
                hoisted.append(plain)
        log_debug(self.context, f"Hoisted {len(hoisted)} platform using(s)")
        return hoisted

    def _scaffold(self, root: Unit) -> List[str]:
        return [
            f"namespace {self.context.scaffold_namespace}",
            "{",
            f"    using {root.namespace};",
            "",
            "    class Program",
            "    {",
            "        static void Main(string[] args)",
            "        {",
            f"            var result = {root.name}.{self.context.entry_method}();",
            "            Console.WriteLine(result);",
            "        }",
            "    }",
            "}",
        ]

    # --- units ---

    @staticmethod
    def _unit_namespaces(unit: Unit, bundle: Bundle) -> List[str]:
        """
        Namespaces a unit's block imports: its dependency namespaces, then
        any bundled namespace its declaration site imports. The latter
        covers types named only as types (locals, parameters, casts).
        """
        names: Dict[str, None] = dict.fromkeys(bundle.dependency_namespaces.get(unit.qualified_name, []))
        bundled = set(bundle.namespaces())
        for imp in unit.imports:
            if imp.is_plain and imp.name in bundled and imp.name != unit.namespace:
                names.setdefault(imp.name, None)
        return list(names)

    def _unit_block(self, unit: Unit, bundle: Bundle) -> List[str]:
        if not unit.namespace:
            return [unit.text]
        usings = [f"    using {name};" for name in self._unit_namespaces(unit, bundle)]
        for imp in unit.imports:
            if not imp.is_plain:
                usings.append(f"    {imp.render()}")
        lines = [f"namespace {unit.namespace}", "{"]
        if usings:
            lines.extend(dict.fromkeys(usings))
            lines.append("")
        lines.append(unit.text)
        lines.append("}")
        return lines
