#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, List, Optional, Set, Tuple

from csb_ast import (
    ArrayCreationExpr, BaseExpr, ElementAccessExpr, Expr, GroupExpr, InterpolatedStringExpr, InvocationExpr,
    LiteralExpr, LocalDecl, MemberAccessExpr, MemberDecl, MemberKind, NameExpr, NamespaceDecl, ObjectCreationExpr,
    Param, SourceFile, ThisExpr, TypeDecl, TypeRef, UsingDirective,
)
from csb_diagnostics import diag_from_node
from csb_lexer import PREDEFINED_TYPES
from csb_locals import LocalKind, LocalScopeResolver, LocalSymbol, Scope
from csb_logger import log_debug
from csb_paths import SDK_IMPLICIT_USINGS
from csb_symbols import ImportDirective, Symbol, SymbolKind, Unit, UnitKind
from csb_workspace import Document, Workspace

# Members every type inherits from System.Object.
OBJECT_MEMBERS = {"ToString", "Equals", "GetHashCode", "GetType", "MemberwiseClone", "ReferenceEquals"}

# Platform collections whose elements are their first type argument.
SEQUENCE_TYPES = {
    "List", "IList", "IEnumerable", "ICollection", "IReadOnlyList", "IReadOnlyCollection", "HashSet", "SortedSet",
    "ISet", "Queue", "Stack", "LinkedList", "IOrderedEnumerable", "Span", "ReadOnlySpan", "Memory",
    "ReadOnlyMemory", "ImmutableArray", "ImmutableList", "IQueryable", "IAsyncEnumerable",
}
MAP_TYPES = {
    "Dictionary", "IDictionary", "IReadOnlyDictionary", "SortedDictionary", "SortedList", "ConcurrentDictionary",
}

# Sequence methods returning one element of the receiver.
ELEMENT_METHODS = {
    "First", "FirstOrDefault", "Last", "LastOrDefault", "Single", "SingleOrDefault", "ElementAt",
    "ElementAtOrDefault", "Dequeue", "Pop", "Peek", "MinBy", "MaxBy", "Find", "FindLast",
}
# Sequence methods returning a sequence of the receiver's elements.
SEQUENCE_METHODS = {
    "Where", "OrderBy", "OrderByDescending", "ThenBy", "ThenByDescending", "Reverse", "Distinct", "DistinctBy",
    "Skip", "Take", "SkipWhile", "TakeWhile", "SkipLast", "TakeLast", "Concat", "Except", "Union", "Intersect",
    "AsEnumerable", "FindAll", "GetRange", "Append", "Prepend",
}

NUMERIC_WIDENING = {
    "sbyte": {"short", "int", "long", "float", "double", "decimal"},
    "byte": {"short", "ushort", "int", "uint", "long", "ulong", "float", "double", "decimal"},
    "short": {"int", "long", "float", "double", "decimal"},
    "ushort": {"int", "uint", "long", "ulong", "float", "double", "decimal"},
    "int": {"long", "float", "double", "decimal"},
    "uint": {"long", "ulong", "float", "double", "decimal"},
    "long": {"float", "double", "decimal"},
    "ulong": {"float", "double", "decimal"},
    "char": {"ushort", "int", "uint", "long", "ulong", "float", "double", "decimal"},
    "float": {"double"},
}

# Member kinds reachable by simple name or member access.
NAMED_MEMBER_KINDS = {
    MemberKind.FIELD, MemberKind.PROPERTY, MemberKind.METHOD, MemberKind.EVENT, MemberKind.ENUM_MEMBER,
}

SYMBOL_KINDS = {
    MemberKind.FIELD: SymbolKind.FIELD,
    MemberKind.PROPERTY: SymbolKind.PROPERTY,
    MemberKind.INDEXER: SymbolKind.PROPERTY,
    MemberKind.METHOD: SymbolKind.METHOD,
    MemberKind.OPERATOR: SymbolKind.METHOD,
    MemberKind.CONVERSION: SymbolKind.METHOD,
    MemberKind.DESTRUCTOR: SymbolKind.METHOD,
    MemberKind.CONSTRUCTOR: SymbolKind.CONSTRUCTOR,
    MemberKind.EVENT: SymbolKind.EVENT,
    MemberKind.ENUM_MEMBER: SymbolKind.ENUM_MEMBER,
}


def _join(namespace: str, name: str) -> str:
    return f"{namespace}.{name}" if namespace else name


# ==========================
# Binder model
# ==========================

@dataclass
class ImportLevel:
    """One namespace level of a declaration site, with the usings declared at it."""
    namespace: str
    usings: List[UsingDirective] = field(default_factory=list)


@dataclass(eq=False)
class TypeInfo:
    """
    One type declaration as seen by the binder.

    Partial parts and arity variants of a type share the qualified name and
    each get their own TypeInfo.
    """
    decl: TypeDecl
    unit: Unit
    qualified_name: str  # Ns.Outer.Inner
    namespace: str
    parent: Optional[TypeInfo]
    levels: List[ImportLevel] = field(repr=False)  # innermost first; the last is the compilation unit
    project: str = ""


@dataclass
class MemberRef:
    info: TypeInfo
    member: MemberDecl


@dataclass
class BoundType:
    """A type as used by expression typing: a source type, a platform type, or a type parameter."""
    name: str
    info: Optional[TypeInfo] = None
    args: List[BoundType] = field(default_factory=list)
    rank: int = 0
    is_type_param: bool = False
    is_nullable: bool = False

    @property
    def simple_name(self) -> str:
        return self.name.rsplit(".", 1)[-1]

    def with_rank(self, rank: int) -> BoundType:
        return BoundType(self.name, self.info, self.args, rank, self.is_type_param)

    def element(self) -> Optional[BoundType]:
        """Element type of arrays, strings and well-known platform collections."""
        if self.rank:
            return self.with_rank(self.rank - 1)
        if self.info is not None or self.is_type_param:
            return None
        simple = self.simple_name
        if simple == "string":
            return BoundType("char")
        if simple in SEQUENCE_TYPES and len(self.args) == 1:
            return self.args[0]
        if simple in MAP_TYPES and len(self.args) == 2:
            return BoundType("KeyValuePair", args=list(self.args))
        return None

    def format(self) -> str:
        text = self.name
        if self.args:
            text += "<" + ", ".join(a.format() for a in self.args) + ">"
        return text + "[]" * self.rank


class BindKind(Enum):
    VALUE = auto()  # a value; `type` is None when it cannot be inferred
    TYPE = auto()
    NAMESPACE = auto()
    METHODS = auto()  # a method group
    EXTERNAL = auto()  # platform entity; `type` may still be known
    AMBIGUOUS = auto()
    UNRESOLVED = auto()


@dataclass
class Binding:
    kind: BindKind
    type: Optional[BoundType] = None
    namespace: Optional[str] = None
    members: List[MemberRef] = field(default_factory=list)
    candidates: List[Symbol] = field(default_factory=list)
    receiver: Optional[BoundType] = None
    is_extension: bool = False
    name: str = ""
    reason: Optional[str] = None


@dataclass
class TypeLookup:
    infos: List[TypeInfo] = field(default_factory=list)
    is_type_param: bool = False


@dataclass
class ExprSite:
    """Where an expression occurs: its type, member (None for base arguments) and local scope."""
    info: TypeInfo
    member: Optional[MemberDecl]
    scope: Scope


# ==========================
# Binder
# ==========================

class Binder:
    """
    Semantic model over a loaded Workspace.

    Builds, once:
      - the unit index (namespace-level classes and enums, partial parts aggregated)
      - the type index (qualified name -> TypeInfo, nested types included)
      - the namespace index (declared namespaces and their prefixes)
      - member tables per type, with record members and primary constructors synthesized
      - an expression site for every expression of every member body

    and then answers, lazily and memoized:
      - bind(expr): what an expression names (value, type, namespace, method group)
      - resolve(expr): the Symbol an invocation, creation or member access refers to

    Lookup is C#-like but heuristic: there is no full type inference, so a
    receiver whose type cannot be inferred makes a member name resolve to
    every workspace member declaring it (AMBIGUOUS).
    """

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace
        self.context = workspace.context
        self.units: Dict[str, Unit] = {}
        self.namespaces: Set[str] = set()

        self._units_by_namespace: Dict[str, List[Unit]] = {}
        self._types: Dict[str, List[TypeInfo]] = {}
        self._infos: Dict[int, TypeInfo] = {}
        self._all_infos: List[TypeInfo] = []
        self._namespace_imports: Dict[str, List[ImportDirective]] = {}
        self._global_usings: Dict[str, List[UsingDirective]] = {}

        self._members: Dict[str, Dict[str, List[MemberRef]]] = {}
        self._constructors: Dict[str, List[MemberRef]] = {}
        self._indexers: Dict[str, List[MemberRef]] = {}
        self._members_by_name: Dict[str, List[MemberRef]] = {}
        self._extensions: Dict[str, List[MemberRef]] = {}
        self._bases_memo: Dict[str, Tuple[List[TypeInfo], bool]] = {}

        self._scopes = LocalScopeResolver()
        self._sites: Dict[int, ExprSite] = {}
        self._parents: Dict[int, Expr] = {}
        self._lambda_sources: Dict[int, Expr] = {}
        self._targets: Dict[int, Tuple[TypeRef, ExprSite]] = {}

        self._bindings: Dict[int, Binding] = {}
        self._binding_in_progress: Set[int] = set()
        self._symbols: Dict[int, Optional[Symbol]] = {}
        self._chosen: Dict[int, Tuple[MemberRef, Optional[BoundType]]] = {}
        self._type_memo: Dict[Tuple[int, int, int], Optional[BoundType]] = {}

        self._index_declarations()
        self._index_members()
        self._index_expressions()
        log_debug(self.context, f"Indexed {len(self.units)} unit(s) in {len(self.namespaces)} namespace(s)")

    # --- public queries ---

    def find_unit(self, namespace: str, name: str) -> Optional[Unit]:
        return self.units.get(_join(namespace, name))

    def units_in_namespace(self, namespace: str) -> List[Unit]:
        return list(self._units_by_namespace.get(namespace, []))

    def declares_namespace(self, namespace: str) -> bool:
        return namespace in self.namespaces

    def imports_of(self, namespace: str) -> List[ImportDirective]:
        return list(self._namespace_imports.get(namespace, []))

    def global_imports(self) -> List[ImportDirective]:
        imports: Dict[ImportDirective, None] = {}
        for usings in self._global_usings.values():
            for u in usings:
                imports[ImportDirective.from_directive(u)] = None
        return list(imports)

    def unit_of_declaration(self, decl: TypeDecl) -> Optional[Unit]:
        info = self._infos.get(id(decl))
        return info.unit if info is not None else None

    def type_info(self, qualified_name: str) -> Optional[TypeInfo]:
        infos = self._types.get(qualified_name)
        return infos[0] if infos else None

    def type_of(self, expr: Expr) -> Optional[BoundType]:
        """Inferred value type of an expression, if known."""
        return self._value_type(self.bind(expr))

    # --- indexing: declarations ---

    def _index_declarations(self) -> None:
        for project in self.workspace.projects:
            usings = self._global_usings.setdefault(project.name, [])
            if project.implicit_usings:
                usings.extend(UsingDirective(TypeRef(name), is_global=True) for name in SDK_IMPLICIT_USINGS)
        for doc in self.workspace.documents:
            for u in doc.source_file.usings:
                if u.is_global:
                    self._global_usings.setdefault(doc.project.name, []).append(u)

        for doc in self.workspace.documents:
            sf = doc.source_file
            cu_usings = [u for u in sf.usings if not u.is_global] + self._global_usings.get(doc.project.name, [])
            root_levels = [ImportLevel("", cu_usings)]
            if sf.types:
                self._add_namespace_imports("", root_levels)
            for decl in sf.types:
                self._declare_type(decl, "", None, root_levels, doc)
            for ns in sf.namespaces:
                self._declare_namespace(ns, "", root_levels, doc, sf)

    def _declare_namespace(
            self,
            ns: NamespaceDecl,
            outer: str,
            outer_levels: List[ImportLevel],
            doc: Document,
            sf: SourceFile,
    ) -> None:
        levels = outer_levels
        full = outer
        parts = ns.name.split(".")
        for i, part in enumerate(parts):
            full = _join(full, part)
            self.namespaces.add(full)
            usings = ns.usings if i == len(parts) - 1 else []
            levels = [ImportLevel(full, usings)] + levels
        self._add_namespace_imports(full, levels)
        for decl in ns.types:
            self._declare_type(decl, full, None, levels, doc)
        for inner in ns.namespaces:
            self._declare_namespace(inner, full, levels, doc, sf)

    def _add_namespace_imports(self, namespace: str, levels: List[ImportLevel]) -> None:
        imports = self._namespace_imports.setdefault(namespace, [])
        for level in reversed(levels):
            for u in level.usings:
                imp = ImportDirective.from_directive(u)
                if not imp.is_global and imp not in imports:
                    imports.append(imp)

    def _declare_type(
            self,
            decl: TypeDecl,
            namespace: str,
            parent: Optional[TypeInfo],
            levels: List[ImportLevel],
            doc: Document,
    ) -> None:
        if parent is None:
            qualified_name = _join(namespace, decl.name)
            unit = self.units.get(qualified_name)
            if unit is None:
                kind = UnitKind.ENUM if decl.is_enum else UnitKind.CLASS
                unit = Unit(namespace, decl.name, kind, order=len(self.units))
                self.units[qualified_name] = unit
                self._units_by_namespace.setdefault(namespace, []).append(unit)
            else:
                first = self._conflicting_declaration(qualified_name, decl, doc)
                if first is not None:
                    self.workspace.report(diag_from_node(
                        "warning",
                        f"[WSP-0030] duplicate declaration of '{qualified_name}' in project "
                        f"'{doc.project.name}' ignored; first declared in project '{first.project}'",
                        unit_name=qualified_name,
                        filename=str(doc.path),
                        node=decl,
                    ))
                    return
            unit.decls.append(decl)
            for level in reversed(levels):
                for u in level.usings:
                    imp = ImportDirective.from_directive(u)
                    if not imp.is_global and imp not in unit.imports:
                        unit.imports.append(imp)
        else:
            unit = parent.unit
            qualified_name = f"{parent.qualified_name}.{decl.name}"

        info = TypeInfo(decl, unit, qualified_name, namespace, parent, levels, doc.project.name)
        self._infos[id(decl)] = info
        self._types.setdefault(qualified_name, []).append(info)
        self._all_infos.append(info)
        for nested in decl.nested_types:
            self._declare_type(nested, namespace, info, levels, doc)

    def _conflicting_declaration(self, qualified_name: str, decl: TypeDecl, doc: Document) -> Optional[TypeInfo]:
        """
        Earlier top-level declaration that `decl` may not join, if any.

        Only partial parts of one project merge; generic arity variants are
        distinct types and always coexist.
        """
        for info in self._types.get(qualified_name, []):
            if len(info.decl.type_params) != len(decl.type_params):
                continue
            partial = "partial" in decl.modifiers and "partial" in info.decl.modifiers
            if not partial or info.project != doc.project.name:
                return info
        return None

    # --- indexing: members ---

    def _index_members(self) -> None:
        for info in self._all_infos:
            decl = info.decl
            table = self._members.setdefault(info.qualified_name, {})
            ctors = self._constructors.setdefault(info.qualified_name, [])
            for member in decl.members:
                ref = MemberRef(info, member)
                if member.kind is MemberKind.CONSTRUCTOR:
                    ctors.append(ref)
                elif member.kind is MemberKind.INDEXER:
                    self._indexers.setdefault(info.qualified_name, []).append(ref)
                elif member.kind in NAMED_MEMBER_KINDS:
                    table.setdefault(member.name, []).append(ref)
                    self._members_by_name.setdefault(member.name, []).append(ref)
                    if self._is_extension_method(info, member):
                        self._extensions.setdefault(member.name, []).append(ref)
            if decl.params:
                self._synthesize_primary_members(info, table, ctors)

    def _synthesize_primary_members(
            self,
            info: TypeInfo,
            table: Dict[str, List[MemberRef]],
            ctors: List[MemberRef],
    ) -> None:
        decl = info.decl
        ctor = MemberDecl(MemberKind.CONSTRUCTOR, decl.name, None, list(decl.params), span=decl.span)
        ctors.append(MemberRef(info, ctor))
        if not decl.keyword.startswith("record"):
            return
        for param in decl.params:
            if param.name in table:
                continue
            prop = MemberDecl(MemberKind.PROPERTY, param.name, param.type, modifiers=["public"], span=param.span)
            ref = MemberRef(info, prop)
            table[param.name] = [ref]
            self._members_by_name.setdefault(param.name, []).append(ref)

    def _is_extension_method(self, info: TypeInfo, member: MemberDecl) -> bool:
        return (
            member.kind is MemberKind.METHOD
            and info.parent is None
            and "static" in info.decl.modifiers
            and bool(member.params)
            and member.params[0].modifier == "this"
        )

    # --- indexing: expressions ---

    def _index_expressions(self) -> None:
        for info in self._all_infos:
            decl = info.decl
            type_site = ExprSite(info, None, self._scopes.type_scope(decl))
            for arg in decl.base_args:
                self._walk(arg, type_site, None, {})
            for param in decl.params:
                for e in param.default:
                    self._walk(e, type_site, None, {})
            for member in decl.members:
                env = self._scopes.member_env(decl, member)
                site = ExprSite(info, member, env.scope)
                lambdas = {id(local.declarator): local for local in member.locals
                           if local.is_lambda and local.declarator is not None}
                for param in member.params:
                    for e in param.default:
                        self._walk(e, site, None, lambdas)
                for e in member.body:
                    self._walk(e, site, None, lambdas)
                self._record_targets(member, site)

    def _record_targets(self, member: MemberDecl, site: ExprSite) -> None:
        # Declared types that give target-typed `new()` its type.
        if member.kind in (MemberKind.FIELD, MemberKind.PROPERTY, MemberKind.EVENT) and member.type is not None:
            for e in member.body:
                if isinstance(e, ObjectCreationExpr) and e.type is None:
                    self._targets[id(e)] = (member.type, site)
        for local in member.locals:
            if local.type is not None and isinstance(local.init, ObjectCreationExpr) and local.init.type is None:
                self._targets[id(local.init)] = (local.type, site)

    def _walk(self, expr: Expr, site: ExprSite, parent: Optional[Expr], lambdas: Dict[int, LocalDecl]) -> None:
        self._sites[id(expr)] = site
        if parent is not None:
            self._parents[id(expr)] = parent
        if isinstance(expr, InvocationExpr) and isinstance(expr.callee, MemberAccessExpr) and lambdas:
            for arg in expr.args:
                local = self._lambda_parameter(arg, lambdas)
                if local is not None:
                    self._lambda_sources[id(local)] = expr.callee.target
        for child in child_expressions(expr):
            self._walk(child, site, expr, lambdas)

    def _lambda_parameter(self, arg: Expr, lambdas: Dict[int, LocalDecl]) -> Optional[LocalDecl]:
        # x => ...   (x) => ...
        if not isinstance(arg, GroupExpr) or not arg.items:
            return None
        head = arg.items[0]
        if isinstance(head, GroupExpr) and len(head.items) == 1:
            head = head.items[0]
        return lambdas.get(id(head))

    # --- types ---

    def _type_named(self, qualified_name: str, arity: Optional[int]) -> Optional[TypeInfo]:
        infos = self._types.get(qualified_name)
        if not infos:
            return None
        if arity is not None:
            for info in infos:
                if len(info.decl.type_params) == arity:
                    return info
        return infos[0]

    def _nested_type(self, info: TypeInfo, name: str, arity: Optional[int]) -> Optional[TypeInfo]:
        return self._type_named(f"{info.qualified_name}.{name}", arity)

    def _lookup_type(
            self,
            name: str,
            arity: Optional[int],
            info: Optional[TypeInfo],
            member: Optional[MemberDecl],
            levels: List[ImportLevel],
    ) -> TypeLookup:
        """
        Simple-name type lookup, innermost scope first:
        type parameters, nested types of the containing type chain, then each
        enclosing namespace level with its aliases and using directives.
        Several types found through the usings of one level are ambiguous.
        """
        if member is not None and name in member.type_params:
            return TypeLookup(is_type_param=True)
        t = info
        while t is not None:
            if name in t.decl.type_params:
                return TypeLookup(is_type_param=True)
            nested = self._nested_type(t, name, arity)
            if nested is not None:
                return TypeLookup([nested])
            t = t.parent

        for i, level in enumerate(levels):
            found = self._type_named(_join(level.namespace, name), arity)
            if found is not None:
                return TypeLookup([found])
            matches: List[TypeInfo] = []
            for u in level.usings:
                if u.is_static:
                    continue
                if u.alias is not None:
                    if u.alias == name:
                        target = self._alias_target(u, levels[i + 1:])
                        if target is not None:
                            return TypeLookup([target])
                    continue
                found = self._type_named(_join(u.name, name), arity)
                if found is not None and all(m.qualified_name != found.qualified_name for m in matches):
                    matches.append(found)
            if matches:
                return TypeLookup(matches)
        return TypeLookup()

    def _alias_target(self, using: UsingDirective, outer_levels: List[ImportLevel]) -> Optional[TypeInfo]:
        target = using.target
        levels = outer_levels if outer_levels and target.alias is None else [ImportLevel("")]
        look = self._resolve_qualified(target.parts, len(target.type_args), None, None, levels)
        return look.infos[0] if look.infos else None

    def _resolve_qualified(
            self,
            parts: List[str],
            arity: Optional[int],
            info: Optional[TypeInfo],
            member: Optional[MemberDecl],
            levels: List[ImportLevel],
    ) -> TypeLookup:
        if len(parts) == 1:
            return self._lookup_type(parts[0], arity, info, member, levels)
        qualified = ".".join(parts)
        for level in levels:
            found = self._type_named(_join(level.namespace, qualified), arity)
            if found is not None:
                return TypeLookup([found])
        head, rest = parts[0], parts[1:]
        for level in levels:
            for u in level.usings:
                if u.alias == head and not u.is_static:
                    found = self._type_named(_join(u.name, ".".join(rest)), arity)
                    if found is not None:
                        return TypeLookup([found])
        outer = self._lookup_type(head, None, info, member, levels)
        if not outer.infos:
            return TypeLookup()
        t: Optional[TypeInfo] = outer.infos[0]
        for i, part in enumerate(rest):
            t = self._nested_type(t, part, arity if i == len(rest) - 1 else None)
            if t is None:
                return TypeLookup()
        return TypeLookup([t])

    def resolve_type_ref(
            self,
            tref: Optional[TypeRef],
            info: Optional[TypeInfo],
            member: Optional[MemberDecl] = None,
    ) -> Optional[BoundType]:
        """Bind a written type in the context of a type (and member) declaration."""
        if tref is None:
            return None
        key = (id(tref), id(info), id(member))
        if key in self._type_memo:
            return self._type_memo[key]
        bound = self._resolve_type_ref(tref, info, member)
        self._type_memo[key] = bound
        return bound

    def _resolve_type_ref(self, tref: TypeRef, info: Optional[TypeInfo], member: Optional[MemberDecl]) -> BoundType:
        args = [self.resolve_type_ref(a, info, member) or BoundType(a.name) for a in tref.type_args]
        if tref.is_tuple:
            bound = BoundType("(tuple)", args=args)
        elif tref.name in PREDEFINED_TYPES:
            bound = BoundType(tref.name)
        else:
            levels = info.levels if info is not None and tref.alias is None else [ImportLevel("")]
            scope_info = info if tref.alias is None else None
            look = self._resolve_qualified(tref.parts, len(tref.type_args), scope_info, member, levels)
            if look.is_type_param:
                bound = BoundType(tref.name, is_type_param=True)
            elif look.infos:
                found = look.infos[0]
                bound = BoundType(found.qualified_name, found, args)
            else:
                bound = BoundType(tref.name, args=args)
        bound.rank = tref.array_rank
        bound.is_nullable = tref.is_nullable
        return bound

    def _self_type(self, info: TypeInfo) -> BoundType:
        args = [BoundType(p, is_type_param=True) for p in info.decl.type_params]
        return BoundType(info.qualified_name, info, args)

    def _bases(self, info: TypeInfo) -> Tuple[List[TypeInfo], bool]:
        """Source base types of a type (all partial parts), and whether any base lies outside the workspace."""
        memo = self._bases_memo.get(info.qualified_name)
        if memo is not None:
            return memo
        self._bases_memo[info.qualified_name] = ([], False)
        bases: List[TypeInfo] = []
        external = info.decl.is_enum or info.decl.keyword.startswith("record")
        for part in self._types.get(info.qualified_name, [info]):
            for tref in part.decl.base_types:
                bound = self.resolve_type_ref(tref, part)
                if bound is None or bound.is_type_param:
                    continue
                if bound.info is None:
                    external = True
                elif bound.info.qualified_name != info.qualified_name and bound.info not in bases:
                    bases.append(bound.info)
        self._bases_memo[info.qualified_name] = (bases, external)
        return bases, external

    def _base_class(self, info: TypeInfo) -> Optional[TypeInfo]:
        bases, _ = self._bases(info)
        for base in bases:
            if base.decl.keyword != "interface":
                return base
        return None

    def _is_subtype(self, info: TypeInfo, base: TypeInfo) -> bool:
        seen: Set[str] = set()
        queue = [info]
        while queue:
            t = queue.pop(0)
            if t.qualified_name == base.qualified_name:
                return True
            if t.qualified_name in seen:
                continue
            seen.add(t.qualified_name)
            queue.extend(self._bases(t)[0])
        return False

    def _element_of(self, bound: Optional[BoundType]) -> Optional[BoundType]:
        if bound is None:
            return None
        element = bound.element()
        if element is not None or bound.info is None or bound.rank:
            return element
        # source collections: class Polygon : IEnumerable<Point>
        for part in self._types.get(bound.info.qualified_name, [bound.info]):
            for tref in part.decl.base_types:
                base = self.resolve_type_ref(tref, part)
                if base is not None and base.info is None:
                    element = base.element()
                    if element is not None:
                        return element
        return None

    def _substitute(self, bound: Optional[BoundType], info: TypeInfo,
                    receiver: Optional[BoundType]) -> Optional[BoundType]:
        if bound is None or receiver is None or receiver.info is None or not receiver.args:
            return bound
        if receiver.info.qualified_name != info.qualified_name:
            return bound
        params = info.decl.type_params
        if bound.is_type_param and bound.name in params:
            index = params.index(bound.name)
            if index < len(receiver.args):
                arg = receiver.args[index]
                return arg.with_rank(arg.rank + bound.rank) if bound.rank else arg
            return bound
        if not bound.args:
            return bound
        args = [self._substitute(a, info, receiver) or a for a in bound.args]
        return BoundType(bound.name, bound.info, args, bound.rank, bound.is_type_param, bound.is_nullable)

    # --- members ---

    def _find_members(self, info: TypeInfo, name: str) -> Tuple[List[MemberRef], bool]:
        """
        Members named `name` on a type or its source bases, nearest first.
        The flag tells whether the hierarchy reaches outside the workspace.
        """
        seen: Set[str] = set()
        queue = [info]
        external = False
        while queue:
            t = queue.pop(0)
            if t.qualified_name in seen:
                continue
            seen.add(t.qualified_name)
            refs = self._members.get(t.qualified_name, {}).get(name)
            if refs:
                return list(refs), external
            bases, ext = self._bases(t)
            external = external or ext
            queue.extend(bases)
        return [], external

    def _extension_methods(self, name: str, receiver: Optional[BoundType]) -> List[MemberRef]:
        refs = self._extensions.get(name, [])
        if receiver is None:
            return list(refs)
        applicable: List[MemberRef] = []
        for ref in refs:
            this_type = self.resolve_type_ref(ref.member.params[0].type, ref.info, ref.member)
            if this_type is None or self._compatibility(receiver, this_type) is not None:
                applicable.append(ref)
        return applicable

    def _member_type(self, ref: MemberRef, receiver: Optional[BoundType]) -> Optional[BoundType]:
        member = ref.member
        if member.kind in (MemberKind.ENUM_MEMBER, MemberKind.CONSTRUCTOR):
            return self._self_type(ref.info)
        bound = self.resolve_type_ref(member.type, ref.info, member)
        return self._substitute(bound, ref.info, receiver)

    def _members_binding(self, refs: List[MemberRef], name: str, receiver: Optional[BoundType]) -> Binding:
        methods = [r for r in refs if r.member.kind is MemberKind.METHOD]
        if methods:
            return Binding(BindKind.METHODS, members=methods, receiver=receiver, name=name)
        ref = refs[0]
        return Binding(BindKind.VALUE, type=self._member_type(ref, receiver), members=[ref], name=name)

    # --- symbols ---

    def member_symbol(self, ref: MemberRef) -> Symbol:
        member = ref.member
        kind = SYMBOL_KINDS[member.kind]
        qualified_name = f"{ref.info.qualified_name}.{member.name}"
        if kind in (SymbolKind.METHOD, SymbolKind.CONSTRUCTOR):
            signature = ", ".join(p.type.format() if p.type is not None else "?" for p in member.params)
            qualified_name += f"({signature})"
        return Symbol(qualified_name, kind, container=ref.info.decl, declaration=member)

    def type_symbol(self, info: TypeInfo) -> Symbol:
        return Symbol(info.qualified_name, SymbolKind.TYPE, container=info.decl, declaration=info.decl)

    def _implicit_constructor(self, info: TypeInfo) -> Symbol:
        return Symbol(f"{info.qualified_name}.{info.decl.name}()", SymbolKind.CONSTRUCTOR,
                      container=info.decl, declaration=info.decl)

    # --- binding ---

    def bind(self, expr: Expr) -> Binding:
        key = id(expr)
        cached = self._bindings.get(key)
        if cached is not None:
            return cached
        if key in self._binding_in_progress:
            # var x = x.Next(): inference cycle
            return Binding(BindKind.VALUE)
        self._binding_in_progress.add(key)
        try:
            binding = self._bind(expr)
        finally:
            self._binding_in_progress.discard(key)
        self._bindings[key] = binding
        return binding

    def _bind(self, expr: Expr) -> Binding:
        site = self._sites.get(id(expr))
        if site is None:
            return Binding(BindKind.VALUE)
        if isinstance(expr, NameExpr):
            return self._bind_name(expr, site)
        if isinstance(expr, MemberAccessExpr):
            return self._bind_member(self.bind(expr.target), expr, site)
        if isinstance(expr, InvocationExpr):
            return self._bind_invocation(expr)
        if isinstance(expr, ObjectCreationExpr):
            if expr.type is not None:
                return Binding(BindKind.VALUE, type=self.resolve_type_ref(expr.type, site.info, site.member))
            target = self._targets.get(id(expr))
            if target is not None:
                tref, target_site = target
                return Binding(BindKind.VALUE,
                               type=self.resolve_type_ref(tref, target_site.info, target_site.member))
            return Binding(BindKind.VALUE)
        if isinstance(expr, ArrayCreationExpr):
            if expr.type is not None:
                element = self.resolve_type_ref(expr.type, site.info, site.member)
            else:
                element = self.type_of(expr.items[0]) if expr.items else None
            if element is None:
                return Binding(BindKind.VALUE)
            return Binding(BindKind.VALUE, type=element.with_rank(element.rank + 1))
        if isinstance(expr, ElementAccessExpr):
            return Binding(BindKind.VALUE, type=self._indexed_type(self.type_of(expr.target)))
        if isinstance(expr, LiteralExpr):
            if expr.kind == "default":
                return Binding(BindKind.VALUE)
            return Binding(BindKind.VALUE, type=BoundType("Type" if expr.kind == "type" else expr.kind))
        if isinstance(expr, InterpolatedStringExpr):
            return Binding(BindKind.VALUE, type=BoundType("string"))
        if isinstance(expr, ThisExpr):
            return Binding(BindKind.VALUE, type=self._self_type(site.info))
        if isinstance(expr, BaseExpr):
            base = self._base_class(site.info)
            return Binding(BindKind.VALUE, type=self._self_type(base) if base is not None else None)
        if isinstance(expr, GroupExpr):
            return self._bind_group(expr)
        return Binding(BindKind.VALUE)

    def _bind_group(self, expr: GroupExpr) -> Binding:
        if len(expr.items) == 1:
            return self.bind(expr.items[0])
        # cast: ((Point)obj)
        if len(expr.items) == 2 and isinstance(expr.items[0], GroupExpr) and len(expr.items[0].items) == 1:
            cast = self.bind(expr.items[0].items[0])
            if cast.kind is BindKind.TYPE:
                return Binding(BindKind.VALUE, type=cast.type)
        return Binding(BindKind.VALUE)

    def _bind_name(self, expr: NameExpr, site: ExprSite) -> Binding:
        name = expr.name
        arity = len(expr.type_args) if expr.type_args else None
        if expr.alias == "global":
            found = self._type_named(name, arity)
            if found is not None:
                return self._type_binding(found, expr.type_args, site)
            if name in self.namespaces:
                return Binding(BindKind.NAMESPACE, namespace=name, name=name)
            return Binding(BindKind.EXTERNAL, name=f"global::{name}")
        if name in PREDEFINED_TYPES:
            return Binding(BindKind.TYPE, type=BoundType(name), name=name)

        if not expr.type_args:
            local = site.scope.lookup(name, expr.span)
            if local is not None:
                return Binding(BindKind.VALUE, type=self._local_type(local, site), name=name)

        t: Optional[TypeInfo] = site.info
        while t is not None:
            refs, _ = self._find_members(t, name)
            if refs:
                return self._members_binding(refs, name, self._self_type(t))
            t = t.parent

        look = self._lookup_type(name, arity, site.info, site.member, site.info.levels)
        if look.is_type_param:
            return Binding(BindKind.TYPE, type=BoundType(name, is_type_param=True), name=name)
        if len(look.infos) > 1:
            candidates = [self.type_symbol(i) for i in look.infos]
            return Binding(BindKind.AMBIGUOUS, candidates=candidates, name=name)
        if look.infos:
            return self._type_binding(look.infos[0], expr.type_args, site)

        for imported in self._static_imports(site.info):
            refs, _ = self._find_members(imported, name)
            if refs:
                return self._members_binding(refs, name, None)

        namespace = self._lookup_namespace(name, site.info.levels)
        if namespace is not None:
            return Binding(BindKind.NAMESPACE, namespace=namespace, name=name)

        if name[:1].isupper():
            # platform type or namespace: Console, Math, System
            return Binding(BindKind.EXTERNAL, name=name)
        return Binding(BindKind.VALUE, name=name)

    def _type_binding(self, info: TypeInfo, type_args: List[TypeRef], site: ExprSite) -> Binding:
        args = [self.resolve_type_ref(a, site.info, site.member) or BoundType(a.name) for a in type_args]
        return Binding(BindKind.TYPE, type=BoundType(info.qualified_name, info, args), name=info.decl.name)

    def _static_imports(self, info: TypeInfo) -> List[TypeInfo]:
        imported: List[TypeInfo] = []
        for i, level in enumerate(info.levels):
            for u in level.usings:
                if not u.is_static:
                    continue
                look = self._resolve_qualified(u.target.parts, len(u.target.type_args), None, None,
                                               info.levels[i + 1:] or [ImportLevel("")])
                imported.extend(look.infos[:1])
        return imported

    def _lookup_namespace(self, name: str, levels: List[ImportLevel]) -> Optional[str]:
        for level in levels:
            candidate = _join(level.namespace, name)
            if candidate in self.namespaces:
                return candidate
            for u in level.usings:
                if u.alias == name and not u.is_static and u.name in self.namespaces:
                    return u.name
        return None

    def _local_type(self, local: LocalSymbol, site: ExprSite) -> Optional[BoundType]:
        if local.type_ref is not None:
            member = site.member if local.kind is not LocalKind.PRIMARY_PARAM else None
            return self.resolve_type_ref(local.type_ref, site.info, member)
        decl = local.decl
        if not isinstance(decl, LocalDecl):
            return None
        if decl.is_lambda:
            source = self._lambda_sources.get(id(decl))
            return self._element_of(self.type_of(source)) if source is not None else None
        if decl.init is None:
            return None
        init_type = self.type_of(decl.init)
        if decl.is_foreach:
            return self._element_of(init_type)
        return init_type

    def _bind_member(self, left: Binding, expr: MemberAccessExpr, site: ExprSite) -> Binding:
        name = expr.name
        arity = len(expr.type_args) if expr.type_args else None
        display = f"{left.name}.{name}" if left.name else name

        if left.kind is BindKind.NAMESPACE:
            full = _join(left.namespace or "", name)
            found = self._type_named(full, arity)
            if found is not None:
                return self._type_binding(found, expr.type_args, site)
            if full in self.namespaces:
                return Binding(BindKind.NAMESPACE, namespace=full, name=full)
            return Binding(BindKind.EXTERNAL, name=full)

        if left.kind is BindKind.TYPE:
            t = left.type
            if t is None or t.info is None:
                return Binding(BindKind.EXTERNAL, name=display)
            nested = self._nested_type(t.info, name, arity)
            if nested is not None:
                return self._type_binding(nested, expr.type_args, site)
            return self._bind_source_member(t, name, display)

        if left.kind is BindKind.VALUE:
            t = left.type
            if t is None or t.is_type_param:
                return self._bind_unknown_member(name, display)
            if t.is_nullable and name in ("Value", "HasValue", "GetValueOrDefault"):
                if name == "Value":
                    return Binding(BindKind.VALUE, type=BoundType(t.name, t.info, t.args, t.rank), name=display)
                return Binding(BindKind.EXTERNAL, name=display)
            if t.info is None or t.rank:
                return self._bind_platform_member(t, name, display)
            return self._bind_source_member(t, name, display)

        if left.kind is BindKind.EXTERNAL:
            return self._bind_platform_member(left.type, name, display)

        if left.kind in (BindKind.AMBIGUOUS, BindKind.METHODS):
            return self._bind_unknown_member(name, display)

        return Binding(BindKind.UNRESOLVED, name=display, reason=left.reason)

    def _bind_source_member(self, t: BoundType, name: str, display: str) -> Binding:
        assert t.info is not None
        refs, external = self._find_members(t.info, name)
        if refs:
            binding = self._members_binding(refs, name, t)
            binding.name = display
            return binding
        extensions = self._extension_methods(name, t)
        if extensions:
            return Binding(BindKind.METHODS, members=extensions, receiver=t, is_extension=True, name=display)
        if name in OBJECT_MEMBERS or external:
            return Binding(BindKind.EXTERNAL, name=display)
        return Binding(BindKind.UNRESOLVED, name=display, reason=f"'{t.info.qualified_name}' has no member '{name}'")

    def _bind_platform_member(self, t: Optional[BoundType], name: str, display: str) -> Binding:
        extensions = self._extension_methods(name, t)
        if extensions:
            return Binding(BindKind.METHODS, members=extensions, receiver=t, is_extension=True, name=display)
        return Binding(BindKind.EXTERNAL, type=self._platform_member_type(t, name), name=display)

    def _bind_unknown_member(self, name: str, display: str) -> Binding:
        if name in OBJECT_MEMBERS:
            return Binding(BindKind.EXTERNAL, name=display)
        refs = self._members_by_name.get(name, [])
        if not refs:
            return Binding(BindKind.EXTERNAL, name=display)
        candidates = list(dict.fromkeys(self.member_symbol(r) for r in refs))
        return Binding(BindKind.AMBIGUOUS, candidates=candidates, members=list(refs), name=display)

    def _platform_member_type(self, t: Optional[BoundType], name: str) -> Optional[BoundType]:
        if t is None:
            return None
        simple = t.simple_name
        if t.rank:
            return BoundType("int") if name in ("Length", "Rank") else None
        if name == "Count" and (simple in SEQUENCE_TYPES or simple in MAP_TYPES):
            return BoundType("int")
        if simple == "string" and name == "Length":
            return BoundType("int")
        if simple == "KeyValuePair" and len(t.args) == 2 and name in ("Key", "Value"):
            return t.args[0] if name == "Key" else t.args[1]
        if simple in MAP_TYPES and len(t.args) == 2 and name in ("Keys", "Values"):
            return BoundType("IEnumerable", args=[t.args[0] if name == "Keys" else t.args[1]])
        if simple == "(tuple)" and name.startswith("Item") and name[4:].isdigit():
            index = int(name[4:]) - 1
            return t.args[index] if 0 <= index < len(t.args) else None
        return None

    def _indexed_type(self, t: Optional[BoundType]) -> Optional[BoundType]:
        if t is None:
            return None
        if t.rank:
            return t.with_rank(t.rank - 1)
        if t.info is not None:
            indexers = self._indexers.get(t.info.qualified_name)
            if indexers:
                return self._member_type(indexers[0], t)
            return self._element_of(t)
        if t.simple_name in MAP_TYPES and len(t.args) == 2:
            return t.args[1]
        return t.element()

    def _bind_invocation(self, expr: InvocationExpr) -> Binding:
        self.resolve(expr)
        chosen = self._chosen.get(id(expr))
        if chosen is not None:
            ref, receiver = chosen
            return Binding(BindKind.VALUE, type=self._member_type(ref, receiver))
        callee = expr.callee
        if isinstance(callee, MemberAccessExpr):
            receiver = self.type_of(callee.target)
            return Binding(BindKind.VALUE, type=self._platform_call_type(receiver, callee.name, expr.args))
        return Binding(BindKind.VALUE)

    def _platform_call_type(self, receiver: Optional[BoundType], name: str, args: List[Expr]) -> Optional[BoundType]:
        element = self._element_of(receiver)
        if element is None:
            return None
        if name in ELEMENT_METHODS or (name in ("Min", "Max") and not args):
            return element
        if name in SEQUENCE_METHODS:
            return BoundType("IEnumerable", args=[element])
        if name == "ToList":
            return BoundType("List", args=[element])
        if name == "ToHashSet":
            return BoundType("HashSet", args=[element])
        if name == "ToArray":
            return element.with_rank(element.rank + 1)
        return None

    def _value_type(self, binding: Binding) -> Optional[BoundType]:
        if binding.kind in (BindKind.VALUE, BindKind.EXTERNAL):
            return binding.type
        return None

    # --- resolution ---

    def resolve(self, expr: Expr) -> Optional[Symbol]:
        """
        The Symbol an invocation, object creation, member access or name refers to.
        Returns None for expressions that do not name a symbol (locals, literals, groups).
        """
        key = id(expr)
        if key in self._symbols:
            return self._symbols[key]
        self._symbols[key] = None
        symbol: Optional[Symbol] = None
        if id(expr) in self._sites:
            if isinstance(expr, InvocationExpr):
                symbol = self._resolve_invocation(expr)
            elif isinstance(expr, ObjectCreationExpr):
                symbol = self._resolve_creation(expr)
            elif isinstance(expr, (MemberAccessExpr, NameExpr)):
                parent = self._parents.get(key)
                if isinstance(parent, InvocationExpr) and parent.callee is expr:
                    symbol = self.resolve(parent)
                else:
                    symbol = self._binding_symbol(self.bind(expr))
        self._symbols[key] = symbol
        return symbol

    def _binding_symbol(self, binding: Binding) -> Optional[Symbol]:
        kind = binding.kind
        if kind is BindKind.VALUE:
            return self.member_symbol(binding.members[0]) if binding.members else None
        if kind is BindKind.METHODS:
            if len(binding.members) == 1:
                return self.member_symbol(binding.members[0])
            return Symbol.ambiguous(binding.name, [self.member_symbol(r) for r in binding.members])
        if kind is BindKind.TYPE:
            t = binding.type
            if t is not None and t.info is not None:
                return self.type_symbol(t.info)
            return Symbol.external(binding.name)
        if kind is BindKind.NAMESPACE:
            return Symbol(binding.namespace or binding.name, SymbolKind.NAMESPACE)
        if kind is BindKind.EXTERNAL:
            return Symbol.external(binding.name)
        if kind is BindKind.AMBIGUOUS:
            return Symbol.ambiguous(binding.name, binding.candidates)
        return Symbol.unresolved(binding.name, binding.reason or f"cannot resolve '{binding.name}'")

    def _resolve_invocation(self, expr: InvocationExpr) -> Symbol:
        site = self._sites[id(expr)]
        callee = expr.callee
        if isinstance(callee, (ThisExpr, BaseExpr)):
            # constructor initializer
            target = site.info if isinstance(callee, ThisExpr) else self._base_class(site.info)
            if target is None:
                return Symbol.external(f"{site.info.decl.name}.base")
            return self._choose_constructor(target, expr, site)

        binding = self.bind(callee)
        display = binding.name or _display(callee)
        if binding.kind is BindKind.METHODS:
            return self._choose_overload(binding.members, expr, display, binding.receiver, binding.is_extension)
        if binding.kind is BindKind.VALUE:
            # delegate invocation
            return Symbol.external(f"{display}.Invoke")
        if binding.kind is BindKind.EXTERNAL:
            return Symbol.external(display)
        if binding.kind is BindKind.AMBIGUOUS:
            return Symbol.ambiguous(display, binding.candidates)
        if binding.kind is BindKind.UNRESOLVED:
            return Symbol.unresolved(display, binding.reason or f"cannot resolve '{display}'")
        return Symbol.unresolved(display, f"'{display}' is not invocable")

    def _resolve_creation(self, expr: ObjectCreationExpr) -> Symbol:
        site = self._sites[id(expr)]
        if expr.type is None:
            target = self.type_of(expr) or self._argument_target(expr)
            if target is None:
                return Symbol.unresolved("new()", "cannot infer the target type of 'new()'")
            if target.info is None:
                return Symbol.external(target.format())
            return self._choose_constructor(target.info, expr, site)

        look = self._resolve_qualified(expr.type.parts, len(expr.type.type_args), site.info, site.member,
                                       site.info.levels) if expr.type.name not in PREDEFINED_TYPES else TypeLookup()
        if expr.type.alias == "global":
            found = self._type_named(expr.type.name, len(expr.type.type_args))
            look = TypeLookup([found] if found is not None else [])
        if not look.infos or look.is_type_param:
            return Symbol.external(expr.type.format())
        if len(look.infos) > 1:
            candidates = [self._constructor_candidates(i)[0] for i in look.infos]
            return Symbol.ambiguous(expr.type.format(), candidates)
        return self._choose_constructor(look.infos[0], expr, site)

    def _argument_target(self, expr: ObjectCreationExpr) -> Optional[BoundType]:
        # Target type of `new()` passed as an argument: the chosen overload's parameter type.
        parent = self._parents.get(id(expr))
        if not isinstance(parent, (InvocationExpr, ObjectCreationExpr)) or not any(a is expr for a in parent.args):
            return None
        self.resolve(parent)
        chosen = self._chosen.get(id(parent))
        if chosen is None:
            return None
        ref, _ = chosen
        index = next(i for i, a in enumerate(parent.args) if a is expr)
        if self._is_extension_method(ref.info, ref.member):
            index += 1
        param = self._parameter_at(ref.member.params, index)
        if param is None:
            return None
        return self.resolve_type_ref(param.type, ref.info, ref.member)

    def _constructor_candidates(self, info: TypeInfo) -> List[Symbol]:
        ctors = [r for r in self._constructors.get(info.qualified_name, []) if not r.member.is_static]
        if not ctors:
            return [self._implicit_constructor(info)]
        return [self.member_symbol(r) for r in ctors]

    def _choose_constructor(self, info: TypeInfo, expr: InvocationExpr | ObjectCreationExpr,
                            site: ExprSite) -> Symbol:
        ctors = [r for r in self._constructors.get(info.qualified_name, []) if not r.member.is_static]
        display = f"{info.qualified_name}.{info.decl.name}"
        if not ctors or (not expr.args and info.decl.keyword in ("struct", "record struct")
                         and all(r.member.params for r in ctors)):
            implicit = self._implicit_constructor(info)
            if expr.args:
                return Symbol.ambiguous(display, [implicit])
            return implicit
        return self._choose_overload(ctors, expr, display, self._self_type(info), False)

    def _choose_overload(
            self,
            refs: List[MemberRef],
            expr: InvocationExpr | ObjectCreationExpr,
            display: str,
            receiver: Optional[BoundType],
            is_extension: bool,
    ) -> Symbol:
        """
        Overload selection: by arity first, then by how well argument types
        match parameter types. Ties and arity failures keep every candidate.
        """
        args = expr.args
        offset = 1 if is_extension else 0
        viable = [r for r in refs if self._arity_ok(r.member.params[offset:], len(args))]
        if not viable:
            return Symbol.ambiguous(display, [self.member_symbol(r) for r in refs])
        if len(viable) > 1:
            arg_types = [self.type_of(a) for a in args]
            scored: List[Tuple[int, MemberRef]] = []
            for ref in viable:
                score = self._match_score(ref, ref.member.params[offset:], arg_types)
                if score is not None:
                    scored.append((score, ref))
            if scored:
                best = max(score for score, _ in scored)
                viable = [ref for score, ref in scored if score == best]
        if len(viable) > 1:
            return Symbol.ambiguous(display, [self.member_symbol(r) for r in viable])
        chosen = viable[0]
        self._chosen[id(expr)] = (chosen, receiver)
        return self.member_symbol(chosen)

    def _arity_ok(self, params: List[Param], count: int) -> bool:
        required = sum(1 for p in params if not p.has_default and not p.is_params)
        if any(p.is_params for p in params):
            return count >= required
        return required <= count <= len(params)

    def _parameter_at(self, params: List[Param], index: int) -> Optional[Param]:
        if index < len(params):
            return params[index]
        if params and params[-1].is_params:
            return params[-1]
        return None

    def _match_score(self, ref: MemberRef, params: List[Param], arg_types: List[Optional[BoundType]]) -> Optional[int]:
        score = 0
        for i, arg_type in enumerate(arg_types):
            param = self._parameter_at(params, i)
            if arg_type is None or param is None:
                continue
            param_type = self.resolve_type_ref(param.type, ref.info, ref.member)
            if param_type is None:
                continue
            compat = self._compatibility(arg_type, param_type)
            if param.is_params and param_type.rank:
                element = self._compatibility(arg_type, param_type.with_rank(param_type.rank - 1))
                if element is not None and (compat is None or element > compat):
                    compat = element
            if compat is None:
                return None
            score += compat
        return score

    def _compatibility(self, arg: BoundType, param: BoundType) -> Optional[int]:
        """2: identical, 1: convertible, 0: unknown, None: incompatible."""
        if param.is_type_param or arg.is_type_param:
            return 1
        if arg.name == "null":
            return 1 if param.name not in NUMERIC_WIDENING and param.name != "bool" else None
        if arg.rank != param.rank:
            return None if arg.rank or param.rank else 0
        if arg.info is not None and param.info is not None:
            if arg.info.qualified_name == param.info.qualified_name:
                return 2
            return 1 if self._is_subtype(arg.info, param.info) else None
        if arg.info is None and param.info is None:
            if arg.name == param.name:
                return 2
            if param.name in NUMERIC_WIDENING.get(arg.name, ()):
                return 1
            if param.name in ("object", "dynamic"):
                return 1
            if arg.name in PREDEFINED_TYPES and param.name in PREDEFINED_TYPES:
                return None
            return 0
        if param.name in ("object", "dynamic"):
            return 1
        if arg.name in PREDEFINED_TYPES or param.name in PREDEFINED_TYPES:
            return None
        return 0


def child_expressions(expr: Expr) -> List[Expr]:
    """Direct sub-expressions of an expression, in source order."""
    if isinstance(expr, MemberAccessExpr):
        return [expr.target]
    if isinstance(expr, InvocationExpr):
        return [expr.callee] + list(expr.args)
    if isinstance(expr, ObjectCreationExpr):
        return list(expr.args) + list(expr.initializer)
    if isinstance(expr, ArrayCreationExpr):
        return list(expr.items)
    if isinstance(expr, ElementAccessExpr):
        return [expr.target] + list(expr.args)
    if isinstance(expr, GroupExpr):
        return list(expr.items)
    if isinstance(expr, InterpolatedStringExpr):
        return list(expr.holes)
    return []


def _display(expr: Expr) -> str:
    if isinstance(expr, NameExpr):
        return expr.name
    if isinstance(expr, MemberAccessExpr):
        return f"{_display(expr.target)}.{expr.name}"
    if isinstance(expr, InvocationExpr):
        return f"{_display(expr.callee)}(...)"
    if isinstance(expr, ThisExpr):
        return "this"
    if isinstance(expr, BaseExpr):
        return "base"
    return "<expression>"
