"""Tree-sitter based symbol provider for C# build units.

There is no compiler semantic model in Python, so declarations are read from
the syntax tree and base-list references are resolved by name against the
unit's own types, the enclosing namespaces and the file's using directives.
References that do not resolve inside the unit are kept as external ids.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tree_sitter_c_sharp as tscsharp
from tree_sitter import Language, Node, Parser, Tree

from typediagram.errors import ExtractionError
from typediagram.ir.model import TypeKind
from typediagram.ir.symbols import (
    Accessibility,
    BuildUnit,
    CompiledUnit,
    NamespaceSymbol,
    TypeRef,
    TypeSymbol,
)

logger = logging.getLogger(__name__)

_TYPE_NODES: dict[str, TypeKind] = {
    'class_declaration': TypeKind.CLASS,
    'struct_declaration': TypeKind.STRUCT,
    'interface_declaration': TypeKind.INTERFACE,
    'enum_declaration': TypeKind.ENUM,
    'delegate_declaration': TypeKind.DELEGATE,
    'record_declaration': TypeKind.RECORD_CLASS,
    'record_struct_declaration': TypeKind.RECORD_STRUCT,
}

# Base types the compiler supplies when none is written.
_IMPLICIT_BASES: dict[TypeKind, str] = {
    TypeKind.STRUCT: 'T:System.ValueType',
    TypeKind.RECORD_STRUCT: 'T:System.ValueType',
    TypeKind.ENUM: 'T:System.Enum',
    TypeKind.DELEGATE: 'T:System.MulticastDelegate',
}

_ROOT_NAMES = frozenset({'object', 'System.Object'})
_SEALED_KINDS = frozenset(
    {TypeKind.STRUCT, TypeKind.ENUM, TypeKind.DELEGATE, TypeKind.RECORD_STRUCT}
)
_CLASS_KINDS = frozenset({TypeKind.CLASS, TypeKind.RECORD_CLASS})

_language: Language | None = None
_language_lock = threading.Lock()


def csharp_language() -> Language:
    """Return the process-wide C# grammar, loading it on first use."""
    global _language  # noqa: PLW0603
    if _language is None:
        with _language_lock:
            if _language is None:
                _language = Language(tscsharp.language())
    return _language


def _text(node: Node | None) -> str:
    if node is None or node.text is None:
        return ''
    return node.text.decode('utf-8', errors='replace')


def _join(*parts: str) -> str:
    return '.'.join(p for p in parts if p)


def _segment(chars: list[str], arity: int) -> str:
    name = ''.join(chars).removeprefix('@')
    if not name.isidentifier():
        return ''
    return f'{name}`{arity}' if arity else name


def doc_key(text: str) -> str | None:
    """Normalise a written type name into documentation-id form.

    ``global::Acme.Repo<int, List<T>>`` becomes ``Acme.Repo`2``. Returns None
    for names that cannot denote a named type (arrays, tuples, pointers).
    """
    compact = ''.join(text.split()).removeprefix('global::').replace('::', '.')
    compact = compact.removesuffix('?')
    segments: list[str] = []
    current: list[str] = []
    depth = 0
    arity = 0
    for char in compact:
        if char == '<':
            depth += 1
            if depth == 1:
                arity = 1
        elif char == '>':
            depth -= 1
        elif depth > 0:
            if char == ',' and depth == 1:
                arity += 1
        elif char == '.':
            segments.append(_segment(current, arity))
            current, arity = [], 0
        else:
            current.append(char)
    segments.append(_segment(current, arity))
    if depth != 0 or not all(segments):
        return None
    return '.'.join(segments)


def _looks_like_interface(doc_id: str) -> bool:
    _, _, key = doc_id.rpartition(':')
    bare = key.rsplit('.', 1)[-1].split('`', 1)[0]
    return len(bare) >= 2 and bare[0] == 'I' and bare[1].isupper()


def _accessibility(modifiers: set[str], *, nested: bool) -> Accessibility:
    if 'public' in modifiers:
        return Accessibility.PUBLIC
    if 'protected' in modifiers and 'internal' in modifiers:
        return Accessibility.PROTECTED_INTERNAL
    if 'private' in modifiers and 'protected' in modifiers:
        return Accessibility.PRIVATE_PROTECTED
    if 'internal' in modifiers or 'file' in modifiers:
        return Accessibility.INTERNAL
    if 'protected' in modifiers:
        return Accessibility.PROTECTED
    if 'private' in modifiers:
        return Accessibility.PRIVATE
    return Accessibility.PRIVATE if nested else Accessibility.INTERNAL


@dataclass
class ParsedSource:
    """A single C# file's parse state."""

    path: Path
    tree: Tree
    syntax_errors: tuple[dict[str, Any], ...] = ()

    def has_errors(self) -> bool:
        """Check if the file has syntax errors."""
        return len(self.syntax_errors) > 0


@dataclass
class _FileUsings:
    namespaces: list[str] = field(default_factory=list)
    aliases: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class _Scope:
    """Name lookup context of one base-list entry."""

    namespace: str
    enclosing: tuple[str, ...]
    type_params: frozenset[str]
    usings: _FileUsings


@dataclass
class _Declaration:
    key: str
    name: str
    namespace: str
    kind: TypeKind
    nested_in: str | None
    type_params: tuple[str, ...] = ()
    modifiers: set[str] = field(default_factory=set)
    bases: list[tuple[str, _Scope]] = field(default_factory=list)
    nested: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class _Resolved:
    ref: TypeRef
    key: str | None = None
    kind: TypeKind | None = None

    @property
    def is_interface(self) -> bool:
        if self.kind is not None:
            return self.kind is TypeKind.INTERFACE
        return self.ref.doc_id is not None and _looks_like_interface(self.ref.doc_id)


class _UnitScan:
    """Collects declarations of one build unit and resolves their references."""

    def __init__(self) -> None:
        self.declarations: dict[str, _Declaration] = {}
        self.global_usings = _FileUsings()
        self._interfaces: dict[str, tuple[TypeRef, ...]] = {}

    # Declaration discovery ---------------------------------------------------

    def scan(self, root: Node) -> None:
        self._walk(root, _FileUsings(), '', None)

    def _walk(
        self,
        node: Node,
        usings: _FileUsings,
        namespace: str,
        parent: _Declaration | None,
    ) -> None:
        current = namespace
        for child in node.children:
            kind = child.type
            if kind == 'using_directive':
                self._add_using(child, usings)
            elif kind == 'namespace_declaration':
                name = _text(child.child_by_field_name('name'))
                self._walk(child, usings, _join(current, name), parent)
            elif kind == 'file_scoped_namespace_declaration':
                # Members may be children of the declaration or its siblings.
                current = _join(namespace, _text(child.child_by_field_name('name')))
                self._walk(child, usings, current, parent)
            elif kind in ('declaration_list', 'ERROR'):
                self._walk(child, usings, current, parent)
            elif kind in _TYPE_NODES:
                self._declare(child, usings, current, parent)

    def _add_using(self, node: Node, usings: _FileUsings) -> None:
        body = _text(node).strip().removesuffix(';').strip()
        target = usings
        if body.startswith('global '):
            body = body.removeprefix('global ').strip()
            target = self.global_usings
        body = body.removeprefix('using').strip()
        if body.startswith('static '):
            return
        if '=' in body:
            alias, _, aliased = body.partition('=')
            key = doc_key(aliased)
            if key:
                target.aliases[alias.strip()] = key
            return
        key = doc_key(body)
        if key and key not in target.namespaces:
            target.namespaces.append(key)

    def _declare(
        self,
        node: Node,
        usings: _FileUsings,
        namespace: str,
        parent: _Declaration | None,
    ) -> None:
        name = _text(node.child_by_field_name('name'))
        if not name:
            return
        kind = _TYPE_NODES[node.type]
        if kind is TypeKind.RECORD_CLASS and any(c.type == 'struct' for c in node.children):
            kind = TypeKind.RECORD_STRUCT

        type_params = self._type_parameters(node)
        arity_name = f'{name}`{len(type_params)}' if type_params else name
        key = _join(parent.key if parent else namespace, arity_name)

        declaration = self.declarations.get(key)
        if declaration is None:
            declaration = _Declaration(
                key=key,
                name=name,
                namespace=namespace,
                kind=kind,
                nested_in=parent.key if parent else None,
                type_params=type_params,
            )
            self.declarations[key] = declaration
            if parent is not None:
                parent.nested.append(key)

        declaration.modifiers.update(
            _text(child).strip() for child in node.children if child.type == 'modifier'
        )

        enclosing: list[str] = []
        visible_params: set[str] = set(type_params)
        owner = parent
        while owner is not None:
            enclosing.append(owner.key)
            visible_params.update(owner.type_params)
            owner = self.declarations.get(owner.nested_in) if owner.nested_in else None
        scope = _Scope(namespace, tuple(enclosing), frozenset(visible_params), usings)

        if kind is not TypeKind.ENUM:
            for entry in self._base_entries(node):
                declaration.bases.append((entry, scope))

        for child in node.children:
            if child.type == 'declaration_list':
                self._walk(child, usings, namespace, declaration)

    @staticmethod
    def _type_parameters(node: Node) -> tuple[str, ...]:
        params: list[str] = []
        for child in node.children:
            if child.type != 'type_parameter_list':
                continue
            for param in child.named_children:
                if param.type != 'type_parameter':
                    continue
                name_node = param.child_by_field_name('name')
                text = _text(name_node) if name_node else _text(param).split()[-1]
                params.append(text)
        return tuple(params)

    @staticmethod
    def _base_entries(node: Node) -> list[str]:
        entries: list[str] = []
        for child in node.children:
            if child.type != 'base_list':
                continue
            for entry in child.named_children:
                if entry.type in ('comment', 'argument_list'):
                    continue
                if entry.type == 'primary_constructor_base_type':
                    entry = entry.named_children[0] if entry.named_children else entry
                text = _text(entry).strip()
                if text:
                    entries.append(text)
        return entries

    # Reference resolution ----------------------------------------------------

    def _resolve(self, written: str, scope: _Scope) -> _Resolved:
        key = doc_key(written)
        if key is None or key in scope.type_params:
            return _Resolved(TypeRef(None))

        head, _, rest = key.partition('.')
        for aliases in (scope.usings.aliases, self.global_usings.aliases):
            if head in aliases:
                key = _join(aliases[head], rest)
                break

        candidates = [_join(outer, key) for outer in scope.enclosing]
        parts = scope.namespace.split('.') if scope.namespace else []
        candidates.extend(_join(*parts[:depth], key) for depth in range(len(parts), -1, -1))
        for using in self._all_usings(scope):
            candidates.append(_join(using, key))

        for candidate in candidates:
            declaration = self.declarations.get(candidate)
            if declaration is not None:
                return _Resolved(TypeRef(f'T:{candidate}'), candidate, declaration.kind)

        if key in _ROOT_NAMES or (key == 'Object' and 'System' in self._all_usings(scope)):
            return _Resolved(TypeRef.root())
        return _Resolved(TypeRef(f'T:{key}'))

    def _all_usings(self, scope: _Scope) -> list[str]:
        return [*scope.usings.namespaces, *self.global_usings.namespaces]

    def _split_bases(
        self, declaration: _Declaration
    ) -> tuple[_Resolved | None, list[_Resolved]]:
        base: _Resolved | None = None
        interfaces: list[_Resolved] = []
        seen: set[str | None] = set()
        for text, scope in declaration.bases:
            entry = self._resolve(text, scope)
            # Partial declarations may repeat the same base list.
            if entry.ref.doc_id in seen:
                continue
            seen.add(entry.ref.doc_id)
            if declaration.kind in _CLASS_KINDS and base is None and not entry.is_interface:
                base = entry
            else:
                interfaces.append(entry)
        return base, interfaces

    def _base_type(self, declaration: _Declaration, base: _Resolved | None) -> TypeRef | None:
        if base is not None:
            return base.ref
        if declaration.kind in _CLASS_KINDS:
            return TypeRef.root()
        if declaration.kind in _IMPLICIT_BASES:
            return TypeRef(_IMPLICIT_BASES[declaration.kind])
        return None

    def all_interfaces(
        self, key: str, visiting: frozenset[str] = frozenset()
    ) -> tuple[TypeRef, ...]:
        """Transitive interface set of a declared type, in discovery order."""
        if key in self._interfaces:
            return self._interfaces[key]
        if key in visiting:
            return ()
        visiting = visiting | {key}
        base, interfaces = self._split_bases(self.declarations[key])

        collected: dict[str | None, TypeRef] = {}
        for entry in interfaces:
            collected.setdefault(entry.ref.doc_id, entry.ref)
            if entry.key is not None:
                for ref in self.all_interfaces(entry.key, visiting):
                    collected.setdefault(ref.doc_id, ref)
        if base is not None and base.key is not None:
            for ref in self.all_interfaces(base.key, visiting):
                collected.setdefault(ref.doc_id, ref)

        result = tuple(collected.values())
        self._interfaces[key] = result
        return result

    # Symbol materialisation --------------------------------------------------

    def _symbol(self, declaration: _Declaration) -> TypeSymbol:
        modifiers = declaration.modifiers
        kind = declaration.kind
        is_static = 'static' in modifiers
        base, _ = self._split_bases(declaration)
        return TypeSymbol(
            name=declaration.name,
            namespace=declaration.namespace,
            kind=kind,
            accessibility=_accessibility(modifiers, nested=declaration.nested_in is not None),
            doc_id=f'T:{declaration.key}',
            is_abstract='abstract' in modifiers or kind is TypeKind.INTERFACE or is_static,
            is_sealed='sealed' in modifiers or kind in _SEALED_KINDS or is_static,
            is_static=is_static,
            base_type=self._base_type(declaration, base),
            interfaces=self.all_interfaces(declaration.key),
            nested=tuple(self._symbol(self.declarations[k]) for k in declaration.nested),
        )

    def global_namespace(self) -> NamespaceSymbol:
        """Arrange top-level declarations into a namespace tree."""
        by_namespace: dict[str, list[TypeSymbol]] = {}
        for declaration in self.declarations.values():
            if declaration.nested_in is None:
                symbol = self._symbol(declaration)
                by_namespace.setdefault(declaration.namespace, []).append(symbol)

        children: dict[str, set[str]] = {}
        for namespace in by_namespace:
            parts = namespace.split('.') if namespace else []
            for depth in range(len(parts)):
                parent = '.'.join(parts[:depth])
                children.setdefault(parent, set()).add('.'.join(parts[: depth + 1]))

        def build(namespace: str) -> NamespaceSymbol:
            return NamespaceSymbol(
                name=namespace.rsplit('.', 1)[-1],
                types=tuple(by_namespace.get(namespace, ())),
                namespaces=tuple(build(child) for child in sorted(children.get(namespace, ()))),
            )

        return build('')


class CSharpSymbolProvider:
    """Loads C# build units into symbol trees with tree-sitter."""

    def __init__(self) -> None:
        """Initialize the provider with the shared C# grammar."""
        self._parser = Parser(csharp_language())

    def _extract_syntax_errors(self, tree: Tree) -> tuple[dict[str, Any], ...]:
        """Extract syntax errors from parse tree.

        Args:
            tree: Parsed tree

        Returns:
            Tuple of error dictionaries

        """
        errors = []

        def visit_node(node: Node) -> None:
            if node.type == 'ERROR' or node.is_missing:
                errors.append(
                    {
                        'type': node.type,
                        'start': node.start_point,
                        'end': node.end_point,
                        'text': _text(node),
                    }
                )
            for child in node.children:
                visit_node(child)

        visit_node(tree.root_node)
        return tuple(errors)

    def parse_file(self, path: Path) -> ParsedSource:
        """Parse a single C# file with error recovery.

        Args:
            path: Path to the file to parse

        Returns:
            ParsedSource with the syntax tree and any syntax errors

        Raises:
            ValueError: If the file cannot be read

        """
        try:
            content = path.read_bytes()
        except OSError as e:
            msg = f'Failed to read file {path}: {e}'
            raise ValueError(msg) from e

        tree = self._parser.parse(content)
        return ParsedSource(path=path, tree=tree, syntax_errors=self._extract_syntax_errors(tree))

    def compile(self, unit: BuildUnit) -> CompiledUnit:
        """Scan every source file of ``unit`` and return its symbols.

        Raises:
            ExtractionError: If a source file cannot be read

        """
        scan = _UnitScan()
        for source in unit.sources:
            try:
                parsed = self.parse_file(Path(source))
            except ValueError as e:
                raise ExtractionError(unit.name, str(e)) from e
            if parsed.has_errors():
                logger.warning(
                    '%s: %d syntax errors in %s; declarations are extracted best-effort',
                    unit.name,
                    len(parsed.syntax_errors),
                    source,
                )
            scan.scan(parsed.tree.root_node)

        logger.debug(
            '%s: %d declarations in %d files',
            unit.name,
            len(scan.declarations),
            len(unit.sources),
        )
        return CompiledUnit(name=unit.name, global_namespace=scan.global_namespace())
