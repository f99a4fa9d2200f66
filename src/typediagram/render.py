"""Render a solution IR as a Mermaid class diagram."""

from __future__ import annotations

from collections import defaultdict
from enum import Enum

from typediagram.ir.model import RelationIR, RelationKind, SolutionIR, TypeIR, TypeKind

HEADER = 'classDiagram'
GLOBAL_NAMESPACE = 'Global'


class EdgeGlyph(Enum):
    """Arrow tokens used for relation lines."""

    INHERITANCE = '<|--'
    REALIZATION = '..|>'

    @classmethod
    def for_kind(cls, kind: RelationKind) -> EdgeGlyph:
        return cls.INHERITANCE if kind is RelationKind.INHERITANCE else cls.REALIZATION


_KIND_STEREOTYPES: dict[TypeKind, str] = {
    TypeKind.INTERFACE: 'Interface',
    TypeKind.STRUCT: 'struct',
    TypeKind.ENUM: 'Enumeration',
    TypeKind.DELEGATE: 'delegate',
    TypeKind.RECORD_CLASS: 'record',
    TypeKind.RECORD_STRUCT: 'record,struct',
}

_RELATION_ORDER = {RelationKind.INHERITANCE: 0, RelationKind.REALIZATION: 1}


def stereotype(type_ir: TypeIR) -> str | None:
    """Return the stereotype annotation for ``type_ir``, if any."""
    if type_ir.kind in _KIND_STEREOTYPES:
        return _KIND_STEREOTYPES[type_ir.kind]
    if type_ir.is_static:
        return 'static'
    if type_ir.is_abstract:
        return 'Abstract'
    if type_ir.is_sealed:
        return 'sealed'
    return None


def escape_name(name: str) -> str:
    """Strip characters Mermaid cannot take in a namespace or class label."""
    return name.replace('`', '').replace(':', '::')


def external_label(doc_id: str) -> str:
    """Best-effort label for an edge target outside the extracted set.

    ``T:System.Collections.Generic.IList`1`` becomes
    ``System::Collections::Generic::IList1``.
    """
    _, _, tail = doc_id.rpartition(':')
    return escape_name(tail.replace('.', ':'))


def _namespace_label(namespace: str) -> str:
    return namespace if namespace.strip() else GLOBAL_NAMESPACE


def qualified_name(type_ir: TypeIR) -> str:
    """Namespace-qualified display name of a type."""
    return f'{_namespace_label(type_ir.namespace)}::{type_ir.name}'


def _relation_sort_key(relation: RelationIR) -> tuple[str, int, str]:
    return (relation.from_id, _RELATION_ORDER[relation.kind], relation.to_id)


def render_diagram(solution: SolutionIR, direction: str | None = 'LR') -> str:
    """Produce canonical diagram text for ``solution``.

    Args:
        solution: Extracted solution IR
        direction: Layout direction (LR, TB, BT, RL); blank omits the directive

    Returns:
        Diagram text terminated by a newline

    """
    lines = [HEADER]
    if direction and direction.strip():
        lines.append(f'direction {direction}')

    all_types = [t for project in solution.projects for t in project.types]
    groups: dict[str, list[TypeIR]] = defaultdict(list)
    for type_ir in all_types:
        groups[_namespace_label(type_ir.namespace)].append(type_ir)

    for label in sorted(groups):
        lines.append(f'namespace {escape_name(label)} {{')
        for type_ir in sorted(groups[label], key=lambda t: t.name):
            tag = stereotype(type_ir)
            suffix = f' <<{tag}>>' if tag else ''
            lines.append(f'  class {qualified_name(type_ir)}{suffix}')
        lines.append('}')

    types_by_id = {t.id: t for t in all_types}
    for project in solution.projects:
        for relation in sorted(project.relations, key=_relation_sort_key):
            source = types_by_id.get(relation.from_id)
            if source is None:
                continue
            target = types_by_id.get(relation.to_id)
            label = qualified_name(target) if target else external_label(relation.to_id)
            glyph = EdgeGlyph.for_kind(relation.kind).value
            lines.append(f'{qualified_name(source)} {glyph} {label}')

    return '\n'.join(lines) + '\n'
