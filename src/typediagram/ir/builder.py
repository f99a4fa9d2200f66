"""Build the solution IR from symbol trees."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from typediagram.errors import ExtractionError
from typediagram.ir.model import ProjectIR, RelationIR, RelationKind, SolutionIR, TypeIR
from typediagram.ir.symbols import CompiledUnit, NamespaceSymbol, TypeRef, TypeSymbol

logger = logging.getLogger(__name__)

_FLOOR_RANKS = {
    'public': 4,
    'internal': 3,
    'protected': 2,
    'private': 1,
}


def access_rank(min_access: str) -> int:
    """Translate an accessibility floor into a rank.

    Unrecognised values fall back to public-only.
    """
    return _FLOOR_RANKS.get(min_access.strip().lower(), 4)


def type_id(symbol: TypeSymbol) -> str:
    """Return the stable identifier of ``symbol``."""
    return symbol.doc_id or f'{symbol.namespace}.{symbol.name}'


class _ProjectCollector:
    """Accumulates types and relations for a single build unit."""

    def __init__(self, min_rank: int) -> None:
        self.min_rank = min_rank
        self.types: dict[str, TypeIR] = {}
        self.relations: dict[tuple[str, str, str], RelationIR] = {}

    def walk_namespace(self, namespace: NamespaceSymbol) -> None:
        for symbol in namespace.types:
            self.process_type(symbol)
        for child in namespace.namespaces:
            self.walk_namespace(child)

    def process_type(self, symbol: TypeSymbol) -> None:
        if not symbol.in_source:
            return
        if symbol.accessibility.rank < self.min_rank:
            return

        ident = type_id(symbol)
        tir = TypeIR(
            id=ident,
            name=symbol.name,
            namespace=symbol.namespace,
            kind=symbol.kind,
            accessibility=symbol.accessibility.value,
            is_abstract=symbol.is_abstract,
            is_sealed=symbol.is_sealed,
            is_static=symbol.is_static,
        )
        existing = self.types.get(ident)
        self.types[ident] = existing.merge(tir) if existing else tir

        base = symbol.base_type
        if base is not None and not base.is_root:
            self._relate(ident, base, RelationKind.INHERITANCE)
        for interface in symbol.interfaces:
            self._relate(ident, interface, RelationKind.REALIZATION)

        for nested in symbol.nested:
            self.process_type(nested)

    def _relate(self, from_id: str, target: TypeRef, kind: RelationKind) -> None:
        if target.doc_id is None:
            logger.debug('Dropping %s edge from %s: unresolved target', kind.value, from_id)
            return
        relation = RelationIR(from_id, target.doc_id, kind)
        self.relations.setdefault(relation.key, relation)


class IRBuilder:
    """Turns compiled build units into a :class:`SolutionIR`."""

    def __init__(self, min_access: str = 'public') -> None:
        """Initialize the builder.

        Args:
            min_access: Accessibility floor (public, internal, protected or private)

        """
        self.min_access = min_access
        self.min_rank = access_rank(min_access)

    def build_project(self, unit: CompiledUnit) -> ProjectIR:
        """Extract one build unit.

        Args:
            unit: Symbols supplied by a symbol provider

        Returns:
            ProjectIR with retained types and deduplicated relations

        Raises:
            ExtractionError: If the unit has no semantic model

        """
        if unit.global_namespace is None:
            raise ExtractionError(unit.name, 'no compilation available')

        collector = _ProjectCollector(self.min_rank)
        collector.walk_namespace(unit.global_namespace)
        logger.debug(
            'Extracted %d types and %d relations from %s',
            len(collector.types),
            len(collector.relations),
            unit.name,
        )
        return ProjectIR(
            name=unit.name,
            types=tuple(collector.types.values()),
            relations=frozenset(collector.relations.values()),
        )

    def build(self, units: Iterable[CompiledUnit]) -> SolutionIR:
        """Extract every unit in order; the first failure aborts the run."""
        return SolutionIR(projects=tuple(self.build_project(unit) for unit in units))
