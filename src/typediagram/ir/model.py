"""Immutable intermediate representation of a solution's type graph."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum


class TypeKind(Enum):
    """Structural kinds a type declaration can have."""

    CLASS = 'class'
    STRUCT = 'struct'
    INTERFACE = 'interface'
    ENUM = 'enum'
    DELEGATE = 'delegate'
    RECORD_CLASS = 'record_class'
    RECORD_STRUCT = 'record_struct'


class RelationKind(Enum):
    """Structural edges rendered between types."""

    INHERITANCE = 'inheritance'
    REALIZATION = 'realization'


@dataclass(frozen=True, slots=True)
class TypeIR:
    """One extracted type, keyed by its documentation id."""

    id: str
    name: str
    namespace: str
    kind: TypeKind
    accessibility: str
    is_abstract: bool = False
    is_sealed: bool = False
    is_static: bool = False

    def merge(self, other: TypeIR) -> TypeIR:
        """Combine two declarations of the same type.

        Scalar fields come from ``other`` (last write wins); modifier flags are
        OR-ed so the outcome does not depend on declaration order.
        """
        return replace(
            other,
            is_abstract=self.is_abstract or other.is_abstract,
            is_sealed=self.is_sealed or other.is_sealed,
            is_static=self.is_static or other.is_static,
        )


@dataclass(frozen=True, slots=True)
class RelationIR:
    """A directed edge between two type ids."""

    from_id: str
    to_id: str
    kind: RelationKind

    @property
    def key(self) -> tuple[str, str, str]:
        """Composite dedup and ordering key."""
        return (self.from_id, self.to_id, self.kind.value)


@dataclass(frozen=True, slots=True)
class ProjectIR:
    """Types and deduplicated relations of one build unit."""

    name: str
    types: tuple[TypeIR, ...] = ()
    relations: frozenset[RelationIR] = frozenset()

    def find(self, type_id: str) -> TypeIR | None:
        """Return the type with ``type_id`` if this project owns it."""
        return next((t for t in self.types if t.id == type_id), None)


@dataclass(frozen=True, slots=True)
class SolutionIR:
    """Projects in the order they were processed."""

    projects: tuple[ProjectIR, ...] = ()

    @property
    def total_types(self) -> int:
        """Number of types across all projects."""
        return sum(len(p.types) for p in self.projects)

    @property
    def total_relations(self) -> int:
        """Number of relations across all projects."""
        return sum(len(p.relations) for p in self.projects)
