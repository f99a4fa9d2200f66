"""Symbol provider boundary consumed by the IR builder."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

from typediagram.ir.model import TypeKind

ROOT_TYPE_ID = 'T:System.Object'


class Accessibility(Enum):
    """Declared accessibility of a type symbol."""

    PUBLIC = 'public'
    INTERNAL = 'internal'
    PROTECTED = 'protected'
    PRIVATE = 'private'
    PROTECTED_INTERNAL = 'protected internal'
    PRIVATE_PROTECTED = 'private protected'
    NONE = 'none'

    @property
    def rank(self) -> int:
        """Visibility rank; higher is more visible."""
        return _ACCESS_RANKS[self]


_ACCESS_RANKS: dict[Accessibility, int] = {
    Accessibility.PUBLIC: 4,
    Accessibility.INTERNAL: 3,
    Accessibility.PROTECTED_INTERNAL: 3,
    Accessibility.PROTECTED: 2,
    Accessibility.PRIVATE: 1,
    Accessibility.PRIVATE_PROTECTED: 1,
    Accessibility.NONE: 1,
}


@dataclass(frozen=True, slots=True)
class TypeRef:
    """Reference to a base type or interface.

    ``doc_id`` is ``None`` when the reference cannot be resolved to an
    identifier; ``is_root`` marks the universal root type.
    """

    doc_id: str | None
    is_root: bool = False

    @classmethod
    def root(cls) -> TypeRef:
        """Reference to ``System.Object``."""
        return cls(ROOT_TYPE_ID, is_root=True)


@dataclass(frozen=True, slots=True)
class TypeSymbol:
    """Language-agnostic view of one type declaration."""

    name: str
    namespace: str
    kind: TypeKind
    accessibility: Accessibility
    doc_id: str | None = None
    is_abstract: bool = False
    is_sealed: bool = False
    is_static: bool = False
    in_source: bool = True
    base_type: TypeRef | None = None
    interfaces: tuple[TypeRef, ...] = ()
    nested: tuple[TypeSymbol, ...] = ()


@dataclass(frozen=True, slots=True)
class NamespaceSymbol:
    """A namespace with its directly contained types and child namespaces."""

    name: str
    types: tuple[TypeSymbol, ...] = ()
    namespaces: tuple[NamespaceSymbol, ...] = ()


@dataclass(frozen=True, slots=True)
class CompiledUnit:
    """Symbols of one build unit.

    ``global_namespace`` is ``None`` when no semantic model could be produced.
    """

    name: str
    global_namespace: NamespaceSymbol | None


@dataclass(frozen=True, slots=True)
class BuildUnit:
    """A project located by the workspace loader."""

    name: str
    path: str
    sources: tuple[str, ...] = ()


@runtime_checkable
class SymbolProvider(Protocol):
    """Loads build units into symbol trees."""

    def compile(self, unit: BuildUnit) -> CompiledUnit:
        """Return the symbols declared by ``unit``."""
