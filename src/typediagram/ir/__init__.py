"""Intermediate Representation (IR) of a solution's type graph.

This module provides:
- Immutable type and relation records
- The symbol provider boundary and a tree-sitter C# provider
- The builder that filters, deduplicates and orders extracted types
"""

from typediagram.ir.builder import IRBuilder
from typediagram.ir.model import ProjectIR, RelationIR, RelationKind, SolutionIR, TypeIR, TypeKind
from typediagram.ir.symbols import (
    Accessibility,
    BuildUnit,
    CompiledUnit,
    NamespaceSymbol,
    SymbolProvider,
    TypeRef,
    TypeSymbol,
)

__all__ = [
    'Accessibility',
    'BuildUnit',
    'CompiledUnit',
    'IRBuilder',
    'NamespaceSymbol',
    'ProjectIR',
    'RelationIR',
    'RelationKind',
    'SolutionIR',
    'SymbolProvider',
    'TypeIR',
    'TypeKind',
    'TypeRef',
    'TypeSymbol',
]
