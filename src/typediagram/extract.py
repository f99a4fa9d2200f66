"""Glue between workspace loading, symbol providers and the IR builder."""

from __future__ import annotations

from pathlib import Path

from typediagram.ir.builder import IRBuilder
from typediagram.ir.model import SolutionIR
from typediagram.ir.symbols import SymbolProvider
from typediagram.workspace import open_workspace

DIAGRAM_SUFFIX = '.mmd'


def extract_solution(
    path: Path | str,
    min_access: str = 'public',
    provider: SymbolProvider | None = None,
) -> SolutionIR:
    """Load a solution or project and build its IR.

    Args:
        path: ``.sln``, ``.slnx`` or ``.csproj`` file
        min_access: Accessibility floor
        provider: Symbol provider; defaults to the tree-sitter C# provider

    Returns:
        SolutionIR with one project per build unit

    """
    units = open_workspace(path)
    if provider is None:
        from typediagram.ir.csharp import CSharpSymbolProvider

        provider = CSharpSymbolProvider()
    builder = IRBuilder(min_access)
    return builder.build(provider.compile(unit) for unit in units)


def default_output_path(path: Path | str) -> Path:
    """Sibling diagram file sharing the descriptor's base name."""
    descriptor = Path(path)
    return descriptor.with_suffix(DIAGRAM_SUFFIX)
