"""typediagram core package.

Extract the type graph of a C# solution into a canonical IR, render it as a
Mermaid class diagram and materialise it only when it changes.
"""

from __future__ import annotations

__version__ = '0.1.0'

from .extract import default_output_path, extract_solution  # noqa: F401
from .materialize import files_equal, write_if_changed  # noqa: F401
from .render import render_diagram  # noqa: F401

__all__: list[str] = [
    '__version__',
    'default_output_path',
    'extract_solution',
    'files_equal',
    'render_diagram',
    'write_if_changed',
]
