"""Exception taxonomy shared by extraction, rendering and materialisation."""

from __future__ import annotations


class TypeDiagramError(Exception):
    """Base class for every failure raised by :mod:`typediagram`."""


class ExtractionError(TypeDiagramError):
    """A build unit could not be turned into a symbol tree.

    The whole run is aborted: a diagram missing part of a solution would be
    silently wrong.
    """

    def __init__(self, unit: str, message: str) -> None:
        super().__init__(f'{unit}: {message}')
        self.unit = unit
        self.message = message


class InputError(TypeDiagramError, ValueError):
    """The requested path is neither a project nor a solution descriptor."""


class NotFoundError(TypeDiagramError, FileNotFoundError):
    """A file required for drift comparison does not exist."""

    def __init__(self, path: object) -> None:
        super().__init__(f'File not found: {path}')
        self.path = path
