"""Locate the build units and source files behind a solution or project path."""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from pathlib import Path

from typediagram.errors import ExtractionError, InputError
from typediagram.ir.symbols import BuildUnit

logger = logging.getLogger(__name__)

SOLUTION_SUFFIXES = ('.sln', '.slnx')
PROJECT_SUFFIX = '.csproj'
SOURCE_GLOB = '**/*.cs'
_EXCLUDED_DIRS = frozenset({'bin', 'obj'})

_SLN_PROJECT = re.compile(
    r'^Project\("\{[^}]+\}"\)\s*=\s*"(?P<name>[^"]+)"\s*,\s*"(?P<path>[^"]+)"',
    re.MULTILINE,
)


def is_solution(path: Path) -> bool:
    """Whether ``path`` names an aggregate descriptor."""
    return path.suffix.lower() in SOLUTION_SUFFIXES


def is_project(path: Path) -> bool:
    """Whether ``path`` names a single C# project."""
    return path.suffix.lower() == PROJECT_SUFFIX


def _local(tag: str) -> str:
    return tag.rsplit('}', 1)[-1]


def solution_projects(solution: Path) -> list[tuple[str, Path]]:
    """Return ``(name, project path)`` for each C# project of a solution.

    Args:
        solution: Path to a ``.sln`` or ``.slnx`` file

    Returns:
        Projects in the order the solution lists them

    """
    base = solution.parent
    projects: list[tuple[str, Path]] = []
    if solution.suffix.lower() == '.slnx':
        try:
            root = ET.parse(solution).getroot()
        except ET.ParseError as e:
            msg = f'Malformed solution file {solution}: {e}'
            raise InputError(msg) from e
        for element in root.iter():
            if _local(element.tag) != 'Project':
                continue
            relative = element.get('Path', '').replace('\\', '/')
            if relative.lower().endswith(PROJECT_SUFFIX):
                projects.append((Path(relative).stem, (base / relative).resolve()))
        return projects

    text = solution.read_text(encoding='utf-8-sig')
    for match in _SLN_PROJECT.finditer(text):
        relative = match.group('path').replace('\\', '/')
        if relative.lower().endswith(PROJECT_SUFFIX):
            projects.append((match.group('name'), (base / relative).resolve()))
    return projects


def _split_items(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip().replace('\\', '/') for item in value.split(';') if item.strip()]


def _expand(project_dir: Path, pattern: str) -> list[Path]:
    if '$(' in pattern:
        logger.debug('Skipping compile item with unevaluated property: %s', pattern)
        return []
    if any(char in pattern for char in '*?'):
        return [p for p in project_dir.glob(pattern) if p.is_file()]
    candidate = project_dir / pattern
    return [candidate] if candidate.is_file() else []


def _is_default_excluded(project_dir: Path, path: Path) -> bool:
    relative = path.relative_to(project_dir)
    return bool(relative.parts) and relative.parts[0].lower() in _EXCLUDED_DIRS


def project_sources(name: str, project: Path) -> tuple[str, ...]:
    """Resolve the C# files compiled by ``project``.

    SDK-style projects include ``**/*.cs`` (minus ``bin`` and ``obj``) unless
    ``EnableDefaultCompileItems`` is false; explicit ``Compile`` items are
    added and removed on top of that.

    Raises:
        ExtractionError: If the project file is missing or malformed

    """
    if not project.is_file():
        raise ExtractionError(name, f'project file not found: {project}')
    try:
        root = ET.parse(project).getroot()
    except (ET.ParseError, OSError) as e:
        raise ExtractionError(name, f'cannot load project {project}: {e}') from e

    project_dir = project.parent
    is_sdk = root.get('Sdk') is not None or any(
        _local(e.tag) == 'Sdk' or (_local(e.tag) == 'Import' and e.get('Sdk'))
        for e in root.iter()
    )
    default_items = is_sdk
    for element in root.iter():
        if _local(element.tag) == 'EnableDefaultCompileItems':
            default_items = default_items and (element.text or '').strip().lower() != 'false'

    sources: dict[Path, None] = {}
    if default_items:
        for path in project_dir.glob(SOURCE_GLOB):
            if path.is_file() and not _is_default_excluded(project_dir, path):
                sources[path.resolve()] = None

    removed: set[Path] = set()
    for element in root.iter():
        if _local(element.tag) != 'Compile':
            continue
        for pattern in _split_items(element.get('Include')):
            for path in _expand(project_dir, pattern):
                sources[path.resolve()] = None
        for pattern in _split_items(element.get('Remove')):
            removed.update(p.resolve() for p in _expand(project_dir, pattern))

    return tuple(sorted(str(p) for p in sources if p not in removed))


def open_workspace(path: Path | str) -> tuple[BuildUnit, ...]:
    """Load the build units named by a solution or project path.

    Args:
        path: ``.sln``, ``.slnx`` or ``.csproj`` file

    Returns:
        One BuildUnit per C# project, in solution order

    Raises:
        InputError: If the path is missing or not a recognised descriptor
        ExtractionError: If a project cannot be loaded

    """
    descriptor = Path(path).resolve()
    if not (is_solution(descriptor) or is_project(descriptor)):
        msg = 'Path must be a .sln, .slnx or .csproj'
        raise InputError(msg)
    if not descriptor.is_file():
        msg = f'Path not found: {descriptor}'
        raise InputError(msg)

    if is_project(descriptor):
        entries = [(descriptor.stem, descriptor)]
    else:
        entries = solution_projects(descriptor)

    units = tuple(
        BuildUnit(name=name, path=str(project), sources=project_sources(name, project))
        for name, project in entries
    )
    logger.debug('Opened %s with %d projects', descriptor, len(units))
    return units
