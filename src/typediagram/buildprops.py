"""Edit MSBuild documents that switch diagram emission on or off.

Each helper loads the whole document, changes one property or package
reference, and saves it through :func:`write_if_changed`, so an edit that
changes nothing leaves the file untouched.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from pathlib import Path

from typediagram.materialize import write_if_changed

logger = logging.getLogger(__name__)

MSBUILD_NAMESPACE = 'http://schemas.microsoft.com/developer/msbuild/2003'
PROPS_FILENAME = 'Directory.Build.props'
ENABLED_PROPERTY = 'TypeDiagramEnabled'

DEFAULT_PROPS = f"""<Project xmlns="{MSBUILD_NAMESPACE}">
  <PropertyGroup>
  </PropertyGroup>
  <ItemGroup>
  </ItemGroup>
</Project>
"""

ET.register_namespace('', MSBUILD_NAMESPACE)


def _prefix(root: ET.Element) -> str:
    return root.tag[: root.tag.index('}') + 1] if root.tag.startswith('{') else ''


def _load(path: Path) -> tuple[ET.ElementTree, bool]:
    parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True))
    tree = ET.parse(path, parser=parser)
    has_declaration = path.read_text(encoding='utf-8-sig').lstrip().startswith('<?xml')
    return tree, has_declaration


def _save(path: Path, tree: ET.ElementTree, has_declaration: bool) -> bool:
    ET.indent(tree, space='  ')
    body = ET.tostring(tree.getroot(), encoding='unicode')
    header = '<?xml version="1.0" encoding="utf-8"?>\n' if has_declaration else ''
    return write_if_changed(path, f'{header}{body}\n')


def _first_or_create(root: ET.Element, tag: str, *, unconditional: bool = False) -> ET.Element:
    for element in root.findall(tag):
        if not unconditional or element.get('Condition') is None:
            return element
    return ET.SubElement(root, tag)


def find_repo_root(start: Path) -> Path | None:
    """Return the nearest ancestor of ``start`` holding a ``.git`` entry."""
    for candidate in (start, *start.parents):
        if (candidate / '.git').exists():
            return candidate
    return None


def find_directory_build_props(start: Path) -> Path | None:
    """Return the nearest ``Directory.Build.props`` at or above ``start``."""
    for candidate in (start, *start.parents):
        props = candidate / PROPS_FILENAME
        if props.is_file():
            return props
    return None


def find_or_create_directory_build_props(start: Path) -> Path:
    """Return the repository-wide props file, creating an empty one if needed."""
    root = find_repo_root(start) or start
    props = root / PROPS_FILENAME
    if not props.exists():
        write_if_changed(props, DEFAULT_PROPS)
        logger.info('Created %s', props)
    return props


def find_solution(directory: Path) -> Path | None:
    """Return the first solution file directly inside ``directory``."""
    candidates = sorted(directory.glob('*.sln')) + sorted(directory.glob('*.slnx'))
    return candidates[0] if candidates else None


def upsert_property(path: Path, name: str, value: str) -> bool:
    """Set ``name`` in the first ``PropertyGroup`` of ``path``.

    Returns:
        True when the file content changed

    """
    tree, has_declaration = _load(path)
    root = tree.getroot()
    ns = _prefix(root)
    group = _first_or_create(root, f'{ns}PropertyGroup')
    node = group.find(f'{ns}{name}')
    if node is None:
        node = ET.SubElement(group, f'{ns}{name}')
    node.text = value
    return _save(path, tree, has_declaration)


def upsert_package_reference(path: Path, package_id: str, version: str) -> bool:
    """Add or update a private ``PackageReference`` in the first ``ItemGroup``."""
    tree, has_declaration = _load(path)
    root = tree.getroot()
    ns = _prefix(root)
    group = _first_or_create(root, f'{ns}ItemGroup')
    reference = next(
        (e for e in group.findall(f'{ns}PackageReference') if e.get('Include') == package_id),
        None,
    )
    if reference is None:
        reference = ET.SubElement(group, f'{ns}PackageReference', {'Include': package_id})
    reference.set('Version', version)
    reference.set('PrivateAssets', 'all')
    return _save(path, tree, has_declaration)


def remove_package_reference(path: Path, package_id: str) -> int:
    """Drop every ``PackageReference`` to ``package_id``; returns how many."""
    tree, has_declaration = _load(path)
    root = tree.getroot()
    ns = _prefix(root)
    removed = 0
    for group in root.findall(f'{ns}ItemGroup'):
        for reference in group.findall(f'{ns}PackageReference'):
            if reference.get('Include') == package_id:
                group.remove(reference)
                removed += 1
    _save(path, tree, has_declaration)
    return removed


def set_project_enablement(
    project: Path, enabled: bool, property_name: str = ENABLED_PROPERTY
) -> bool:
    """Set the enablement property in the first unconditional ``PropertyGroup``."""
    tree, has_declaration = _load(project)
    root = tree.getroot()
    ns = _prefix(root)
    group = _first_or_create(root, f'{ns}PropertyGroup', unconditional=True)
    node = group.find(f'{ns}{property_name}')
    if node is None:
        node = ET.SubElement(group, f'{ns}{property_name}')
    node.text = 'true' if enabled else 'false'
    return _save(project, tree, has_declaration)


def read_property(xml: str, name: str) -> str | None:
    """Return the first ``PropertyGroup`` value named ``name``, if any.

    Unparsable documents read as unset.
    """
    try:
        root = ET.fromstring(xml)
    except ET.ParseError:
        return None
    ns = _prefix(root)
    node = root.find(f'{ns}PropertyGroup/{ns}{name}')
    if node is None:
        return None
    return node.text or ''


def has_package_reference(xml: str, package_id: str) -> bool:
    """Whether the document references ``package_id``."""
    try:
        root = ET.fromstring(xml)
    except ET.ParseError:
        return False
    ns = _prefix(root)
    return any(
        e.get('Include') == package_id for e in root.iter(f'{ns}PackageReference')
    )


def project_enablement(project: Path, property_name: str = ENABLED_PROPERTY) -> str:
    """Describe a project's local enablement for status output."""
    if not project.is_file():
        return '(missing)'
    local = read_property(project.read_text(encoding='utf-8-sig'), property_name)
    return local if local is not None else '(inherits)'
