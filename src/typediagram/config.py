"""Project-level settings loaded from an optional ``.typediagram.yaml``.

Every key is optional; command-line options take precedence over the file.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from typediagram.buildprops import ENABLED_PROPERTY
from typediagram.errors import InputError

logger = logging.getLogger(__name__)

SETTINGS_FILENAME = '.typediagram.yaml'


@dataclass(frozen=True, slots=True)
class DiagramSettings:
    """Defaults for emission and build integration."""

    direction: str = 'LR'
    min_access: str = 'public'
    output: str | None = None
    package_id: str = 'TypeDiagram.Build'
    package_version: str = '1.1.0'
    enabled_property: str = ENABLED_PROPERTY

    def override(self, **values: Any) -> DiagramSettings:
        """Return a copy with every non-None value applied."""
        return replace(self, **{k: v for k, v in values.items() if v is not None})


def _coerce_optional(value: Any) -> str | None:
    """Convert optional YAML scalars into optional strings."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def settings_from_mapping(data: Mapping[str, Any]) -> DiagramSettings:
    """Build settings from a parsed document, ignoring unknown keys."""
    known = {f.name for f in fields(DiagramSettings)}
    values: dict[str, Any] = {}
    for key, raw in data.items():
        if key not in known:
            logger.warning('Ignoring unknown setting %r', key)
            continue
        values[key] = _coerce_optional(raw)
    return DiagramSettings().override(**values)


def load_settings(root: Path) -> DiagramSettings:
    """Read ``.typediagram.yaml`` under ``root``; defaults when absent.

    Raises:
        InputError: If the file is not a YAML mapping

    """
    path = root / SETTINGS_FILENAME
    if not path.is_file():
        return DiagramSettings()
    try:
        with path.open(encoding='utf-8') as handle:
            raw = yaml.safe_load(handle)
    except yaml.YAMLError as e:
        msg = f'Invalid settings file {path}: {e}'
        raise InputError(msg) from e
    if raw is None:
        return DiagramSettings()
    if not isinstance(raw, Mapping):
        msg = f'Settings file {path} must contain a mapping at the document root.'
        raise InputError(msg)
    logger.debug('Loaded settings from %s', path)
    return settings_from_mapping(raw)
