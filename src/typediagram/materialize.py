"""Write-if-changed file materialisation and exact drift comparison."""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
from pathlib import Path

from typediagram.errors import NotFoundError

logger = logging.getLogger(__name__)

ENCODING = 'utf-8'
CHUNK_SIZE = 64 * 1024
DEFAULT_MODE = 0o644


def files_equal(a: Path | str, b: Path | str) -> bool:
    """Compare two files byte for byte.

    Args:
        a: First file
        b: Second file

    Returns:
        True when both files hold identical bytes

    Raises:
        NotFoundError: If either file is missing

    """
    first, second = Path(a), Path(b)
    for path in (first, second):
        if not path.is_file():
            raise NotFoundError(path)

    if first.stat().st_size != second.stat().st_size:
        return False

    with first.open('rb') as left, second.open('rb') as right:
        while True:
            chunk_a = left.read(CHUNK_SIZE)
            chunk_b = right.read(CHUNK_SIZE)
            if chunk_a != chunk_b:
                return False
            if not chunk_a:
                return True


def write_if_changed(path: Path | str, content: str) -> bool:
    """Materialise ``content`` at ``path`` unless it is already there.

    The content is staged in a temporary sibling file and moved into place with
    an atomic replace, so readers see either the old or the new file. When the
    staged bytes match the existing target, the target is left untouched.

    Args:
        path: Target file
        content: Text to write (UTF-8, no byte-order mark)

    Returns:
        True when the target was replaced, False when it was already current

    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f'.{target.name}.',
        suffix='.tmp',
        dir=target.parent,
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, 'w', encoding=ENCODING) as handle:
            handle.write(content)

        if target.exists() and files_equal(target, tmp_path):
            logger.debug('%s is up to date', target)
            return False

        # mkstemp creates 0600 files; keep the target readable like a plain write
        mode = target.stat().st_mode & 0o777 if target.exists() else DEFAULT_MODE
        tmp_path.chmod(mode)
        os.replace(tmp_path, target)
        logger.info('Wrote %s', target)
        return True
    finally:
        with contextlib.suppress(FileNotFoundError):
            tmp_path.unlink()
