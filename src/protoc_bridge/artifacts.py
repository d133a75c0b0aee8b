"""Disposable temp files backing transport launchers."""

from __future__ import annotations

import logging
import os
import stat
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

ARTIFACT_PREFIX = "protocbridge"
OWNER_READ_EXECUTE = stat.S_IRUSR | stat.S_IXUSR


def create_artifact(suffix: str, content: str) -> Path:
    """Write ``content`` to a fresh uniquely named temp file and return its path.

    The caller owns the file and must remove it with :func:`remove_artifact`.
    """

    fd, name = tempfile.mkstemp(prefix=ARTIFACT_PREFIX, suffix=suffix)
    path = Path(name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(content.encode("utf-8"))
    except OSError:
        remove_artifact(path)
        raise
    logger.debug("Created artifact %s", path)
    return path


def make_owner_executable(path: Path) -> None:
    """Restrict ``path`` to owner read + execute."""

    path.chmod(OWNER_READ_EXECUTE)


def remove_artifact(path: Path) -> None:
    """Delete ``path`` if it exists; failures are logged, never raised."""

    try:
        path.unlink(missing_ok=True)
    except OSError as error:
        logger.warning("Failed to remove artifact %s: %s", path, error)
