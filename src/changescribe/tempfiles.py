"""
Scoped temporary files.

Commit messages and PR bodies are handed to ``git`` and ``gh`` through
files rather than command-line arguments to avoid shell quoting issues.
The files get unique timestamp-based names so concurrent runs on the
same machine do not collide, and removing them afterwards is best
effort.
"""

from __future__ import annotations

import logging
import os
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


def timestamped_name(prefix: str, suffix: str = "") -> str:
    """Return ``<prefix>-<epoch milliseconds><suffix>``."""
    return f"{prefix}-{int(time.time() * 1000)}{suffix}"


def remove_quietly(path: Path) -> None:
    """Delete ``path``; failures are logged at debug level and ignored."""
    try:
        os.unlink(path)
    except OSError as exc:
        logger.debug("Could not remove temporary file %s: %s", path, exc)


@contextmanager
def scoped_temp_file(
    content: str,
    prefix: str,
    suffix: str = "",
    directory: Optional[Path] = None,
) -> Iterator[Path]:
    """Write ``content`` to a uniquely named temp file for the block's duration.

    Usage::

        with scoped_temp_file(message, "commit-msg", ".txt") as path:
            run(["git", "commit", "-F", str(path)])
    """
    base = Path(directory) if directory is not None else Path(tempfile.gettempdir())
    path = base / timestamped_name(prefix, suffix)
    path.write_text(content, encoding="utf-8")
    try:
        yield path
    finally:
        remove_quietly(path)
