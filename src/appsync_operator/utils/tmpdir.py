"""Scoped temporary directories for fetched and templated artifacts."""

from __future__ import annotations

import os
import shutil
import tempfile
from contextlib import contextmanager
from typing import Iterator

from .errors import ScopedPathError

_TMP_ROOT = os.getenv("APPSYNC_TMP_DIR") or None


@contextmanager
def scoped_tmp_dir(prefix: str) -> Iterator[str]:
    """Create a temporary directory that is removed when the block exits.

    Raises:
        OSError: If the directory cannot be created
    """
    path = tempfile.mkdtemp(prefix=f"{prefix}-", dir=_TMP_ROOT)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)


def scoped_path(root: str, relative: str) -> str:
    """Join ``relative`` onto ``root``, refusing paths that escape ``root``.

    Args:
        root: Directory the result must stay inside
        relative: User-supplied relative path

    Returns:
        Absolute, normalized path inside root

    Raises:
        ScopedPathError: If the path resolves outside root
    """
    root_abs = os.path.realpath(root)
    joined = os.path.realpath(os.path.join(root_abs, relative))
    if joined != root_abs and not joined.startswith(root_abs + os.sep):
        raise ScopedPathError(f"Invalid path {relative!r}: must stay within {root!r}")
    return joined
