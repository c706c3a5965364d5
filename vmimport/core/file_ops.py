# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/core/file_ops.py
"""
Atomic file writes and a process-shared exclusive lock.
"""

from __future__ import annotations

import fcntl
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional


@contextmanager
def atomic_write(target_path: Path, *, suffix: str = ".part") -> Generator[Path, None, None]:
    """
    Yield a temporary path next to `target_path`; on success it is renamed
    over the target, so readers never see a half-written file.

    Example:
        with atomic_write(path) as tmp:
            tmp.write_text(yaml.safe_dump(data))
    """
    target_path = Path(target_path)
    target_path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_name = tempfile.mkstemp(suffix=suffix, prefix=f".{target_path.name}.", dir=str(target_path.parent))
    temp_path = Path(temp_name)
    try:
        os.close(fd)
        yield temp_path
        os.replace(temp_path, target_path)
    except Exception:
        temp_path.unlink(missing_ok=True)
        raise


class FileLock:
    """
    Exclusive lock on a lock file, shared across processes via flock(2) and
    reentrant within one process.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._rlock = threading.RLock()
        self._depth = 0
        self._fp: Optional[object] = None

    def __enter__(self) -> "FileLock":
        self._rlock.acquire()
        try:
            if self._depth == 0:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                fp = self.path.open("a+", encoding="utf-8")
                fcntl.flock(fp.fileno(), fcntl.LOCK_EX)
                self._fp = fp
            self._depth += 1
        except Exception:
            self._rlock.release()
            raise
        return self

    def __exit__(self, *exc) -> None:
        try:
            self._depth -= 1
            if self._depth == 0 and self._fp is not None:
                fp, self._fp = self._fp, None
                try:
                    fcntl.flock(fp.fileno(), fcntl.LOCK_UN)  # type: ignore[attr-defined]
                finally:
                    fp.close()  # type: ignore[attr-defined]
        finally:
            self._rlock.release()
