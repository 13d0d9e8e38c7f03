"""Advisory file locking and atomic replacement for loom metadata."""

from __future__ import annotations

import fcntl
import os
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Iterator, TextIO

from . import log
from .paths import LOCKS_DIRNAME

DEFAULT_LOCK_RETRIES = 10
DEFAULT_LOCK_RETRY_DELAY = 0.05

_LOCK_GUARD = threading.Lock()
_LOCAL_LOCKS: dict[str, threading.RLock] = {}


def lock_path_for(target: Path) -> Path:
    """Return the lock file guarding ``target``.

    Example:
        >>> lock_path_for(Path("/tmp/looms/a.json")).as_posix()
        '/tmp/looms/.locks/a.json.lock'
    """
    return target.parent / LOCKS_DIRNAME / f"{target.name}.lock"


def _local_lock(key: str) -> threading.RLock:
    with _LOCK_GUARD:
        lock = _LOCAL_LOCKS.get(key)
        if lock is None:
            lock = threading.RLock()
            _LOCAL_LOCKS[key] = lock
        return lock


def _try_acquire(handle: TextIO, *, retries: int, delay: float) -> bool:
    for attempt in range(retries + 1):
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            return True
        except BlockingIOError:
            if attempt < retries:
                time.sleep(delay)
    return False


@contextmanager
def file_lock(
    target: Path,
    *,
    retries: int = DEFAULT_LOCK_RETRIES,
    retry_delay: float = DEFAULT_LOCK_RETRY_DELAY,
) -> Iterator[bool]:
    """Serialize rewrites of ``target`` across threads and processes.

    Non-blocking attempts are retried a bounded number of times. When the lock
    stays contended the block still runs, unlocked, after a warning; the
    yielded value tells the caller whether the lock is held.
    """
    lock_path = lock_path_for(target)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    local_lock = _local_lock(str(lock_path))

    with local_lock:
        handle = lock_path.open("a+", encoding="utf-8")
        try:
            acquired = _try_acquire(handle, retries=retries, delay=retry_delay)
            if not acquired:
                log.warning(
                    f"could not lock {target.name} after {retries} retries; writing directly"
                )
            try:
                yield acquired
            finally:
                if acquired:
                    fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        finally:
            handle.close()


def write_text_atomic(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Atomically replace a text file with new content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            "w",
            encoding=encoding,
            delete=False,
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
        ) as handle:
            handle.write(content)
            temp_path = Path(handle.name)
        os.replace(temp_path, path)
    finally:
        if temp_path is not None and temp_path.exists():
            temp_path.unlink(missing_ok=True)
