"""Flat JSON document store.

Each concern owns one document that is loaded whole, mutated in memory and
rewritten whole. Writes go through a temp file + os.replace so a reader never
sees a half-written file. Read-modify-write sequences run under locked(path):
a per-path thread lock plus an flock on a sidecar .lock file, so the daemon
and an interactive process cannot interleave their updates.
"""

from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

_registry_lock = threading.Lock()
_path_locks: dict[str, threading.Lock] = {}
_held = threading.local()


def _thread_lock(key: str) -> threading.Lock:
    with _registry_lock:
        lock = _path_locks.get(key)
        if lock is None:
            lock = threading.Lock()
            _path_locks[key] = lock
        return lock


@contextmanager
def locked(path: Path | str) -> Iterator[None]:
    """Serialize read-modify-write of one document across threads and processes.

    Re-entrant within a thread: a nested locked() on the same path is a no-op
    (flock on a second descriptor would deadlock against the first).
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    key = str(path.resolve())
    held: set[str] = getattr(_held, "paths", None) or set()
    _held.paths = held
    if key in held:
        yield
        return

    with _thread_lock(key):
        lock_file = path.with_name(path.name + ".lock")
        with open(lock_file, "a+") as fh:
            fcntl.flock(fh.fileno(), fcntl.LOCK_EX)
            held.add(key)
            try:
                yield
            finally:
                held.discard(key)
                fcntl.flock(fh.fileno(), fcntl.LOCK_UN)


def load_document(path: Path | str, default: Callable[[], dict[str, Any]]) -> dict[str, Any]:
    """Load a JSON object from path.

    Missing file -> default(). Unreadable or non-object content is logged and
    replaced by default() as well; the caller decides whether to persist it.
    """
    path = Path(path)
    if not path.exists():
        return default()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        logger.warning("Document %s is corrupted, starting from defaults", path)
        return default()
    if not isinstance(data, dict):
        logger.warning("Document %s is not a JSON object, starting from defaults", path)
        return default()
    return data


def save_document(path: Path | str, data: dict[str, Any]) -> None:
    """Atomically overwrite path with data as indented JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(data, indent=2, ensure_ascii=False)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    tmp_file = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_file, path)
    finally:
        tmp_file.unlink(missing_ok=True)
