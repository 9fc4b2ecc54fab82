"""File locking and durable YAML/JSONL I/O for the `.taskboard` state dir."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import IO, Any, Optional

import yaml

from .constants import WINDOWS_LOCK_BYTES
from .utils import _now_iso

if os.name == "nt":
    import msvcrt

    def _acquire(handle: IO[str], nbytes: int) -> None:
        handle.seek(0)
        handle.truncate(nbytes)
        handle.flush()
        msvcrt.locking(handle.fileno(), msvcrt.LK_LOCK, nbytes)

    def _release(handle: IO[str], nbytes: int) -> None:
        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, nbytes)

else:
    import fcntl

    def _acquire(handle: IO[str], nbytes: int) -> None:
        fcntl.flock(handle, fcntl.LOCK_EX)

    def _release(handle: IO[str], nbytes: int) -> None:
        fcntl.flock(handle, fcntl.LOCK_UN)


class FileLock:
    """Exclusive advisory lock on ``lock_path``, held for the ``with`` block.

    Blocks until the lock is free.  Used around every read-modify-write of a
    project file so concurrent processes never interleave saves.
    """

    def __init__(self, lock_path: Path, nbytes: int = WINDOWS_LOCK_BYTES) -> None:
        self.lock_path = lock_path
        self.nbytes = nbytes
        self._handle: Optional[IO[str]] = None

    @property
    def held(self) -> bool:
        return self._handle is not None

    def __enter__(self) -> "FileLock":
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        handle = open(self.lock_path, "w")
        try:
            _acquire(handle, self.nbytes)
        except OSError:
            handle.close()
            raise
        self._handle = handle
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            _release(handle, self.nbytes)
        finally:
            handle.close()


def _load_data_with_error(
    path: Path,
    default: dict[str, Any],
) -> tuple[dict[str, Any], str | None]:
    """Read a YAML (``.yaml``/``.yml``) or JSON mapping from *path*.

    Returns ``(data, None)`` on success and ``(default, message)`` when the
    file cannot be read or parsed, so callers never overwrite a state file
    they failed to understand.  A missing or empty file is not an error.
    """
    if not path.exists():
        return default, None
    try:
        text = path.read_text(encoding="utf-8")
        data = yaml.safe_load(text) if path.suffix in {".yaml", ".yml"} else json.loads(text)
    except yaml.YAMLError as exc:
        return default, f"{path.name}: YAMLError: {exc}"
    except (OSError, json.JSONDecodeError) as exc:
        return default, f"{path.name}: {exc.__class__.__name__}: {exc}"
    if data is None:
        return default, None
    if not isinstance(data, dict):
        return default, f"{path.name}: expected a mapping, got {type(data).__name__}"
    return data, None


def _atomic_write_yaml(path: Path, data: dict[str, Any]) -> None:
    """Write *data* to a sibling temp file, fsync, then rename over *path*."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as handle:
        yaml.safe_dump(data, handle, sort_keys=False, allow_unicode=True)
        handle.flush()
        os.fsync(handle.fileno())
    os.replace(tmp_path, path)


def _append_event(events_path: Path, event: dict[str, Any]) -> None:
    """Append one JSON line to *events_path*, stamping ``ts`` if absent."""
    events_path.parent.mkdir(parents=True, exist_ok=True)
    record = {"ts": _now_iso(), **event}
    with open(events_path, "a", encoding="utf-8") as handle:
        handle.write(json.dumps(record, default=str) + "\n")
        handle.flush()
        os.fsync(handle.fileno())
