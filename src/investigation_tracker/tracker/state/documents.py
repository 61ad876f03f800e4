"""File-backed JSON documents with a single writer per document.

Each document is rewritten as a whole on every mutation. Writers are
serialized twice:

- a re-entrant thread lock inside this process
- an exclusive ``flock`` on a sidecar ``.lock`` file across processes
  (the worker updates the queue and ledger from its own process)

Writes go to a temporary file first and are moved into place with
``os.replace`` so readers never observe a partially written document.
"""

from __future__ import annotations

import fcntl
import json
import logging
import os
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any

logger = logging.getLogger(__name__)


class JsonDocument:
    """A single JSON document on disk."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock_path = path.with_name(path.name + ".lock")
        self._tmp_path = path.with_name(path.name + ".tmp")
        self._lock = threading.RLock()
        self._depth = 0
        self._lock_handle: IO[str] | None = None

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Hold the document for a read-modify-write cycle."""

        with self._lock:
            if self._depth == 0:
                self._acquire_file_lock()
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
                if self._depth == 0:
                    self._release_file_lock()

    def _acquire_file_lock(self) -> None:
        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        handle = self._lock_path.open("a+", encoding="utf-8")
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        except OSError:
            handle.close()
            raise
        self._lock_handle = handle

    def _release_file_lock(self) -> None:
        handle = self._lock_handle
        self._lock_handle = None
        if handle is None:
            return
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        finally:
            handle.close()

    def load_unlocked(self) -> Any | None:
        """Return the parsed document, or None when it is missing or unreadable."""

        if not self._path.exists():
            return None
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning(
                "State document could not be read; treating as empty",
                extra={"path": str(self._path), "error": str(e)},
            )
            return None
        if not raw.strip():
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(
                "State document is not valid JSON; treating as empty",
                extra={"path": str(self._path)},
            )
            return None

    def save_unlocked(self, payload: Any) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._tmp_path.write_text(
            json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
        )
        os.replace(self._tmp_path, self._path)

    def load(self) -> Any | None:
        with self.locked():
            return self.load_unlocked()

    def save(self, payload: Any) -> None:
        with self.locked():
            self.save_unlocked(payload)
