"""Worker supervision: liveness probing and detached launch.

The worker is an opaque, long-running process that drains the queue at its own
pace. The supervisor only answers "is one alive?" and starts one when there is
work; it never waits for a worker to finish.
"""

from __future__ import annotations

import logging
import os
import subprocess
import threading
from collections.abc import Sequence
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

from investigation_tracker.tracker.process import pid_alive
from investigation_tracker.tracker.state.documents import JsonDocument
from investigation_tracker.tracker.state.queue import InvestigationQueue

logger = logging.getLogger(__name__)

STATE_PATH_ENV = "AGENT_STATE_PATH"


class WorkerStatus(str, Enum):
    ALREADY_RUNNING = "already_running"
    STARTED = "started"
    NOT_NEEDED = "not_needed"
    LAUNCH_FAILED = "launch_failed"


class WorkerSupervisor:
    """Keeps at most one supervised worker running while the queue has items."""

    def __init__(
        self,
        *,
        marker: JsonDocument,
        queue: InvestigationQueue,
        command: Sequence[str],
        log_file: Path | None = None,
        state_dir: Path | None = None,
    ) -> None:
        if not command:
            raise ValueError("worker command is required")
        self._marker = marker
        self._queue = queue
        self._command = list(command)
        self._log_file = log_file
        self._state_dir = state_dir
        self._lock = threading.Lock()

        # Workers launched by this process, kept so exited children get reaped.
        self._children: dict[int, subprocess.Popen[bytes]] = {}

    def marker_pid(self) -> int | None:
        raw = self._marker.load()
        if not isinstance(raw, dict):
            return None
        pid = raw.get("pid")
        if isinstance(pid, bool) or not isinstance(pid, int):
            return None
        return pid

    def is_alive(self) -> bool:
        """Return True if the marker names a running process.

        A marker pointing at a dead process is reported as not alive but left in
        place; the next launch overwrites it.
        """

        with self._lock:
            return self._is_alive_unlocked()

    def _reap_children_unlocked(self) -> None:
        # Includes children whose marker was since overwritten by another tracker.
        for pid, child in list(self._children.items()):
            if child.poll() is None:
                continue
            del self._children[pid]
            logger.info("Worker exited", extra={"pid": pid, "returncode": child.returncode})

    def _is_alive_unlocked(self) -> bool:
        self._reap_children_unlocked()
        pid = self.marker_pid()
        if pid is None:
            return False
        return pid_alive(pid)

    def ensure_running(self) -> WorkerStatus:
        with self._lock:
            if self._is_alive_unlocked():
                return WorkerStatus.ALREADY_RUNNING

            if self._queue.length() == 0:
                return WorkerStatus.NOT_NEEDED

            try:
                proc = self._launch()
            except OSError as e:
                logger.error(
                    "Failed to launch worker",
                    extra={"command": self._command, "error": str(e)},
                )
                return WorkerStatus.LAUNCH_FAILED

            self._children[proc.pid] = proc
            self._marker.save(
                {"pid": proc.pid, "started_at": datetime.now(UTC).isoformat()}
            )
            logger.info("Worker started", extra={"pid": proc.pid, "command": self._command})
            return WorkerStatus.STARTED

    def _launch(self) -> subprocess.Popen[bytes]:
        env = dict(os.environ)
        if self._state_dir is not None:
            env[STATE_PATH_ENV] = str(self._state_dir.resolve())

        if self._log_file is None:
            return subprocess.Popen(
                self._command,
                stdin=subprocess.DEVNULL,
                env=env,
                close_fds=True,
                start_new_session=True,
            )

        self._log_file.parent.mkdir(parents=True, exist_ok=True)
        with self._log_file.open("ab") as log_handle:
            return subprocess.Popen(
                self._command,
                stdin=subprocess.DEVNULL,
                stdout=log_handle,
                stderr=log_handle,
                env=env,
                close_fds=True,
                start_new_session=True,
            )
