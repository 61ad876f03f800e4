"""Process liveness probing."""

from __future__ import annotations

import os


def pid_alive(pid: int | None) -> bool:
    """Return True if a process with this pid exists.

    Uses signal 0. A permission error is treated the same as a missing process:
    the pid has most likely been recycled by an unrelated process.
    """

    if pid is None or pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except OSError:
        return False
    return True
