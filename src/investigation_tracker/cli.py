"""Console script entrypoint.

The CLI itself lives in `investigation_tracker.tracker.main`.
"""

from __future__ import annotations

from investigation_tracker.tracker.main import main

__all__ = ["main"]


if __name__ == "__main__":
    raise SystemExit(main())
