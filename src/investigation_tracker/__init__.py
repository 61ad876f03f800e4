"""Issue Investigation Tracker.

Tracks which GitHub issues have been investigated, queues new and updated
issues for investigation, and keeps a single investigation worker running to
drain the queue.
"""

__version__ = "0.1.0"

from investigation_tracker.tracker.config import TrackerSettings

__all__ = ["__version__", "TrackerSettings"]
