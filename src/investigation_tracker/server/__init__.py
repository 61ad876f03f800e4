"""FastAPI server adapter for issue-investigation-tracker.

This module exposes a REST API and a GitHub webhook endpoint over the tracker.

Design intent:
- Keep business logic in `investigation_tracker.tracker.*`
- Keep server-specific concerns (routing, webhook signatures, HTTP errors) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from investigation_tracker.server.app import create_app
