"""Configuration for the HTTP server.

Extends the tracker settings with listener and webhook options. Like the tracker
itself, the server starts without a GitHub token.
"""

from __future__ import annotations

from pydantic import Field

from investigation_tracker.tracker.config import TrackerSettings


class ServerSettings(TrackerSettings):
    """Settings for the REST API and GitHub webhook intake."""

    host: str = Field(default="0.0.0.0", validation_alias="INVESTIGATION_HOST")
    port: int = Field(default=8099, validation_alias="INVESTIGATION_PORT", gt=0, le=65535)

    webhook_secret: str = Field(
        default="",
        validation_alias="GITHUB_WEBHOOK_SECRET",
        description=(
            "Shared secret configured on the GitHub webhook. When set, deliveries must "
            "carry a matching X-Hub-Signature-256 header."
        ),
    )
