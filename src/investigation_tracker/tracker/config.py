"""Configuration for the investigation tracker.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

To avoid collisions with other tools that may also use `GITHUB_TOKEN`, this
project uses a dedicated token variable: `ORCHESTRATOR_GITHUB_TOKEN`. The token
is optional; public repositories can be scanned anonymously (with a much lower
rate limit).
"""

from __future__ import annotations

import shlex
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TrackerSettings(BaseSettings):
    """Settings for the tracking core and its CLI.

    Environment variables:
    - ORCHESTRATOR_GITHUB_TOKEN     (optional)
    - GITHUB_BASE_URL               (optional)
    - LOG_LEVEL                     (optional)
    - AGENT_STATE_PATH              (optional)
    - INVESTIGATION_WORKER_COMMAND  (optional)
    - INVESTIGATION_WORKER_LOG      (optional)
    - ISSUE_SOURCE_TIMEOUT_SECONDS  (optional)
    - INVESTIGATION_BOT_LOGINS      (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `TrackerSettings(_env_file=path_to_env)`.
    """

    github_token: str = Field(
        default="",
        validation_alias="ORCHESTRATOR_GITHUB_TOKEN",
        description="GitHub token used for API authentication",
    )
    github_base_url: str = Field(
        default="https://api.github.com",
        validation_alias="GITHUB_BASE_URL",
        description="GitHub API base URL (useful for GitHub Enterprise)",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    agent_state_path: Path = Field(
        default=Path("agent_state"),
        validation_alias="AGENT_STATE_PATH",
        description="Directory holding the queue, ledger and worker marker",
    )

    worker_command: str = Field(
        default="/investigate.sh",
        validation_alias="INVESTIGATION_WORKER_COMMAND",
        description="Command line of the investigation worker (launched with no arguments)",
    )
    worker_log_path: Path | None = Field(
        default=None,
        validation_alias="INVESTIGATION_WORKER_LOG",
        description="File the worker's stdout/stderr is appended to (inherit when unset)",
    )

    issue_source_timeout_seconds: float = Field(
        default=30.0,
        validation_alias="ISSUE_SOURCE_TIMEOUT_SECONDS",
        description="Overall deadline for the catch-up scan's issue listing, all pages included",
        gt=0,
        le=120,
    )

    bot_logins: str = Field(
        default="",
        validation_alias="INVESTIGATION_BOT_LOGINS",
        description=(
            "Comma-separated logins treated as automated actors in addition to any "
            "login ending with '[bot]'. Set this to the account the worker comments as."
        ),
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("worker_command")
    @classmethod
    def _require_worker_command(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("INVESTIGATION_WORKER_COMMAND must not be empty")
        return value

    def parsed_worker_command(self) -> list[str]:
        return shlex.split(self.worker_command)

    def parsed_bot_logins(self) -> frozenset[str]:
        return frozenset(p.strip().lower() for p in self.bot_logins.split(",") if p.strip())

    @property
    def queue_state_file(self) -> Path:
        return self.agent_state_path / "queue.json"

    @property
    def ledger_state_file(self) -> Path:
        return self.agent_state_path / "investigated.json"

    @property
    def worker_marker_file(self) -> Path:
        return self.agent_state_path / "worker.json"
