"""Test configuration and fixtures."""

from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path
from unittest.mock import Mock

import pytest

from investigation_tracker.tracker.github.client import OpenIssue
from investigation_tracker.tracker.handlers import InvestigationTracker
from investigation_tracker.tracker.scanner import ReinvestigationScanner
from investigation_tracker.tracker.state.store import StateStore
from investigation_tracker.tracker.supervisor import WorkerStatus, WorkerSupervisor

REPO = "octo-org/octo-repo"


class FakeIssueSource:
    """In-memory issue source keyed by repository."""

    def __init__(
        self,
        issues: dict[str, list[OpenIssue]] | None = None,
        *,
        error: Exception | None = None,
    ) -> None:
        self.issues: dict[str, list[OpenIssue]] = issues or {}
        self.error = error
        self.calls: list[str] = []

    def set_open(self, repository: str, *issues: tuple[int, datetime]) -> None:
        self.issues[repository] = [OpenIssue(number=n, updated_at=ts) for n, ts in issues]

    def list_open_issues(self, repository: str) -> list[OpenIssue]:
        self.calls.append(repository)
        if self.error is not None:
            raise self.error
        return list(self.issues.get(repository, []))


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    """Provide a temporary state directory."""
    return tmp_path / "agent_state"


@pytest.fixture
def state(state_dir: Path) -> StateStore:
    return StateStore.open(state_dir)


@pytest.fixture
def source() -> FakeIssueSource:
    return FakeIssueSource()


@pytest.fixture
def scanner(state: StateStore, source: FakeIssueSource) -> ReinvestigationScanner:
    return ReinvestigationScanner(source=source, ledger=state.ledger, queue=state.queue)


@pytest.fixture
def idle_command() -> list[str]:
    """A worker command that stays alive long enough to be probed."""
    return [sys.executable, "-c", "import time; time.sleep(60)"]


@pytest.fixture
def mock_supervisor() -> Mock:
    supervisor = Mock(spec=WorkerSupervisor)
    supervisor.ensure_running.return_value = WorkerStatus.STARTED
    supervisor.is_alive.return_value = False
    return supervisor


@pytest.fixture
def tracker(
    state: StateStore, scanner: ReinvestigationScanner, mock_supervisor: Mock
) -> InvestigationTracker:
    return InvestigationTracker(state=state, scanner=scanner, supervisor=mock_supervisor)
