"""Wire the tracker's components from settings."""

from __future__ import annotations

from investigation_tracker.tracker.config import TrackerSettings
from investigation_tracker.tracker.github.client import GitHubIssueSource
from investigation_tracker.tracker.handlers import BotPolicy, InvestigationTracker
from investigation_tracker.tracker.scanner import IssueSource, ReinvestigationScanner
from investigation_tracker.tracker.state.store import StateStore
from investigation_tracker.tracker.supervisor import WorkerSupervisor


def build_issue_source(settings: TrackerSettings) -> GitHubIssueSource:
    return GitHubIssueSource(
        token=settings.github_token,
        base_url=settings.github_base_url,
        timeout_seconds=settings.issue_source_timeout_seconds,
    )


def build_tracker(
    settings: TrackerSettings, *, source: IssueSource | None = None
) -> InvestigationTracker:
    """Open the state directory (migrating the ledger) and assemble a tracker."""

    state = StateStore.open(settings.agent_state_path)
    scanner = ReinvestigationScanner(
        source=source if source is not None else build_issue_source(settings),
        ledger=state.ledger,
        queue=state.queue,
    )
    supervisor = WorkerSupervisor(
        marker=state.worker_marker,
        queue=state.queue,
        command=settings.parsed_worker_command(),
        log_file=settings.worker_log_path,
        state_dir=state.state_dir,
    )
    return InvestigationTracker(
        state=state,
        scanner=scanner,
        supervisor=supervisor,
        bot_policy=BotPolicy(logins=settings.parsed_bot_logins()),
    )
