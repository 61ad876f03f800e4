"""Event handlers: the tracker's entry points for inbound triggers.

Every handler validates its input first (raising :class:`InvalidRequest` before
any state is touched) and otherwise returns a typed outcome; nothing below this
layer is allowed to fail the request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from investigation_tracker.tracker.scanner import ReinvestigationScanner, ScanResult
from investigation_tracker.tracker.state.store import StateStore
from investigation_tracker.tracker.supervisor import WorkerStatus, WorkerSupervisor
from investigation_tracker.tracker.validation import validate_issue_number, validate_repository

logger = logging.getLogger(__name__)

BOT_LOGIN_SUFFIX = "[bot]"


class CommentStatus(str, Enum):
    QUEUED = "queued"
    ALREADY_QUEUED = "already_queued"
    IGNORED = "ignored"


class IgnoreReason(str, Enum):
    BOT_COMMENT = "bot_comment"
    NOT_PREVIOUSLY_INVESTIGATED = "not_previously_investigated"
    PULL_REQUEST = "pull_request"
    UNSUPPORTED_EVENT = "unsupported_event"


@dataclass(frozen=True, slots=True)
class InvestigateOutcome:
    repository: str
    issue_number: int
    queued: bool
    queue_length: int
    scan: ScanResult
    worker: WorkerStatus


@dataclass(frozen=True, slots=True)
class CommentOutcome:
    repository: str
    issue_number: int
    status: CommentStatus
    reason: IgnoreReason | None = None
    queue_length: int | None = None
    worker: WorkerStatus | None = None


@dataclass(frozen=True, slots=True)
class BotPolicy:
    """Decides whether a commenter is an automated actor."""

    logins: frozenset[str] = field(default_factory=frozenset)

    def is_bot(self, login: str, *, account_type: str | None = None) -> bool:
        normalized = login.strip().lower()
        if normalized.endswith(BOT_LOGIN_SUFFIX):
            return True
        if (account_type or "").strip().lower() == "bot":
            return True
        return normalized in self.logins


class InvestigationTracker:
    """Queues investigations, runs catch-up scans and keeps a worker running."""

    def __init__(
        self,
        *,
        state: StateStore,
        scanner: ReinvestigationScanner,
        supervisor: WorkerSupervisor,
        bot_policy: BotPolicy | None = None,
    ) -> None:
        self.state = state
        self.scanner = scanner
        self.supervisor = supervisor
        self.bot_policy = bot_policy or BotPolicy()

    def investigate(self, repository: object, issue_number: object) -> InvestigateOutcome:
        """Handle a direct investigation request."""

        repo = validate_repository(repository)
        number = validate_issue_number(issue_number)

        queued = self.state.queue.enqueue(repo, number)
        scan = self.scanner.scan(repo)
        worker = self.supervisor.ensure_running()
        queue_length = self.state.queue.length()

        logger.info(
            "Investigation requested",
            extra={
                "repository": repo,
                "issue_number": number,
                "queued": queued,
                "scan_new": scan.new,
                "scan_reinvestigate": scan.reinvestigate,
                "worker": worker.value,
                "queue_length": queue_length,
            },
        )
        return InvestigateOutcome(
            repository=repo,
            issue_number=number,
            queued=queued,
            queue_length=queue_length,
            scan=scan,
            worker=worker,
        )

    def issue_opened(self, repository: object, issue_number: object) -> InvestigateOutcome:
        """Handle a remote "issue opened" event; same as a direct request."""

        return self.investigate(repository, issue_number)

    def comment_created(
        self,
        repository: object,
        issue_number: object,
        commenter: str,
        *,
        commenter_type: str | None = None,
    ) -> CommentOutcome:
        """Handle a remote "comment created" event.

        Comments only re-trigger issues that were investigated before, and only
        the commented-on issue is queued (no catch-up scan).
        """

        repo = validate_repository(repository)
        number = validate_issue_number(issue_number)

        if self.bot_policy.is_bot(commenter, account_type=commenter_type):
            logger.info(
                "Ignoring comment from automated actor",
                extra={"repository": repo, "issue_number": number, "commenter": commenter},
            )
            return CommentOutcome(
                repository=repo,
                issue_number=number,
                status=CommentStatus.IGNORED,
                reason=IgnoreReason.BOT_COMMENT,
            )

        if not self.state.ledger.is_investigated(repo, number):
            logger.info(
                "Ignoring comment on issue that was never investigated",
                extra={"repository": repo, "issue_number": number, "commenter": commenter},
            )
            return CommentOutcome(
                repository=repo,
                issue_number=number,
                status=CommentStatus.IGNORED,
                reason=IgnoreReason.NOT_PREVIOUSLY_INVESTIGATED,
            )

        queued = self.state.queue.enqueue(repo, number, is_reinvestigation=True)
        worker = self.supervisor.ensure_running()
        status = CommentStatus.QUEUED if queued else CommentStatus.ALREADY_QUEUED

        logger.info(
            "Reinvestigation requested by comment",
            extra={
                "repository": repo,
                "issue_number": number,
                "commenter": commenter,
                "status": status.value,
                "worker": worker.value,
            },
        )
        return CommentOutcome(
            repository=repo,
            issue_number=number,
            status=status,
            queue_length=self.state.queue.length(),
            worker=worker,
        )

    def complete(self, repository: object, issue_number: object) -> bool:
        """Worker write-back: record the investigation and drop the queue item.

        Returns:
            True if a queue item was removed.
        """

        repo = validate_repository(repository)
        number = validate_issue_number(issue_number)
        self.state.ledger.record(repo, number)
        return self.state.queue.remove(repo, number)
