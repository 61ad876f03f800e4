"""Pending investigation queue.

The queue is an ordered JSON list (oldest first) with at most one item per
``(repository, issue_number)``. The tracker only ever appends; the worker claims
items while it works on them and removes them once the ledger is updated.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from pydantic import BaseModel, Field, ValidationError

from investigation_tracker.tracker.process import pid_alive
from investigation_tracker.tracker.state.documents import JsonDocument
from investigation_tracker.tracker.state.ledger import InvestigationLedger

logger = logging.getLogger(__name__)


class QueueItem(BaseModel):
    repository: str
    issue_number: int
    enqueued_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    is_reinvestigation: bool = False

    # PID of the worker currently processing this item.
    claimed_by: int | None = None

    def matches(self, repository: str, issue_number: int) -> bool:
        return self.repository == repository and self.issue_number == issue_number


class InvestigationQueue:
    """Deduplicating queue manager."""

    def __init__(self, document: JsonDocument, ledger: InvestigationLedger) -> None:
        self._doc = document
        self._ledger = ledger

    def _load_unlocked(self) -> list[QueueItem]:
        raw = self._doc.load_unlocked()
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.warning(
                "Queue file has unexpected shape; treating as empty",
                extra={"path": str(self._doc.path)},
            )
            return []

        items: list[QueueItem] = []
        for entry in raw:
            try:
                items.append(QueueItem.model_validate(entry))
            except ValidationError:
                logger.warning(
                    "Dropping malformed queue entry",
                    extra={"path": str(self._doc.path), "entry": repr(entry)},
                )
        return items

    def _save_unlocked(self, items: list[QueueItem]) -> None:
        self._doc.save_unlocked([item.model_dump(mode="json") for item in items])

    def is_queued(self, repository: str, issue_number: int) -> bool:
        with self._doc.locked():
            return any(i.matches(repository, issue_number) for i in self._load_unlocked())

    def enqueue(
        self, repository: str, issue_number: int, *, is_reinvestigation: bool = False
    ) -> bool:
        """Append an item unless it is already queued or already handled.

        A plain request for an issue that is already in the ledger is a no-op;
        callers pass ``is_reinvestigation=True`` to queue it again.

        Returns:
            True when a new item was added.
        """

        with self._doc.locked():
            items = self._load_unlocked()
            if any(i.matches(repository, issue_number) for i in items):
                logger.debug(
                    "Issue already queued",
                    extra={"repository": repository, "issue_number": issue_number},
                )
                return False

            if not is_reinvestigation and self._ledger.is_investigated(repository, issue_number):
                logger.debug(
                    "Issue already investigated",
                    extra={"repository": repository, "issue_number": issue_number},
                )
                return False

            item = QueueItem(
                repository=repository,
                issue_number=issue_number,
                is_reinvestigation=is_reinvestigation,
            )
            items.append(item)
            self._save_unlocked(items)

        logger.info(
            "Issue queued",
            extra={
                "repository": repository,
                "issue_number": issue_number,
                "is_reinvestigation": is_reinvestigation,
                "queue_length": len(items),
            },
        )
        return True

    def length(self) -> int:
        with self._doc.locked():
            return len(self._load_unlocked())

    def snapshot(self) -> list[QueueItem]:
        with self._doc.locked():
            return self._load_unlocked()

    def claim_next(self, pid: int) -> QueueItem | None:
        """Claim the oldest item not held by a live worker.

        Items claimed by a running process (including the caller) are skipped;
        claims held by a process that no longer exists are taken over.
        """

        with self._doc.locked():
            items = self._load_unlocked()
            for idx, item in enumerate(items):
                if item.claimed_by is not None:
                    if pid_alive(item.claimed_by):
                        continue
                    logger.warning(
                        "Taking over claim from dead worker",
                        extra={
                            "repository": item.repository,
                            "issue_number": item.issue_number,
                            "stale_pid": item.claimed_by,
                        },
                    )
                claimed = item.model_copy(update={"claimed_by": pid})
                items[idx] = claimed
                self._save_unlocked(items)
                logger.info(
                    "Queue item claimed",
                    extra={
                        "repository": claimed.repository,
                        "issue_number": claimed.issue_number,
                        "pid": pid,
                    },
                )
                return claimed
        return None

    def release(self, repository: str, issue_number: int) -> bool:
        with self._doc.locked():
            items = self._load_unlocked()
            for idx, item in enumerate(items):
                if item.matches(repository, issue_number):
                    items[idx] = item.model_copy(update={"claimed_by": None})
                    self._save_unlocked(items)
                    return True
        return False

    def remove(self, repository: str, issue_number: int) -> bool:
        with self._doc.locked():
            items = self._load_unlocked()
            remaining = [i for i in items if not i.matches(repository, issue_number)]
            if len(remaining) == len(items):
                return False
            self._save_unlocked(remaining)
        logger.info(
            "Queue item removed",
            extra={"repository": repository, "issue_number": issue_number},
        )
        return True
