"""Catch-up scan: reconcile a repository's open issues against the ledger.

The scan is safe to repeat. Over unchanged remote state it enqueues nothing,
because every candidate goes through the queue's own dedup guard.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from investigation_tracker.tracker.github.client import OpenIssue
from investigation_tracker.tracker.state.ledger import InvestigationLedger
from investigation_tracker.tracker.state.queue import InvestigationQueue

logger = logging.getLogger(__name__)


class IssueSource(Protocol):
    def list_open_issues(self, repository: str) -> list[OpenIssue]: ...


@dataclass(frozen=True, slots=True)
class ScanResult:
    repository: str
    new: int = 0
    reinvestigate: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ReinvestigationScanner:
    def __init__(
        self,
        *,
        source: IssueSource,
        ledger: InvestigationLedger,
        queue: InvestigationQueue,
    ) -> None:
        self._source = source
        self._ledger = ledger
        self._queue = queue

    def scan(self, repository: str) -> ScanResult:
        """Queue open issues that are new or have activity since their last investigation.

        An issue updated at exactly its recorded investigation time counts as
        covered. If the issue source fails, nothing is queued and the failure is
        reported in :attr:`ScanResult.error` instead of being raised.
        """

        try:
            open_issues = list(self._source.list_open_issues(repository))
        except Exception as e:
            logger.warning(
                "Catch-up scan aborted: issue source failed",
                extra={"repository": repository, "error": str(e)},
            )
            return ScanResult(repository=repository, error=str(e))

        new = 0
        reinvestigate = 0
        for issue in open_issues:
            investigated_at = self._ledger.get_investigated_at(repository, issue.number)
            if investigated_at is None:
                if self._queue.enqueue(repository, issue.number):
                    new += 1
            elif issue.updated_at > investigated_at:
                if self._queue.enqueue(repository, issue.number, is_reinvestigation=True):
                    reinvestigate += 1

        logger.info(
            "Catch-up scan complete",
            extra={
                "repository": repository,
                "open_issues": len(open_issues),
                "new": new,
                "reinvestigate": reinvestigate,
            },
        )
        return ScanResult(repository=repository, new=new, reinvestigate=reinvestigate)
