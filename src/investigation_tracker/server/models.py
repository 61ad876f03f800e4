"""Pydantic models for the REST server."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from investigation_tracker.tracker.handlers import CommentOutcome, InvestigateOutcome
from investigation_tracker.tracker.scanner import ScanResult
from investigation_tracker.tracker.state.queue import QueueItem


class InvestigateRequest(BaseModel):
    # Shape checks happen in the tracker so the CLI and webhooks share them.
    repo: Any = None
    issue: Any = None


class ApiScan(BaseModel):
    new: int
    reinvestigate: int
    error: str | None = None

    @classmethod
    def from_result(cls, result: ScanResult) -> ApiScan:
        return cls(new=result.new, reinvestigate=result.reinvestigate, error=result.error)


class InvestigateResponse(BaseModel):
    status: str = "queued"
    repo: str
    issue: int
    queued: bool
    queue_length: int
    scan: ApiScan
    worker: str

    @classmethod
    def from_outcome(cls, outcome: InvestigateOutcome) -> InvestigateResponse:
        return cls(
            status="queued" if outcome.queued else "already_handled",
            repo=outcome.repository,
            issue=outcome.issue_number,
            queued=outcome.queued,
            queue_length=outcome.queue_length,
            scan=ApiScan.from_result(outcome.scan),
            worker=outcome.worker.value,
        )


class CommentResponse(BaseModel):
    status: str
    repo: str
    issue: int
    reason: str | None = None
    queue_length: int | None = None
    worker: str | None = None

    @classmethod
    def from_outcome(cls, outcome: CommentOutcome) -> CommentResponse:
        return cls(
            status=outcome.status.value,
            repo=outcome.repository,
            issue=outcome.issue_number,
            reason=outcome.reason.value if outcome.reason is not None else None,
            queue_length=outcome.queue_length,
            worker=outcome.worker.value if outcome.worker is not None else None,
        )


class IgnoredResponse(BaseModel):
    status: str = "ignored"
    reason: str
    event: str | None = None
    action: str | None = None


class ApiQueueItem(BaseModel):
    repo: str
    issue: int
    enqueued_at: datetime
    is_reinvestigation: bool
    claimed_by: int | None = None

    @classmethod
    def from_item(cls, item: QueueItem) -> ApiQueueItem:
        return cls(
            repo=item.repository,
            issue=item.issue_number,
            enqueued_at=item.enqueued_at,
            is_reinvestigation=item.is_reinvestigation,
            claimed_by=item.claimed_by,
        )


class StatusResponse(BaseModel):
    queue: list[ApiQueueItem] = Field(default_factory=list)
    ledger: dict[str, dict[str, dict[str, str]]] = Field(default_factory=dict)
    worker_alive: bool
