"""GitHub webhook intake.

Handled deliveries:
- `ping`
- `issues` with action `opened` (same as a direct investigation request)
- `issue_comment` with action `created` (reinvestigation trigger)

Everything else is acknowledged and ignored so GitHub does not mark the hook
as failing.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from typing import Any

from fastapi import APIRouter, Header, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from investigation_tracker.server.config import ServerSettings
from investigation_tracker.server.models import (
    CommentResponse,
    IgnoredResponse,
    InvestigateResponse,
)
from investigation_tracker.tracker.handlers import IgnoreReason, InvestigationTracker

logger = logging.getLogger(__name__)

router = APIRouter()


def verify_signature(secret: str, body: bytes, signature_header: str | None) -> bool:
    if not signature_header:
        return False
    expected = "sha256=" + hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature_header)


def _tracker(request: Request) -> InvestigationTracker:
    tracker = getattr(request.app.state, "tracker", None)
    if not isinstance(tracker, InvestigationTracker):
        raise HTTPException(status_code=500, detail="Tracker not configured")
    return tracker


def _settings(request: Request) -> ServerSettings:
    settings = getattr(request.app.state, "settings", None)
    if not isinstance(settings, ServerSettings):
        raise HTTPException(status_code=500, detail="Server settings not configured")
    return settings


def _login(value: object) -> tuple[str, str | None]:
    if isinstance(value, dict):
        login = value.get("login")
        account_type = value.get("type")
        return (
            login if isinstance(login, str) else "",
            account_type if isinstance(account_type, str) else None,
        )
    return "", None


@router.post("/webhook", response_model=None)
async def github_webhook(
    request: Request,
    x_github_event: str | None = Header(default=None),
    x_hub_signature_256: str | None = Header(default=None),
) -> InvestigateResponse | CommentResponse | IgnoredResponse | dict[str, str]:
    settings = _settings(request)
    body = await request.body()

    if settings.webhook_secret and not verify_signature(
        settings.webhook_secret, body, x_hub_signature_256
    ):
        logger.warning("Rejected webhook with invalid signature", extra={"event": x_github_event})
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        payload: Any = json.loads(body or b"null")
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=400, detail="Body is not valid JSON") from e
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Body must be a JSON object")

    event = (x_github_event or "").strip()
    action = payload.get("action")
    repo_info = payload.get("repository")
    repository = repo_info.get("full_name") if isinstance(repo_info, dict) else None
    issue_info = payload.get("issue")
    issue_number = issue_info.get("number") if isinstance(issue_info, dict) else None

    if event == "ping":
        return {"status": "pong"}

    tracker = _tracker(request)

    if event == "issues" and action == "opened":
        outcome = await run_in_threadpool(tracker.issue_opened, repository, issue_number)
        return InvestigateResponse.from_outcome(outcome)

    if event == "issue_comment" and action == "created":
        if isinstance(issue_info, dict) and issue_info.get("pull_request"):
            return IgnoredResponse(
                reason=IgnoreReason.PULL_REQUEST.value, event=event, action=str(action)
            )
        comment = payload.get("comment")
        commenter, commenter_type = _login(
            comment.get("user") if isinstance(comment, dict) else None
        )
        if not commenter:
            commenter, commenter_type = _login(payload.get("sender"))
        comment_outcome = await run_in_threadpool(
            tracker.comment_created,
            repository,
            issue_number,
            commenter,
            commenter_type=commenter_type,
        )
        return CommentResponse.from_outcome(comment_outcome)

    logger.debug("Ignoring webhook delivery", extra={"event": event, "action": action})
    return IgnoredResponse(
        reason=IgnoreReason.UNSUPPORTED_EVENT.value,
        event=event or None,
        action=action if isinstance(action, str) else None,
    )
