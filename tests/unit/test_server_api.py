from __future__ import annotations

import hashlib
import hmac
import json
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from investigation_tracker.server.app import create_app
from investigation_tracker.server.config import ServerSettings
from investigation_tracker.tracker.handlers import InvestigationTracker

REPO = "octo-org/octo-repo"
T0 = datetime(2025, 1, 1, tzinfo=UTC)


def _settings(monkeypatch: pytest.MonkeyPatch, state_dir: Path, **env: str) -> ServerSettings:
    monkeypatch.setenv("AGENT_STATE_PATH", str(state_dir))
    monkeypatch.delenv("GITHUB_WEBHOOK_SECRET", raising=False)
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return ServerSettings(_env_file=None)


@pytest.fixture
def client(
    monkeypatch: pytest.MonkeyPatch, state_dir: Path, tracker: InvestigationTracker
) -> TestClient:
    return TestClient(create_app(_settings(monkeypatch, state_dir), tracker=tracker))


def _issue_comment(login: str, *, issue: int = 42, user_type: str = "User") -> dict[str, object]:
    return {
        "action": "created",
        "repository": {"full_name": REPO},
        "issue": {"number": issue},
        "comment": {"user": {"login": login, "type": user_type}},
        "sender": {"login": login, "type": user_type},
    }


def test_health(client: TestClient) -> None:
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert "version" in body


def test_investigate_endpoint(client: TestClient, source, mock_supervisor: Mock) -> None:
    source.set_open(REPO, (1, T0), (2, T0))

    resp = client.post("/investigate", json={"repo": REPO, "issue": 1})

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "queued"
    assert body["repo"] == REPO
    assert body["issue"] == 1
    assert body["queue_length"] == 2
    assert body["scan"] == {"new": 1, "reinvestigate": 0, "error": None}
    assert body["worker"] == "started"


@pytest.mark.parametrize(
    "payload",
    [
        {"issue": 1},
        {"repo": REPO},
        {"repo": "nope", "issue": 1},
        {"repo": REPO, "issue": -1},
    ],
)
def test_investigate_rejects_malformed_input(
    client: TestClient, tracker: InvestigationTracker, payload: dict[str, object]
) -> None:
    resp = client.post("/investigate", json=payload)

    assert resp.status_code == 400
    assert "error" in resp.json()
    assert tracker.state.queue.length() == 0


def test_investigate_rejects_non_json_body(client: TestClient) -> None:
    resp = client.post(
        "/investigate", content=b"not json", headers={"Content-Type": "application/json"}
    )
    assert resp.status_code == 400


def test_status_endpoint(client: TestClient, tracker: InvestigationTracker) -> None:
    tracker.state.ledger.record(REPO, 7, investigated_at=T0)
    tracker.state.queue.enqueue(REPO, 8)

    body = client.get("/status").json()

    assert [(i["repo"], i["issue"]) for i in body["queue"]] == [(REPO, 8)]
    assert body["ledger"] == {REPO: {"7": {"investigated_at": "2025-01-01T00:00:00+00:00"}}}
    assert body["worker_alive"] is False


def test_webhook_ping(client: TestClient) -> None:
    resp = client.post("/webhook", json={"zen": "hi"}, headers={"X-GitHub-Event": "ping"})
    assert resp.json() == {"status": "pong"}


def test_webhook_issue_opened(client: TestClient, tracker: InvestigationTracker, source) -> None:
    payload = {"action": "opened", "repository": {"full_name": REPO}, "issue": {"number": 3}}

    resp = client.post("/webhook", json=payload, headers={"X-GitHub-Event": "issues"})

    assert resp.status_code == 200
    assert resp.json()["queued"] is True
    assert tracker.state.queue.is_queued(REPO, 3)
    assert source.calls == [REPO]


def test_webhook_issue_closed_is_ignored(client: TestClient, tracker: InvestigationTracker) -> None:
    payload = {"action": "closed", "repository": {"full_name": REPO}, "issue": {"number": 3}}

    resp = client.post("/webhook", json=payload, headers={"X-GitHub-Event": "issues"})

    assert resp.json()["status"] == "ignored"
    assert resp.json()["reason"] == "unsupported_event"
    assert tracker.state.queue.length() == 0


def test_webhook_bot_comment_is_ignored(client: TestClient, tracker: InvestigationTracker) -> None:
    tracker.state.ledger.record(REPO, 42, investigated_at=T0)

    resp = client.post(
        "/webhook",
        json=_issue_comment("ci-bot[bot]", user_type="Bot"),
        headers={"X-GitHub-Event": "issue_comment"},
    )

    assert resp.json()["status"] == "ignored"
    assert resp.json()["reason"] == "bot_comment"
    assert tracker.state.queue.length() == 0


def test_webhook_comment_on_uninvestigated_issue(client: TestClient) -> None:
    resp = client.post(
        "/webhook", json=_issue_comment("alice"), headers={"X-GitHub-Event": "issue_comment"}
    )

    assert resp.json()["status"] == "ignored"
    assert resp.json()["reason"] == "not_previously_investigated"


def test_webhook_comment_queues_reinvestigation(
    client: TestClient, tracker: InvestigationTracker
) -> None:
    tracker.state.ledger.record(REPO, 42, investigated_at=T0)

    resp = client.post(
        "/webhook", json=_issue_comment("alice"), headers={"X-GitHub-Event": "issue_comment"}
    )

    body = resp.json()
    assert body["status"] == "queued"
    assert body["worker"] == "started"
    assert tracker.state.queue.snapshot()[0].is_reinvestigation is True


def test_webhook_pull_request_comment_is_ignored(
    client: TestClient, tracker: InvestigationTracker
) -> None:
    tracker.state.ledger.record(REPO, 42, investigated_at=T0)
    payload = _issue_comment("alice")
    payload["issue"] = {"number": 42, "pull_request": {"url": "https://example.invalid"}}

    resp = client.post("/webhook", json=payload, headers={"X-GitHub-Event": "issue_comment"})

    assert resp.json()["reason"] == "pull_request"
    assert tracker.state.queue.length() == 0


def test_webhook_with_malformed_repository_is_rejected(client: TestClient) -> None:
    payload = {"action": "opened", "repository": {"full_name": "bad"}, "issue": {"number": 1}}

    resp = client.post("/webhook", json=payload, headers={"X-GitHub-Event": "issues"})

    assert resp.status_code == 400


def test_webhook_signature_is_enforced_when_secret_configured(
    monkeypatch: pytest.MonkeyPatch, state_dir: Path, tracker: InvestigationTracker
) -> None:
    settings = _settings(monkeypatch, state_dir, GITHUB_WEBHOOK_SECRET="s3cret")
    client = TestClient(create_app(settings, tracker=tracker))
    body = json.dumps(
        {"action": "opened", "repository": {"full_name": REPO}, "issue": {"number": 1}}
    ).encode("utf-8")

    unsigned = client.post(
        "/webhook",
        content=body,
        headers={"X-GitHub-Event": "issues", "Content-Type": "application/json"},
    )
    assert unsigned.status_code == 401
    assert tracker.state.queue.length() == 0

    signature = "sha256=" + hmac.new(b"s3cret", body, hashlib.sha256).hexdigest()
    signed = client.post(
        "/webhook",
        content=body,
        headers={
            "X-GitHub-Event": "issues",
            "X-Hub-Signature-256": signature,
            "Content-Type": "application/json",
        },
    )
    assert signed.status_code == 200
    assert tracker.state.queue.is_queued(REPO, 1)
