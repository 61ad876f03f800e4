"""Unit tests for the investigation ledger and its legacy migration."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

from investigation_tracker.tracker.state.documents import JsonDocument
from investigation_tracker.tracker.state.ledger import LEDGER_SCHEMA_VERSION, InvestigationLedger
from investigation_tracker.tracker.state.store import StateStore

REPO = "octo-org/octo-repo"


def _ledger(path: Path) -> InvestigationLedger:
    return InvestigationLedger(JsonDocument(path))


def test_record_then_lookup(tmp_path: Path) -> None:
    ledger = _ledger(tmp_path / "investigated.json")
    when = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    assert ledger.is_investigated(REPO, 42) is False
    assert ledger.get_investigated_at(REPO, 42) is None

    entry = ledger.record(REPO, 42, investigated_at=when)

    assert entry.investigated_at == when
    assert ledger.is_investigated(REPO, 42) is True
    assert ledger.get_investigated_at(REPO, 42) == when
    assert ledger.is_investigated(REPO, 43) is False
    assert ledger.is_investigated("other/repo", 42) is False


def test_record_overwrites_previous_investigation(tmp_path: Path) -> None:
    path = tmp_path / "investigated.json"
    ledger = _ledger(path)

    ledger.record(REPO, 7, investigated_at=datetime(2025, 1, 1, tzinfo=UTC))
    ledger.record(REPO, 7, investigated_at=datetime(2025, 2, 1, tzinfo=UTC))

    assert ledger.get_investigated_at(REPO, 7) == datetime(2025, 2, 1, tzinfo=UTC)
    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw == {
        "version": LEDGER_SCHEMA_VERSION,
        "repositories": {REPO: {"7": {"investigated_at": "2025-02-01T00:00:00+00:00"}}},
    }


def test_naive_timestamps_are_treated_as_utc(tmp_path: Path) -> None:
    ledger = _ledger(tmp_path / "investigated.json")
    ledger.record(REPO, 1, investigated_at=datetime(2025, 1, 1, 8, 30))

    assert ledger.get_investigated_at(REPO, 1) == datetime(2025, 1, 1, 8, 30, tzinfo=UTC)


def test_migrate_converts_legacy_lists_with_one_shared_timestamp(tmp_path: Path) -> None:
    path = tmp_path / "investigated.json"
    path.write_text(json.dumps({REPO: [1, 2, 3]}), encoding="utf-8")
    ledger = _ledger(path)

    before = datetime.now(UTC)
    assert ledger.migrate() is True
    after = datetime.now(UTC)

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw["version"] == LEDGER_SCHEMA_VERSION
    issues = raw["repositories"][REPO]
    assert set(issues) == {"1", "2", "3"}

    stamps = {entry["investigated_at"] for entry in issues.values()}
    assert len(stamps) == 1
    migrated_at = datetime.fromisoformat(stamps.pop())
    assert before <= migrated_at <= after

    for number in (1, 2, 3):
        assert ledger.is_investigated(REPO, number)


def test_migrate_twice_is_a_noop(tmp_path: Path) -> None:
    path = tmp_path / "investigated.json"
    path.write_text(json.dumps({REPO: [5, 6]}), encoding="utf-8")
    ledger = _ledger(path)

    assert ledger.migrate() is True
    first = path.read_text(encoding="utf-8")

    assert ledger.migrate() is False
    assert path.read_text(encoding="utf-8") == first


def test_migrate_keeps_entries_already_timestamped(tmp_path: Path) -> None:
    path = tmp_path / "investigated.json"
    path.write_text(
        json.dumps(
            {
                REPO: {"10": {"investigatedAt": "2024-06-01T00:00:00Z"}},
                "legacy-org/legacy": [4],
            }
        ),
        encoding="utf-8",
    )
    ledger = _ledger(path)

    assert ledger.migrate() is True

    assert ledger.get_investigated_at(REPO, 10) == datetime(2024, 6, 1, tzinfo=UTC)
    assert ledger.is_investigated("legacy-org/legacy", 4)


def test_migrate_without_a_ledger_does_nothing(tmp_path: Path) -> None:
    path = tmp_path / "investigated.json"
    ledger = _ledger(path)

    assert ledger.migrate() is False
    assert not path.exists()


def test_corrupt_ledger_reads_as_empty(tmp_path: Path) -> None:
    path = tmp_path / "investigated.json"
    path.write_text("{not json", encoding="utf-8")
    ledger = _ledger(path)

    assert ledger.is_investigated(REPO, 1) is False
    assert ledger.entries() == []


def test_entries_are_sorted(tmp_path: Path) -> None:
    ledger = _ledger(tmp_path / "investigated.json")
    when = datetime(2025, 1, 1, tzinfo=UTC)
    ledger.record("b/repo", 2, investigated_at=when)
    ledger.record("a/repo", 10, investigated_at=when)
    ledger.record("a/repo", 9, investigated_at=when)

    assert [(e.repository, e.issue_number) for e in ledger.entries()] == [
        ("a/repo", 9),
        ("a/repo", 10),
        ("b/repo", 2),
    ]


def test_state_store_open_migrates_legacy_ledger(tmp_path: Path) -> None:
    state_dir = tmp_path / "agent_state"
    state_dir.mkdir()
    (state_dir / "investigated.json").write_text(json.dumps({REPO: [1]}), encoding="utf-8")

    store = StateStore.open(state_dir)
    assert store.migrated is True
    assert store.ledger.is_investigated(REPO, 1)

    reopened = StateStore.open(state_dir)
    assert reopened.migrated is False
