"""Investigation ledger: the latest investigation time per (repository, issue).

Persisted shape (schema version 2)::

    {
      "version": 2,
      "repositories": {
        "owner/name": {"42": {"investigated_at": "2025-01-01T00:00:00+00:00"}}
      }
    }

Older deployments wrote an unversioned mapping where a repository value could be
a bare list of issue numbers (no timestamps). :meth:`InvestigationLedger.migrate`
rewrites those documents once; afterwards the version tag makes the check O(1).
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel

from investigation_tracker.tracker.state.documents import JsonDocument

logger = logging.getLogger(__name__)

LEDGER_SCHEMA_VERSION = 2

_Repositories = dict[str, dict[str, dict[str, str]]]


class LedgerEntry(BaseModel):
    """The most recent completed investigation of one issue."""

    repository: str
    issue_number: int
    investigated_at: datetime


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _parse_timestamp(value: object) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return _to_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        return None


def _entry_timestamp(value: object) -> str | None:
    """Extract the ISO timestamp of an unversioned entry, if it has one."""

    if isinstance(value, dict):
        for key in ("investigated_at", "investigatedAt"):
            parsed = _parse_timestamp(value.get(key))
            if parsed is not None:
                return parsed.isoformat()
        return None
    parsed = _parse_timestamp(value)
    return parsed.isoformat() if parsed is not None else None


class InvestigationLedger:
    """Read access for the tracker plus the worker's completion write-back."""

    def __init__(self, document: JsonDocument) -> None:
        self._doc = document

    def _load_unlocked(self) -> _Repositories:
        raw = self._doc.load_unlocked()
        if not isinstance(raw, dict):
            return {}
        if raw.get("version") != LEDGER_SCHEMA_VERSION:
            # Not migrated yet: only timestamped mappings are readable.
            return _normalize_repositories(raw, migrated_at=None)
        repositories = raw.get("repositories")
        if not isinstance(repositories, dict):
            return {}
        return _normalize_repositories(repositories, migrated_at=None)

    def _save_unlocked(self, repositories: _Repositories) -> None:
        self._doc.save_unlocked(
            {"version": LEDGER_SCHEMA_VERSION, "repositories": repositories}
        )

    def is_investigated(self, repository: str, issue_number: int) -> bool:
        return self.get_investigated_at(repository, issue_number) is not None

    def get_investigated_at(self, repository: str, issue_number: int) -> datetime | None:
        with self._doc.locked():
            repositories = self._load_unlocked()
        entry = repositories.get(repository, {}).get(str(issue_number))
        if entry is None:
            return None
        return _parse_timestamp(entry.get("investigated_at"))

    def record(
        self,
        repository: str,
        issue_number: int,
        *,
        investigated_at: datetime | None = None,
    ) -> LedgerEntry:
        """Record a completed investigation, replacing any earlier time."""

        when = _to_utc(investigated_at) if investigated_at is not None else datetime.now(UTC)
        with self._doc.locked():
            repositories = self._load_unlocked()
            repositories.setdefault(repository, {})[str(issue_number)] = {
                "investigated_at": when.isoformat()
            }
            self._save_unlocked(repositories)

        logger.info(
            "Investigation recorded",
            extra={
                "repository": repository,
                "issue_number": issue_number,
                "investigated_at": when.isoformat(),
            },
        )
        return LedgerEntry(
            repository=repository, issue_number=issue_number, investigated_at=when
        )

    def entries(self) -> list[LedgerEntry]:
        with self._doc.locked():
            repositories = self._load_unlocked()
        out: list[LedgerEntry] = []
        for repository in sorted(repositories):
            issues = repositories[repository]
            for key in sorted(issues, key=int):
                when = _parse_timestamp(issues[key].get("investigated_at"))
                if when is None:
                    continue
                out.append(
                    LedgerEntry(repository=repository, issue_number=int(key), investigated_at=when)
                )
        return out

    def snapshot(self) -> _Repositories:
        with self._doc.locked():
            return self._load_unlocked()

    def migrate(self) -> bool:
        """Rewrite an unversioned ledger to the current schema.

        Every legacy issue number gets the same migration timestamp. Entries that
        already carry a timestamp keep it.

        Returns:
            True when the document was rewritten.
        """

        with self._doc.locked():
            raw = self._doc.load_unlocked()
            if raw is None:
                return False
            if isinstance(raw, dict) and raw.get("version") == LEDGER_SCHEMA_VERSION:
                return False
            if not isinstance(raw, dict):
                logger.warning(
                    "Ledger has unexpected shape; resetting to an empty ledger",
                    extra={"path": str(self._doc.path)},
                )
                self._save_unlocked({})
                return True

            migrated_at = datetime.now(UTC)
            repositories = _normalize_repositories(raw, migrated_at=migrated_at)
            self._save_unlocked(repositories)

        logger.info(
            "Ledger migrated to versioned schema",
            extra={
                "path": str(self._doc.path),
                "repositories": len(repositories),
                "migrated_at": migrated_at.isoformat(),
            },
        )
        return True


def _normalize_repositories(raw: dict[str, Any], *, migrated_at: datetime | None) -> _Repositories:
    """Coerce an unversioned mapping into ``repo -> issue -> {investigated_at}``.

    Bare lists of issue numbers are only converted when ``migrated_at`` is given;
    otherwise they are skipped.
    """

    out: _Repositories = {}
    for repository, value in raw.items():
        if not isinstance(repository, str) or repository == "version":
            continue
        issues: dict[str, dict[str, str]] = {}
        if isinstance(value, list):
            if migrated_at is None:
                continue
            stamp = migrated_at.isoformat()
            for number in value:
                key = str(number).strip()
                if key.isdigit() and int(key) > 0:
                    issues[str(int(key))] = {"investigated_at": stamp}
        elif isinstance(value, dict):
            for number, entry in value.items():
                key = str(number).strip()
                if not key.isdigit() or int(key) <= 0:
                    continue
                stamp_or_none = _entry_timestamp(entry)
                if stamp_or_none is None:
                    if migrated_at is None:
                        continue
                    stamp_or_none = migrated_at.isoformat()
                issues[str(int(key))] = {"investigated_at": stamp_or_none}
        else:
            continue
        out[repository] = issues
    return out
