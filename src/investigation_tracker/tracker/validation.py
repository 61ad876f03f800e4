"""Input validation for investigation requests.

Requests are validated before they reach the queue so malformed input never
mutates state.
"""

from __future__ import annotations

import re

REPOSITORY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


class InvalidRequest(ValueError):
    """Raised when a trigger carries a malformed repository or issue number."""


def validate_repository(value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidRequest("Missing repo")
    repo = value.strip()
    if not REPOSITORY_PATTERN.match(repo):
        raise InvalidRequest(f"Invalid repo {repo!r}: expected 'owner/name'")
    if any(set(part) == {"."} for part in repo.split("/")):
        raise InvalidRequest(f"Invalid repo {repo!r}: owner and name cannot be only dots")
    return repo


def validate_issue_number(value: object) -> int:
    # bool is an int subclass; JSON `true` is not an issue number.
    if isinstance(value, bool):
        raise InvalidRequest("Invalid issue: expected a positive integer")
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if value is None:
        raise InvalidRequest("Missing issue")
    if not isinstance(value, int) or value <= 0:
        raise InvalidRequest("Invalid issue: expected a positive integer")
    return value
