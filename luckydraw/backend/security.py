"""Security helpers for shared-secret checks."""

from __future__ import annotations

import secrets


def secrets_match(candidate: str, expected: str) -> bool:
    """Compare two shared secrets case-sensitively in constant time."""
    return secrets.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))
