from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .utils import parse_utc

COLUMNS = ("id", "name", "owner", "in_use", "last_error", "last_used", "created_at")


@dataclass(frozen=True)
class LockEntry:
    """One row of the lock table."""

    id: int
    name: str
    owner: str
    in_use: bool
    last_error: str
    last_used: datetime | None
    created_at: datetime | None

    @classmethod
    def from_row(cls, row) -> "LockEntry":
        values = dict(zip(COLUMNS, row))
        return cls(
            id=int(values["id"]),
            name=values["name"],
            owner=values["owner"],
            in_use=bool(values["in_use"]),
            last_error=values["last_error"] or "",
            last_used=parse_utc(values["last_used"]),
            created_at=parse_utc(values["created_at"]),
        )

    def is_stale(self, now: datetime, max_age_seconds: float) -> bool:
        # A row without a readable last_used cannot prove it is fresh.
        if self.last_used is None:
            return True
        return (now - self.last_used).total_seconds() > max_age_seconds

    def invalid_reason(self, now: datetime, max_age_seconds: float) -> str | None:
        """Why this row may be taken over without waiting, or None if it is held."""
        if not self.in_use:
            return "not_in_use"
        if self.is_stale(now, max_age_seconds):
            return "stale"
        return None
