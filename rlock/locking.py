"""Named mutex whose state lives in a shared SQL table.

Acquisition first tries to insert the row for the name. If the name exists,
the row is inspected: a released or stale row is taken over straight away,
a row that is genuinely held is polled with a guarded takeover until the
holder releases it or the acquire timeout passes.

The owner column doubles as the compare-and-swap token: a takeover only
matches while the owner observed at fetch time is still the owner.
"""

from __future__ import annotations

import sqlite3
import time
from datetime import timedelta
from typing import Protocol

import structlog

from .config import settings
from .errors import (
    AcquireTimeoutError,
    LastErrorFetchError,
    LockConfigError,
    LockConsistencyError,
    LockError,
    LockInUseError,
    LockNotFoundError,
    PreviousHolderError,
    UnlockError,
)
from .identity import generate_owner_id
from .store import LockStore
from .utils import now_utc, poll_until, to_seconds

log = structlog.get_logger()


def serialize_error(error: BaseException | str | None) -> str:
    if error is None:
        return ""
    text = str(error)
    if not text and isinstance(error, BaseException):
        # An empty message would read as "no error" to the next holder.
        return type(error).__name__
    return text


class LockManager(Protocol):
    def lock(self, name: str, acquire_timeout: float | timedelta) -> "Lock": ...


class RLock:
    def __init__(
        self,
        store: LockStore,
        *,
        poll_interval: float | timedelta | None = None,
        max_age: float | timedelta | None = None,
    ):
        if store is None:
            raise LockConfigError("store cannot be None")
        self.store = store
        self.owner = generate_owner_id()
        self.poll_interval = to_seconds(settings.poll_interval_seconds if poll_interval is None else poll_interval)
        self.max_age = to_seconds(settings.max_age_seconds if max_age is None else max_age)
        if self.poll_interval <= 0:
            raise LockConfigError("poll_interval must be positive")
        if self.max_age <= 0:
            raise LockConfigError("max_age must be positive")

    @classmethod
    def from_connection(cls, conn: sqlite3.Connection, table: str | None = None, **kwargs) -> "RLock":
        if conn is None:
            raise LockConfigError("store cannot be None")
        return cls(LockStore(conn, table), **kwargs)

    def lock(self, name: str, acquire_timeout: float | timedelta) -> "Lock":
        timeout = to_seconds(acquire_timeout)
        if timeout < 0:
            raise LockConfigError("acquire_timeout cannot be negative")

        if self.store.insert(name, self.owner):
            log.debug("lock_acquired", name=name, owner=self.owner, path="insert")
            return Lock(self, name, acquire_timeout)

        existing = self.store.get_by_name(name)
        if existing is None:
            raise LockNotFoundError(name, "lock no longer exists")

        reason = existing.invalid_reason(now_utc(), self.max_age)
        if reason is not None:
            # Forced: the row is released or stale, only the owner guard applies.
            try:
                self.takeover(name, existing.owner, force=True)
            except LockError as exc:
                log.warning("lock_takeover_failed", name=name, owner=self.owner, reason=reason, err=str(exc))
                raise
            log.info(
                "lock_acquired",
                name=name,
                owner=self.owner,
                path="forced_takeover",
                reason=reason,
                previous_owner=existing.owner,
            )
            return Lock(self, name, acquire_timeout)

        log.debug("lock_contended", name=name, owner=self.owner, holder=existing.owner, timeout=timeout)
        deadline = time.monotonic() + timeout
        try:
            poll_until(
                lambda: self.takeover(name, existing.owner, force=False),
                interval=self.poll_interval,
                deadline=deadline,
                retry_on=(LockInUseError,),
            )
        except TimeoutError:
            log.info("lock_poll_timeout", name=name, owner=self.owner, holder=existing.owner, timeout=timeout)
            raise AcquireTimeoutError(name, timeout) from None
        log.debug("lock_acquired", name=name, owner=self.owner, path="guarded_takeover")
        return Lock(self, name, acquire_timeout)

    def takeover(self, name: str, observed_owner: str, force: bool) -> None:
        """Move ``name`` to this manager if ``observed_owner`` still holds it.

        Unless forced, the row must also be released (``in_use = 0``).
        """
        affected = self.store.update_owner(name, observed_owner, self.owner, require_free=not force)
        if affected > 1:
            log.error("lock_consistency_violation", name=name, affected=affected)
            raise LockConsistencyError(f"lock takeover of '{name}' affected {affected} rows, possible bug")
        if affected == 0:
            raise LockInUseError(f"unable to take over lock '{name}', still in use")


class Lock:
    """A lock believed to be held by ``rl``. Released once, never reused."""

    def __init__(self, rl: RLock, name: str, timeout: float | timedelta):
        self._rl = rl
        self.name = name
        self.timeout = timeout
        self.released = False

    @property
    def owner(self) -> str:
        return self._rl.owner

    def unlock(self, error: BaseException | str | None = None) -> None:
        """Release the lock and leave ``error`` for the next holder.

        Raises if the row could not be updated; the lock would otherwise stay
        in use until it goes stale.
        """
        if self.released:
            raise UnlockError(f"lock '{self.name}' was already unlocked")
        last_error = serialize_error(error)
        try:
            affected = self._rl.store.release(self.name, self.owner, last_error)
        except LockError as exc:
            log.error("lock_unlock_failed", name=self.name, owner=self.owner, err=str(exc))
            raise
        if affected != 1:
            log.error("lock_unlock_failed", name=self.name, owner=self.owner, affected=affected)
            raise UnlockError(f"unexpected number of affected rows after unlock ({affected})")
        self.released = True
        log.debug("lock_unlocked", name=self.name, owner=self.owner, with_error=bool(last_error))

    def last_error(self) -> PreviousHolderError | None:
        """Outcome the previous holder left on unlock, or None if it reported none."""
        try:
            value = self._rl.store.get_last_error(self.name, self.owner)
        except LockError as exc:
            raise LastErrorFetchError(
                f"unexpected error while fetching last error state: {exc}",
                operation="last_error",
                name=self.name,
            ) from exc
        if value is None:
            raise LastErrorFetchError(
                f"unexpected error while fetching last error state: no lock '{self.name}' held by this owner",
                operation="last_error",
                name=self.name,
            )
        if value == "":
            return None
        return PreviousHolderError(value)

    def __enter__(self) -> "Lock":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self.released:
            self.unlock(exc)

    def __repr__(self) -> str:
        return f"Lock(name={self.name!r}, owner={self.owner!r}, released={self.released})"
