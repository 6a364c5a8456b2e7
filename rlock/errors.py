"""Exceptions raised by the lock manager and its handles.

Catch ``LockError`` to handle every failure coming out of the library, or one
of the subclasses when the caller needs to react differently, e.g. retrying
``RLock.lock`` after an ``AcquireTimeoutError``.
"""

from __future__ import annotations


class LockError(Exception):
    """Base class for all lock failures."""


class LockConfigError(LockError, ValueError):
    """Raised when the manager is constructed or called with unusable arguments."""


class AcquireTimeoutError(LockError, TimeoutError):
    """Raised when a valid holder kept the lock past the acquire timeout."""

    def __init__(self, name: str, timeout: float):
        super().__init__("reached timeout while waiting on lock")
        self.name = name
        self.timeout = timeout


class LockNotFoundError(LockError, LookupError):
    """Raised when a lock row expected to exist has disappeared."""

    def __init__(self, name: str, message: str = "no such lock"):
        super().__init__(message)
        self.name = name


class LockInUseError(LockError):
    """A guarded takeover matched no row.

    Either someone else already changed the owner, or (for a non-forced
    takeover) the current holder has not released the lock yet. The poll loop
    retries this one.
    """


class LockConsistencyError(LockError):
    """A takeover touched more than one row; the name is no longer unique."""


class LockStoreError(LockError):
    """A storage call failed. Carries the operation and lock name."""

    def __init__(self, message: str, *, operation: str, name: str):
        super().__init__(message)
        self.operation = operation
        self.name = name


class LastErrorFetchError(LockStoreError):
    """Reading ``last_error`` for the current holder failed."""


class UnlockError(LockError):
    """Unlock did not update exactly one row owned by this manager."""


class PreviousHolderError(LockError):
    """Outcome left behind by the previous holder of a lock.

    Returned (not raised) by ``Lock.last_error()``.
    """
