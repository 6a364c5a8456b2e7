"""Mutual-exclusion locks kept in a shared SQL table."""

from .db import get_conn, migrate
from .errors import (
    AcquireTimeoutError,
    LastErrorFetchError,
    LockConfigError,
    LockConsistencyError,
    LockError,
    LockInUseError,
    LockNotFoundError,
    LockStoreError,
    PreviousHolderError,
    UnlockError,
)
from .locking import Lock, LockManager, RLock
from .models import LockEntry
from .store import LockStore

__all__ = [
    "__version__",
    "get_conn",
    "migrate",
    "Lock",
    "LockManager",
    "RLock",
    "LockEntry",
    "LockStore",
    "AcquireTimeoutError",
    "LastErrorFetchError",
    "LockConfigError",
    "LockConsistencyError",
    "LockError",
    "LockInUseError",
    "LockNotFoundError",
    "LockStoreError",
    "PreviousHolderError",
    "UnlockError",
]

__version__ = "0.1.0"
