"""
Persisted Grove state: atomic JSON state files and the shared state lock.
"""

from grove.state.lock import LockInfo, StateLock
from grove.state.storage import (
    PersistentState,
    StateStore,
    atomic_write_json,
    quarantine,
    read_json,
)

__all__ = [
    'LockInfo',
    'StateLock',
    'PersistentState',
    'StateStore',
    'atomic_write_json',
    'quarantine',
    'read_json',
]
