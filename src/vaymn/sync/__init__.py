"""Sync module for the remote store and the local persistence mirror.

Mirrors the Supabase tables into local SQLite storage, remote-first on
read and local-first on write.
"""

from .mirror import (
    LOCAL_KEYS,
    SESSION_KEY,
    PersistenceMirror,
)
from .remote import (
    RemoteConfigError,
    RemoteStore,
    RemoteStoreError,
    RemoteTimeoutError,
)

__all__ = [
    # Mirror
    "LOCAL_KEYS",
    "SESSION_KEY",
    "PersistenceMirror",
    # Remote store client
    "RemoteConfigError",
    "RemoteStore",
    "RemoteStoreError",
    "RemoteTimeoutError",
]
