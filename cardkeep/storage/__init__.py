"""cardkeep storage backends.

Local-first storage using SQLite, a remote replica over the Firebase
Realtime Database REST API, and the reconciler that keeps them convergent.
"""

from .base import ConnectivityOracle, LocalStore, RemoteReplica
from .remote import FirebaseReplica, InMemoryReplica, parse_card_records
from .sqlite import SQLiteStore
from .sync_engine import Reconciler, choose_canonical, group_by_content_key

__all__ = [
    # Protocols
    "LocalStore",
    "RemoteReplica",
    "ConnectivityOracle",
    # Backends
    "SQLiteStore",
    "FirebaseReplica",
    "InMemoryReplica",
    "parse_card_records",
    # Sync
    "Reconciler",
    "choose_canonical",
    "group_by_content_key",
]
