"""
cardkeep - offline-first contact cards.

Cards live in a local SQLite store and converge with a remote replica by
content, with no server-side merge.
"""

from .content_key import card_fingerprint, content_key, fingerprint
from .core import CardKeep
from .types import Card, CardKeepError, Profile, RemoteReplicaError, SyncReport

try:
    from importlib.metadata import version

    __version__ = version("cardkeep")
except Exception:
    __version__ = "0.0.0"

__all__ = [
    "CardKeep",
    "Card",
    "Profile",
    "SyncReport",
    "CardKeepError",
    "RemoteReplicaError",
    "content_key",
    "fingerprint",
    "card_fingerprint",
]
