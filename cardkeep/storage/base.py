"""Collaborator contracts for the reconciler.

The reconciler only talks to three things: a local store, a remote replica
and a connectivity oracle. Each is described here as a Protocol so tests
and alternative backends can stand in for the SQLite store and the
Firebase replica.
"""

from typing import List, Mapping, Optional, Protocol, Union, runtime_checkable

from cardkeep.types import Card, Profile, RemoteCard

CardFields = Union[Card, Mapping[str, str]]


@runtime_checkable
class LocalStore(Protocol):
    """On-device store holding cards and the cached profile.

    Local calls are short and blocking. Storage errors propagate to the
    caller.
    """

    # === Cards ===

    def insert_card(self, owner_id: str, card: CardFields) -> int:
        """Append a card unconditionally and return its row id."""
        ...

    def card_exists(self, owner_id: str, card: CardFields) -> bool:
        """Exact, case-sensitive match on the seven fields plus owner."""
        ...

    def list_cards(self, owner_id: str) -> List[Card]:
        """Cards for an owner, newest first when timestamps are available."""
        ...

    def delete_card(self, row_id: int) -> bool: ...

    def delete_cards_by_content(self, owner_id: str, card: CardFields) -> int: ...

    def get_card(self, owner_id: str, row_id: int) -> Optional[Card]: ...

    def clear_cards(self, owner_id: str) -> int:
        """Remove every card of an owner (sign-out)."""
        ...

    # === Profile cache ===

    def get_profile(self, owner_id: str) -> Optional[Profile]: ...

    def put_profile(self, owner_id: str, profile: Union[Profile, Mapping[str, str]]) -> None:
        """Overwrite the cached fields and stamp last-synced-at. Dirty is untouched."""
        ...

    def mark_dirty(self, owner_id: str) -> None: ...

    def clear_dirty(self, owner_id: str) -> None: ...

    def is_dirty(self, owner_id: str) -> bool: ...


@runtime_checkable
class RemoteReplica(Protocol):
    """Shared document store: ``users/<owner>/profile`` and ``users/<owner>/cards/<key>``.

    All calls are asynchronous and may raise ``RemoteReplicaError``.
    Retries and timeouts belong to the implementation.
    """

    async def list_cards(self, owner_id: str) -> List[RemoteCard]: ...

    async def set_card(
        self,
        owner_id: str,
        key: str,
        card: CardFields,
        source: Optional[str],
        created_at: Optional[str],
    ) -> None: ...

    async def delete_card(self, owner_id: str, key: str) -> None: ...

    async def get_profile(self, owner_id: str) -> Optional[Profile]: ...

    async def set_profile(self, owner_id: str, profile: Profile) -> None: ...


@runtime_checkable
class ConnectivityOracle(Protocol):
    """Boolean reachability check consulted before a sync run."""

    async def is_online(self) -> bool: ...
