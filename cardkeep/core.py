"""
CardKeep Core - offline-first contact cards.

This module provides the CardKeep class, the interface the CLI (and any
host app) uses. Every edit lands in the local store first; the replica is
only touched by scans, deletes and sync runs, and only when online.
"""

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from cardkeep.config import Settings, load_settings
from cardkeep.connectivity import ReplicaConnectivity, StaticConnectivity
from cardkeep.content_key import card_fingerprint, content_key
from cardkeep.logging_config import log_card_deleted, log_card_saved, log_sync
from cardkeep.scan import screen_scanned_card
from cardkeep.storage import FirebaseReplica, Reconciler, SQLiteStore
from cardkeep.storage.base import ConnectivityOracle, LocalStore, RemoteReplica
from cardkeep.types import (
    Card,
    CardSource,
    Profile,
    RemoteReplicaError,
    SyncReport,
    remote_timestamp,
)
from cardkeep.utils import validate_owner_id

logger = logging.getLogger(__name__)


class CardKeep:
    """Card book for one signed-in owner.

    Args:
        owner_id: Account id; scopes both replicas.
        store: Local store. Defaults to ``SQLiteStore`` under the cardkeep home.
        remote: Remote replica. ``None`` runs fully offline.
        connectivity: Oracle for online checks. Defaults to online whenever
            a replica is configured.
        account_email: Fallback email for a profile pushed without one.
        auto_sync: Whether ``sync_on_foreground`` runs a sync.
    """

    def __init__(
        self,
        owner_id: str,
        store: Optional[LocalStore] = None,
        remote: Optional[RemoteReplica] = None,
        connectivity: Optional[ConnectivityOracle] = None,
        account_email: Optional[str] = None,
        auto_sync: bool = True,
    ):
        self.owner_id = validate_owner_id(owner_id)
        self.store = store if store is not None else SQLiteStore()
        self.remote = remote
        self.connectivity = connectivity or StaticConnectivity(online=remote is not None)
        self.account_email = account_email
        self.auto_sync = auto_sync
        self._last_task: Optional[asyncio.Task] = None
        self.reconciler = (
            Reconciler(self.store, remote, self.connectivity) if remote is not None else None
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "CardKeep":
        """Wire a store, replica and connectivity probe from settings."""
        settings = settings or load_settings()
        owner_id = settings.require_owner()
        store = SQLiteStore(settings.resolved_db_path())

        remote = None
        connectivity = None
        if settings.has_remote():
            remote = FirebaseReplica(
                settings.database_url,
                auth_token=settings.auth_token,
                timeout=settings.request_timeout,
            )
            connectivity = ReplicaConnectivity(
                remote,
                timeout=settings.connectivity_timeout,
                cache_ttl=settings.connectivity_cache_ttl,
            )
        else:
            logger.info("No replica configured; running offline")

        return cls(
            owner_id,
            store=store,
            remote=remote,
            connectivity=connectivity,
            account_email=settings.account_email,
            auto_sync=settings.auto_sync,
        )

    async def close(self) -> None:
        close = getattr(self.remote, "close", None)
        if close is not None:
            await close()

    async def is_online(self) -> bool:
        if self.remote is None:
            return False
        try:
            return await self.connectivity.is_online()
        except Exception as e:
            logger.debug(f"Connectivity check failed: {e}")
            return False

    # === Cards ===

    def list_cards(self) -> List[Card]:
        return self.store.list_cards(self.owner_id)

    def add_card(self, fields: Union[Card, Mapping[str, Any]]) -> Card:
        """Save a manually entered card locally. Duplicates are allowed."""
        card = fields if isinstance(fields, Card) else Card.from_fields(fields)
        card = Card.from_fields(card.fields(), owner_id=self.owner_id)
        card.id = self.store.insert_card(self.owner_id, card)
        log_card_saved(self.owner_id, card_fingerprint(card))
        return card

    async def save_scanned_card(self, raw: str) -> Card:
        """Save a scanned card locally and, when online, on the replica.

        The local copy is inserted only if no identical card exists. A
        replica failure is logged; the card stays local and goes up with
        the next sync.

        Raises:
            ScanRejectedError: The payload is not a business card.
        """
        fields = screen_scanned_card(raw)
        card = Card.from_fields(fields, owner_id=self.owner_id, source=CardSource.SCAN.value)
        if self.store.card_exists(self.owner_id, card):
            logger.debug("Scanned card already saved locally")
        else:
            card.id = self.store.insert_card(self.owner_id, card)

        key = card_fingerprint(card)
        if await self.is_online():
            try:
                await self.remote.set_card(
                    self.owner_id, key, card, CardSource.SCAN.value, remote_timestamp()
                )
            except RemoteReplicaError as e:
                logger.warning(f"Scanned card kept locally; replica write failed: {e}")

        log_card_saved(self.owner_id, key, CardSource.SCAN.value)
        return card

    async def delete_card(
        self,
        row_id: Optional[int] = None,
        card: Optional[Union[Card, Mapping[str, Any]]] = None,
    ) -> Dict[str, int]:
        """Delete a card locally and every matching record on the replica.

        Pass either the local ``row_id`` (that row only) or the card's
        fields (every local row with the same content).

        Returns:
            ``{"local": rows_removed, "remote": records_removed}``
        """
        if row_id is None and card is None:
            raise ValueError("delete_card needs a row_id or a card")

        if row_id is not None:
            target = self.store.get_card(self.owner_id, row_id)
            if target is None:
                return {"local": 0, "remote": 0}
            local = 1 if self.store.delete_card(row_id) else 0
        else:
            target = card if isinstance(card, Card) else Card.from_fields(card)
            local = self.store.delete_cards_by_content(self.owner_id, target)

        key = content_key(target)
        remote = 0
        if await self.is_online():
            try:
                for record in await self.remote.list_cards(self.owner_id):
                    if content_key(record.card) == key:
                        await self.remote.delete_card(self.owner_id, record.key)
                        remote += 1
            except RemoteReplicaError as e:
                logger.warning(f"Remote delete incomplete ({remote} removed): {e}")

        log_card_deleted(self.owner_id, card_fingerprint(target), local, remote)
        return {"local": local, "remote": remote}

    def clear_cards(self) -> int:
        """Drop every local card for this owner (sign-out)."""
        removed = self.store.clear_cards(self.owner_id)
        logger.info(f"Cleared {removed} local cards for {self.owner_id}")
        return removed

    # === Profile ===

    def get_profile(self) -> Optional[Profile]:
        return self.store.get_profile(self.owner_id)

    def save_profile(self, fields: Union[Profile, Mapping[str, Any]]) -> Profile:
        """Save profile edits locally and mark them for the next push."""
        profile = fields if isinstance(fields, Profile) else Profile.from_fields(fields)
        self.store.put_profile(self.owner_id, profile)
        self.store.mark_dirty(self.owner_id)
        return self.store.get_profile(self.owner_id)

    # === Sync ===

    async def sync(self) -> SyncReport:
        """Reconcile profile and cards with the replica."""
        if self.reconciler is None:
            return SyncReport(owner_id=self.owner_id, online=False)
        report = await self.reconciler.sync_all(self.owner_id, self.account_email)
        self._record_report(report)
        return report

    def start_sync(self) -> Optional[asyncio.Task]:
        """Start a background sync, or join the one already running."""
        if self.reconciler is None:
            return None
        task = self.reconciler.start_sync(self.owner_id, self.account_email)
        if task is not self._last_task:
            task.add_done_callback(self._record_task)
            self._last_task = task
        return task

    async def sync_on_foreground(self) -> Optional[SyncReport]:
        """Sync when the app comes to the foreground, if auto-sync is on."""
        if not self.auto_sync:
            logger.debug("Auto-sync disabled; skipping foreground sync")
            return None
        return await self.sync()

    def _record_task(self, task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is not None:
            return
        self._record_report(task.result())

    def _record_report(self, report: SyncReport) -> None:
        if not report.online:
            log_sync(self.owner_id, "skipped", 0)
            return
        if report.profile is not None:
            log_sync(
                self.owner_id,
                f"profile-{report.profile.direction.value}",
                1 if report.profile.changed else 0,
                len(report.profile.errors),
            )
        if report.cards is not None:
            errors = len(report.cards.errors)
            log_sync(self.owner_id, "push", report.cards.pushed, errors)
            log_sync(self.owner_id, "pull", report.cards.pulled, errors)
