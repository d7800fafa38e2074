"""Sync engine for cardkeep storage.

The Reconciler keeps the local store and the remote replica convergent
without a server-side merge. Cards are identified by content: records with
equal content keys are one logical card, stored remotely under the
fingerprint of that key. The profile is resolved by the local dirty flag.

Each run has two independent phases (profile, cards). A phase runs to
completion or stops at its first error; the error is logged and recorded
in the phase result, never raised to the caller. Every step is idempotent,
so an interrupted run is finished by the next one.
"""

import asyncio
import logging
import sqlite3
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from cardkeep.content_key import content_key, fingerprint, profile_content_key
from cardkeep.types import (
    CardSource,
    CardSyncResult,
    Profile,
    ProfileSyncResult,
    RemoteCard,
    RemoteReplicaError,
    SyncDirection,
    SyncReport,
    remote_timestamp,
    utc_now,
)

from .base import ConnectivityOracle, LocalStore, RemoteReplica

logger = logging.getLogger(__name__)


def group_by_content_key(records: List[RemoteCard]) -> Dict[str, List[RemoteCard]]:
    """Group remote records by content key, keeping listing order within groups."""
    groups: Dict[str, List[RemoteCard]] = {}
    for record in records:
        groups.setdefault(content_key(record.card), []).append(record)
    return groups


def _canonical_sort_key(record: RemoteCard) -> Tuple:
    created = record.created_at_dt
    if created is None:
        return (1, datetime.min, record.key)
    return (0, created, record.key)


def choose_canonical(members: List[RemoteCard]) -> RemoteCard:
    """Pick the record whose content and metadata survive canonicalization.

    Earliest parseable ``createdAt`` wins; records without one rank after
    those with one; ties fall to the lexicographically smallest key. The
    choice does not depend on listing order.
    """
    return min(members, key=_canonical_sort_key)


class Reconciler:
    """Bidirectional reconciliation between a local store and a remote replica.

    The reconciler holds no per-owner state besides its run guards; the
    owner id is passed to every call.

    Args:
        store: Local card store and profile cache.
        remote: Remote replica client.
        connectivity: Oracle consulted by ``sync_all``. ``None`` means always online.
        now_fn: Timestamp source for remote ``createdAt`` values.
    """

    def __init__(
        self,
        store: LocalStore,
        remote: RemoteReplica,
        connectivity: Optional[ConnectivityOracle] = None,
        now_fn: Callable[[], str] = remote_timestamp,
    ):
        self.store = store
        self.remote = remote
        self.connectivity = connectivity
        self._now = now_fn
        self._locks: Dict[str, asyncio.Lock] = {}
        self._inflight: Dict[str, asyncio.Task] = {}

    # === Run control ===

    def _lock_for(self, owner_id: str) -> asyncio.Lock:
        lock = self._locks.get(owner_id)
        if lock is None:
            lock = self._locks[owner_id] = asyncio.Lock()
        return lock

    def is_syncing(self, owner_id: str) -> bool:
        task = self._inflight.get(owner_id)
        return (task is not None and not task.done()) or self._lock_for(owner_id).locked()

    async def _is_online(self) -> bool:
        if self.connectivity is None:
            return True
        try:
            return await self.connectivity.is_online()
        except Exception as e:
            logger.debug(f"Connectivity oracle failed, treating as offline: {e}")
            return False

    async def sync_all(self, owner_id: str, account_email: Optional[str] = None) -> SyncReport:
        """Run the profile phase then the card phase for one owner.

        Overlapping calls for the same owner are serialized. Offline runs
        are skipped. Errors from either phase are logged and reported, not
        raised.
        """
        async with self._lock_for(owner_id):
            report = SyncReport(owner_id=owner_id)
            if not await self._is_online():
                logger.info(f"Offline - sync skipped for {owner_id}")
                report.online = False
                report.finished_at = utc_now()
                return report

            report.profile = await self.sync_profile(owner_id, account_email)
            report.cards = await self.sync_cards(owner_id)
            report.finished_at = utc_now()

            logger.info(
                f"Sync complete for {owner_id}: profile={report.profile.direction.value}, "
                f"pushed={report.cards.pushed}, pulled={report.cards.pulled}, "
                f"canonicalized={report.cards.canonicalized}, deleted={report.cards.deleted}, "
                f"errors={len(report.errors)}"
            )
            return report

    def start_sync(self, owner_id: str, account_email: Optional[str] = None) -> asyncio.Task:
        """Schedule ``sync_all`` on the running loop and return its task.

        If a run for this owner is still in flight, that task is returned
        instead of starting another. The caller may await, cancel or drop
        the task; a cancelled run is resumed by the next one.
        """
        existing = self._inflight.get(owner_id)
        if existing is not None and not existing.done():
            logger.debug(f"Sync already in flight for {owner_id}; joining it")
            return existing

        task = asyncio.get_running_loop().create_task(
            self.sync_all(owner_id, account_email), name=f"cardkeep-sync-{owner_id}"
        )
        self._inflight[owner_id] = task

        def _done(finished: asyncio.Task) -> None:
            if self._inflight.get(owner_id) is finished:
                del self._inflight[owner_id]

        task.add_done_callback(_done)
        return task

    # === Cards ===

    async def sync_cards(self, owner_id: str) -> CardSyncResult:
        """Canonicalize remote duplicates, push local-only cards, pull remote-only cards."""
        result = CardSyncResult()
        try:
            await self._reconcile_cards(owner_id, result)
        except RemoteReplicaError as e:
            logger.warning(f"Card sync aborted for {owner_id} (remote): {e}")
            result.errors.append(f"remote: {e}")
        except sqlite3.Error as e:
            logger.warning(f"Card sync aborted for {owner_id} (local store): {e}")
            result.errors.append(f"local: {e}")
        except Exception as e:
            logger.error(f"Card sync failed for {owner_id}: {e}", exc_info=True)
            result.errors.append(f"unexpected: {e}")
        return result

    async def _reconcile_cards(self, owner_id: str, result: CardSyncResult) -> None:
        # 1-2. List and group by content key
        groups = group_by_content_key(await self.remote.list_cards(owner_id))

        # 3. One record per group, under its fingerprint
        canonical: List[RemoteCard] = []
        for key, members in groups.items():
            canonical.append(await self._canonicalize_group(owner_id, key, members, result))

        # 4. Content keys now present remotely
        cloud_set = set(groups)

        # 5. Push local-only cards
        for card in self.store.list_cards(owner_id):
            key = content_key(card)
            if key in cloud_set:
                continue
            await self.remote.set_card(
                owner_id, fingerprint(key), card, CardSource.LOCAL_SYNC.value, self._now()
            )
            cloud_set.add(key)
            result.pushed += 1

        # 6. Pull remote-only cards
        for record in canonical:
            if not self.store.card_exists(owner_id, record.card):
                self.store.insert_card(owner_id, record.card)
                result.pulled += 1

        logger.debug(
            f"Cards reconciled for {owner_id}: groups={len(groups)}, pushed={result.pushed}, "
            f"pulled={result.pulled}, deleted={result.deleted}"
        )

    async def _canonicalize_group(
        self, owner_id: str, key: str, members: List[RemoteCard], result: CardSyncResult
    ) -> RemoteCard:
        target = fingerprint(key)
        chosen = choose_canonical(members)
        created_at = chosen.created_at or self._now()
        source = chosen.source or CardSource.LOCAL_SYNC.value

        if not chosen.is_canonical or not chosen.created_at or not chosen.source:
            await self.remote.set_card(owner_id, target, chosen.card, source, created_at)
            result.canonicalized += 1

        for member in members:
            if member.key != target:
                await self.remote.delete_card(owner_id, member.key)
                result.deleted += 1

        if len(members) > 1:
            logger.info(f"Collapsed {len(members)} remote records into {target[:12]}...")

        return RemoteCard(key=target, card=chosen.card, created_at=created_at, source=source)

    # === Profile ===

    async def sync_profile(
        self, owner_id: str, account_email: Optional[str] = None
    ) -> ProfileSyncResult:
        """Push the cached profile if dirty, otherwise pull the remote one."""
        result = ProfileSyncResult()
        try:
            if self.store.is_dirty(owner_id):
                await self._push_profile(owner_id, account_email, result)
            else:
                await self._pull_profile(owner_id, account_email, result)
        except RemoteReplicaError as e:
            logger.warning(f"Profile sync aborted for {owner_id} (remote): {e}")
            result.errors.append(f"remote: {e}")
        except sqlite3.Error as e:
            logger.warning(f"Profile sync aborted for {owner_id} (local store): {e}")
            result.errors.append(f"local: {e}")
        except Exception as e:
            logger.error(f"Profile sync failed for {owner_id}: {e}", exc_info=True)
            result.errors.append(f"unexpected: {e}")
        return result

    async def _push_profile(
        self, owner_id: str, account_email: Optional[str], result: ProfileSyncResult
    ) -> None:
        local = self.store.get_profile(owner_id) or Profile()
        snapshot = local.fields()
        payload = Profile.from_fields(local.fields())
        if not payload.email.strip() and account_email:
            payload.email = account_email

        await self.remote.set_profile(owner_id, payload)
        result.direction = SyncDirection.PUSH
        result.changed = True

        # An edit saved while the write was in flight must stay dirty
        current = self.store.get_profile(owner_id) or Profile()
        if current.fields() == snapshot:
            self.store.clear_dirty(owner_id)
        else:
            logger.debug(f"Profile for {owner_id} changed during push; leaving dirty")

    async def _pull_profile(
        self, owner_id: str, account_email: Optional[str], result: ProfileSyncResult
    ) -> None:
        incoming = await self.remote.get_profile(owner_id) or Profile()
        if not incoming.email.strip() and account_email:
            incoming.email = account_email

        local = self.store.get_profile(owner_id)
        result.changed = local is None or profile_content_key(local) != profile_content_key(
            incoming
        )
        self.store.put_profile(owner_id, incoming)
        result.direction = SyncDirection.PULL
