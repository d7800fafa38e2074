"""SQLite storage backend for cardkeep.

Local-first storage with:
- an append-only card table per owner
- a single-row profile cache per owner with a dirty flag

A connection is opened per logical operation; nothing holds a transaction
across a sync run.
"""

import contextlib
import logging
import sqlite3
import tempfile
from pathlib import Path
from typing import List, Mapping, Optional, Union

from cardkeep.types import Card, Profile, utc_now
from cardkeep.utils import get_cardkeep_home

from . import cards_crud, profile_crud
from .schema import init_db

logger = logging.getLogger(__name__)


class SQLiteStore:
    """Local card store and profile cache backed by one SQLite file."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = self._resolve_db_path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _resolve_db_path(self, db_path: Optional[Path]) -> Path:
        """Resolve the database path, falling back to temp dir if home is not writable."""
        if db_path is not None:
            return Path(db_path).expanduser().resolve()

        default_path = get_cardkeep_home() / "cards.db"
        try:
            default_path.parent.mkdir(parents=True, exist_ok=True)
            return default_path
        except OSError as e:
            # Home dir not writable (sandboxed/container/CI environment)
            fallback_dir = Path(tempfile.gettempdir()) / ".cardkeep"
            logger.warning(
                f"Cannot write to {default_path.parent} ({e}), falling back to {fallback_dir}"
            )
            return fallback_dir / "cards.db"

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=5000")
        return conn

    @contextlib.contextmanager
    def _connect(self):
        """Context manager that handles transactions AND closes connection.

        - Transaction commit on success
        - Transaction rollback on exception
        - Connection close in all cases
        """
        conn = self._get_conn()
        try:
            yield conn
            conn.commit()
        except Exception as e:
            logger.debug(f"Transaction failed, rolling back: {e}")
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self):
        with self._connect() as conn:
            init_db(conn, self.db_path)

    def _now(self) -> str:
        return utc_now()

    def close(self):
        """Connections are per-operation; kept for API symmetry."""
        pass

    # === Cards ===

    def insert_card(self, owner_id: str, card: Union[Card, Mapping[str, str]]) -> int:
        return cards_crud.insert_card(self._connect, owner_id, card, self._now)

    def card_exists(self, owner_id: str, card: Union[Card, Mapping[str, str]]) -> bool:
        return cards_crud.card_exists(self._connect, owner_id, card)

    def list_cards(self, owner_id: str) -> List[Card]:
        return cards_crud.list_cards(self._connect, owner_id)

    def delete_card(self, row_id: int) -> bool:
        return cards_crud.delete_card(self._connect, row_id)

    def delete_cards_by_content(self, owner_id: str, card: Union[Card, Mapping[str, str]]) -> int:
        return cards_crud.delete_cards_by_content(self._connect, owner_id, card)

    def clear_cards(self, owner_id: str) -> int:
        return cards_crud.clear_cards(self._connect, owner_id)

    def get_card(self, owner_id: str, row_id: int) -> Optional[Card]:
        for card in self.list_cards(owner_id):
            if card.id == row_id:
                return card
        return None

    # === Profile cache ===

    def get_profile(self, owner_id: str) -> Optional[Profile]:
        return profile_crud.get_profile(self._connect, owner_id)

    def put_profile(self, owner_id: str, profile: Union[Profile, Mapping[str, str]]) -> None:
        profile_crud.put_profile(self._connect, owner_id, profile, self._now)

    def mark_dirty(self, owner_id: str) -> None:
        profile_crud.mark_dirty(self._connect, owner_id)

    def clear_dirty(self, owner_id: str) -> None:
        profile_crud.clear_dirty(self._connect, owner_id)

    def is_dirty(self, owner_id: str) -> bool:
        return profile_crud.is_dirty(self._connect, owner_id)

    def has_profile(self, owner_id: str) -> bool:
        return profile_crud.has_profile(self._connect, owner_id)

    def last_synced_at(self, owner_id: str) -> Optional[str]:
        profile = self.get_profile(owner_id)
        return profile.last_synced_at if profile else None
