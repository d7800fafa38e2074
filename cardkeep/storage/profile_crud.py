"""Profile cache operations for SQLiteStore.

One row per owner. ``put_profile`` replaces the seven fields and stamps
``last_synced_at`` but never touches ``dirty``; only ``mark_dirty`` and
``clear_dirty`` do.
"""

import logging
import sqlite3
from typing import Any, Callable, Mapping, Optional, Union

from cardkeep.types import CARD_FIELDS, Profile

logger = logging.getLogger(__name__)


def _row_to_profile(row: sqlite3.Row) -> Profile:
    return Profile(
        name=row["name"] or "",
        occupation=row["occupation"] or "",
        email=row["email"] or "",
        phone=row["phone"] or "",
        instagram=row["instagram"] or "",
        website=row["website"] or "",
        address=row["address"] or "",
        last_synced_at=row["last_synced_at"],
        dirty=bool(row["dirty"]),
    )


def get_profile(connect_fn: Callable, owner_id: str) -> Optional[Profile]:
    with connect_fn() as conn:
        row = conn.execute(
            "SELECT * FROM profile_cache WHERE owner_id = ?", (owner_id,)
        ).fetchone()
    return _row_to_profile(row) if row else None


def put_profile(
    connect_fn: Callable,
    owner_id: str,
    profile: Union[Profile, Mapping[str, Any]],
    now_fn: Callable[[], str],
) -> None:
    """Upsert the cached fields for an owner, leaving ``dirty`` as it was."""
    if isinstance(profile, Profile):
        fields = profile.fields()
    else:
        fields = Profile.from_fields(profile).fields()

    columns = ", ".join(CARD_FIELDS)
    placeholders = ", ".join("?" for _ in CARD_FIELDS)
    updates = ", ".join(f"{name} = excluded.{name}" for name in CARD_FIELDS)
    with connect_fn() as conn:
        conn.execute(
            f"""INSERT INTO profile_cache (owner_id, {columns}, last_synced_at, dirty)
                VALUES (?, {placeholders}, ?, 0)
                ON CONFLICT(owner_id) DO UPDATE SET
                    {updates},
                    last_synced_at = excluded.last_synced_at""",
            (owner_id, *fields.values(), now_fn()),
        )


def _set_dirty(connect_fn: Callable, owner_id: str, dirty: bool) -> None:
    with connect_fn() as conn:
        conn.execute(
            """INSERT INTO profile_cache (owner_id, dirty) VALUES (?, ?)
               ON CONFLICT(owner_id) DO UPDATE SET dirty = excluded.dirty""",
            (owner_id, 1 if dirty else 0),
        )


def mark_dirty(connect_fn: Callable, owner_id: str) -> None:
    _set_dirty(connect_fn, owner_id, True)


def clear_dirty(connect_fn: Callable, owner_id: str) -> None:
    _set_dirty(connect_fn, owner_id, False)


def is_dirty(connect_fn: Callable, owner_id: str) -> bool:
    with connect_fn() as conn:
        row = conn.execute(
            "SELECT dirty FROM profile_cache WHERE owner_id = ?", (owner_id,)
        ).fetchone()
    return bool(row and row["dirty"])


def has_profile(connect_fn: Callable, owner_id: str) -> bool:
    """True once a profile has been saved or pulled (not just flagged dirty)."""
    with connect_fn() as conn:
        row = conn.execute(
            "SELECT last_synced_at FROM profile_cache WHERE owner_id = ?", (owner_id,)
        ).fetchone()
    return bool(row and row["last_synced_at"])
