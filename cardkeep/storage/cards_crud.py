"""Card CRUD operations for SQLiteStore.

All functions receive the connection factory explicitly so they can be
exercised against any database file, including legacy ones that have not
been migrated.
"""

import logging
import sqlite3
from typing import Any, Callable, List, Mapping, Union

from cardkeep.types import CARD_FIELDS, Card

logger = logging.getLogger(__name__)

_FIELD_COLUMNS = ", ".join(CARD_FIELDS)
# Legacy rows can hold NULL fields; they read back as "" and must match as ""
_FIELD_MATCH = " AND ".join(f"COALESCE({name}, '') = ?" for name in CARD_FIELDS)


def _field_args(card: Union[Card, Mapping[str, Any]]) -> tuple:
    if isinstance(card, Card):
        return card.field_tuple()
    return tuple("" if card.get(name) is None else str(card.get(name)) for name in CARD_FIELDS)


def _safe_get(row: sqlite3.Row, key: str, default: Any = None) -> Any:
    try:
        return row[key]
    except (IndexError, KeyError):
        return default


def row_to_card(row: sqlite3.Row) -> Card:
    """Convert a row to a Card. Tolerates rows without ``created_at``."""
    return Card(
        id=row["id"],
        owner_id=row["owner_id"],
        name=row["name"] or "",
        occupation=row["occupation"] or "",
        email=row["email"] or "",
        phone=row["phone"] or "",
        instagram=row["instagram"] or "",
        website=row["website"] or "",
        address=row["address"] or "",
        created_at=_safe_get(row, "created_at"),
    )


def insert_card(
    connect_fn: Callable,
    owner_id: str,
    card: Union[Card, Mapping[str, Any]],
    now_fn: Callable[[], str],
) -> int:
    """Append a card. Callers that must not duplicate check ``card_exists`` first.

    Returns:
        The new row id.
    """
    with connect_fn() as conn:
        cursor = conn.execute(
            f"INSERT INTO cards (owner_id, {_FIELD_COLUMNS}, created_at) "
            f"VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (owner_id, *_field_args(card), now_fn()),
        )
        return cursor.lastrowid


def card_exists(
    connect_fn: Callable, owner_id: str, card: Union[Card, Mapping[str, Any]]
) -> bool:
    """Exact, case-sensitive match on all seven fields plus owner."""
    with connect_fn() as conn:
        row = conn.execute(
            f"SELECT 1 FROM cards WHERE owner_id = ? AND {_FIELD_MATCH} LIMIT 1",
            (owner_id, *_field_args(card)),
        ).fetchone()
    return row is not None


def list_cards(connect_fn: Callable, owner_id: str) -> List[Card]:
    """Cards for an owner, newest first.

    Older databases may lack the ``created_at`` column; in that case the
    query is retried once without it and rows come back in insertion order.
    """
    with connect_fn() as conn:
        try:
            rows = conn.execute(
                "SELECT * FROM cards WHERE owner_id = ? ORDER BY created_at DESC, id DESC",
                (owner_id,),
            ).fetchall()
        except sqlite3.OperationalError as e:
            logger.debug(f"Ordered card query failed ({e}); using insertion order")
            rows = conn.execute(
                "SELECT * FROM cards WHERE owner_id = ? ORDER BY id", (owner_id,)
            ).fetchall()
    return [row_to_card(row) for row in rows]


def delete_card(connect_fn: Callable, row_id: int) -> bool:
    with connect_fn() as conn:
        cursor = conn.execute("DELETE FROM cards WHERE id = ?", (row_id,))
        return cursor.rowcount > 0


def delete_cards_by_content(
    connect_fn: Callable, owner_id: str, card: Union[Card, Mapping[str, Any]]
) -> int:
    """Delete every row of this owner whose seven fields match exactly."""
    with connect_fn() as conn:
        cursor = conn.execute(
            f"DELETE FROM cards WHERE owner_id = ? AND {_FIELD_MATCH}",
            (owner_id, *_field_args(card)),
        )
        return cursor.rowcount


def clear_cards(connect_fn: Callable, owner_id: str) -> int:
    """Remove all of an owner's cards (sign-out)."""
    with connect_fn() as conn:
        cursor = conn.execute("DELETE FROM cards WHERE owner_id = ?", (owner_id,))
        return cursor.rowcount
