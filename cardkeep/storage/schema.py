"""Database schema and migration logic for cardkeep SQLite storage.

Contains:
- Schema DDL (SCHEMA)
- Schema version tracking (SCHEMA_VERSION)
- Table allowlist (ALLOWED_TABLES, validate_table_name)
- Database initialization (init_db)
- Schema migration (migrate_schema)
"""

import logging
import os
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

# Schema version for migrations
SCHEMA_VERSION = 3  # v0.4: profile cache keyed by owner

# Allowed table names for SQL queries (security: prevents SQL injection via table names)
ALLOWED_TABLES = frozenset(
    {
        "cards",
        "profile_cache",
        "schema_version",
    }
)


def validate_table_name(table: str) -> str:
    """Validate table name against allowlist to prevent SQL injection.

    Raises:
        ValueError: If table name is not in allowlist
    """
    if table not in ALLOWED_TABLES:
        raise ValueError(f"Invalid table name: {table}")
    return table


SCHEMA = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

-- Saved cards (append-only; never updated in place)
CREATE TABLE IF NOT EXISTS cards (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id TEXT NOT NULL,
    name TEXT,
    occupation TEXT,
    email TEXT,
    phone TEXT,
    instagram TEXT,
    website TEXT,
    address TEXT,
    created_at TEXT  -- nullable: rows from v1 databases have no timestamp
);
CREATE INDEX IF NOT EXISTS idx_cards_owner ON cards(owner_id);

-- Cached profile, one row per owner
CREATE TABLE IF NOT EXISTS profile_cache (
    owner_id TEXT PRIMARY KEY,
    name TEXT DEFAULT '',
    occupation TEXT DEFAULT '',
    email TEXT DEFAULT '',
    phone TEXT DEFAULT '',
    instagram TEXT DEFAULT '',
    website TEXT DEFAULT '',
    address TEXT DEFAULT '',
    last_synced_at TEXT,
    dirty INTEGER DEFAULT 0
);
"""


def get_columns(conn: sqlite3.Connection, table: str) -> set:
    """Column names of a table, or an empty set if it does not exist."""
    try:
        validate_table_name(table)
        cols = conn.execute(f"PRAGMA table_info({table})").fetchall()
        return {c[1] for c in cols}
    except (TypeError, ValueError):
        return set()


def init_db(conn: sqlite3.Connection, db_path: Path) -> None:
    """Initialize the database schema.

    Args:
        conn: Database connection.
        db_path: Path to the database file (for permissions).
    """
    # First, run migrations if needed (before executing full schema)
    migrate_schema(conn)

    # CREATE TABLE IF NOT EXISTS is safe to re-run
    conn.executescript(SCHEMA)

    row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
    if row is None:
        conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
    else:
        conn.execute("UPDATE schema_version SET version = ?", (SCHEMA_VERSION,))

    conn.commit()

    # Owner read/write only
    try:
        os.chmod(db_path, 0o600)
    except OSError as e:
        logger.warning(f"Could not set secure permissions: {e}")


def migrate_schema(conn: sqlite3.Connection) -> None:
    """Run schema migrations for existing databases.

    v1 card tables have no creation timestamp; the column is added as
    nullable so existing rows keep sorting after stamped ones.
    """
    tables = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    table_names = {t[0] for t in tables}

    if "cards" not in table_names:
        # Fresh database, no migration needed
        return

    migrations = []
    card_cols = get_columns(conn, "cards")
    if "created_at" not in card_cols:
        if "timestamp" in card_cols:
            logger.info("Legacy cards table uses a 'timestamp' column; adding created_at")
        migrations.append("ALTER TABLE cards ADD COLUMN created_at TEXT")

    for migration in migrations:
        try:
            conn.execute(migration)
            logger.info(f"Migration: {migration}")
        except sqlite3.OperationalError as e:
            if "duplicate column" not in str(e).lower():
                logger.warning(f"Migration failed: {e}")

    if "timestamp" in card_cols and "created_at" not in card_cols:
        conn.execute("UPDATE cards SET created_at = timestamp WHERE created_at IS NULL")

    normalize_created_at(conn)


def normalize_created_at(conn: sqlite3.Connection) -> None:
    """Rewrite legacy ``YYYY-MM-DD HH:MM:SS`` stamps in the ``utc_now()`` format.

    ``created_at`` is ordered as text, so every value must share one layout.
    Values SQLite cannot parse are left as they are.
    """
    cursor = conn.execute(
        "UPDATE cards SET created_at = strftime('%Y-%m-%dT%H:%M:%S', created_at) "
        "|| '.000000+00:00' "
        "WHERE strftime('%Y-%m-%dT%H:%M:%S', created_at) IS NOT NULL "
        "AND created_at NOT LIKE '____-__-__T__:__:__.______+00:00'"
    )
    if cursor.rowcount > 0:
        logger.info(f"Normalized {cursor.rowcount} legacy card timestamps")
