"""Tests for the SQLite card store."""

import contextlib
import sqlite3

import pytest

from cardkeep.storage import SQLiteStore, cards_crud
from cardkeep.storage.schema import SCHEMA_VERSION, get_columns, validate_table_name
from cardkeep.types import Card

OWNER = "user-1"


class TestCards:
    def test_insert_and_list(self, store, jane):
        row_id = store.insert_card(OWNER, jane)
        cards = store.list_cards(OWNER)
        assert len(cards) == 1
        assert cards[0].id == row_id
        assert cards[0].fields() == jane.fields()
        assert cards[0].created_at is not None

    def test_insert_accepts_mapping(self, store):
        store.insert_card(OWNER, {"name": "Jane", "phone": "555"})
        card = store.list_cards(OWNER)[0]
        assert card.name == "Jane"
        assert card.email == ""

    def test_insert_does_not_dedupe(self, store, jane):
        store.insert_card(OWNER, jane)
        store.insert_card(OWNER, jane)
        assert len(store.list_cards(OWNER)) == 2

    def test_list_newest_first(self, store):
        first = store.insert_card(OWNER, Card(name="First"))
        second = store.insert_card(OWNER, Card(name="Second"))
        ids = [c.id for c in store.list_cards(OWNER)]
        assert ids == [second, first]

    def test_list_scoped_by_owner(self, store, jane):
        store.insert_card(OWNER, jane)
        store.insert_card("someone-else", Card(name="Other"))
        assert [c.name for c in store.list_cards(OWNER)] == ["Jane Doe"]

    def test_exists_is_exact(self, store, jane):
        store.insert_card(OWNER, jane)
        assert store.card_exists(OWNER, jane)
        assert not store.card_exists(OWNER, Card.from_fields({**jane.fields(), "name": "jane doe"}))
        assert not store.card_exists(OWNER, Card.from_fields({**jane.fields(), "phone": "556"}))
        assert not store.card_exists("someone-else", jane)

    def test_exists_does_not_trim(self, store):
        store.insert_card(OWNER, Card(name="Jane "))
        assert not store.card_exists(OWNER, Card(name="Jane"))

    def test_delete_by_id(self, store, jane):
        row_id = store.insert_card(OWNER, jane)
        assert store.delete_card(row_id) is True
        assert store.delete_card(row_id) is False
        assert store.list_cards(OWNER) == []

    def test_delete_by_content(self, store, jane):
        store.insert_card(OWNER, jane)
        store.insert_card(OWNER, jane)
        store.insert_card(OWNER, Card(name="Keep"))
        assert store.delete_cards_by_content(OWNER, jane) == 2
        assert [c.name for c in store.list_cards(OWNER)] == ["Keep"]

    def test_get_card(self, store, jane):
        row_id = store.insert_card(OWNER, jane)
        assert store.get_card(OWNER, row_id).name == "Jane Doe"
        assert store.get_card(OWNER, row_id + 100) is None

    def test_clear_cards(self, store, jane):
        store.insert_card(OWNER, jane)
        store.insert_card("someone-else", jane)
        assert store.clear_cards(OWNER) == 1
        assert store.list_cards(OWNER) == []
        assert len(store.list_cards("someone-else")) == 1


class TestSchema:
    def test_schema_version_recorded(self, store):
        with store._connect() as conn:
            row = conn.execute("SELECT version FROM schema_version").fetchone()
        assert row[0] == SCHEMA_VERSION

    def test_reopen_is_idempotent(self, tmp_path, jane):
        path = tmp_path / "cards.db"
        SQLiteStore(path).insert_card(OWNER, jane)
        reopened = SQLiteStore(path)
        assert len(reopened.list_cards(OWNER)) == 1

    def test_validate_table_name(self):
        assert validate_table_name("cards") == "cards"
        with pytest.raises(ValueError):
            validate_table_name("cards; DROP TABLE cards")

    def test_get_columns_unknown_table(self, store):
        with store._connect() as conn:
            assert get_columns(conn, "nope") == set()

    def test_migrates_legacy_table(self, tmp_path):
        path = tmp_path / "legacy.db"
        conn = sqlite3.connect(path)
        conn.execute(
            "CREATE TABLE cards (id INTEGER PRIMARY KEY AUTOINCREMENT, owner_id TEXT NOT NULL, "
            "name TEXT, occupation TEXT, email TEXT, phone TEXT, instagram TEXT, "
            "website TEXT, address TEXT, timestamp TEXT)"
        )
        conn.execute(
            "INSERT INTO cards (owner_id, name, timestamp) VALUES (?, ?, ?)",
            (OWNER, "Old", "2020-01-01T00:00:00Z"),
        )
        conn.commit()
        conn.close()

        store = SQLiteStore(path)
        with store._connect() as conn:
            assert "created_at" in get_columns(conn, "cards")
        cards = store.list_cards(OWNER)
        assert cards[0].name == "Old"
        assert cards[0].created_at == "2020-01-01T00:00:00.000000+00:00"

    def test_legacy_timestamps_order_with_new_rows(self, tmp_path):
        path = tmp_path / "legacy.db"
        conn = sqlite3.connect(path)
        conn.execute(
            "CREATE TABLE cards (id INTEGER PRIMARY KEY AUTOINCREMENT, owner_id TEXT NOT NULL, "
            "name TEXT, occupation TEXT, email TEXT, phone TEXT, instagram TEXT, "
            "website TEXT, address TEXT, timestamp DATETIME DEFAULT CURRENT_TIMESTAMP)"
        )
        conn.execute(
            "INSERT INTO cards (owner_id, name, timestamp) VALUES (?, ?, ?)",
            (OWNER, "Later", "2099-01-01 23:00:00"),
        )
        conn.commit()
        conn.close()

        store = SQLiteStore(path)
        store._now = lambda: "2099-01-01T01:00:00.000000+00:00"
        store.insert_card(OWNER, {"name": "Earlier"})

        cards = store.list_cards(OWNER)
        assert [c.name for c in cards] == ["Later", "Earlier"]
        assert cards[0].created_at == "2099-01-01T23:00:00.000000+00:00"

    def test_reopen_normalizes_space_separated_stamps(self, tmp_path):
        path = tmp_path / "cards.db"
        store = SQLiteStore(path)
        store.insert_card(OWNER, {"name": "Old"})
        with store._connect() as conn:
            conn.execute("UPDATE cards SET created_at = '2021-06-01 08:30:00'")
        store.close()

        reopened = SQLiteStore(path)
        assert reopened.list_cards(OWNER)[0].created_at == "2021-06-01T08:30:00.000000+00:00"


class TestNullFieldRows:
    """Rows written by older versions can hold NULL in any card field."""

    @pytest.fixture
    def legacy_store(self, tmp_path):
        path = tmp_path / "legacy.db"
        conn = sqlite3.connect(path)
        conn.execute(
            "CREATE TABLE cards (id INTEGER PRIMARY KEY AUTOINCREMENT, owner_id TEXT NOT NULL, "
            "name TEXT, occupation TEXT, email TEXT, phone TEXT, instagram TEXT, "
            "website TEXT, address TEXT, timestamp TEXT)"
        )
        conn.execute(
            "INSERT INTO cards (owner_id, name, phone, timestamp) VALUES (?, ?, ?, ?)",
            (OWNER, "Old", "1", "2020-01-01 00:00:00"),
        )
        conn.commit()
        conn.close()
        return SQLiteStore(path)

    def test_exists_matches_null_as_empty(self, legacy_store):
        card = legacy_store.list_cards(OWNER)[0]
        assert card.email == ""
        assert legacy_store.card_exists(OWNER, card)
        assert legacy_store.card_exists(OWNER, {"name": "Old", "phone": "1"})
        assert not legacy_store.card_exists(OWNER, {"name": "Old", "phone": "2"})

    def test_delete_by_content_removes_null_row(self, legacy_store):
        card = legacy_store.list_cards(OWNER)[0]
        assert legacy_store.delete_cards_by_content(OWNER, card) == 1
        assert legacy_store.list_cards(OWNER) == []


class TestLegacyFallback:
    """list_cards must still work against an unmigrated database."""

    @pytest.fixture
    def legacy_connect(self, tmp_path):
        path = tmp_path / "unmigrated.db"
        conn = sqlite3.connect(path)
        conn.execute(
            "CREATE TABLE cards (id INTEGER PRIMARY KEY AUTOINCREMENT, owner_id TEXT, "
            "name TEXT, occupation TEXT, email TEXT, phone TEXT, instagram TEXT, "
            "website TEXT, address TEXT)"
        )
        for name in ("A", "B"):
            conn.execute("INSERT INTO cards (owner_id, name) VALUES (?, ?)", (OWNER, name))
        conn.commit()
        conn.close()

        @contextlib.contextmanager
        def connect():
            c = sqlite3.connect(path)
            c.row_factory = sqlite3.Row
            try:
                yield c
                c.commit()
            finally:
                c.close()

        return connect

    def test_falls_back_to_insertion_order(self, legacy_connect):
        cards = cards_crud.list_cards(legacy_connect, OWNER)
        assert [c.name for c in cards] == ["A", "B"]
        assert all(c.created_at is None for c in cards)
        assert cards[0].phone == ""
