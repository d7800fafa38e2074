"""Tests for the cardkeep command-line interface."""

import io
import json

import pytest

from cardkeep.cli.__main__ import build_parser, main
from cardkeep.content_key import card_fingerprint
from cardkeep.storage import InMemoryReplica
from cardkeep.types import Card

OWNER = "user-1"


@pytest.fixture
def owner_env(monkeypatch):
    monkeypatch.setenv("CARDKEEP_OWNER_ID", OWNER)


def run_json(capsys, *argv):
    main([*argv, "--json"])
    return json.loads(capsys.readouterr().out)


class TestParser:
    def test_requires_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_field_options(self):
        args = build_parser().parse_args(["cards", "add", "--name", "Jane", "--phone", "555"])
        assert args.name == "Jane"
        assert args.email is None

    def test_delete_requires_int_id(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["cards", "delete", "abc"])


class TestInitialization:
    def test_missing_owner_exits(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["cards", "list"])
        assert exc_info.value.code == 1
        assert "No owner configured" in capsys.readouterr().out

    def test_owner_flag(self, capsys):
        main(["--owner", "flag-owner", "sync", "status", "--json"])
        assert json.loads(capsys.readouterr().out)["owner_id"] == "flag-owner"

    def test_invalid_owner_exits(self):
        with pytest.raises(SystemExit):
            main(["--owner", "a/b", "cards", "list"])


@pytest.mark.usefixtures("owner_env")
class TestCardsCommands:
    def test_add_and_list(self, capsys):
        main(["cards", "add", "--name", "Jane Doe", "--email", "jane@x.com"])
        assert "✓ Saved card" in capsys.readouterr().out

        cards = run_json(capsys, "cards", "list")
        assert len(cards) == 1
        assert cards[0]["name"] == "Jane Doe"
        assert cards[0]["fingerprint"] == card_fingerprint(
            Card(name="Jane Doe", email="jane@x.com")
        )

    def test_list_empty(self, capsys):
        main(["cards", "list"])
        assert "No saved cards." in capsys.readouterr().out

    def test_add_requires_a_field(self):
        with pytest.raises(SystemExit):
            main(["cards", "add"])

    def test_custom_db_path(self, capsys, tmp_path):
        db = tmp_path / "other.db"
        main(["--db", str(db), "cards", "add", "--name", "Jane"])
        assert db.exists()

    def test_delete(self, capsys):
        card = run_json(capsys, "cards", "add", "--name", "Jane")

        result = run_json(capsys, "cards", "delete", str(card["id"]))

        assert result == {"local": 1, "remote": 0}
        assert run_json(capsys, "cards", "list") == []

    def test_delete_unknown_id_exits(self):
        with pytest.raises(SystemExit):
            main(["cards", "delete", "42"])

    def test_scan(self, capsys):
        payload = "Name: Jane Doe\nEmail: jane@x.com"
        result = run_json(capsys, "cards", "scan", payload)
        assert result["saved"] is True
        assert result["card"]["email"] == "jane@x.com"

    def test_scan_from_stdin(self, capsys, monkeypatch):
        monkeypatch.setattr("sys.stdin", io.StringIO("Name: Jane\nPhone: 555\n"))
        main(["cards", "scan", "-"])
        assert "✓ Saved scanned card: Jane" in capsys.readouterr().out

    def test_scan_rejected(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["cards", "scan", "upi://pay?pa=shop@bank"])
        assert exc_info.value.code == 1
        assert "payment" in capsys.readouterr().out


@pytest.mark.usefixtures("owner_env")
class TestProfileCommands:
    def test_show_empty(self, capsys):
        main(["profile", "show"])
        assert "No profile saved yet" in capsys.readouterr().out

    def test_set_then_show(self, capsys):
        main(["profile", "set", "--name", "Jane", "--phone", "555"])
        capsys.readouterr()

        profile = run_json(capsys, "profile", "show")
        assert profile["name"] == "Jane"
        assert profile["dirty"] is True

    def test_set_keeps_unspecified_fields(self, capsys):
        main(["profile", "set", "--name", "Jane", "--phone", "555"])
        main(["profile", "set", "--email", "jane@x.com"])
        capsys.readouterr()

        profile = run_json(capsys, "profile", "show")
        assert profile["phone"] == "555"
        assert profile["email"] == "jane@x.com"

    def test_show_warns_when_dirty(self, capsys):
        main(["profile", "set", "--name", "Jane"])
        capsys.readouterr()
        main(["profile", "show"])
        out = capsys.readouterr().out
        assert "Name:" in out
        assert "not yet pushed" in out


@pytest.mark.usefixtures("owner_env")
class TestSyncCommands:
    def test_status_offline(self, capsys):
        main(["cards", "add", "--name", "Jane"])
        capsys.readouterr()

        status = run_json(capsys, "sync", "status")

        assert status["replica_configured"] is False
        assert status["online"] is False
        assert status["local_cards"] == 1

    def test_run_without_replica_exits(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["sync", "run"])
        assert exc_info.value.code == 1
        assert "Replica not configured" in capsys.readouterr().out

    def test_run_with_replica(self, capsys, monkeypatch):
        replica = InMemoryReplica()
        monkeypatch.setenv("CARDKEEP_DATABASE_URL", "https://proj.firebaseio.com")
        monkeypatch.setenv("CARDKEEP_AUTH_TOKEN", "tok")
        monkeypatch.setattr("cardkeep.core.FirebaseReplica", lambda *a, **kw: replica)

        main(["cards", "add", "--name", "Jane"])
        capsys.readouterr()
        report = run_json(capsys, "sync", "run")

        assert report["online"] is True
        assert report["success"] is True
        assert report["cards"]["pushed"] == 1
        assert report["profile"]["direction"] == "pull"
        assert replica.card_keys(OWNER) == [card_fingerprint(Card(name="Jane"))]
