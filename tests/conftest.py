"""
Pytest fixtures and test configuration for cardkeep tests.
"""

import logging

import pytest

from cardkeep.connectivity import StaticConnectivity
from cardkeep.storage import InMemoryReplica, Reconciler, SQLiteStore
from cardkeep.types import Card

OWNER = "user-1"

JANE = {
    "name": "Jane Doe",
    "occupation": "Designer",
    "email": "jane@x.com",
    "phone": "555",
    "instagram": "",
    "website": "",
    "address": "",
}


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point the cardkeep home at a temp dir and drop ambient CARDKEEP_* settings."""
    for var in (
        "CARDKEEP_OWNER_ID",
        "CARDKEEP_ACCOUNT_EMAIL",
        "CARDKEEP_DATABASE_URL",
        "CARDKEEP_AUTH_TOKEN",
        "CARDKEEP_DB_PATH",
        "CARDKEEP_AUTO_SYNC",
        "CARDKEEP_LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    home = tmp_path / "home"
    monkeypatch.setenv("CARDKEEP_DATA_DIR", str(home))
    # Keep a stray .env in the working directory out of Settings
    monkeypatch.chdir(tmp_path)
    return home


@pytest.fixture(autouse=True)
def clean_cardkeep_logger():
    """Remove handlers the CLI or logging tests attach to the cardkeep logger."""
    logger = logging.getLogger("cardkeep")
    yield
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def store(tmp_path):
    """Fresh SQLite store in a temp directory."""
    return SQLiteStore(tmp_path / "cards.db")


@pytest.fixture
def replica():
    return InMemoryReplica()


@pytest.fixture
def connectivity():
    return StaticConnectivity(online=True)


@pytest.fixture
def reconciler(store, replica, connectivity):
    """Reconciler with a fixed remote clock."""
    return Reconciler(store, replica, connectivity, now_fn=lambda: "2024-05-01T12:00:00Z")


@pytest.fixture
def jane():
    return Card.from_fields(JANE, owner_id=OWNER)
