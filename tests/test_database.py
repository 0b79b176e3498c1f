"""Tests for database discovery and the DatabaseClient handle."""

import pytest

from lhremote.database.client import DatabaseClient
from lhremote.database.discovery import build_database_path, discover_all_databases, discover_database
from lhremote.database.errors import DatabaseNotFoundError

from conftest import ACCOUNT_ID


def test_build_database_path(tmp_path):
    path = build_database_path(tmp_path, 7)
    assert path == tmp_path / "Partitions" / "linked-helper-account-7-main" / "lh.db"


def test_discover_database(data_dir, db_path):
    assert discover_database(ACCOUNT_ID, data_dir) == db_path


def test_discover_missing_database(data_dir):
    with pytest.raises(DatabaseNotFoundError) as exc_info:
        discover_database(2, data_dir)
    assert exc_info.value.account_id == 2


def test_discover_all_databases(data_dir, db_path):
    partitions = data_dir / "Partitions"
    (partitions / "linked-helper-account-2-main").mkdir()  # no lh.db
    (partitions / "linked-helper-account-abc-main").mkdir()
    (partitions / "something-else").mkdir()
    other = build_database_path(data_dir, 12)
    other.parent.mkdir()
    other.touch()

    assert discover_all_databases(data_dir) == {ACCOUNT_ID: db_path, 12: other}


def test_discover_all_without_partitions(tmp_path):
    assert discover_all_databases(tmp_path) == {}


async def test_client_open_and_close(db_path):
    db = await DatabaseClient.open(db_path)
    assert db.is_open

    row = await db.fetch_one("SELECT name FROM people WHERE id = ?", (500,))
    assert row["name"] == "Ada"
    assert len(await db.fetch_all("SELECT id FROM people")) == 3

    await db.close()
    await db.close()
    assert not db.is_open
    with pytest.raises(RuntimeError, match="not open"):
        db.conn
