"""Locate per-account LinkedHelper databases on disk.

Layout: ``<base>/Partitions/linked-helper-account-<id>-main/lh.db``
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from ..config import get_base_directory
from ..constants import DB_FILENAME, PARTITION_PREFIX, PARTITION_SUFFIX
from .errors import DatabaseNotFoundError


def build_database_path(base_dir: Path, account_id: int) -> Path:
    partition = f"{PARTITION_PREFIX}{account_id}{PARTITION_SUFFIX}"
    return base_dir / "Partitions" / partition / DB_FILENAME


def discover_database(account_id: int, base_dir: Optional[Path] = None) -> Path:
    """Return the database file of ``account_id``.

    Raises:
        DatabaseNotFoundError: If the file does not exist.
    """
    path = build_database_path(base_dir or get_base_directory(), account_id)
    if not path.is_file():
        raise DatabaseNotFoundError(account_id)
    return path


def discover_all_databases(base_dir: Optional[Path] = None) -> dict[int, Path]:
    """Map every account id that has a database file to that file."""
    partitions = (base_dir or get_base_directory()) / "Partitions"
    if not partitions.is_dir():
        return {}

    found: dict[int, Path] = {}
    for entry in sorted(partitions.iterdir()):
        name = entry.name
        if not entry.is_dir() or not name.startswith(PARTITION_PREFIX) or not name.endswith(PARTITION_SUFFIX):
            continue
        raw_id = name[len(PARTITION_PREFIX):-len(PARTITION_SUFFIX)]
        if not raw_id.isdigit():
            continue
        db_path = entry / DB_FILENAME
        if db_path.is_file():
            found[int(raw_id)] = db_path
    return found
