"""Async handle on a LinkedHelper account database."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Optional

import aiosqlite

from ..config import get_logger

logger = get_logger(__name__)


class DatabaseClient:
    """Wraps one aiosqlite connection to an ``lh.db`` file.

    The database belongs to LinkedHelper, which writes to it while we read.
    Handles are read-only unless ``writable`` is requested, and ``close()``
    is idempotent.
    """

    def __init__(self, path: Path, writable: bool = False):
        self.path = Path(path)
        self.writable = writable
        self._conn: Optional[aiosqlite.Connection] = None

    @classmethod
    async def open(cls, path: Path, writable: bool = False) -> DatabaseClient:
        client = cls(path, writable=writable)
        await client.connect()
        return client

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError(f"Database {self.path} is not open")
        return self._conn

    async def connect(self) -> None:
        if self._conn is not None:
            return
        mode = "rw" if self.writable else "ro"
        uri = f"{self.path.resolve().as_uri()}?mode={mode}"
        conn = await aiosqlite.connect(uri, uri=True)
        conn.row_factory = aiosqlite.Row
        self._conn = conn
        logger.debug(f"Opened {self.path} ({mode})")

    async def close(self) -> None:
        conn, self._conn = self._conn, None
        if conn is not None:
            await conn.close()
            logger.debug(f"Closed {self.path}")

    async def fetch_one(self, sql: str, params: Iterable[Any] = ()) -> Optional[aiosqlite.Row]:
        async with self.conn.execute(sql, tuple(params)) as cursor:
            return await cursor.fetchone()

    async def fetch_all(self, sql: str, params: Iterable[Any] = ()) -> list[aiosqlite.Row]:
        async with self.conn.execute(sql, tuple(params)) as cursor:
            return list(await cursor.fetchall())

    async def __aenter__(self) -> DatabaseClient:
        await self.connect()
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()
