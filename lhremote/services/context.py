"""Scoped access to an account database and its running instance.

Every resource acquired here is released on every exit path, after the
body has finished, and errors propagate unchanged.
"""

from __future__ import annotations

import inspect
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Optional, TypeVar, Union

from ..cdp.instance_discovery import discover_instance_port
from ..config import CDP_TIMEOUT, INSTANCE_CONNECT_TIMEOUT
from ..constants import DEFAULT_CDP_HOST
from ..database.client import DatabaseClient
from ..database.discovery import discover_database
from .errors import InstanceNotRunningError
from .instance import InstanceService

T = TypeVar("T")


@dataclass(frozen=True)
class DatabaseContext:
    account_id: int
    db: DatabaseClient


@dataclass(frozen=True)
class InstanceDatabaseContext:
    account_id: int
    instance: InstanceService
    db: DatabaseClient


@asynccontextmanager
async def database_context(
    account_id: int,
    *,
    writable: bool = False,
    base_dir: Optional[Path] = None,
) -> AsyncIterator[DatabaseContext]:
    """Open the account database for the duration of the block.

    Raises:
        DatabaseNotFoundError: If the account has no database file.
    """
    db = DatabaseClient(discover_database(account_id, base_dir), writable=writable)
    try:
        await db.connect()
        yield DatabaseContext(account_id=account_id, db=db)
    finally:
        await db.close()


@asynccontextmanager
async def instance_database_context(
    launcher_port: int,
    account_id: int,
    *,
    writable: bool = False,
    base_dir: Optional[Path] = None,
    instance_timeout: float = CDP_TIMEOUT,
    connect_timeout: float = INSTANCE_CONNECT_TIMEOUT,
    host: str = DEFAULT_CDP_HOST,
    allow_remote: bool = False,
) -> AsyncIterator[InstanceDatabaseContext]:
    """Connect to the running instance, then open the account database.

    Raises:
        InstanceNotRunningError: If no instance port is discoverable. Nothing
            has been acquired at that point.
    """
    port = await discover_instance_port(launcher_port)
    if port is None:
        raise InstanceNotRunningError("No LinkedHelper instance is running. Use start-instance first.")

    instance = InstanceService(
        port,
        host=host,
        timeout=instance_timeout,
        connect_timeout=connect_timeout,
        allow_remote=allow_remote,
    )
    db: Optional[DatabaseClient] = None
    try:
        await instance.connect()
        db = DatabaseClient(discover_database(account_id, base_dir), writable=writable)
        await db.connect()
        yield InstanceDatabaseContext(account_id=account_id, instance=instance, db=db)
    finally:
        try:
            await instance.disconnect()
        finally:
            if db is not None:
                await db.close()


async def with_database(
    account_id: int,
    callback: Callable[[DatabaseContext], Union[T, Awaitable[T]]],
    *,
    writable: bool = False,
    base_dir: Optional[Path] = None,
) -> T:
    """Run ``callback`` with an open database; the handle is closed afterwards."""
    async with database_context(account_id, writable=writable, base_dir=base_dir) as ctx:
        return await _call(callback, ctx)


async def with_instance_database(
    launcher_port: int,
    account_id: int,
    callback: Callable[[InstanceDatabaseContext], Union[T, Awaitable[T]]],
    *,
    writable: bool = False,
    base_dir: Optional[Path] = None,
    instance_timeout: float = CDP_TIMEOUT,
    connect_timeout: float = INSTANCE_CONNECT_TIMEOUT,
    host: str = DEFAULT_CDP_HOST,
    allow_remote: bool = False,
) -> T:
    """Run ``callback`` with a connected instance and an open database."""
    async with instance_database_context(
        launcher_port,
        account_id,
        writable=writable,
        base_dir=base_dir,
        instance_timeout=instance_timeout,
        connect_timeout=connect_timeout,
        host=host,
        allow_remote=allow_remote,
    ) as ctx:
        return await _call(callback, ctx)


async def _call(callback: Callable[..., Union[T, Awaitable[T]]], ctx) -> T:
    result = callback(ctx)
    if inspect.isawaitable(result):
        result = await result
    return result
