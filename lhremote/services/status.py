"""Best-effort health report of the launcher, instances and databases."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from ..cdp.instance_discovery import discover_instance_port
from ..config import get_logger
from ..constants import DEFAULT_CDP_HOST, DEFAULT_CDP_PORT
from ..database.client import DatabaseClient
from ..database.discovery import discover_all_databases
from ..models.instance import InstanceStatus
from ..models.status import AccountInstanceStatus, DatabaseStatus, LauncherStatus, StatusReport
from .launcher import LauncherService

logger = get_logger(__name__)


async def check_status(
    cdp_port: int = DEFAULT_CDP_PORT,
    host: str = DEFAULT_CDP_HOST,
    allow_remote: bool = False,
    base_dir: Optional[Path] = None,
) -> StatusReport:
    """Collect what can be collected; a failing part leaves its section empty."""
    report = StatusReport(launcher=LauncherStatus(port=cdp_port))

    launcher = LauncherService(cdp_port, host=host, allow_remote=allow_remote)
    try:
        await launcher.connect()
        report.launcher.reachable = True
        accounts = await launcher.list_accounts()
        instance_port = await discover_instance_port(cdp_port)
        for account in accounts:
            # The discovered port cannot be tied to an account when there are several
            report.instances.append(
                AccountInstanceStatus(
                    account_id=account.id,
                    account_name=account.name,
                    cdp_port=instance_port if len(accounts) == 1 else None,
                    status=await _instance_status(launcher, account.id),
                )
            )
    except Exception as e:
        logger.debug(f"Launcher status unavailable: {e}")
    finally:
        await launcher.disconnect()

    try:
        databases = discover_all_databases(base_dir)
    except OSError as e:
        logger.debug(f"Database discovery failed: {e}")
        databases = {}

    for account_id, path in databases.items():
        report.databases.append(
            DatabaseStatus(account_id=account_id, path=str(path), profile_count=await _count_profiles(path))
        )

    return report


async def _instance_status(launcher: LauncherService, account_id: int) -> Optional[InstanceStatus]:
    try:
        return await launcher.get_instance_status(account_id)
    except Exception as e:
        logger.debug(f"Instance status of account {account_id} unavailable: {e}")
        return None


async def _count_profiles(path: Path) -> int:
    try:
        async with DatabaseClient(path) as db:
            row = await db.fetch_one("SELECT COUNT(*) AS cnt FROM people")
            return row["cnt"] if row else 0
    except Exception as e:
        logger.debug(f"Could not read {path}: {e}")
        return 0
