"""Pick the account to operate on when the caller did not name one."""

from __future__ import annotations

from ..constants import DEFAULT_CDP_HOST
from .errors import AccountResolutionError
from .launcher import LauncherService


async def resolve_account(
    launcher_port: int,
    host: str = DEFAULT_CDP_HOST,
    allow_remote: bool = False,
) -> int:
    """Return the id of the only account configured in the launcher.

    Raises:
        LinkedHelperNotRunningError: If the launcher is unreachable.
        AccountResolutionError: If there are zero or several accounts.
    """
    launcher = LauncherService(launcher_port, host=host, allow_remote=allow_remote)
    try:
        await launcher.connect()
        accounts = await launcher.list_accounts()
    finally:
        await launcher.disconnect()

    if not accounts:
        raise AccountResolutionError("no-accounts")
    if len(accounts) > 1:
        raise AccountResolutionError("multiple-accounts")
    return accounts[0].id
