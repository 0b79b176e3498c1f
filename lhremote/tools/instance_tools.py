"""MCP tools for the LinkedHelper application and its instances."""

from __future__ import annotations

import json
from typing import Any, Optional

from ..cdp.app_discovery import find_app as find_app_processes
from ..cdp.instance_discovery import discover_instance_port
from ..config import ALLOW_REMOTE, CDP_HOST, CDP_PORT
from ..models.instance import InstanceAlreadyRunning, InstanceOutcome, InstanceStarted
from ..services.account_resolution import resolve_account
from ..services.app import AppService
from ..services.instance import InstanceService
from ..services.launcher import LauncherService
from ..services.lifecycle import start_instance_with_recovery, stop_instance_and_wait
from ..services.status import check_status as collect_status
from .errors import describe_error


async def resolve_account_id(account_id: int, cdp_port: int, cdp_host: str, allow_remote: bool) -> int:
    """Use ``account_id`` when given (non-zero), otherwise the only account."""
    if account_id:
        return account_id
    return await resolve_account(cdp_port, host=cdp_host, allow_remote=allow_remote)


async def launch_app(cdp_port: int = 0) -> str:
    """Start LinkedHelper with remote debugging enabled.

    ``cdp_port`` 0 picks a free port.
    """
    try:
        port = await AppService(cdp_port or None).launch()
    except Exception as e:
        return describe_error(e, "Failed to launch LinkedHelper")
    return f"LinkedHelper launched on CDP port {port}"


async def quit_app(cdp_port: int = CDP_PORT) -> str:
    """Quit the LinkedHelper application listening on ``cdp_port``."""
    try:
        await AppService(cdp_port).quit()
    except Exception as e:
        return describe_error(e, "Failed to quit LinkedHelper")
    return "LinkedHelper quit successfully"


async def find_app() -> str:
    """List running LinkedHelper processes and their CDP ports.

    Only local processes are scanned; no CDP host applies.

    Returns:
        JSON list of ``{pid, cdp_port, connectable}``.
    """
    apps = await find_app_processes()
    if not apps:
        return "No LinkedHelper processes found. Is LinkedHelper running?"
    return json.dumps([app.model_dump() for app in apps], indent=2)


async def list_accounts(
    cdp_port: int = CDP_PORT,
    cdp_host: str = CDP_HOST,
    allow_remote: bool = ALLOW_REMOTE,
) -> str:
    """List the LinkedIn accounts configured in the launcher."""
    try:
        async with LauncherService(cdp_port, host=cdp_host, allow_remote=allow_remote) as launcher:
            accounts = await launcher.list_accounts()
    except Exception as e:
        return describe_error(e, "Failed to list accounts")

    if not accounts:
        return "No accounts found."
    return json.dumps([account.model_dump() for account in accounts], indent=2)


async def check_status(
    cdp_port: int = CDP_PORT,
    cdp_host: str = CDP_HOST,
    allow_remote: bool = ALLOW_REMOTE,
) -> str:
    """Report launcher reachability, instance ports and account databases."""
    try:
        report = await collect_status(cdp_port, host=cdp_host, allow_remote=allow_remote)
    except Exception as e:
        return describe_error(e, "Failed to check status")
    return json.dumps(report.model_dump(), indent=2)


async def start_instance(
    account_id: int = 0,
    cdp_port: int = CDP_PORT,
    cdp_host: str = CDP_HOST,
    allow_remote: bool = ALLOW_REMOTE,
) -> str:
    """Start the instance of an account and wait until it accepts CDP connections."""
    try:
        account_id = await resolve_account_id(account_id, cdp_port, cdp_host, allow_remote)
        async with LauncherService(cdp_port, host=cdp_host, allow_remote=allow_remote) as launcher:
            outcome = await start_instance_with_recovery(launcher, account_id, cdp_port)
    except Exception as e:
        return describe_error(e, "Failed to start instance")

    return describe_outcome(account_id, outcome)


def describe_outcome(account_id: int, outcome: InstanceOutcome) -> str:
    if isinstance(outcome, InstanceAlreadyRunning):
        return f"Instance already running for account {account_id} on CDP port {outcome.port}"
    if isinstance(outcome, InstanceStarted):
        return f"Instance started for account {account_id} on CDP port {outcome.port}"
    return (
        f"Instance for account {account_id} was started but is not ready yet "
        "(timed out waiting for its CDP port). Check again with check_status."
    )


async def stop_instance(
    account_id: int = 0,
    cdp_port: int = CDP_PORT,
    cdp_host: str = CDP_HOST,
    allow_remote: bool = ALLOW_REMOTE,
) -> str:
    """Stop the instance of an account and wait for its process to exit."""
    try:
        account_id = await resolve_account_id(account_id, cdp_port, cdp_host, allow_remote)
        async with LauncherService(cdp_port, host=cdp_host, allow_remote=allow_remote) as launcher:
            killed = await stop_instance_and_wait(launcher, account_id, cdp_port)
    except Exception as e:
        return describe_error(e, "Failed to stop instance")

    if killed:
        return f"Instance for account {account_id} did not exit in time; killed PIDs {killed}"
    return f"Instance stopped for account {account_id}"


async def get_errors(
    account_id: int = 0,
    cdp_port: int = CDP_PORT,
    cdp_host: str = CDP_HOST,
    allow_remote: bool = ALLOW_REMOTE,
) -> str:
    """Report UI dialogs, critical errors and blocking popups of the instance."""
    try:
        account_id = await resolve_account_id(account_id, cdp_port, cdp_host, allow_remote)
        async with LauncherService(cdp_port, host=cdp_host, allow_remote=allow_remote) as launcher:
            health = await launcher.check_ui_health(account_id)
    except Exception as e:
        return describe_error(e, "Failed to get errors")

    return json.dumps({"account_id": account_id, **health.model_dump()}, indent=2)


async def execute_action(
    action_type: str,
    config: Optional[dict[str, Any]] = None,
    cdp_port: int = CDP_PORT,
    cdp_host: str = CDP_HOST,
    allow_remote: bool = ALLOW_REMOTE,
) -> str:
    """Run a named LinkedHelper action in the running instance."""
    try:
        port = await discover_instance_port(cdp_port)
        if port is None:
            return "Error: No LinkedHelper instance is running. Use start_instance first."
        async with InstanceService(port, host=cdp_host, allow_remote=allow_remote) as instance:
            result = await instance.execute_action(action_type, config)
    except Exception as e:
        return describe_error(e, f"Failed to execute {action_type}")

    return json.dumps(result.model_dump(), indent=2)
