"""MCP Server entry point for lhremote.

Exposes LinkedHelper control to MCP clients over STDIO:
- Application: launch_app, quit_app, find_app, list_accounts, check_status, get_errors
- Instances: start_instance, stop_instance, execute_action
- Campaigns: campaign_list, campaign_get, campaign_start, campaign_stop,
  campaign_retry, campaign_status

Every tool talks to the launcher on ``cdp_port`` (default 9222) and picks
the account automatically when exactly one is configured.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP

from .config import ALLOW_REMOTE, CDP_HOST, CDP_PORT, LOG_FORMAT, LOG_LEVEL
from .tools.campaign_tools import (
    campaign_get,
    campaign_list,
    campaign_retry,
    campaign_start,
    campaign_status,
    campaign_stop,
)
from .tools.instance_tools import (
    check_status,
    execute_action,
    find_app,
    get_errors,
    launch_app,
    list_accounts,
    quit_app,
    start_instance,
    stop_instance,
)

# Configure logging to stderr (stdout is reserved for MCP JSON-RPC)
logging.basicConfig(stream=sys.stderr, level=LOG_LEVEL, format=LOG_FORMAT)
logger = logging.getLogger("lhremote")


mcp = FastMCP(
    "lhremote",
    instructions=(
        "LinkedHelper remote control. Use launch_app to start LinkedHelper with "
        "remote debugging enabled, or find_app to locate a running copy. Use "
        "check_status to see what is reachable, start_instance to start the "
        "account's instance, then the campaign tools to list, start, stop, retry "
        "and monitor campaigns. Use get_errors when the instance seems stuck "
        "behind a dialog or popup."
    ),
)


# ── Application Tools ────────────────────────────────────────────────────────


@mcp.tool()
async def tool_launch_app(cdp_port: int = 0) -> str:
    """Launch LinkedHelper with remote debugging enabled.

    Args:
        cdp_port: CDP port to listen on (0 = pick a free port).
    """
    return await launch_app(cdp_port)


@mcp.tool()
async def tool_quit_app(cdp_port: int = CDP_PORT) -> str:
    """Quit the LinkedHelper application.

    Args:
        cdp_port: Launcher CDP port (default 9222).
    """
    return await quit_app(cdp_port)


@mcp.tool()
async def tool_find_app() -> str:
    """Find running LinkedHelper processes and their CDP ports."""
    return await find_app()


@mcp.tool()
async def tool_list_accounts(
    cdp_port: int = CDP_PORT,
    cdp_host: str = CDP_HOST,
    allow_remote: bool = ALLOW_REMOTE,
) -> str:
    """List LinkedIn accounts configured in LinkedHelper.

    Args:
        cdp_port: Launcher CDP port (default 9222).
        cdp_host: CDP host (default 127.0.0.1).
        allow_remote: SECURITY: allow non-loopback CDP hosts. This enables
            remote code execution on the target host.
    """
    return await list_accounts(cdp_port, cdp_host, allow_remote)


@mcp.tool()
async def tool_check_status(
    cdp_port: int = CDP_PORT,
    cdp_host: str = CDP_HOST,
    allow_remote: bool = ALLOW_REMOTE,
) -> str:
    """Check launcher reachability, running instances and account databases."""
    return await check_status(cdp_port, cdp_host, allow_remote)


@mcp.tool()
async def tool_get_errors(
    account_id: int = 0,
    cdp_port: int = CDP_PORT,
    cdp_host: str = CDP_HOST,
    allow_remote: bool = ALLOW_REMOTE,
) -> str:
    """Query UI dialogs, critical errors and blocking popups of the instance."""
    return await get_errors(account_id, cdp_port, cdp_host, allow_remote)


# ── Instance Tools ───────────────────────────────────────────────────────────


@mcp.tool()
async def tool_start_instance(
    account_id: int = 0,
    cdp_port: int = CDP_PORT,
    cdp_host: str = CDP_HOST,
    allow_remote: bool = ALLOW_REMOTE,
) -> str:
    """Start the LinkedHelper instance of an account.

    Required before campaign operations. Waits up to 45s for the instance.

    Args:
        account_id: Account ID (0 = the only configured account).
        cdp_port: Launcher CDP port (default 9222).
    """
    return await start_instance(account_id, cdp_port, cdp_host, allow_remote)


@mcp.tool()
async def tool_stop_instance(
    account_id: int = 0,
    cdp_port: int = CDP_PORT,
    cdp_host: str = CDP_HOST,
    allow_remote: bool = ALLOW_REMOTE,
) -> str:
    """Stop the running LinkedHelper instance of an account.

    Args:
        account_id: Account ID (0 = the only configured account).
    """
    return await stop_instance(account_id, cdp_port, cdp_host, allow_remote)


@mcp.tool()
async def tool_execute_action(
    action_type: str,
    config: Optional[dict[str, Any]] = None,
    cdp_port: int = CDP_PORT,
    cdp_host: str = CDP_HOST,
    allow_remote: bool = ALLOW_REMOTE,
) -> str:
    """Execute a LinkedHelper action in the running instance.

    Args:
        action_type: Action name, e.g. "SaveCurrentProfile".
        config: Action configuration object.
    """
    return await execute_action(action_type, config, cdp_port, cdp_host, allow_remote)


# ── Campaign Tools ───────────────────────────────────────────────────────────


@mcp.tool()
async def tool_campaign_list(
    include_archived: bool = False,
    account_id: int = 0,
    cdp_port: int = CDP_PORT,
    cdp_host: str = CDP_HOST,
    allow_remote: bool = ALLOW_REMOTE,
) -> str:
    """List campaigns of the account.

    Args:
        include_archived: Include archived campaigns.
    """
    return await campaign_list(include_archived, account_id, cdp_port, cdp_host, allow_remote)


@mcp.tool()
async def tool_campaign_get(
    campaign_id: int,
    account_id: int = 0,
    cdp_port: int = CDP_PORT,
    cdp_host: str = CDP_HOST,
    allow_remote: bool = ALLOW_REMOTE,
) -> str:
    """Get a campaign with its action chain."""
    return await campaign_get(campaign_id, account_id, cdp_port, cdp_host, allow_remote)


@mcp.tool()
async def tool_campaign_start(
    campaign_id: int,
    person_ids: list[int],
    account_id: int = 0,
    cdp_port: int = CDP_PORT,
    cdp_host: str = CDP_HOST,
    allow_remote: bool = ALLOW_REMOTE,
) -> str:
    """Start a campaign for the given people.

    The people are reset for re-run first. Returns once the campaign
    runner is running; use campaign_status to follow progress.

    Args:
        campaign_id: Campaign ID.
        person_ids: Person IDs to target.
    """
    return await campaign_start(campaign_id, person_ids, account_id, cdp_port, cdp_host, allow_remote)


@mcp.tool()
async def tool_campaign_stop(
    campaign_id: int,
    account_id: int = 0,
    cdp_port: int = CDP_PORT,
    cdp_host: str = CDP_HOST,
    allow_remote: bool = ALLOW_REMOTE,
) -> str:
    """Pause a campaign and stop the campaign runner."""
    return await campaign_stop(campaign_id, account_id, cdp_port, cdp_host, allow_remote)


@mcp.tool()
async def tool_campaign_retry(
    campaign_id: int,
    person_ids: list[int],
    account_id: int = 0,
    cdp_port: int = CDP_PORT,
    cdp_host: str = CDP_HOST,
    allow_remote: bool = ALLOW_REMOTE,
) -> str:
    """Reset people for re-run in a campaign without starting it."""
    return await campaign_retry(campaign_id, person_ids, account_id, cdp_port, cdp_host, allow_remote)


@mcp.tool()
async def tool_campaign_status(
    campaign_id: int,
    include_results: bool = False,
    limit: int = 20,
    account_id: int = 0,
    cdp_port: int = CDP_PORT,
    cdp_host: str = CDP_HOST,
    allow_remote: bool = ALLOW_REMOTE,
) -> str:
    """Check campaign state, runner state and per-action progress.

    Args:
        campaign_id: Campaign ID.
        include_results: Include the most recent action results.
        limit: Max results (default 20).
    """
    return await campaign_status(
        campaign_id, include_results, limit, account_id, cdp_port, cdp_host, allow_remote,
    )


# ── Entry Point ──────────────────────────────────────────────────────────────


def main():
    """Run the MCP server on STDIO transport."""
    logger.info("Starting lhremote MCP server...")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
