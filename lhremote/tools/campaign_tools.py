"""MCP tools for starting, stopping and inspecting campaigns."""

from __future__ import annotations

import json

from ..config import ALLOW_REMOTE, CDP_HOST, CDP_PORT
from ..database.repository import CampaignRepository
from ..services.campaign import CampaignService
from ..services.context import DatabaseContext, instance_database_context, with_database
from ..services.errors import CampaignExecutionError, CampaignTimeoutError
from .errors import describe_error
from .instance_tools import resolve_account_id


async def campaign_start(
    campaign_id: int,
    person_ids: list[int],
    account_id: int = 0,
    cdp_port: int = CDP_PORT,
    cdp_host: str = CDP_HOST,
    allow_remote: bool = ALLOW_REMOTE,
) -> str:
    """Reset ``person_ids`` for re-run and start the campaign.

    Returns once the runner reports it is running.
    """
    try:
        account_id = await resolve_account_id(account_id, cdp_port, cdp_host, allow_remote)
    except Exception as e:
        return describe_error(e, "Failed to connect to LinkedHelper")

    try:
        async with instance_database_context(
            cdp_port, account_id, writable=bool(person_ids), host=cdp_host, allow_remote=allow_remote
        ) as ctx:
            await CampaignService(ctx.db, ctx.instance).start(campaign_id, person_ids)
    except CampaignTimeoutError as e:
        return f"Error: Campaign start timed out: {e}"
    except CampaignExecutionError as e:
        return f"Error: Failed to start campaign: {e}"
    except Exception as e:
        return describe_error(e, "Failed to start campaign")

    return json.dumps(
        {
            "success": True,
            "campaign_id": campaign_id,
            "persons_queued": len(person_ids),
            "message": "Campaign started. Use campaign_status to monitor progress.",
        },
        indent=2,
    )


async def campaign_stop(
    campaign_id: int,
    account_id: int = 0,
    cdp_port: int = CDP_PORT,
    cdp_host: str = CDP_HOST,
    allow_remote: bool = ALLOW_REMOTE,
) -> str:
    """Pause the campaign and stop the runner."""
    try:
        account_id = await resolve_account_id(account_id, cdp_port, cdp_host, allow_remote)
    except Exception as e:
        return describe_error(e, "Failed to connect to LinkedHelper")

    try:
        async with instance_database_context(cdp_port, account_id, host=cdp_host, allow_remote=allow_remote) as ctx:
            await CampaignService(ctx.db, ctx.instance).stop(campaign_id)
    except CampaignTimeoutError as e:
        return f"Error: Campaign stop timed out: {e}"
    except CampaignExecutionError as e:
        return f"Error: Failed to stop campaign: {e}"
    except Exception as e:
        return describe_error(e, "Failed to stop campaign")

    return json.dumps({"success": True, "campaign_id": campaign_id, "message": "Campaign stopped"}, indent=2)


async def campaign_retry(
    campaign_id: int,
    person_ids: list[int],
    account_id: int = 0,
    cdp_port: int = CDP_PORT,
    cdp_host: str = CDP_HOST,
    allow_remote: bool = ALLOW_REMOTE,
) -> str:
    """Reset people for re-run without starting the campaign."""
    try:
        account_id = await resolve_account_id(account_id, cdp_port, cdp_host, allow_remote)
    except Exception as e:
        return describe_error(e, "Failed to connect to LinkedHelper")

    async def reset(ctx: DatabaseContext) -> None:
        await CampaignService(ctx.db).retry(campaign_id, person_ids)

    try:
        await with_database(account_id, reset, writable=True)
    except Exception as e:
        return describe_error(e, "Failed to reset persons for retry")

    return json.dumps(
        {
            "success": True,
            "campaign_id": campaign_id,
            "persons_reset": len(person_ids),
            "message": "Persons reset for retry. Use campaign_start to run the campaign.",
        },
        indent=2,
    )


async def campaign_status(
    campaign_id: int,
    include_results: bool = False,
    limit: int = 20,
    account_id: int = 0,
    cdp_port: int = CDP_PORT,
    cdp_host: str = CDP_HOST,
    allow_remote: bool = ALLOW_REMOTE,
) -> str:
    """Report campaign state, runner state and per-action people counts."""
    try:
        account_id = await resolve_account_id(account_id, cdp_port, cdp_host, allow_remote)
    except Exception as e:
        return describe_error(e, "Failed to connect to LinkedHelper")

    try:
        async with instance_database_context(cdp_port, account_id, host=cdp_host, allow_remote=allow_remote) as ctx:
            service = CampaignService(ctx.db, ctx.instance)
            status = await service.get_status(campaign_id)
            payload = {"campaign_id": campaign_id, **status.model_dump()}
            if include_results:
                run = await service.get_results(campaign_id, limit=limit)
                payload["results"] = [result.model_dump() for result in run.results]
    except Exception as e:
        return describe_error(e, "Failed to get campaign status")

    return json.dumps(payload, indent=2)


async def campaign_list(
    include_archived: bool = False,
    account_id: int = 0,
    cdp_port: int = CDP_PORT,
    cdp_host: str = CDP_HOST,
    allow_remote: bool = ALLOW_REMOTE,
) -> str:
    """List the account's campaigns from its database."""
    try:
        account_id = await resolve_account_id(account_id, cdp_port, cdp_host, allow_remote)
    except Exception as e:
        return describe_error(e, "Failed to connect to LinkedHelper")

    async def read(ctx: DatabaseContext):
        return await CampaignRepository(ctx.db).list_campaigns(include_archived=include_archived)

    try:
        campaigns = await with_database(account_id, read)
    except Exception as e:
        return describe_error(e, "Failed to list campaigns")

    return json.dumps(
        {"campaigns": [campaign.model_dump() for campaign in campaigns], "total": len(campaigns)},
        indent=2,
    )


async def campaign_get(
    campaign_id: int,
    account_id: int = 0,
    cdp_port: int = CDP_PORT,
    cdp_host: str = CDP_HOST,
    allow_remote: bool = ALLOW_REMOTE,
) -> str:
    """Show one campaign and its actions."""
    try:
        account_id = await resolve_account_id(account_id, cdp_port, cdp_host, allow_remote)
    except Exception as e:
        return describe_error(e, "Failed to connect to LinkedHelper")

    async def read(ctx: DatabaseContext) -> dict:
        service = CampaignService(ctx.db)
        campaign = await service.get(campaign_id)
        actions = await service.repo.get_campaign_actions(campaign_id)
        return {**campaign.model_dump(), "actions": [action.model_dump() for action in actions]}

    try:
        payload = await with_database(account_id, read)
    except Exception as e:
        return describe_error(e, "Failed to get campaign")

    return json.dumps(payload, indent=2)
