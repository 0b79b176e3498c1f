"""Translation of exceptions into the text returned by MCP tools."""

from __future__ import annotations

from ..database.errors import CampaignNotFoundError
from ..services.errors import (
    AccountResolutionError,
    AppLaunchError,
    AppNotFoundError,
    LinkedHelperNotRunningError,
)

NOT_RUNNING_MESSAGE = "LinkedHelper is not running. Use launch_app first."


def describe_error(error: BaseException, prefix: str) -> str:
    """One fixed message per known error kind, ``prefix: message`` otherwise."""
    if isinstance(error, LinkedHelperNotRunningError):
        return f"Error: {NOT_RUNNING_MESSAGE}"
    if isinstance(error, (AccountResolutionError, AppNotFoundError, AppLaunchError)):
        return f"Error: {error}"
    if isinstance(error, CampaignNotFoundError):
        return f"Error: Campaign {error.campaign_id} not found."
    return f"Error: {prefix}: {error}"
