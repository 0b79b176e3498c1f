"""Service-layer exceptions.

Callers branch on the exception type; messages are for humans.
"""

from __future__ import annotations

from typing import Literal, Optional

from ..constants import DEFAULT_CDP_PORT


class ServiceError(Exception):
    """Base class for all service-layer errors."""


class AppNotFoundError(ServiceError):
    """The LinkedHelper binary does not exist or is not executable."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message or "LinkedHelper application binary not found. Set LINKEDHELPER_PATH to override."
        )


class AppLaunchError(ServiceError):
    """The LinkedHelper process could not be started or exited right away."""


class LinkedHelperNotRunningError(ServiceError):
    """The launcher's CDP endpoint is unreachable."""

    def __init__(self, port: int):
        super().__init__(f"LinkedHelper is not running (no CDP endpoint at port {port})")
        self.port = port


class StartInstanceError(ServiceError):
    def __init__(self, account_id: int, reason: Optional[str] = None):
        message = f"Failed to start instance for account {account_id}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.account_id = account_id
        self.reason = reason


class InstanceNotRunningError(ServiceError):
    """The launcher may be up, but the per-account instance is not."""

    def __init__(self, message: str = "Instance not running"):
        super().__init__(message)


class WrongPortError(ServiceError):
    """The port belongs to an instance (webview), not the launcher."""

    def __init__(self, port: int):
        super().__init__(
            f"CDP port {port} appears to be a LinkedHelper instance, not the launcher. "
            f"Use the launcher port instead (default: {DEFAULT_CDP_PORT})."
        )
        self.port = port


class ActionExecutionError(ServiceError):
    def __init__(self, action_type: str, message: Optional[str] = None):
        super().__init__(message or f"Action '{action_type}' failed")
        self.action_type = action_type


class InvalidProfileUrlError(ServiceError):
    def __init__(self, url: str):
        super().__init__(f"Not a LinkedIn profile URL: {url}")
        self.url = url


AccountResolutionReason = Literal["no-accounts", "multiple-accounts"]


class AccountResolutionError(ServiceError):
    """Zero or several accounts exist, so none can be picked automatically."""

    def __init__(self, reason: AccountResolutionReason):
        if reason == "no-accounts":
            message = "No accounts found."
        else:
            message = "Multiple accounts found. Cannot determine which instance to use."
        super().__init__(message)
        self.reason = reason


class CampaignExecutionError(ServiceError):
    """The remote side rejected a campaign command."""

    def __init__(self, message: str, campaign_id: Optional[int] = None):
        super().__init__(message)
        self.campaign_id = campaign_id


class CampaignTimeoutError(ServiceError):
    """The runner never reached the requested state."""

    def __init__(self, message: str, campaign_id: int, timeout: Optional[float] = None):
        super().__init__(message)
        self.campaign_id = campaign_id
        self.timeout = timeout
