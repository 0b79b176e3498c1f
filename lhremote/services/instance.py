"""Control of a running LinkedHelper instance over CDP."""

from __future__ import annotations

import json
import re
from typing import Any, Optional

from ..cdp.client import CDPClient
from ..cdp.discovery import discover_targets
from ..cdp.errors import CDPError
from ..config import CDP_TIMEOUT, INSTANCE_CONNECT_INTERVAL, INSTANCE_CONNECT_TIMEOUT, get_logger
from ..constants import DEFAULT_CDP_HOST, LINKEDIN_PROFILE_URL_RE, LINKEDIN_TARGET_MARKER, UI_TARGET_MARKER
from ..models.cdp import CdpTarget
from ..models.instance import ActionResult
from ..utils.polling import poll_until
from .errors import ActionExecutionError, InstanceNotRunningError, InvalidProfileUrlError, ServiceError

logger = get_logger(__name__)

_PROFILE_URL = re.compile(LINKEDIN_PROFILE_URL_RE)


def is_linkedin_target(target: CdpTarget) -> bool:
    return target.type == "page" and LINKEDIN_TARGET_MARKER in target.url


def is_ui_target(target: CdpTarget) -> bool:
    return target.type == "page" and UI_TARGET_MARKER in target.url


class InstanceService:
    """Façade over one instance process.

    An instance exposes two page targets on the same port:
    - the LinkedIn webview rendering linkedin.com
    - the LinkedHelper UI hosting ``window.mainWindowService``

    Both sessions are opened by ``connect()`` and closed by ``disconnect()``.
    """

    def __init__(
        self,
        port: int,
        host: str = DEFAULT_CDP_HOST,
        timeout: float = CDP_TIMEOUT,
        connect_timeout: float = INSTANCE_CONNECT_TIMEOUT,
        connect_interval: float = INSTANCE_CONNECT_INTERVAL,
        allow_remote: bool = False,
    ):
        self.port = port
        self.host = host
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.connect_interval = connect_interval
        self.allow_remote = allow_remote
        self._linkedin: Optional[CDPClient] = None
        self._ui: Optional[CDPClient] = None

    @property
    def is_connected(self) -> bool:
        return (
            self._linkedin is not None
            and self._linkedin.is_connected
            and self._ui is not None
            and self._ui.is_connected
        )

    async def __aenter__(self) -> InstanceService:
        await self.connect()
        return self

    async def __aexit__(self, *args) -> None:
        await self.disconnect()

    async def connect(self) -> None:
        """Connect to both targets, waiting while the instance is still loading.

        Raises:
            InstanceNotRunningError: If either target does not appear in time.
            CDPConnectionError: If ``host`` is not loopback and remote access
                was not allowed.
        """
        # Clients refuse non-loopback hosts before anything is sent there
        linkedin = CDPClient(self.port, host=self.host, timeout=self.timeout, allow_remote=self.allow_remote)
        ui = CDPClient(self.port, host=self.host, timeout=self.timeout, allow_remote=self.allow_remote)
        last_seen: list[CdpTarget] = []

        async def both_targets() -> Optional[tuple[CdpTarget, CdpTarget]]:
            nonlocal last_seen
            last_seen = await discover_targets(self.port, self.host)
            webview = next((t for t in last_seen if is_linkedin_target(t)), None)
            page = next((t for t in last_seen if is_ui_target(t)), None)
            return (webview, page) if webview and page else None

        found = await poll_until(
            both_targets, interval=self.connect_interval, timeout=self.connect_timeout
        )
        if found is None:
            missing = "LinkedIn webview" if not any(map(is_linkedin_target, last_seen)) else "Instance UI"
            raise InstanceNotRunningError(
                f"{missing} target not found among {len(last_seen)} CDP target(s) on port {self.port}"
            )

        linkedin_target, ui_target = found
        try:
            await linkedin.connect(linkedin_target.id)
            await ui.connect(ui_target.id)
        except BaseException:
            await linkedin.close()
            await ui.close()
            raise

        self._linkedin = linkedin
        self._ui = ui
        logger.debug(f"Connected to instance on port {self.port}")

    async def disconnect(self) -> None:
        linkedin, ui = self._linkedin, self._ui
        self._linkedin = None
        self._ui = None
        if linkedin is not None:
            await linkedin.close()
        if ui is not None:
            await ui.close()

    async def navigate_to_profile(self, url: str) -> None:
        """Open a LinkedIn profile in the webview and wait for it to load.

        Raises:
            InvalidProfileUrlError: If ``url`` is not a ``/in/<slug>`` URL.
        """
        if not _PROFILE_URL.match(url):
            raise InvalidProfileUrlError(url)

        client = self._ensure(self._linkedin, "LinkedIn")
        await client.send("Page.enable")
        await client.navigate(url)
        await client.wait_for_event("Page.loadEventFired")

    async def execute_action(self, action_type: str, config: Optional[dict[str, Any]] = None) -> ActionResult:
        """Run a named LinkedHelper action and wait for it to finish.

        Long-running actions (e.g. ScrapeMessagingHistory) may take minutes.

        Raises:
            ActionExecutionError: If the action fails in the UI.
        """
        client = self._ensure(self._ui, "UI")
        try:
            await client.evaluate(
                f"""(async () => {{
                    const mws = window.mainWindowService;
                    if (!mws) throw new Error('mainWindowService not found on window');
                    return await mws.call('executeSingleAction', {json.dumps(action_type)}, {json.dumps(config or {})});
                }})()""",
                await_promise=True,
            )
        except CDPError as e:
            raise ActionExecutionError(action_type, f"Action '{action_type}' failed: {e}") from e

        return ActionResult(success=True, action_type=action_type)

    async def evaluate_ui(self, expression: str, await_promise: bool = True) -> Any:
        """Evaluate JavaScript in the LinkedHelper UI context."""
        return await self._ensure(self._ui, "UI").evaluate(expression, await_promise=await_promise)

    def _ensure(self, client: Optional[CDPClient], name: str) -> CDPClient:
        if client is None:
            raise ServiceError(f"InstanceService is not connected ({name} target)")
        return client
