"""Control of the LinkedHelper launcher process over CDP."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import ValidationError

from ..cdp.client import CDPClient
from ..cdp.errors import CDPConnectionError, CDPEvaluationError
from ..config import get_logger
from ..constants import DEFAULT_CDP_HOST, DEFAULT_CDP_PORT, LAUNCHER_MAIN_WINDOW, WRONG_PORT_MARKER
from ..models.account import Account
from ..models.instance import InstanceStatus, StartInstanceResult
from ..models.ui_health import UIHealthStatus
from .errors import LinkedHelperNotRunningError, ServiceError, StartInstanceError, WrongPortError

logger = get_logger(__name__)


class LauncherService:
    """Façade over the launcher's main window.

    The launcher is the Electron window that manages LinkedIn accounts.
    It starts and stops one instance process per account and keeps the
    account list in its electron store.
    """

    def __init__(
        self,
        port: int = DEFAULT_CDP_PORT,
        host: str = DEFAULT_CDP_HOST,
        allow_remote: bool = False,
    ):
        self.port = port
        self.host = host
        self.allow_remote = allow_remote
        self._client: Optional[CDPClient] = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None and self._client.is_connected

    async def __aenter__(self) -> LauncherService:
        await self.connect()
        return self

    async def __aexit__(self, *args) -> None:
        await self.disconnect()

    async def connect(self) -> None:
        """Connect to the launcher.

        Raises:
            LinkedHelperNotRunningError: If the launcher is not reachable.
        """
        client = CDPClient(self.port, host=self.host, allow_remote=self.allow_remote)
        try:
            await client.connect()
        except CDPConnectionError as e:
            await client.close()
            raise LinkedHelperNotRunningError(self.port) from e
        self._client = client

    async def disconnect(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            await client.close()

    async def start_instance(self, account_id: int) -> None:
        """Ask the launcher to start the instance of ``account_id``.

        Returns once the launcher accepted the request; the instance
        process is not ready for CDP connections yet.

        Raises:
            StartInstanceError: If the launcher reports a failure.
        """
        account = f"{{ id: {account_id}, liId: {account_id} }}"
        raw = await self._evaluate(
            f"""(async () => {{
                try {{
                    const mainWindow = {LAUNCHER_MAIN_WINDOW};
                    await mainWindow.startInstance({{
                        linkedInAccount: {account},
                        accountData: {account},
                        instanceId: 1,
                        proxy: null,
                        license: null,
                        userId: null,
                        frontendSettings: {{}},
                        lhAccount: {{}},
                        zoomDefault: 0.9,
                        shouldBringToFront: true,
                        shouldStartRunningCampaigns: false,
                    }});
                    return {{ success: true }};
                }} catch (e) {{
                    return {{ success: false, error: e.message }};
                }}
            }})()""",
            await_promise=True,
        )
        result = StartInstanceResult.model_validate(raw or {"success": False, "error": "No result"})
        if not result.success:
            raise StartInstanceError(account_id, result.error)
        logger.info(f"Start requested for account {account_id}")

    async def stop_instance(self, account_id: int) -> None:
        await self._evaluate(
            f"""(async () => {{
                const mainWindow = {LAUNCHER_MAIN_WINDOW};
                return await mainWindow.instanceManager.stopInstance({account_id});
            }})()""",
            await_promise=True,
        )
        logger.info(f"Stop requested for account {account_id}")

    async def get_instance_status(self, account_id: int) -> InstanceStatus:
        # instanceManager.instances is populated in the main process only, so
        # the renderer may report "stopped" for a running instance.
        status = await self._evaluate(
            f"""(() => {{
                const mainWindow = {LAUNCHER_MAIN_WINDOW};
                const instance = mainWindow.instanceManager.instances?.[{account_id}];
                return instance?.status ?? 'stopped';
            }})()"""
        )
        if status not in ("stopped", "starting", "running", "stopping"):
            return "stopped"
        return status

    async def list_accounts(self) -> list[Account]:
        """List accounts from the ``linkedInPasswords`` store key.

        Keys have the form ``<userId>:li:<accountId>``; others are skipped.
        """
        raw = await self._evaluate(
            f"""(() => {{
                const mainWindow = {LAUNCHER_MAIN_WINDOW};
                const passwords = mainWindow.electronStore.get('linkedInPasswords') ?? {{}};
                return Object.keys(passwords)
                    .map(k => {{
                        const parts = k.split(':li:');
                        if (parts.length !== 2) return null;
                        const accountId = Number(parts[1]);
                        if (Number.isNaN(accountId)) return null;
                        return {{ id: accountId, liId: accountId, name: '' }};
                    }})
                    .filter(a => a !== null);
            }})()"""
        )
        return [Account.model_validate(entry) for entry in raw or []]

    async def check_ui_health(self, account_id: int) -> UIHealthStatus:
        """Report dialogs, critical errors and blocking popups of an instance."""
        raw = await self._evaluate(
            f"""(() => {{
                const mainWindow = {LAUNCHER_MAIN_WINDOW};
                const im = mainWindow.instanceManager;
                const issues = im.getInstanceIssues?.({account_id}) ?? [];
                const popup = mainWindow.popupBS?.getValue?.() ?? null;
                return {{
                    issues,
                    popup: popup ? {{
                        blocked: true,
                        message: popup.message ?? null,
                        closable: !popup.unclosable,
                    }} : null,
                }};
            }})()"""
        ) or {}

        try:
            status = UIHealthStatus.model_validate(
                {"healthy": True, "issues": raw.get("issues") or [], "popup": raw.get("popup")}
            )
        except ValidationError as e:
            raise ServiceError(f"Unexpected UI health payload: {e}") from e

        blocked = status.popup is not None and status.popup.blocked
        status.healthy = not status.issues and not blocked
        return status

    # ── Internals ────────────────────────────────────────────────────────────

    def _ensure_connected(self) -> CDPClient:
        if self._client is None:
            raise ServiceError("LauncherService is not connected")
        return self._client

    async def _evaluate(self, expression: str, await_promise: bool = False) -> Any:
        client = self._ensure_connected()
        try:
            return await client.evaluate(expression, await_promise=await_promise)
        except CDPEvaluationError as e:
            # Instance targets have no node integration
            if WRONG_PORT_MARKER in str(e):
                raise WrongPortError(self.port) from e
            raise
