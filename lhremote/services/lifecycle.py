"""Instance start/stop procedures.

Starting an instance is not atomic in LinkedHelper: the launcher accepts
the request long before the instance process serves CDP, so readiness is
confirmed by polling port discovery.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from ..cdp.instance_discovery import discover_instance_port, kill_instance_processes
from ..config import (
    CRASH_RECOVERY_DELAY,
    PORT_DISCOVERY_INTERVAL,
    PORT_DISCOVERY_TIMEOUT,
    PORT_SHUTDOWN_TIMEOUT,
    get_logger,
)
from ..constants import ALREADY_RUNNING_MARKER
from ..models.instance import (
    InstanceAlreadyRunning,
    InstanceOutcome,
    InstanceStarted,
    InstanceStartTimeout,
)
from ..utils.polling import poll_until
from .errors import StartInstanceError
from .launcher import LauncherService

logger = get_logger(__name__)


async def start_instance_with_recovery(
    launcher: LauncherService,
    account_id: int,
    launcher_port: int,
    *,
    timeout: float = PORT_DISCOVERY_TIMEOUT,
    interval: float = PORT_DISCOVERY_INTERVAL,
    recovery_delay: float = CRASH_RECOVERY_DELAY,
) -> InstanceOutcome:
    """Start the instance of ``account_id`` and wait until it serves CDP.

    - Already reachable: ``already_running``, no start request is sent
    - Launcher says "already running" but nothing is reachable (stale state
      after a crash): stop, wait ``recovery_delay``, start again
    - Port found in time: ``started``; otherwise ``timeout``

    Raises:
        LinkedHelperNotRunningError, StartInstanceError, CDPError: Launcher failures.
    """
    existing = await discover_instance_port(launcher_port)
    if existing is not None:
        logger.info(f"Instance for account {account_id} already running on port {existing}")
        return InstanceAlreadyRunning(port=existing)

    try:
        await launcher.start_instance(account_id)
    except StartInstanceError as e:
        if ALREADY_RUNNING_MARKER not in str(e):
            raise

        existing = await discover_instance_port(launcher_port)
        if existing is not None:
            return InstanceAlreadyRunning(port=existing)

        logger.warning(f"Launcher reports account {account_id} running but no instance answers; restarting")
        await launcher.stop_instance(account_id)
        await asyncio.sleep(recovery_delay)
        await launcher.start_instance(account_id)

    port = await wait_for_instance_port(launcher_port, timeout=timeout, interval=interval)
    if port is None:
        logger.warning(f"Instance for account {account_id} did not expose a CDP port within {timeout}s")
        return InstanceStartTimeout()

    logger.info(f"Instance for account {account_id} started on port {port}")
    return InstanceStarted(port=port)


async def wait_for_instance_port(
    launcher_port: int,
    *,
    timeout: float = PORT_DISCOVERY_TIMEOUT,
    interval: float = PORT_DISCOVERY_INTERVAL,
) -> Optional[int]:
    """Poll until an instance CDP port answers. Returns None on timeout."""
    return await poll_until(
        lambda: discover_instance_port(launcher_port), interval=interval, timeout=timeout
    )


async def wait_for_instance_shutdown(
    launcher_port: int,
    *,
    timeout: float = PORT_SHUTDOWN_TIMEOUT,
    interval: float = PORT_DISCOVERY_INTERVAL,
) -> bool:
    """Poll until no instance port is discoverable. False on timeout."""

    async def gone() -> Optional[bool]:
        return True if await discover_instance_port(launcher_port) is None else None

    return bool(await poll_until(gone, interval=interval, timeout=timeout))


async def stop_instance_and_wait(
    launcher: LauncherService,
    account_id: int,
    launcher_port: int,
    *,
    timeout: float = PORT_SHUTDOWN_TIMEOUT,
    interval: float = PORT_DISCOVERY_INTERVAL,
) -> list[int]:
    """Stop the instance and confirm it exited.

    Kills the instance processes if they outlive ``timeout``. Returns the
    PIDs that had to be killed (empty after a clean shutdown).
    """
    await launcher.stop_instance(account_id)
    if await wait_for_instance_shutdown(launcher_port, timeout=timeout, interval=interval):
        return []

    logger.warning(f"Instance for account {account_id} still running after {timeout}s; killing it")
    return await kill_instance_processes(launcher_port)
