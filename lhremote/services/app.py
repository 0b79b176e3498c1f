"""Launch and quit the LinkedHelper application process itself.

The launcher must run with ``--remote-debugging-port`` for anything else in
this package to reach it. ``AppService`` starts it that way, and stops it
again: SIGTERM first, SIGKILL when it lingers.
"""

from __future__ import annotations

import asyncio
import os
import socket
import subprocess
import sys
from pathlib import Path
from typing import Optional

import httpx
import psutil

from ..cdp.discovery import discover_targets, is_cdp_port
from ..cdp.errors import CDPDiscoveryError
from ..cdp.instance_discovery import find_pid_listening_on
from ..config import (
    APP_KILL_TIMEOUT,
    APP_QUIT_TIMEOUT,
    LAUNCH_SETTLE_DELAY,
    LINKEDHELPER_PATH,
    get_logger,
)
from ..constants import CLOSE_TARGET_PATH
from ..models.cdp import Endpoint
from .errors import AppLaunchError, AppNotFoundError, ServiceError

logger = get_logger(__name__)


class AppService:
    """Lifecycle of the LinkedHelper launcher process on one CDP port.

    Without an explicit ``cdp_port``, ``launch()`` picks a free one.
    """

    def __init__(
        self,
        cdp_port: Optional[int] = None,
        *,
        launch_settle_delay: float = LAUNCH_SETTLE_DELAY,
        quit_timeout: float = APP_QUIT_TIMEOUT,
        kill_timeout: float = APP_KILL_TIMEOUT,
    ):
        self._port = cdp_port
        self.launch_settle_delay = launch_settle_delay
        self.quit_timeout = quit_timeout
        self.kill_timeout = kill_timeout
        self._process: Optional[psutil.Popen] = None

    @property
    def cdp_port(self) -> int:
        if self._port is None:
            raise ServiceError("CDP port not assigned yet; call launch() or pass a port")
        return self._port

    async def is_running(self) -> bool:
        """True if something answers the CDP handshake on our port."""
        if self._port is None:
            return False
        return await is_cdp_port(self._port)

    async def launch(self) -> int:
        """Start LinkedHelper with remote debugging. Returns the CDP port.

        Does nothing when the app already answers on the given port.

        Raises:
            AppNotFoundError: If the binary cannot be found.
            AppLaunchError: If the process fails to start or exits right away.
        """
        if self._port is not None and await self.is_running():
            logger.info(f"LinkedHelper already running on CDP port {self._port}")
            return self._port

        if self._port is None:
            self._port = find_free_port()

        binary = find_binary()
        try:
            process = await asyncio.to_thread(
                psutil.Popen,
                [str(binary), f"--remote-debugging-port={self._port}"],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise AppLaunchError(f"Failed to launch LinkedHelper: {e}") from e

        # An immediate exit means a bad binary or a second copy refusing to start
        try:
            code = await asyncio.to_thread(process.wait, self.launch_settle_delay)
        except psutil.TimeoutExpired:
            self._process = process
            logger.info(f"Launched LinkedHelper (PID {process.pid}) on CDP port {self._port}")
            return self._port

        raise AppLaunchError(f"LinkedHelper exited right after launch (exit code {code})")

    async def quit(self) -> None:
        """Quit LinkedHelper.

        A process launched here is terminated directly. Otherwise the
        process listening on the CDP port is, and when none can be found
        the app is asked to close its window over CDP.
        """
        process, self._process = self._process, None
        if process is None and self._port is not None:
            pid = await find_pid_listening_on(self._port)
            if pid is not None:
                try:
                    process = psutil.Process(pid)
                except psutil.NoSuchProcess:
                    return

        if process is not None:
            await asyncio.to_thread(_terminate, process, self.quit_timeout, self.kill_timeout)
            return

        if self._port is not None:
            await self._close_over_cdp(self._port)

    async def _close_over_cdp(self, port: int) -> None:
        endpoint = Endpoint(port=port)
        try:
            targets = await discover_targets(port, endpoint.host)
            if targets:
                async with httpx.AsyncClient(timeout=5.0) as client:
                    await client.get(f"{endpoint.http_url}{CLOSE_TARGET_PATH}{targets[0].id}")
        except (CDPDiscoveryError, httpx.HTTPError) as e:
            logger.debug(f"CDP close on port {port} failed (app may already be closed): {e}")


def find_binary() -> Path:
    """Locate the LinkedHelper executable.

    Raises:
        AppNotFoundError: If it does not exist or is not executable.
    """
    path = Path(LINKEDHELPER_PATH) if LINKEDHELPER_PATH else default_binary_path()
    if not path.is_file() or not os.access(path, os.X_OK):
        raise AppNotFoundError(f"LinkedHelper binary not found at {path}. Set LINKEDHELPER_PATH to override.")
    return path


def default_binary_path() -> Path:
    if sys.platform == "darwin":
        return Path("/Applications/linked-helper.app/Contents/MacOS/linked-helper")
    if sys.platform == "win32":
        local = os.getenv("LOCALAPPDATA")
        base = Path(local) if local else Path.home() / "AppData" / "Local"
        return base / "Programs" / "linked-helper" / "linked-helper.exe"
    return Path("/opt/linked-helper/linked-helper")


def find_free_port() -> int:
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def _terminate(process: psutil.Process, graceful: float, force: float) -> None:
    try:
        process.terminate()
        try:
            process.wait(graceful)
            logger.info(f"LinkedHelper (PID {process.pid}) exited")
            return
        except psutil.TimeoutExpired:
            logger.warning(f"LinkedHelper (PID {process.pid}) ignored SIGTERM for {graceful}s; killing it")

        process.kill()
        try:
            process.wait(force)
        except psutil.TimeoutExpired:
            logger.warning(f"LinkedHelper (PID {process.pid}) still present after SIGKILL")
    except psutil.NoSuchProcess:
        pass  # already gone
