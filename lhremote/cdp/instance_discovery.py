"""Discovery of the dynamic CDP port of a running LinkedHelper instance.

LinkedHelper spawns a separate Electron process for each LinkedIn account.
That process listens for CDP connections on a port that changes every
session. The heuristic is:

1. Find the launcher PID by looking for the process listening on the
   launcher port.
2. Find direct children of the launcher.
3. Among the children's listening TCP ports (minus the launcher port),
   return the first one that answers ``/json/list``.

Instance processes may listen on several ports (e.g. a content server and
the CDP server), so a port is only trusted after a CDP handshake.

All OS queries are best-effort: any failure is treated as "nothing found".
"""

from __future__ import annotations

import asyncio
from typing import Optional

import psutil

from ..config import get_logger
from ..constants import DEFAULT_CDP_PORT
from ..utils.polling import first_success
from .discovery import is_cdp_port

logger = get_logger(__name__)


async def discover_instance_port(launcher_port: int = DEFAULT_CDP_PORT) -> Optional[int]:
    """Return the CDP port of the running instance, or None if there is none."""
    launcher_pid = await find_pid_listening_on(launcher_port)
    if launcher_pid is None:
        logger.debug(f"No process listening on launcher port {launcher_port}")
        return None

    child_pids = await find_child_pids(launcher_pid)
    if not child_pids:
        logger.debug(f"Launcher (PID {launcher_pid}) has no child processes")
        return None

    port_sets = await asyncio.gather(*(find_listening_ports(pid) for pid in child_pids))

    candidates: list[int] = []
    for ports in port_sets:
        for port in sorted(ports):
            if port != launcher_port and port not in candidates:
                candidates.append(port)

    if not candidates:
        return None

    return await first_success(_handshake(port) for port in candidates)


async def kill_instance_processes(launcher_port: int) -> list[int]:
    """Force-kill every child process of the launcher. Returns the killed PIDs.

    Last resort when a graceful stop did not bring the instance down.
    """
    launcher_pid = await find_pid_listening_on(launcher_port)
    if launcher_pid is None:
        return []

    child_pids = await find_child_pids(launcher_pid)
    if not child_pids:
        return []
    return await asyncio.to_thread(_kill_processes, child_pids)


async def find_pid_listening_on(port: int) -> Optional[int]:
    """PID of the process listening on TCP ``port``, or None."""
    try:
        return await asyncio.to_thread(_pid_listening_on, port)
    except Exception as e:
        logger.debug(f"Listener lookup for port {port} failed: {e}")
        return None


async def find_child_pids(parent_pid: int) -> list[int]:
    """PIDs of the direct children of ``parent_pid``."""
    try:
        return await asyncio.to_thread(_child_pids, parent_pid)
    except Exception as e:
        logger.debug(f"Process enumeration failed: {e}")
        return []


async def find_listening_ports(pid: int) -> set[int]:
    """TCP ports ``pid`` is listening on."""
    try:
        return await asyncio.to_thread(_listening_ports_of, psutil.Process(pid))
    except Exception as e:
        logger.debug(f"Port enumeration for PID {pid} failed: {e}")
        return set()


async def _handshake(port: int) -> Optional[int]:
    return port if await is_cdp_port(port) else None


# ── Blocking psutil helpers (run in a worker thread) ─────────────────────────


def _pid_listening_on(port: int) -> Optional[int]:
    try:
        connections = psutil.net_connections(kind="tcp")
    except psutil.AccessDenied:
        # macOS needs root for the system-wide table; scan our own processes instead
        return _scan_processes_for_listener(port)

    for conn in connections:
        if conn.status == psutil.CONN_LISTEN and conn.laddr and conn.laddr.port == port and conn.pid:
            return conn.pid
    return None


def _scan_processes_for_listener(port: int) -> Optional[int]:
    for proc in psutil.process_iter(["pid"]):
        try:
            if port in _listening_ports_of(proc):
                return proc.pid
        except psutil.Error:
            continue
    return None


def _child_pids(parent_pid: int) -> list[int]:
    return [
        proc.info["pid"]
        for proc in psutil.process_iter(["pid", "ppid"])
        if proc.info.get("ppid") == parent_pid
    ]


def _listening_ports_of(proc: psutil.Process) -> set[int]:
    return {
        conn.laddr.port
        for conn in proc.net_connections(kind="tcp")
        if conn.status == psutil.CONN_LISTEN and conn.laddr
    }


def _kill_processes(pids: list[int]) -> list[int]:
    killed = []
    for pid in pids:
        try:
            psutil.Process(pid).kill()
            killed.append(pid)
            logger.info(f"Killed instance process {pid}")
        except psutil.NoSuchProcess:
            pass  # already gone
        except psutil.Error as e:
            logger.warning(f"Could not kill instance process {pid}: {e}")
    return killed
