"""Scan the system for running LinkedHelper application processes."""

from __future__ import annotations

import asyncio

import psutil

from ..config import get_logger
from ..constants import BINARY_NAMES
from ..models.cdp import DiscoveredInstance
from .discovery import is_cdp_port
from .instance_discovery import find_listening_ports

logger = get_logger(__name__)


async def find_app() -> list[DiscoveredInstance]:
    """Return every LinkedHelper process with its CDP port, if one answers."""
    try:
        pids = await asyncio.to_thread(_linked_helper_pids)
    except Exception as e:
        logger.debug(f"Process enumeration failed: {e}")
        return []

    return list(await asyncio.gather(*(_inspect_process(pid) for pid in pids)))


async def _inspect_process(pid: int) -> DiscoveredInstance:
    ports = sorted(await find_listening_ports(pid))
    for port in ports:
        if await is_cdp_port(port):
            return DiscoveredInstance(pid=pid, cdp_port=port, connectable=True)

    # Running, but nothing answered the handshake
    return DiscoveredInstance(pid=pid, cdp_port=ports[0] if ports else None, connectable=False)


def _linked_helper_pids() -> list[int]:
    return [
        proc.info["pid"]
        for proc in psutil.process_iter(["pid", "name"])
        if proc.info.get("name") in BINARY_NAMES
    ]
