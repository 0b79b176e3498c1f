"""Loopback address checks for CDP host guarding."""

from __future__ import annotations

import ipaddress


def is_loopback_address(host: str) -> bool:
    """Return True for ``localhost``, 127.0.0.0/8 and ``::1`` (bracketed or not)."""
    h = host.strip().lower()
    if h in ("localhost", "localhost."):
        return True
    if h.startswith("[") and h.endswith("]"):
        h = h[1:-1]
    try:
        return ipaddress.ip_address(h).is_loopback
    except ValueError:
        return False
