"""Pydantic models for CDP endpoints, targets and discovered processes."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..constants import DEFAULT_CDP_HOST


class Endpoint(BaseModel):
    """Debug interface of a single process."""

    host: str = DEFAULT_CDP_HOST
    port: int

    @property
    def http_url(self) -> str:
        host = self.host
        # IPv6 literals need brackets in URLs
        if ":" in host and not host.startswith("["):
            host = f"[{host}]"
        return f"http://{host}:{self.port}"


class CdpTarget(BaseModel):
    """Entry returned by the HTTP ``/json/list`` endpoint."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    type: str
    url: str = ""
    title: str = ""
    description: str = ""
    devtools_frontend_url: str = Field(default="", alias="devtoolsFrontendUrl")
    # Missing when another debugger client is already attached.
    web_socket_debugger_url: Optional[str] = Field(default=None, alias="webSocketDebuggerUrl")

    @property
    def is_attachable(self) -> bool:
        return bool(self.web_socket_debugger_url)


class DiscoveredInstance(BaseModel):
    """A LinkedHelper process found by OS introspection."""

    pid: int
    cdp_port: Optional[int] = None
    connectable: bool = False  # verified by a /json/list handshake, not by an open port
