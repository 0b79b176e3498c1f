"""Pydantic models for the aggregated status report."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from .instance import InstanceStatus


class LauncherStatus(BaseModel):
    reachable: bool = False
    port: int


class AccountInstanceStatus(BaseModel):
    account_id: int
    account_name: str = ""
    # Only attributed when exactly one account exists
    cdp_port: Optional[int] = None
    # As the launcher reports it; None when it could not be read
    status: Optional[InstanceStatus] = None


class DatabaseStatus(BaseModel):
    account_id: int
    path: str
    profile_count: int = 0


class StatusReport(BaseModel):
    launcher: LauncherStatus
    instances: list[AccountInstanceStatus] = Field(default_factory=list)
    databases: list[DatabaseStatus] = Field(default_factory=list)
