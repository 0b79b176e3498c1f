"""Pydantic models for instance lifecycle results."""

from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

InstanceStatus = Literal["stopped", "starting", "running", "stopping"]


class StartInstanceResult(BaseModel):
    """Raw result of the launcher's startInstance call."""

    success: bool
    error: Optional[str] = None


class InstanceStarted(BaseModel):
    status: Literal["started"] = "started"
    port: int


class InstanceAlreadyRunning(BaseModel):
    status: Literal["already_running"] = "already_running"
    port: int


class InstanceStartTimeout(BaseModel):
    """The start request was accepted but no CDP port appeared in time."""

    status: Literal["timeout"] = "timeout"


InstanceOutcome = Annotated[
    Union[InstanceStarted, InstanceAlreadyRunning, InstanceStartTimeout],
    Field(discriminator="status"),
]


class ActionResult(BaseModel):
    """Result of an action executed through the instance UI."""

    success: bool
    action_type: str
    error: Optional[str] = None
