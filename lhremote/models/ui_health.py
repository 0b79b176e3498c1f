"""Pydantic models for launcher UI health checks."""

from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class DialogControl(BaseModel):
    id: str
    text: str


class DialogOptions(BaseModel):
    message: str = ""
    controls: list[DialogControl] = Field(default_factory=list)


class DialogIssueData(BaseModel):
    id: str
    options: DialogOptions = Field(default_factory=DialogOptions)


class CriticalErrorIssueData(BaseModel):
    message: str = ""


class DialogIssue(BaseModel):
    """Requires a button selection to dismiss."""

    type: Literal["dialog"] = "dialog"
    id: str
    data: DialogIssueData


class CriticalErrorIssue(BaseModel):
    """Informational, but blocks the instance."""

    type: Literal["critical-error"] = "critical-error"
    id: str
    data: CriticalErrorIssueData


InstanceIssue = Annotated[Union[DialogIssue, CriticalErrorIssue], Field(discriminator="type")]


class PopupState(BaseModel):
    blocked: bool
    message: Optional[str] = None
    closable: Optional[bool] = None


class UIHealthStatus(BaseModel):
    """Aggregated UI health of an instance as seen from the launcher."""

    healthy: bool
    issues: list[InstanceIssue] = Field(default_factory=list)
    popup: Optional[PopupState] = None
