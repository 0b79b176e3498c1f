"""Pydantic models for LinkedHelper accounts."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Account(BaseModel):
    """A LinkedIn identity managed by the launcher.

    Each account has its own database partition and, when running,
    its own instance process.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: int
    li_id: int = Field(alias="liId")
    name: str = ""
    email: Optional[str] = None
