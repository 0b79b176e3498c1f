"""Pydantic models for campaigns and campaign runner state."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

CampaignState = Literal["active", "paused", "archived", "invalid"]
RunnerState = Literal["idle", "campaigns", "stopping-campaigns"]


class CampaignSummary(BaseModel):
    """Lightweight campaign entry for list responses."""

    id: int
    name: str
    description: Optional[str] = None
    state: CampaignState
    li_account_id: int
    action_count: int = 0
    created_at: str = ""


class Campaign(BaseModel):
    """Campaign record as stored in the LinkedHelper database."""

    id: int
    name: str
    description: Optional[str] = None
    state: CampaignState
    li_account_id: int
    is_paused: bool = False
    is_archived: bool = False
    is_valid: Optional[bool] = None
    created_at: str = ""


class ActionConfig(BaseModel):
    id: int
    action_type: str
    action_settings: dict[str, Any] = Field(default_factory=dict)
    cool_down: int = 0
    max_action_results_per_iteration: int = 0
    is_draft: bool = False


class CampaignAction(BaseModel):
    id: int
    campaign_id: int
    name: str
    description: Optional[str] = None
    config: ActionConfig
    version_id: int


class CampaignActionResult(BaseModel):
    id: int
    action_version_id: int
    person_id: int
    result: int
    platform: Optional[str] = None
    created_at: str = ""


class ActionPeopleCounts(BaseModel):
    """Per-action people counts reported live by the campaign engine."""

    action_id: int
    queued: int = 0
    processed: int = 0
    successful: int = 0
    failed: int = 0


class CampaignStatus(BaseModel):
    """Observed run state of a campaign.

    Owned by LinkedHelper and re-read on every poll; never cache it.
    """

    campaign_state: CampaignState
    is_paused: bool
    runner_state: RunnerState
    action_counts: list[ActionPeopleCounts] = Field(default_factory=list)


class CampaignRunResult(BaseModel):
    campaign_id: int
    results: list[CampaignActionResult] = Field(default_factory=list)
    action_counts: list[ActionPeopleCounts] = Field(default_factory=list)
