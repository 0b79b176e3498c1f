"""Campaign start/stop/retry against a running instance.

The campaign runner belongs to LinkedHelper. Its state moves
idle -> campaigns -> stopping-campaigns -> idle on its own; this service
can only request start or stop and then watch the state it reports.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from ..cdp.errors import CDPError
from ..config import CAMPAIGN_POLL_INTERVAL, CAMPAIGN_TRANSITION_TIMEOUT, get_logger
from ..constants import MAIN_WINDOW, PEOPLE_STATE, RUNNER_IDLE, RUNNER_RUNNING, RUNNER_STOPPING
from ..database.client import DatabaseClient
from ..database.repository import CampaignRepository
from ..models.campaign import (
    ActionPeopleCounts,
    Campaign,
    CampaignRunResult,
    CampaignStatus,
    RunnerState,
)
from ..utils.polling import poll_until
from .errors import CampaignExecutionError, CampaignTimeoutError, ServiceError
from .instance import InstanceService

logger = get_logger(__name__)

_RUNNER_STATES = (RUNNER_IDLE, RUNNER_RUNNING, RUNNER_STOPPING)


class CampaignService:
    """Drives one account's campaigns.

    ``retry`` and the read-only queries need only the database; ``start``,
    ``stop`` and ``get_status`` also need the instance UI.
    """

    def __init__(
        self,
        db: DatabaseClient,
        instance: Optional[InstanceService] = None,
        *,
        poll_interval: float = CAMPAIGN_POLL_INTERVAL,
        transition_timeout: float = CAMPAIGN_TRANSITION_TIMEOUT,
    ):
        self.repo = CampaignRepository(db)
        self.instance = instance
        self.poll_interval = poll_interval
        self.transition_timeout = transition_timeout

    async def start(self, campaign_id: int, person_ids: Optional[list[int]] = None) -> None:
        """Unpause the campaign and start the runner.

        ``person_ids`` are reset for re-run first, which needs a writable
        database. Returns once the runner reports ``campaigns``.

        Raises:
            CampaignNotFoundError: Unknown campaign id.
            CampaignExecutionError: The UI rejected a command.
            CampaignTimeoutError: The runner never reached ``campaigns``.
        """
        campaign = await self.repo.get_campaign(campaign_id)

        if person_ids:
            await self.repo.reset_for_rerun(campaign_id, person_ids)

        # A stop in progress would swallow the start request
        await self._wait_for_runner(
            lambda state: state != RUNNER_STOPPING, campaign_id, "finish stopping"
        )

        await self._set_paused(campaign, False)

        try:
            started = await self._ui(f"{MAIN_WINDOW}.campaignController.start()", await_promise=False)
        except CDPError as e:
            raise CampaignExecutionError(f"Failed to start campaign runner: {e}", campaign_id) from e

        if not started and await self._runner_state() != RUNNER_RUNNING:
            raise CampaignExecutionError("Campaign runner refused to start", campaign_id)

        logger.info(f"Start requested for campaign {campaign_id}")
        await self._wait_for_runner(lambda state: state == RUNNER_RUNNING, campaign_id, "start")
        logger.info(f"Campaign {campaign_id} is running")

    async def stop(self, campaign_id: int) -> None:
        """Pause the campaign and stop the runner. Returns once it is idle.

        Raises:
            CampaignNotFoundError: Unknown campaign id.
            CampaignExecutionError: The UI rejected a command.
            CampaignTimeoutError: The runner never reached ``idle``.
        """
        campaign = await self.repo.get_campaign(campaign_id)

        await self._set_paused(campaign, True)

        try:
            await self._ui(f"{MAIN_WINDOW}.campaignController.stop()", await_promise=False)
        except CDPError as e:
            raise CampaignExecutionError(f"Failed to stop campaign runner: {e}", campaign_id) from e

        logger.info(f"Stop requested for campaign {campaign_id}")
        await self._wait_for_runner(lambda state: state == RUNNER_IDLE, campaign_id, "stop")
        logger.info(f"Campaign {campaign_id} stopped")

    async def retry(self, campaign_id: int, person_ids: list[int]) -> None:
        """Reset ``person_ids`` so the campaign processes them again.

        Database only; the campaign is not started.
        """
        await self.repo.reset_for_rerun(campaign_id, person_ids)

    async def get(self, campaign_id: int) -> Campaign:
        return await self.repo.get_campaign(campaign_id)

    async def get_status(self, campaign_id: int) -> CampaignStatus:
        campaign = await self.repo.get_campaign(campaign_id)
        actions = await self.repo.get_campaign_actions(campaign_id)

        runner_state, is_paused, counts = await asyncio.gather(
            self._runner_state(),
            self._ui(f"{MAIN_WINDOW}.source.campaigns.isCampaignPaused({campaign_id})"),
            self._people_counts([action.id for action in actions]),
        )
        return CampaignStatus(
            campaign_state=campaign.state,
            is_paused=bool(is_paused),
            runner_state=runner_state,
            action_counts=counts,
        )

    async def get_results(self, campaign_id: int, limit: int = 100) -> CampaignRunResult:
        await self.repo.get_campaign(campaign_id)
        results = await self.repo.get_results(campaign_id, limit=limit)

        counts: list[ActionPeopleCounts] = []
        if self.instance is not None:
            actions = await self.repo.get_campaign_actions(campaign_id)
            counts = await self._people_counts([action.id for action in actions])

        return CampaignRunResult(campaign_id=campaign_id, results=results, action_counts=counts)

    # ── Internals ────────────────────────────────────────────────────────────

    async def _ui(self, expression: str, await_promise: bool = True) -> Any:
        if self.instance is None:
            raise ServiceError("CampaignService needs a connected instance for this operation")
        return await self.instance.evaluate_ui(expression, await_promise=await_promise)

    async def _runner_state(self) -> RunnerState:
        state = await self._ui(f"{MAIN_WINDOW}.state", await_promise=False)
        if state not in _RUNNER_STATES:
            raise ServiceError(f"Unexpected campaign runner state: {state!r}")
        return state

    async def _set_paused(self, campaign: Campaign, paused: bool) -> None:
        flag = "true" if paused else "false"
        try:
            await self._ui(
                f"{MAIN_WINDOW}.source.campaigns.setCampaignPaused("
                f"{campaign.id}, {flag}, {campaign.li_account_id})"
            )
        except CDPError as e:
            verb = "pause" if paused else "unpause"
            raise CampaignExecutionError(f"Failed to {verb} campaign {campaign.id}: {e}", campaign.id) from e

    async def _wait_for_runner(self, reached, campaign_id: int, goal: str) -> None:
        async def check() -> Optional[bool]:
            return True if reached(await self._runner_state()) else None

        if await poll_until(check, interval=self.poll_interval, timeout=self.transition_timeout) is None:
            logger.warning(f"Campaign {campaign_id}: runner did not {goal} within {self.transition_timeout}s")
            raise CampaignTimeoutError(
                f"Campaign runner did not {goal} within {self.transition_timeout}s",
                campaign_id,
                self.transition_timeout,
            )

    async def _people_counts(self, action_ids: list[int]) -> list[ActionPeopleCounts]:
        async def for_action(action_id: int) -> ActionPeopleCounts:
            values = await asyncio.gather(
                *(
                    self._ui(
                        f"{MAIN_WINDOW}.source.people.actions.getActionPeopleCount({action_id}, {state})"
                    )
                    for state in PEOPLE_STATE.values()
                )
            )
            counts = {name: int(value or 0) for name, value in zip(PEOPLE_STATE, values)}
            return ActionPeopleCounts(action_id=action_id, **counts)

        return list(await asyncio.gather(*(for_action(action_id) for action_id in action_ids)))
