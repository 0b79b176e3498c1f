"""Async repository for campaign rows in the LinkedHelper database."""

from __future__ import annotations

import json
from typing import Any, Optional

import aiosqlite

from ..config import get_logger
from ..constants import PEOPLE_STATE, RESULT_STATUS_PENDING
from ..models.campaign import (
    ActionConfig,
    Campaign,
    CampaignAction,
    CampaignActionResult,
    CampaignState,
    CampaignSummary,
)
from .client import DatabaseClient
from .errors import CampaignNotFoundError

logger = get_logger(__name__)

_CAMPAIGN_COLUMNS = """
    c.id, c.name, c.description, c.is_paused, c.is_archived,
    c.is_valid, c.li_account_id, c.created_at
"""

_RESET_HISTORY = f"""
    UPDATE person_in_campaigns_history
    SET result_status = {RESULT_STATUS_PENDING},
        result_id = NULL,
        result_action_version_id = NULL,
        result_action_iteration_id = NULL,
        result_created_at = NULL,
        result_data = NULL,
        result_data_message = NULL,
        result_code = NULL,
        result_is_exception = NULL,
        result_who_to_blame = NULL,
        result_is_retryable = NULL,
        result_flag_recipient_replied = NULL,
        result_flag_sender_messaged = NULL,
        result_invited_platform = NULL,
        result_messaged_platform = NULL,
        add_to_target_or_result_saved_date = add_to_target_date
    WHERE campaign_id = ? AND person_id = ?
"""


def derive_campaign_state(
    is_paused: Optional[int],
    is_archived: Optional[int],
    is_valid: Optional[int],
) -> CampaignState:
    """Archived wins over invalid, invalid over paused."""
    if is_archived == 1:
        return "archived"
    if is_valid == 0:
        return "invalid"
    if is_paused == 1:
        return "paused"
    return "active"


class CampaignRepository:
    """Campaign queries and the re-run reset against one account database."""

    def __init__(self, db: DatabaseClient):
        self._db = db

    async def get_campaign(self, campaign_id: int) -> Campaign:
        """Get a campaign by id.

        Raises:
            CampaignNotFoundError: If no row exists.
        """
        row = await self._db.fetch_one(
            f"SELECT {_CAMPAIGN_COLUMNS} FROM campaigns c WHERE c.id = ?", (campaign_id,)
        )
        if row is None:
            raise CampaignNotFoundError(campaign_id)
        return self._row_to_campaign(row)

    async def list_campaigns(self, include_archived: bool = False) -> list[CampaignSummary]:
        where = "" if include_archived else "WHERE c.is_archived IS NULL OR c.is_archived = 0"
        rows = await self._db.fetch_all(
            f"""
            SELECT {_CAMPAIGN_COLUMNS},
                   (SELECT COUNT(*) FROM actions a WHERE a.campaign_id = c.id) AS action_count
            FROM campaigns c
            {where}
            ORDER BY c.created_at DESC
            """
        )
        return [
            CampaignSummary(
                id=row["id"],
                name=row["name"],
                description=row["description"],
                state=derive_campaign_state(row["is_paused"], row["is_archived"], row["is_valid"]),
                li_account_id=row["li_account_id"],
                action_count=row["action_count"],
                created_at=row["created_at"] or "",
            )
            for row in rows
        ]

    async def get_campaign_actions(self, campaign_id: int) -> list[CampaignAction]:
        rows = await self._db.fetch_all(
            """
            SELECT a.id, a.campaign_id, a.name, a.description,
                   ac.id AS config_id, ac.actionType AS action_type,
                   ac.actionSettings AS action_settings, ac.coolDown AS cool_down,
                   ac.maxActionResultsPerIteration AS max_action_results_per_iteration,
                   ac.isDraft AS is_draft, av.id AS version_id
            FROM actions a
            JOIN action_versions av ON av.action_id = a.id
            JOIN action_configs ac ON av.config_id = ac.id
            WHERE a.campaign_id = ?
            ORDER BY a.id
            """,
            (campaign_id,),
        )
        return [self._row_to_action(row) for row in rows]

    async def get_results(self, campaign_id: int, limit: int = 100) -> list[CampaignActionResult]:
        """Most recent action results of a campaign, newest first."""
        rows = await self._db.fetch_all(
            """
            SELECT ar.id, ar.action_version_id, ar.person_id, ar.result,
                   ar.platform, ar.created_at
            FROM action_results ar
            JOIN action_versions av ON ar.action_version_id = av.id
            JOIN actions a ON av.action_id = a.id
            WHERE a.campaign_id = ?
            ORDER BY ar.created_at DESC
            LIMIT ?
            """,
            (campaign_id, limit),
        )
        return [
            CampaignActionResult(
                id=row["id"],
                action_version_id=row["action_version_id"],
                person_id=row["person_id"],
                result=row["result"],
                platform=row["platform"],
                created_at=row["created_at"] or "",
            )
            for row in rows
        ]

    async def reset_for_rerun(self, campaign_id: int, person_ids: list[int]) -> None:
        """Make ``person_ids`` eligible for processing again.

        For each person: requeue in every action, reset the campaign history
        row, and delete old results with their flags and messages. All of it
        is one transaction. Requires a writable handle.

        Raises:
            CampaignNotFoundError: If no campaign exists with the given id.
        """
        if not person_ids:
            return

        await self.get_campaign(campaign_id)
        actions = await self.get_campaign_actions(campaign_id)
        if not actions:
            return

        version_rows = await self._db.fetch_all(
            """
            SELECT av.id FROM action_versions av
            JOIN actions a ON av.action_id = a.id
            WHERE a.campaign_id = ?
            """,
            (campaign_id,),
        )
        version_ids = [row["id"] for row in version_rows]

        conn = self._db.conn
        try:
            for person_id in person_ids:
                for action in actions:
                    await conn.execute(
                        "UPDATE action_target_people SET state = ? WHERE action_id = ? AND person_id = ?",
                        (PEOPLE_STATE["queued"], action.id, person_id),
                    )

                await conn.execute(_RESET_HISTORY, (campaign_id, person_id))

                for version_id in version_ids:
                    await self._delete_results(conn, version_id, person_id)
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise

        logger.info(f"Reset {len(person_ids)} person(s) for re-run in campaign {campaign_id}")

    # ── Helpers ──────────────────────────────────────────────────────────────

    @staticmethod
    async def _delete_results(conn: aiosqlite.Connection, version_id: int, person_id: int) -> None:
        for child in ("action_result_flags", "action_result_messages"):
            await conn.execute(
                f"""
                DELETE FROM {child}
                WHERE action_result_id IN (
                    SELECT id FROM action_results
                    WHERE action_version_id = ? AND person_id = ?
                )
                """,
                (version_id, person_id),
            )
        await conn.execute(
            "DELETE FROM action_results WHERE action_version_id = ? AND person_id = ?",
            (version_id, person_id),
        )

    @staticmethod
    def _row_to_campaign(row: aiosqlite.Row) -> Campaign:
        is_valid = row["is_valid"]
        return Campaign(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            state=derive_campaign_state(row["is_paused"], row["is_archived"], is_valid),
            li_account_id=row["li_account_id"],
            is_paused=row["is_paused"] == 1,
            is_archived=row["is_archived"] == 1,
            is_valid=None if is_valid is None else is_valid == 1,
            created_at=row["created_at"] or "",
        )

    @staticmethod
    def _row_to_action(row: aiosqlite.Row) -> CampaignAction:
        settings: dict[str, Any] = {}
        if row["action_settings"]:
            try:
                parsed = json.loads(row["action_settings"])
                settings = parsed if isinstance(parsed, dict) else {}
            except (json.JSONDecodeError, TypeError):
                logger.warning(f"Unparseable actionSettings for action {row['id']}")

        return CampaignAction(
            id=row["id"],
            campaign_id=row["campaign_id"],
            name=row["name"] or "",
            description=row["description"],
            version_id=row["version_id"],
            config=ActionConfig(
                id=row["config_id"],
                action_type=row["action_type"],
                action_settings=settings,
                cool_down=row["cool_down"] or 0,
                max_action_results_per_iteration=row["max_action_results_per_iteration"] or 0,
                is_draft=bool(row["is_draft"]),
            ),
        )
