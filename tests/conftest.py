"""Shared fixtures: a LinkedHelper-shaped SQLite database and an in-process CDP endpoint."""

from __future__ import annotations

import json
import socket
import sqlite3
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import pytest
from aiohttp import WSMsgType, web
from aiohttp.test_utils import TestServer

from lhremote.database.client import DatabaseClient
from lhremote.database.discovery import build_database_path

ACCOUNT_ID = 1

SCHEMA = """
CREATE TABLE campaigns (
    id INTEGER PRIMARY KEY, name TEXT, description TEXT, is_paused INTEGER,
    is_archived INTEGER, is_valid INTEGER, li_account_id INTEGER, created_at TEXT
);
CREATE TABLE actions (id INTEGER PRIMARY KEY, campaign_id INTEGER, name TEXT, description TEXT);
CREATE TABLE action_configs (
    id INTEGER PRIMARY KEY, actionType TEXT, actionSettings TEXT, coolDown INTEGER,
    maxActionResultsPerIteration INTEGER, isDraft INTEGER
);
CREATE TABLE action_versions (
    id INTEGER PRIMARY KEY, action_id INTEGER, config_id INTEGER, exclude_list_id INTEGER
);
CREATE TABLE action_results (
    id INTEGER PRIMARY KEY, action_version_id INTEGER, person_id INTEGER,
    result INTEGER, platform TEXT, created_at TEXT
);
CREATE TABLE action_result_flags (id INTEGER PRIMARY KEY, action_result_id INTEGER, code INTEGER);
CREATE TABLE action_result_messages (id INTEGER PRIMARY KEY, action_result_id INTEGER, message TEXT);
CREATE TABLE action_target_people (action_id INTEGER, person_id INTEGER, state INTEGER);
CREATE TABLE person_in_campaigns_history (
    campaign_id INTEGER, person_id INTEGER, result_status INTEGER, result_id INTEGER,
    result_action_version_id INTEGER, result_action_iteration_id INTEGER,
    result_created_at TEXT, result_data TEXT, result_data_message TEXT, result_code INTEGER,
    result_is_exception INTEGER, result_who_to_blame TEXT, result_is_retryable INTEGER,
    result_flag_recipient_replied INTEGER, result_flag_sender_messaged INTEGER,
    result_invited_platform TEXT, result_messaged_platform TEXT,
    add_to_target_date TEXT, add_to_target_or_result_saved_date TEXT
);
CREATE TABLE people (id INTEGER PRIMARY KEY, name TEXT);
"""

SEED = """
INSERT INTO campaigns VALUES
    (1, 'Outreach', 'Connect with founders', 0, 0, 1, 1, '2025-01-01T00:00:00'),
    (2, 'On hold', NULL, 1, 0, 1, 1, '2025-01-02T00:00:00'),
    (3, 'Old', NULL, 0, 1, 1, 1, '2025-01-03T00:00:00'),
    (4, 'Broken', NULL, 1, 0, 0, 1, '2025-01-04T00:00:00');
INSERT INTO actions VALUES (10, 1, 'Visit', 'Visit profile'), (11, 1, 'Invite', NULL);
INSERT INTO action_configs VALUES
    (100, 'VisitAndExtract', '{"extractCurrentOrganizations": true}', 60000, 10, 0),
    (101, 'InvitePerson', '{}', 60000, 5, 0);
INSERT INTO action_versions VALUES (1000, 10, 100, NULL), (1001, 11, 101, NULL);
INSERT INTO action_results VALUES
    (1, 1000, 500, 1, 'LINKEDIN', '2025-02-01T10:00:00'),
    (2, 1001, 500, 1, 'LINKEDIN', '2025-02-01T11:00:00'),
    (3, 1000, 501, 1, 'LINKEDIN', '2025-02-01T12:00:00');
INSERT INTO action_result_flags VALUES (1, 1, 5), (2, 3, 5);
INSERT INTO action_result_messages VALUES (1, 2, 'hi'), (2, 3, 'hello');
INSERT INTO action_target_people VALUES (10, 500, 3), (11, 500, 3), (10, 501, 3);
INSERT INTO person_in_campaigns_history (
    campaign_id, person_id, result_status, result_id, result_action_version_id,
    result_code, add_to_target_date, add_to_target_or_result_saved_date
) VALUES
    (1, 500, 1, 2, 1001, 200, '2025-01-15T00:00:00', '2025-02-01T11:00:00'),
    (1, 501, 1, 3, 1000, 200, '2025-01-16T00:00:00', '2025-02-01T12:00:00');
INSERT INTO people VALUES (500, 'Ada'), (501, 'Grace'), (502, 'Linus');
"""


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """LinkedHelper data directory holding one seeded account database."""
    path = build_database_path(tmp_path, ACCOUNT_ID)
    path.parent.mkdir(parents=True)
    conn = sqlite3.connect(path)
    try:
        conn.executescript(SCHEMA)
        conn.executescript(SEED)
        conn.commit()
    finally:
        conn.close()
    return tmp_path


@pytest.fixture
def db_path(data_dir: Path) -> Path:
    return build_database_path(data_dir, ACCOUNT_ID)


@pytest.fixture
async def writable_db(db_path: Path):
    db = await DatabaseClient.open(db_path, writable=True)
    yield db
    await db.close()


def query(path: Path, sql: str, params: tuple = ()) -> list[tuple]:
    conn = sqlite3.connect(path)
    try:
        return conn.execute(sql, params).fetchall()
    finally:
        conn.close()


def unused_port() -> int:
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


# ── Fake CDP endpoint ────────────────────────────────────────────────────────

# Receives the request message and the socket; returns the reply body
# (merged with the request id) or None to send nothing.
Handler = Callable[[dict[str, Any], web.WebSocketResponse], Awaitable[Optional[dict[str, Any]]]]


class FakeCDP:
    """Serves ``/json/list``, ``/json/close`` and a WebSocket per target, scripted per method."""

    def __init__(self):
        self.port = 0
        self.targets: list[dict[str, Any]] = [
            {"id": "page-1", "type": "page", "url": "https://www.linkedin.com/feed/", "title": "Feed"},
        ]
        self.handlers: dict[str, Handler] = {}
        self.received: list[dict[str, Any]] = []
        self.sockets: list[web.WebSocketResponse] = []
        self.closed: list[str] = []

    def on(self, method: str, handler: Handler) -> None:
        self.handlers[method] = handler

    def reply(self, method: str, result: Any) -> None:
        """Always answer ``method`` with ``result``."""

        async def handler(message, ws):
            return {"result": result}

        self.handlers[method] = handler

    def evaluate(self, respond: Callable[[str], Any]) -> None:
        """Answer Runtime.evaluate with ``respond(expression)`` as the value."""

        async def handler(message, ws):
            value = respond(message["params"]["expression"])
            if isinstance(value, Exception):
                return {
                    "result": {
                        "result": {"type": "object", "subtype": "error"},
                        "exceptionDetails": {
                            "text": "Uncaught",
                            "exception": {"description": str(value)},
                        },
                    }
                }
            return {"result": {"result": {"type": "object", "value": value}}}

        self.handlers["Runtime.evaluate"] = handler

    def methods(self) -> list[str]:
        return [m["method"] for m in self.received]

    async def emit(self, method: str, params: Optional[dict[str, Any]] = None) -> None:
        for ws in self.sockets:
            if not ws.closed:
                await ws.send_str(json.dumps({"method": method, "params": params or {}}))

    async def list_targets(self, request: web.Request) -> web.Response:
        entries = []
        for target in self.targets:
            entry = {k: v for k, v in target.items() if k != "attachable"}
            if target.get("attachable", True):
                entry["webSocketDebuggerUrl"] = f"ws://{request.host}/devtools/page/{target['id']}"
            entries.append(entry)
        return web.json_response(entries)

    async def close_target(self, request: web.Request) -> web.Response:
        self.closed.append(request.match_info["target_id"])
        return web.Response(text="Target is closing")

    async def websocket(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        self.sockets.append(ws)

        async for msg in ws:
            if msg.type != WSMsgType.TEXT:
                continue
            message = json.loads(msg.data)
            self.received.append(message)
            handler = self.handlers.get(message["method"])
            body = await handler(message, ws) if handler else {"result": {}}
            if body is not None and not ws.closed:
                await ws.send_str(json.dumps({"id": message["id"], **body}))
        return ws


@pytest.fixture
async def cdp_server():
    fake = FakeCDP()
    app = web.Application()
    app.router.add_get("/json/list", fake.list_targets)
    app.router.add_get("/devtools/page/{target_id}", fake.websocket)
    app.router.add_get("/json/close/{target_id}", fake.close_target)

    server = TestServer(app, host="127.0.0.1")
    await server.start_server()
    fake.port = server.port
    try:
        yield fake
    finally:
        for ws in fake.sockets:
            await ws.close()
        await server.close()
