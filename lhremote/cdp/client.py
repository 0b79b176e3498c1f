"""Chrome DevTools Protocol client over an aiohttp WebSocket."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Optional
from urllib.parse import urlparse

import aiohttp

from ..config import CDP_TIMEOUT, get_logger
from ..constants import DEFAULT_CDP_HOST
from ..models.cdp import CdpTarget
from ..utils.loopback import is_loopback_address
from .discovery import discover_targets
from .errors import CDPConnectionError, CDPEvaluationError, CDPTimeoutError

logger = get_logger(__name__)

EventListener = Callable[[Any], None]


class CDPClient:
    """A single CDP session to one target of one process.

    - Requests are correlated with responses by an incrementing message id
    - Responses nobody is waiting for any more are dropped
    - Events are dispatched to listeners registered with ``on``

    ``close()`` is idempotent and safe on a client that never connected.
    """

    def __init__(
        self,
        port: int,
        host: str = DEFAULT_CDP_HOST,
        timeout: float = CDP_TIMEOUT,
        allow_remote: bool = False,
    ):
        if not is_loopback_address(host) and not allow_remote:
            raise CDPConnectionError(
                f'Remote CDP connections to "{host}" are not allowed. '
                "Use the allow_remote option to connect to non-loopback addresses."
            )
        self.port = port
        self.host = host
        self.timeout = timeout
        self.target_id: Optional[str] = None

        self._session: Optional[aiohttp.ClientSession] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._reader: Optional[asyncio.Task] = None
        self._next_id = 1
        self._pending: dict[int, asyncio.Future] = {}
        self._listeners: dict[str, list[EventListener]] = {}

    @property
    def is_connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def __aenter__(self) -> CDPClient:
        await self.connect()
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def connect(self, target_id: Optional[str] = None) -> None:
        """Open a WebSocket to ``target_id``, or to the first ``page`` target."""
        target = await self._resolve_target(target_id)
        await self.connect_url(target.web_socket_debugger_url)
        self.target_id = target.id

    async def connect_url(self, ws_url: str) -> None:
        """Open a WebSocket to an explicit ``ws://`` debugger URL."""
        if self.is_connected:
            return
        session = aiohttp.ClientSession()
        try:
            ws = await session.ws_connect(ws_url, max_msg_size=0)
        except (aiohttp.ClientError, OSError) as e:
            await session.close()
            raise CDPConnectionError(f"WebSocket connection failed to {ws_url}: {e}") from e

        self._session = session
        self._ws = ws
        self._reader = asyncio.create_task(self._read_loop(ws))
        logger.debug(f"Connected to {ws_url}")

    async def close(self) -> None:
        """Close the connection. Pending requests fail with CDPConnectionError."""
        ws, session, reader = self._ws, self._session, self._reader
        self._ws = None
        self._session = None
        self._reader = None

        self._fail_pending(CDPConnectionError("Client disconnected"))

        if ws is not None:
            await ws.close()
        if reader is not None and not reader.done():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass
        if session is not None:
            await session.close()
            logger.debug(f"Closed CDP session on port {self.port}")

    async def send(
        self,
        method: str,
        params: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Send a raw CDP method call and return the ``result`` field of the response."""
        ws = self._ws
        if ws is None or ws.closed:
            raise CDPConnectionError("Not connected")

        msg_id = self._next_id
        self._next_id += 1
        payload: dict[str, Any] = {"id": msg_id, "method": method}
        if params:
            payload["params"] = params

        future = asyncio.get_running_loop().create_future()
        self._pending[msg_id] = future
        try:
            await ws.send_str(json.dumps(payload))
            return await asyncio.wait_for(future, timeout if timeout is not None else self.timeout)
        except asyncio.TimeoutError:
            raise CDPTimeoutError(
                f"Timed out waiting for response to {method} (id={msg_id})"
            ) from None
        except ConnectionResetError as e:
            raise CDPConnectionError(f"Connection lost while sending {method}") from e
        finally:
            self._pending.pop(msg_id, None)

    async def evaluate(
        self,
        expression: str,
        await_promise: bool = False,
        timeout: Optional[float] = None,
    ) -> Any:
        """Evaluate a JavaScript expression via ``Runtime.evaluate`` and return its value."""
        result = await self.send(
            "Runtime.evaluate",
            {"expression": expression, "awaitPromise": await_promise, "returnByValue": True},
            timeout=timeout,
        )
        result = result or {}

        details = result.get("exceptionDetails")
        if details:
            description = (details.get("exception") or {}).get("description")
            raise CDPEvaluationError(description or details.get("text") or "Unknown evaluation error")

        return (result.get("result") or {}).get("value")

    async def navigate(self, url: str) -> Any:
        """Navigate the target via ``Page.navigate``. Only http(s) URLs are allowed."""
        scheme = urlparse(url).scheme
        if scheme not in ("http", "https"):
            raise ValueError(f"Unsafe URL scheme: {scheme}:")
        return await self.send("Page.navigate", {"url": url})

    def on(self, event: str, listener: EventListener) -> None:
        self._listeners.setdefault(event, []).append(listener)

    def off(self, event: str, listener: EventListener) -> None:
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    async def wait_for_event(self, event: str, timeout: Optional[float] = None) -> Any:
        """Wait for a single occurrence of ``event`` and return its params."""
        future = asyncio.get_running_loop().create_future()

        def handler(params: Any) -> None:
            if not future.done():
                future.set_result(params)

        self.on(event, handler)
        try:
            return await asyncio.wait_for(future, timeout if timeout is not None else self.timeout)
        except asyncio.TimeoutError:
            raise CDPTimeoutError(f"Timed out waiting for event {event}") from None
        finally:
            self.off(event, handler)

    # ── Internals ────────────────────────────────────────────────────────────

    async def _resolve_target(self, target_id: Optional[str]) -> CdpTarget:
        targets = await discover_targets(self.port, self.host)

        if target_id:
            target = next((t for t in targets if t.id == target_id), None)
        else:
            target = next((t for t in targets if t.type == "page"), None)

        if target is None:
            raise CDPConnectionError(
                f"Target {target_id} not found among {len(targets)} targets"
                if target_id
                else f"No page target found among {len(targets)} targets"
            )
        if not target.is_attachable:
            raise CDPConnectionError(
                f"Target {target.id} has no webSocketDebuggerUrl (another debugger may be attached)"
            )
        return target

    async def _read_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                self._handle_message(msg.data)
            elif msg.type in (aiohttp.WSMsgType.ERROR, aiohttp.WSMsgType.CLOSED):
                break
        self._fail_pending(CDPConnectionError("WebSocket closed"))

    def _handle_message(self, raw: str) -> None:
        try:
            msg = json.loads(raw)
        except ValueError:
            return  # ignore malformed frames
        if not isinstance(msg, dict):
            return

        if "id" in msg:
            future = self._pending.pop(msg["id"], None)
            if future is None or future.done():
                logger.debug(f"Discarding late response id={msg['id']}")
                return
            error = msg.get("error")
            if error:
                future.set_exception(CDPEvaluationError(error.get("message", str(error))))
            else:
                future.set_result(msg.get("result"))
            return

        method = msg.get("method")
        if method:
            for listener in list(self._listeners.get(method, [])):
                try:
                    listener(msg.get("params"))
                except Exception:
                    logger.exception(f"Listener for {method} failed")

    def _fail_pending(self, error: Exception) -> None:
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(error)
