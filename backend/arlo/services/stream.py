"""
Stream Client

Persistent websocket connection to the transcript stream for one meeting.
Subscribes on open, decodes inbound frames into typed messages and hands them
to registered consumers. Any close schedules one reconnect after a fixed delay,
forever; a new connect() supersedes whatever was there before.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import urlencode, urlsplit

import websockets
from websockets.exceptions import WebSocketException

from arlo.config import Settings, settings as default_settings
from arlo.models.messages import (
    MessageDecodeError,
    SegmentMessage,
    StreamMessage,
    decode_message,
    subscribe_message,
)
from arlo.models.session import ConnectionPhase, ConnectionState, is_valid_session_id
from arlo.services.notify import Notifier

logger = logging.getLogger(__name__)

Handler = Callable[[StreamMessage], Awaitable[None] | None]
Connector = Callable[[str], Any]


class StreamConfigError(ValueError):
    pass


class StreamClient:
    def __init__(
        self,
        notifier: Notifier,
        evidence: Callable[[], None] | None = None,
        connector: Connector = websockets.connect,
        config: Settings | None = None,
    ):
        self._notifier = notifier
        self._evidence = evidence
        self._connector = connector
        self._config = config or default_settings
        self.state = ConnectionState(retry_delay_ms=self._config.reconnect_delay_ms)

        self._handlers: dict[str, list[Handler]] = {}
        self._session_id: str | None = None
        self._credential: str | None = None
        self._ws = None
        self._run_task: asyncio.Task | None = None
        self._reconnect_task: asyncio.Task | None = None
        self._closed = False

    @property
    def is_subscribed(self) -> bool:
        return self.state.phase == ConnectionPhase.SUBSCRIBED

    def on(self, message_type: str, handler: Handler):
        """register a consumer for one message type, called in arrival order"""
        self._handlers.setdefault(message_type, []).append(handler)

    def endpoint(self, session_id: str, credential: str | None = None) -> str:
        # hostname only: the edge proxy listens on the scheme's default port
        page = urlsplit(self._config.page_url)
        scheme = "wss" if page.scheme == "https" else "ws"
        query = {"meeting_id": session_id}
        if credential:
            query["token"] = credential
        host = page.hostname or ""
        if ":" in host:
            host = f"[{host}]"
        return f"{scheme}://{host}/ws?{urlencode(query)}"

    async def connect(self, session_id: str | None, credential: str | None = None):
        if not is_valid_session_id(session_id):
            self._notifier.error("Cannot connect to live transcript: no valid meeting ID")
            raise StreamConfigError(f"invalid meeting id: {session_id!r}")

        await self._teardown()
        self._closed = False
        self._session_id = session_id
        self._credential = credential
        self._open()

    async def close(self):
        self._closed = True
        await self._teardown()
        self.state.phase = ConnectionPhase.DISCONNECTED

    def _open(self):
        self.state.generation += 1
        self.state.phase = ConnectionPhase.CONNECTING
        self._run_task = asyncio.get_running_loop().create_task(self._run(self.state.generation))

    async def _teardown(self):
        reconnect, self._reconnect_task = self._reconnect_task, None
        if reconnect is not None:
            reconnect.cancel()

        # bumping the generation makes any close handler still running a no-op
        self.state.generation += 1
        task, self._run_task = self._run_task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()

    async def _run(self, generation: int):
        url = self.endpoint(self._session_id, self._credential)
        logger.info("connecting to %s (generation %d)", url, generation)
        try:
            async with self._connector(url) as ws:
                if generation != self.state.generation:
                    return
                self._ws = ws
                await ws.send(subscribe_message(self._session_id))
                self.state.phase = ConnectionPhase.SUBSCRIBED
                logger.info("subscribed to meeting %s", self._session_id)

                async for raw in ws:
                    await self._dispatch(raw)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            logger.warning("stream connection lost: %s", e)
        finally:
            if generation == self.state.generation:
                self._ws = None

        self._on_closed(generation)

    def _on_closed(self, generation: int):
        if self._closed or generation != self.state.generation:
            return
        self.state.phase = ConnectionPhase.DISCONNECTED
        if self._reconnect_task is not None:
            self._reconnect_task.cancel()
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect(generation))

    async def _reconnect(self, generation: int):
        await asyncio.sleep(self.state.retry_delay_ms / 1000)
        if self._closed or generation != self.state.generation:
            logger.debug("dropping stale reconnect for generation %d", generation)
            return
        self._reconnect_task = None
        self.state.reconnects += 1
        logger.info("reconnecting to meeting %s", self._session_id)
        self._open()

    async def _dispatch(self, raw: str | bytes):
        try:
            msg = decode_message(raw)
        except MessageDecodeError as e:
            logger.warning("dropping stream message: %s", e)
            return
        if msg is None:
            logger.debug("ignoring unhandled stream message: %.100s", raw)
            return

        # state reconciliation happens before any consumer appends the segment
        handlers = list(self._handlers.get(msg.type, []))
        if isinstance(msg, SegmentMessage) and self._evidence is not None:
            handlers.insert(0, lambda _msg: self._evidence())

        for handler in handlers:
            try:
                result = handler(msg)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("stream handler failed for %s", msg.type)
