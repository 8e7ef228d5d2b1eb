import asyncio
import logging
from collections.abc import Awaitable, Callable

import httpx
import websockets

from arlo.config import Settings, settings as default_settings
from arlo.models.messages import (
    MeetingStatusMessage,
    ParticipantEventMessage,
    SegmentMessage,
    SuggestionMessage,
)
from arlo.models.session import Session, SessionSnapshot, TranscriptionState
from arlo.models.transcript import ParticipantEvent, TranscriptSegment
from arlo.services.control import ControlAPI, HttpControlAPI
from arlo.services.guard import ExpiringKeyStore, now_ms, start_guards
from arlo.services.history import load_history, sync_topic
from arlo.services.notify import Notifier
from arlo.services.session import SessionController
from arlo.services.stream import Connector, StreamClient
from arlo.services.transcript import SessionLog

logger = logging.getLogger(__name__)

HistoryLoader = Callable[
    [str, str | None], Awaitable[tuple[list[TranscriptSegment], list[ParticipantEvent]]]
]
TopicSender = Callable[[str, str, str | None, str | None], Awaitable[bool]]


class LiveSession:
    """everything the assistant holds for one meeting between join and leave"""

    def __init__(
        self,
        meeting_id: str,
        credential: str | None = None,
        control: ControlAPI | None = None,
        connector: Connector = websockets.connect,
        history_loader: HistoryLoader | None = None,
        topic_sender: TopicSender | None = None,
        guards: ExpiringKeyStore = start_guards,
        clock: Callable[[], int] = now_ms,
        config: Settings | None = None,
        meeting_topic: str | None = None,
        meeting_number: str | None = None,
    ):
        self._config = config or default_settings
        self.meeting_id = meeting_id
        self.meeting_topic = meeting_topic
        self.meeting_number = meeting_number
        self.notifier = Notifier(self._config)
        self.log = SessionLog(self._config)
        self.session = Session(session_id=meeting_id, credential=credential)
        self.controller = SessionController(
            self.session,
            control or HttpControlAPI(credential, self._config),
            self.notifier,
            guards=guards,
            clock=clock,
            config=self._config,
        )
        self.stream = StreamClient(
            self.notifier,
            evidence=self.controller.on_stream_evidence,
            connector=connector,
            config=self._config,
        )
        if history_loader is None:
            history_loader = lambda uuid, cred: load_history(uuid, cred, self._config)  # noqa: E731
        self._history_loader = history_loader
        if topic_sender is None:
            topic_sender = lambda uuid, title, number, cred: sync_topic(  # noqa: E731
                uuid, title, number, cred, self._config,
            )
        self._topic_sender = topic_sender
        self._history_task: asyncio.Task | None = None
        self._topic_task: asyncio.Task | None = None
        self._activated = False
        self._subscribers: set[asyncio.Queue] = set()

        self.stream.on("transcript.segment", self._on_segment)
        self.stream.on("participant.event", self._on_participant_event)
        self.stream.on("meeting.status", self._on_status)
        self.stream.on("ai.suggestion", self._on_suggestion)
        self.controller.add_listener(self._on_state)
        self.log.add_listener(self._publish)

    async def open(self, authenticated: bool = True, in_meeting: bool = True):
        await self.stream.connect(self.meeting_id, self.session.credential)
        self.controller.update_context(authenticated=authenticated, in_meeting=in_meeting)

    async def close(self):
        await self.controller.close()
        await self.stream.close()
        tasks = [self._history_task, self._topic_task]
        self._history_task = self._topic_task = None
        for task in tasks:
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        for queue in list(self._subscribers):
            queue.put_nowait(None)
        self._subscribers.clear()

    # --- stream consumers ---

    def _on_segment(self, msg: SegmentMessage):
        self.log.add_segment(msg.data.segment)

    def _on_participant_event(self, msg: ParticipantEventMessage):
        self.log.add_event(msg.data.event)

    def _on_status(self, msg: MeetingStatusMessage):
        self.controller.on_meeting_status(msg.data.status)

    def _on_suggestion(self, msg: SuggestionMessage):
        self.log.add_suggestion(msg.data.suggestion)

    def _on_state(self, state: TranscriptionState):
        # the meeting record only exists once transcription has run
        if state == TranscriptionState.ACTIVE and not self._activated:
            self._activated = True
            loop = asyncio.get_running_loop()
            self._history_task = loop.create_task(self._backfill())
            if self.meeting_topic:
                self._topic_task = loop.create_task(self._sync_topic())
        self._publish()

    async def _sync_topic(self):
        try:
            await self._topic_sender(
                self.meeting_id, self.meeting_topic, self.meeting_number, self.session.credential,
            )
        except httpx.HTTPError as e:
            logger.warning("topic sync failed for %s: %s", self.meeting_id, e)

    async def _backfill(self):
        try:
            segments, events = await self._history_loader(self.meeting_id, self.session.credential)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("history backfill failed for %s: %s", self.meeting_id, e)
            return
        added = self.log.backfill(segments, events)
        if added:
            logger.info("backfilled %d entries for %s", added, self.meeting_id)

    # --- views ---

    def transcript_state(self) -> str:
        if self.controller.state != TranscriptionState.ACTIVE:
            return "not_started"
        return "live" if self.log.has_content() else "waiting"

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            meeting_id=self.meeting_id,
            transcription_state=self.controller.state,
            transcript_state=self.transcript_state(),
            loading=self.controller.loading,
            session_started_at=self.session.session_started_at,
            elapsed_ms=self.controller.elapsed_ms(),
            connection=self.stream.state.model_copy(),
            auto_start_fired=self.controller.auto_start_fired,
            notifications=[n.model_dump(mode="json") for n in self.notifier.recent],
            suggestions=self.log.suggestions,
        )

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue):
        self._subscribers.discard(queue)

    def _publish(self):
        for queue in self._subscribers:
            queue.put_nowait(True)


_sessions: dict[str, LiveSession] = {}


async def attach(
    meeting_id: str,
    credential: str | None = None,
    authenticated: bool = True,
    in_meeting: bool = True,
    **kwargs,
) -> LiveSession:
    """open the live session for a meeting, or refresh the context of the one
    already open"""
    live = _sessions.get(meeting_id)
    if live is not None:
        live.controller.update_context(authenticated=authenticated, in_meeting=in_meeting)
        return live

    live = LiveSession(meeting_id, credential, **kwargs)
    await live.open(authenticated=authenticated, in_meeting=in_meeting)
    _sessions[meeting_id] = live
    return live


def get_live_session(meeting_id: str) -> LiveSession | None:
    return _sessions.get(meeting_id)


def live_session_count() -> int:
    return len(_sessions)


async def detach(meeting_id: str) -> bool:
    live = _sessions.pop(meeting_id, None)
    if live is None:
        return False
    await live.close()
    return True


async def close_all():
    for meeting_id in list(_sessions):
        await detach(meeting_id)
