import asyncio
import logging
from collections.abc import Callable

from arlo.config import Settings, settings as default_settings
from arlo.models.session import Session, TranscriptionState, is_valid_session_id
from arlo.services.control import ControlAPI, ControlError, StartOptions
from arlo.services.guard import ExpiringKeyStore, now_ms, start_guard_key, start_guards
from arlo.services.notify import Notifier

logger = logging.getLogger(__name__)

State = TranscriptionState


class SessionController:
    """drives transcription on/off for one meeting.

    the control api's answer is not trusted on its own: a transcript segment
    arriving on the stream proves transcription is running, whatever the last
    command reported. see on_stream_evidence."""

    def __init__(
        self,
        session: Session,
        control: ControlAPI,
        notifier: Notifier,
        guards: ExpiringKeyStore = start_guards,
        clock: Callable[[], int] = now_ms,
        config: Settings | None = None,
    ):
        self.session = session
        self._control = control
        self._notifier = notifier
        self._guards = guards
        self._clock = clock
        self._config = config or default_settings

        self._listeners: list[Callable[[State], None]] = []
        self._verify_handle: asyncio.TimerHandle | None = None
        self._auto_task: asyncio.Task | None = None
        self._auto_start_fired = False
        self._manual = False
        self._authenticated = False
        self._in_meeting = False
        self._closed = False

    # --- state ---

    @property
    def state(self) -> State:
        return self.session.transcription_state

    @property
    def loading(self) -> bool:
        return self.state in (State.STARTING, State.STOPPING)

    @property
    def auto_start_fired(self) -> bool:
        return self._auto_start_fired

    def add_listener(self, callback: Callable[[State], None]):
        self._listeners.append(callback)

    def elapsed_ms(self) -> int:
        """cumulative active time, including the period running right now"""
        total = self.session.cumulative_active_ms
        if self.session.activation_started_at is not None:
            total += self._clock() - self.session.activation_started_at
        return total

    def _set_state(self, state: State):
        previous = self.session.transcription_state
        if previous == state:
            return
        self.session.transcription_state = state
        logger.info("session %s: %s -> %s", self.session.session_id, previous.value, state.value)
        for callback in list(self._listeners):
            callback(state)
        self._maybe_schedule_auto_start()

    def _activate(self):
        now = self._clock()
        if self.session.session_started_at is None:
            self.session.session_started_at = now
        if self.session.activation_started_at is None:
            self.session.activation_started_at = now
        self._set_state(State.ACTIVE)

    def _leave_active(self):
        # runs once per active period: activation_started_at is cleared here
        started = self.session.activation_started_at
        if started is not None:
            self.session.cumulative_active_ms += max(0, self._clock() - started)
            self.session.activation_started_at = None
        self._set_state(State.IDLE)

    @property
    def _guard_key(self) -> str:
        return start_guard_key(self.session.session_id)

    # --- commands ---

    async def request_start(self, manual: bool = True) -> bool:
        if manual:
            self._mark_manual()
        if self._closed or self.state in (State.STARTING, State.ACTIVE):
            return False
        if self._guards.is_set(self._guard_key):
            logger.info("start already requested for %s, ignoring", self.session.session_id)
            return False

        self._guards.set(self._guard_key, self._config.start_guard_ttl_ms)
        self._cancel_verification()
        self._set_state(State.STARTING)

        try:
            await self._control.start(StartOptions(audio_capture=False, live_captions=True))
        except ControlError as e:
            self._on_start_failed(e)
            return False

        if self._closed:
            return False
        if self.state == State.STARTING:
            self._activate()
        self._guards.delete(self._guard_key)
        self._notifier.success("Transcription started")
        return True

    def _on_start_failed(self, err: ControlError):
        if self._closed:
            return
        if self.state != State.STARTING:
            # stream evidence promoted us while the call was in flight
            logger.warning("start reported %s but transcription is already %s", err, self.state.value)
            self._guards.delete(self._guard_key)
            return

        if err.code == self._config.ambiguous_error_code:
            logger.info("start for %s is ambiguous (%s), waiting for stream evidence",
                        self.session.session_id, err.code)
            self._set_state(State.PENDING_VERIFICATION)
            loop = asyncio.get_running_loop()
            self._verify_handle = loop.call_later(
                self._config.verification_window_ms / 1000, self._verification_expired,
            )
            return

        logger.warning("start failed for %s: %s", self.session.session_id, err)
        self._set_state(State.IDLE)
        self._guards.delete(self._guard_key)
        self._notifier.error(f"Failed to start transcription: {err.message} (code {err.code})")

    def _verification_expired(self):
        self._verify_handle = None
        self._guards.delete(self._guard_key)
        if self.state == State.PENDING_VERIFICATION:
            logger.info("no stream evidence for %s, treating start as failed", self.session.session_id)
            self._set_state(State.IDLE)

    def _cancel_verification(self):
        if self._verify_handle is not None:
            self._verify_handle.cancel()
            self._verify_handle = None

    async def request_stop(self, manual: bool = True) -> bool:
        if manual:
            self._mark_manual()
        # a start call still in flight holds the loading flag, same as stopping
        if self._closed or self.state in (State.IDLE, State.STOPPING, State.STARTING):
            return False

        self._cancel_verification()
        self._set_state(State.STOPPING)
        error: ControlError | None = None
        try:
            await self._control.stop()
        except ControlError as e:
            error = e

        self._leave_active()
        if error is not None:
            logger.warning("stop failed for %s: %s", self.session.session_id, error)
            self._notifier.error(f"Failed to stop transcription: {error.message} (code {error.code})")
            return False
        self._notifier.info("Transcription paused")
        return True

    async def pause(self) -> bool:
        # the platform has no pause; stop and start again on resume
        return await self.request_stop()

    async def resume(self) -> bool:
        return await self.request_start()

    # --- stream signals ---

    def on_stream_evidence(self):
        if self._closed or self.state in (State.ACTIVE, State.STOPPING):
            return
        if self.state == State.PENDING_VERIFICATION:
            self._cancel_verification()
            self._guards.delete(self._guard_key)
        logger.info("transcript data arrived while %s, marking active", self.state.value)
        self._activate()

    def on_meeting_status(self, status: str):
        if self._closed:
            return
        if status == "rtms_started":
            self.on_stream_evidence()
        elif status == "rtms_stopped" and self.state in (State.ACTIVE, State.PENDING_VERIFICATION):
            self._cancel_verification()
            self._leave_active()

    # --- auto-start ---

    def update_context(self, authenticated: bool | None = None, in_meeting: bool | None = None):
        if authenticated is not None:
            self._authenticated = authenticated
        if in_meeting is not None:
            self._in_meeting = in_meeting
        self._maybe_schedule_auto_start()

    def _mark_manual(self):
        self._manual = True
        if self._auto_task is not None and not self._auto_task.done():
            self._auto_task.cancel()
        self._auto_task = None

    def _maybe_schedule_auto_start(self):
        if self._closed or self._auto_start_fired or self._manual:
            return
        if not (self._authenticated and self._in_meeting):
            return
        if self.state == State.ACTIVE or self.loading:
            return
        if not is_valid_session_id(self.session.session_id):
            return

        self._auto_start_fired = True
        self._auto_task = asyncio.get_running_loop().create_task(self._auto_start())

    async def _auto_start(self):
        await asyncio.sleep(self._config.auto_start_delay_ms / 1000)
        if self._closed or self._manual:
            return
        # past the delay the command itself must not be cancelled by a manual call
        self._auto_task = None
        logger.info("auto-starting transcription for %s", self.session.session_id)
        await self.request_start(manual=False)

    async def close(self):
        """tear down: no timer may act on this session afterwards"""
        self._closed = True
        self._cancel_verification()
        task, self._auto_task = self._auto_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
