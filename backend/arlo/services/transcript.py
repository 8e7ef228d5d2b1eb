from collections import deque
from collections.abc import Callable, Iterable
from typing import Any

from arlo.config import Settings, settings as default_settings
from arlo.models.timeline import TimelineItem
from arlo.models.transcript import ParticipantEvent, ParticipantEventType, TranscriptSegment
from arlo.services.timeline import merge


class SessionLog:
    """append-only segment and participant-event logs for one live session.
    entries are keyed by id so a replay after reconnect or a history backfill
    never shows the same line twice."""

    def __init__(self, config: Settings | None = None):
        self._config = config or default_settings
        self._segments: list[TranscriptSegment] = []
        self._events: list[ParticipantEvent] = []
        self._segment_ids: set[str] = set()
        self._event_ids: set[str] = set()
        self._suggestions: deque[dict[str, Any]] = deque(maxlen=self._config.suggestion_limit)
        self._listeners: list[Callable[[], None]] = []

    def add_listener(self, callback: Callable[[], None]):
        self._listeners.append(callback)

    def _changed(self):
        for callback in list(self._listeners):
            callback()

    @property
    def segments(self) -> list[TranscriptSegment]:
        return list(self._segments)

    @property
    def events(self) -> list[ParticipantEvent]:
        return list(self._events)

    @property
    def suggestions(self) -> list[dict[str, Any]]:
        return list(self._suggestions)

    def add_segment(self, segment: TranscriptSegment) -> bool:
        if segment.id in self._segment_ids:
            return False
        self._segment_ids.add(segment.id)
        self._segments.append(segment)
        self._changed()
        return True

    def add_event(self, event: ParticipantEvent) -> bool:
        if event.id in self._event_ids:
            return False
        self._event_ids.add(event.id)
        self._events.append(event)
        self._changed()
        return True

    def add_suggestion(self, suggestion: dict[str, Any]):
        self._suggestions.append(suggestion)

    def backfill(
        self,
        segments: Iterable[TranscriptSegment] = (),
        events: Iterable[ParticipantEvent] = (),
    ) -> int:
        """put history ahead of what the stream already delivered.
        returns the number of new entries."""
        old_segments = [s for s in segments if s.id not in self._segment_ids]
        old_events = [e for e in events if e.id not in self._event_ids]
        if not old_segments and not old_events:
            return 0

        self._segments = _dedupe(old_segments) + self._segments
        self._events = _dedupe(old_events) + self._events
        self._segment_ids = {s.id for s in self._segments}
        self._event_ids = {e.id for e in self._events}
        self._changed()
        return len(old_segments) + len(old_events)

    def has_content(self) -> bool:
        # the roster is not something to show on its own
        return bool(self._segments) or any(
            e.event_type != ParticipantEventType.INITIAL_ROSTER for e in self._events
        )

    def timeline(self) -> list[TimelineItem]:
        return merge(self._segments, self._events, self._config.roster_window_ms)


def _dedupe(items: list) -> list:
    seen: set[str] = set()
    out = []
    for item in items:
        if item.id not in seen:
            seen.add(item.id)
            out.append(item)
    return out
