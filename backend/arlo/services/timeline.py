from collections.abc import Sequence

from arlo.models.timeline import (
    MeetingStartedItem,
    ParticipantEventItem,
    TimelineItem,
    TranscriptItem,
)
from arlo.models.transcript import ParticipantEvent, ParticipantEventType, TranscriptSegment

ROSTER_WINDOW_MS = 60_000

_LABELS = {
    ParticipantEventType.JOINED: "{name} joined the meeting",
    ParticipantEventType.LEFT: "{name} left the meeting",
    ParticipantEventType.TRANSCRIPTION_STARTED: "Transcription started",
    ParticipantEventType.TRANSCRIPTION_STOPPED: "Transcription stopped",
    ParticipantEventType.TRANSCRIPTION_PAUSED: "Transcription paused",
    ParticipantEventType.TRANSCRIPTION_RESUMED: "Transcription resumed",
}


def merge(
    segments: Sequence[TranscriptSegment],
    events: Sequence[ParticipantEvent],
    roster_window_ms: int = ROSTER_WINDOW_MS,
) -> list[TimelineItem]:
    """merge transcript segments and participant events into one chronological list.

    the participants present when transcription began are collapsed into a single
    "Meeting started with ..." item. newer backends tag them as initial_roster;
    older ones only send joined events, in which case every join within
    roster_window_ms of the first join counts as the roster.
    inputs are never mutated, so repeated calls give identical output."""
    roster = [e for e in events if e.event_type == ParticipantEventType.INITIAL_ROSTER]
    legacy = False
    first_join = 0
    if not roster:
        joins = [e for e in events if e.event_type == ParticipantEventType.JOINED]
        if joins:
            legacy = True
            first_join = min(e.timestamp for e in joins)
            roster = [e for e in joins if e.timestamp - first_join <= roster_window_ms]

    items: list[TimelineItem] = []
    roster_ids: set[str] = set()
    if roster:
        roster_ids = {e.participant_id for e in roster}
        items.append(MeetingStartedItem(
            text=roster_text([e.participant_name for e in roster]),
            timestamp=min(e.timestamp for e in roster),
            participant_ids=list(dict.fromkeys(e.participant_id for e in roster)),
        ))

    for seg in segments:
        items.append(TranscriptItem(
            segment_id=seg.id, speaker=seg.speaker, text=seg.text, timestamp=seg.t_start_ms,
        ))

    for evt in events:
        if evt.event_type == ParticipantEventType.INITIAL_ROSTER:
            continue
        if (
            legacy
            and evt.event_type == ParticipantEventType.JOINED
            and evt.participant_id in roster_ids
            and evt.timestamp - first_join <= roster_window_ms
        ):
            continue
        items.append(ParticipantEventItem(
            event_type=evt.event_type,
            participant_name=evt.participant_name,
            label=event_label(evt),
            timestamp=evt.timestamp,
        ))

    # sorted() is stable: equal timestamps keep roster, segment, event order
    return sorted(items, key=lambda item: item.timestamp)


def roster_text(names: list[str]) -> str:
    if len(names) == 1:
        return f"Meeting started with {names[0]}"
    if len(names) <= 3:
        return f"Meeting started with {', '.join(names)}"
    return f"Meeting started with {names[0]}, {names[1]}, and {len(names) - 2} others"


def event_label(evt: ParticipantEvent) -> str:
    return _LABELS.get(evt.event_type, "{name}").format(name=evt.participant_name)
