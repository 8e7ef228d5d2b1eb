from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from arlo.models.transcript import ParticipantEventType


class MeetingStartedItem(BaseModel):
    kind: Literal["meeting_started"] = "meeting_started"
    text: str
    timestamp: int
    participant_ids: list[str] = []


class ParticipantEventItem(BaseModel):
    kind: Literal["participant_event"] = "participant_event"
    event_type: ParticipantEventType
    participant_name: str = ""
    label: str = ""
    timestamp: int


class TranscriptItem(BaseModel):
    kind: Literal["transcript"] = "transcript"
    segment_id: str
    speaker: str
    text: str
    timestamp: int


TimelineItem = Annotated[
    Union[MeetingStartedItem, ParticipantEventItem, TranscriptItem],
    Field(discriminator="kind"),
]
