from __future__ import annotations

import json
from typing import Any, Literal, Union

from pydantic import BaseModel, ValidationError

from arlo.models.transcript import ParticipantEvent, TranscriptSegment


class MessageDecodeError(ValueError):
    pass


# --- client -> server ---

class SubscribePayload(BaseModel):
    meetingId: str


class SubscribeMessage(BaseModel):
    type: Literal["subscribe"] = "subscribe"
    payload: SubscribePayload


# --- server -> client ---

class ConnectedMessage(BaseModel):
    type: Literal["connected"] = "connected"
    data: dict[str, Any] = {}


class SegmentData(BaseModel):
    segment: TranscriptSegment


class SegmentMessage(BaseModel):
    type: Literal["transcript.segment"] = "transcript.segment"
    data: SegmentData


class StatusData(BaseModel):
    status: Literal["rtms_started", "rtms_stopped"]


class MeetingStatusMessage(BaseModel):
    type: Literal["meeting.status"] = "meeting.status"
    data: StatusData


class ParticipantEventData(BaseModel):
    event: ParticipantEvent


class ParticipantEventMessage(BaseModel):
    type: Literal["participant.event"] = "participant.event"
    data: ParticipantEventData


class SuggestionData(BaseModel):
    suggestion: dict[str, Any]


class SuggestionMessage(BaseModel):
    type: Literal["ai.suggestion"] = "ai.suggestion"
    data: SuggestionData


StreamMessage = Union[
    ConnectedMessage,
    SegmentMessage,
    MeetingStatusMessage,
    ParticipantEventMessage,
    SuggestionMessage,
]

MESSAGE_TYPES: dict[str, type[BaseModel]] = {
    "connected": ConnectedMessage,
    "transcript.segment": SegmentMessage,
    "meeting.status": MeetingStatusMessage,
    "participant.event": ParticipantEventMessage,
    "ai.suggestion": SuggestionMessage,
}


def subscribe_message(meeting_id: str) -> str:
    return SubscribeMessage(payload=SubscribePayload(meetingId=meeting_id)).model_dump_json()


def decode_message(raw: str | bytes) -> StreamMessage | None:
    """decode one inbound frame. returns None for message types we don't handle,
    raises MessageDecodeError for frames that can't be parsed."""
    try:
        msg = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MessageDecodeError(f"invalid json: {e}") from e
    if not isinstance(msg, dict):
        raise MessageDecodeError(f"expected object, got {type(msg).__name__}")

    model = MESSAGE_TYPES.get(msg.get("type"))
    if model is None:
        return None
    try:
        return model.model_validate(msg)
    except ValidationError as e:
        raise MessageDecodeError(f"invalid {msg['type']} message: {e}") from e
