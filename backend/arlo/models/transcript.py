from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ParticipantEventType(str, enum.Enum):
    INITIAL_ROSTER = "initial_roster"
    JOINED = "joined"
    LEFT = "left"
    TRANSCRIPTION_STARTED = "transcription_started"
    TRANSCRIPTION_STOPPED = "transcription_stopped"
    TRANSCRIPTION_PAUSED = "transcription_paused"
    TRANSCRIPTION_RESUMED = "transcription_resumed"


class TranscriptSegment(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, coerce_numbers_to_str=True)

    id: str
    t_start_ms: int = Field(default=0, alias="tStartMs")
    t_end_ms: int | None = Field(default=None, alias="tEndMs")
    speaker_id: str = Field(default="", alias="speakerId")
    speaker_label: str = Field(default="", alias="speakerLabel")
    display_name: str = Field(default="", alias="displayName")
    text: str = ""
    seq_no: str | None = Field(default=None, alias="seqNo")

    @model_validator(mode="before")
    @classmethod
    def _fill_id(cls, data):
        # history rows carry seqNo only; live rows may carry neither
        if isinstance(data, dict) and not data.get("id"):
            data = dict(data)
            seq = data.get("seqNo", data.get("seq_no"))
            if seq is not None:
                data["id"] = str(seq)
            else:
                speaker = data.get("speakerId", data.get("speaker_id", ""))
                start = data.get("tStartMs", data.get("t_start_ms", 0))
                data["id"] = f"{speaker}:{start}"
        return data

    @field_validator("speaker_id", "speaker_label", "display_name", "text", mode="before")
    @classmethod
    def _null_to_empty(cls, v):
        return "" if v is None else v

    @property
    def speaker(self) -> str:
        return self.display_name or self.speaker_label or "Speaker"


class ParticipantEvent(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, coerce_numbers_to_str=True)

    id: str
    event_type: ParticipantEventType = Field(alias="eventType")
    participant_id: str = Field(default="", alias="participantId")
    participant_name: str = Field(default="", alias="participantName")
    timestamp: int = 0

    # transcription state events carry no participant; stored rows send nulls
    @field_validator("participant_id", "participant_name", mode="before")
    @classmethod
    def _null_to_empty(cls, v):
        return "" if v is None else v
