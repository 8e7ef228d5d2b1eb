from __future__ import annotations

import enum

from pydantic import BaseModel

# values the host SDK hands back when the meeting context is not ready yet
INVALID_SESSION_IDS = {"undefined", "null"}


class TranscriptionState(str, enum.Enum):
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    STOPPING = "stopping"
    PENDING_VERIFICATION = "pending_verification"


class ConnectionPhase(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"


class Session(BaseModel):
    session_id: str
    credential: str | None = None
    transcription_state: TranscriptionState = TranscriptionState.IDLE
    session_started_at: int | None = None
    cumulative_active_ms: int = 0
    activation_started_at: int | None = None


class ConnectionState(BaseModel):
    phase: ConnectionPhase = ConnectionPhase.DISCONNECTED
    retry_delay_ms: int = 5000
    generation: int = 0
    reconnects: int = 0


def is_valid_session_id(session_id: str | None) -> bool:
    return bool(session_id) and session_id not in INVALID_SESSION_IDS


class SessionSnapshot(BaseModel):
    meeting_id: str
    transcription_state: TranscriptionState
    transcript_state: str
    loading: bool
    session_started_at: int | None = None
    elapsed_ms: int = 0
    connection: ConnectionState
    auto_start_fired: bool = False
    notifications: list[dict] = []
    suggestions: list[dict] = []
