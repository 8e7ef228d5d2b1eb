from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from arlo.models.session import SessionSnapshot
from arlo.models.timeline import TimelineItem
from arlo.services.live import LiveSession, attach, detach, get_live_session
from arlo.services.stream import StreamConfigError

router = APIRouter()


class AttachBody(BaseModel):
    meeting_uuid: str
    ws_token: str | None = None
    authenticated: bool = True
    in_meeting: bool = True
    meeting_topic: str | None = None
    meeting_number: str | None = None


class ContextBody(BaseModel):
    authenticated: bool | None = None
    in_meeting: bool | None = None


def session_options() -> dict:
    """extra LiveSession arguments (control api, connector, ...). overridden in tests."""
    return {}


def _get_live(meeting_id: str) -> LiveSession:
    live = get_live_session(meeting_id)
    if not live:
        raise HTTPException(404, "no live session for this meeting")
    return live


@router.post("/sessions")
async def attach_session(body: AttachBody, options: dict = Depends(session_options)) -> SessionSnapshot:
    try:
        live = await attach(
            body.meeting_uuid,
            body.ws_token,
            authenticated=body.authenticated,
            in_meeting=body.in_meeting,
            meeting_topic=body.meeting_topic,
            meeting_number=body.meeting_number,
            **options,
        )
    except StreamConfigError as e:
        raise HTTPException(400, str(e))
    return live.snapshot()


@router.get("/sessions/{meeting_id}")
async def get_session(meeting_id: str) -> SessionSnapshot:
    return _get_live(meeting_id).snapshot()


@router.patch("/sessions/{meeting_id}/context")
async def update_context(meeting_id: str, body: ContextBody) -> SessionSnapshot:
    live = _get_live(meeting_id)
    live.controller.update_context(authenticated=body.authenticated, in_meeting=body.in_meeting)
    return live.snapshot()


@router.post("/sessions/{meeting_id}/start")
async def start_transcription(meeting_id: str) -> SessionSnapshot:
    live = _get_live(meeting_id)
    await live.controller.request_start()
    return live.snapshot()


@router.post("/sessions/{meeting_id}/stop")
async def stop_transcription(meeting_id: str) -> SessionSnapshot:
    live = _get_live(meeting_id)
    await live.controller.request_stop()
    return live.snapshot()


@router.post("/sessions/{meeting_id}/pause")
async def pause_transcription(meeting_id: str) -> SessionSnapshot:
    live = _get_live(meeting_id)
    await live.controller.pause()
    return live.snapshot()


@router.post("/sessions/{meeting_id}/resume")
async def resume_transcription(meeting_id: str) -> SessionSnapshot:
    live = _get_live(meeting_id)
    await live.controller.resume()
    return live.snapshot()


@router.get("/sessions/{meeting_id}/timeline")
async def get_timeline(meeting_id: str) -> list[TimelineItem]:
    return _get_live(meeting_id).log.timeline()


@router.delete("/sessions/{meeting_id}")
async def leave_meeting(meeting_id: str):
    if not await detach(meeting_id):
        raise HTTPException(404, "no live session for this meeting")
    return {"ok": True}
