import asyncio

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from arlo.services.live import LiveSession, get_live_session

router = APIRouter()

_CLIENT_GONE = "client_gone"


def _timeline_payload(live: LiveSession) -> dict:
    return {
        "transcript_state": live.transcript_state(),
        "transcription_state": live.controller.state.value,
        "items": [item.model_dump(mode="json") for item in live.log.timeline()],
    }


async def _watch_client(ws: WebSocket, queue: asyncio.Queue):
    # the feed is one-way; reading only tells us when the panel goes away
    try:
        while True:
            await ws.receive_text()
    except WebSocketDisconnect:
        queue.put_nowait(_CLIENT_GONE)


@router.websocket("/ws/timeline/{meeting_id}")
async def timeline_ws(ws: WebSocket, meeting_id: str):
    """live timeline feed for the meeting panel.
    recv: {"transcript_state": ..., "transcription_state": ..., "items": [...]}
    once on connect and again after every transcript or participant change."""
    await ws.accept()

    live = get_live_session(meeting_id)
    if not live:
        await ws.close(code=1008, reason="no live session for this meeting")
        return

    queue = live.subscribe()
    watcher = asyncio.create_task(_watch_client(ws, queue))
    try:
        await ws.send_json(_timeline_payload(live))
        while True:
            changed = await queue.get()
            if changed == _CLIENT_GONE:
                break
            if changed is None:
                # session torn down (meeting left)
                await ws.close()
                break
            await ws.send_json(_timeline_payload(live))
    except WebSocketDisconnect:
        pass
    finally:
        watcher.cancel()
        live.unsubscribe(queue)
