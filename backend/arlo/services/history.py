import asyncio
import logging
from urllib.parse import quote

import httpx

from arlo.config import Settings, settings as default_settings
from arlo.models.transcript import ParticipantEvent, TranscriptSegment

logger = logging.getLogger(__name__)


def _meeting_path(meeting_uuid: str, resource: str) -> str:
    return f"/api/meetings/by-zoom-id/{quote(meeting_uuid, safe='')}/{resource}"


def _client(config: Settings, transport: httpx.AsyncBaseTransport | None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=config.backend_url, timeout=config.history_timeout_s, transport=transport,
    )


def _headers(credential: str | None) -> dict:
    if credential:
        return {"Authorization": f"Bearer {credential}"}
    return {}


async def fetch_segments(
    meeting_uuid: str,
    credential: str | None = None,
    config: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[TranscriptSegment]:
    """segments the backend already stored for a meeting, for sessions opened mid-meeting"""
    config = config or default_settings
    data = await _get(
        _meeting_path(meeting_uuid, "transcript"),
        credential, config, transport, params={"limit": config.history_segment_limit},
    )
    return [TranscriptSegment.model_validate(s) for s in data.get("segments", [])]


async def fetch_events(
    meeting_uuid: str,
    credential: str | None = None,
    config: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[ParticipantEvent]:
    config = config or default_settings
    data = await _get(_meeting_path(meeting_uuid, "participant-events"), credential, config, transport)
    return [ParticipantEvent.model_validate(e) for e in data.get("events", [])]


async def _get(
    path: str,
    credential: str | None,
    config: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
    params: dict | None = None,
) -> dict:
    async with _client(config, transport) as client:
        resp = await client.get(path, headers=_headers(credential), params=params)
        # no meeting record yet: nothing stored
        if resp.status_code == 404:
            return {}
        resp.raise_for_status()
        return resp.json()


async def load_history(
    meeting_uuid: str,
    credential: str | None = None,
    config: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> tuple[list[TranscriptSegment], list[ParticipantEvent]]:
    segments, events = await asyncio.gather(
        fetch_segments(meeting_uuid, credential, config, transport),
        fetch_events(meeting_uuid, credential, config, transport),
    )
    logger.info("loaded %d segments and %d events from history for %s",
                len(segments), len(events), meeting_uuid)
    return segments, events


async def sync_topic(
    meeting_uuid: str,
    title: str,
    meeting_number: str | None = None,
    credential: str | None = None,
    config: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """replace the generic stored meeting title with the platform topic.

    the meeting record is created by the transcription pipeline, so a 404 right
    after activation is retried a few times before giving up. returns True once
    the backend accepts the update."""
    config = config or default_settings
    path = _meeting_path(meeting_uuid, "topic")
    body = {"title": title, "meetingNumber": meeting_number}

    async with _client(config, transport) as client:
        for attempt in range(1, config.topic_max_attempts + 1):
            resp = await client.patch(path, headers=_headers(credential), json=body)
            if resp.status_code != 404:
                resp.raise_for_status()
                logger.info("meeting topic synced for %s", meeting_uuid)
                return True
            if attempt < config.topic_max_attempts:
                await asyncio.sleep(config.topic_retry_delay_ms / 1000)

    logger.info("no meeting record for %s after %d attempts, topic not synced",
                meeting_uuid, config.topic_max_attempts)
    return False
