import json

import httpx
import pytest

from arlo.config import Settings
from arlo.services.control import ControlError, HttpControlAPI, StartOptions

pytestmark = pytest.mark.asyncio

CONFIG = Settings(control_api_url="http://bridge.local/api/zoom/")


async def test_start_posts_capability_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"ok": True})

    api = HttpControlAPI("tok", CONFIG, transport=httpx.MockTransport(handler))
    result = await api.start(StartOptions())

    assert result == {"ok": True}
    assert seen["url"] == "http://bridge.local/api/zoom/startRTMS"
    assert seen["auth"] == "Bearer tok"
    assert seen["body"] == {"audioOptions": {"rawAudio": False}, "transcriptOptions": {"caption": True}}


async def test_error_body_becomes_control_error():
    def handler(request):
        return httpx.Response(400, json={"code": 10308, "message": "RTMS already started"})

    api = HttpControlAPI(config=CONFIG, transport=httpx.MockTransport(handler))
    with pytest.raises(ControlError) as exc:
        await api.start(StartOptions())

    assert exc.value.code == "10308"
    assert exc.value.message == "RTMS already started"


async def test_error_without_body_uses_status():
    api = HttpControlAPI(config=CONFIG, transport=httpx.MockTransport(lambda r: httpx.Response(503)))
    with pytest.raises(ControlError) as exc:
        await api.stop()

    assert exc.value.code == "503"


async def test_transport_failure_becomes_control_error():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    api = HttpControlAPI(config=CONFIG, transport=httpx.MockTransport(handler))
    with pytest.raises(ControlError) as exc:
        await api.stop()

    assert exc.value.code == "network"
