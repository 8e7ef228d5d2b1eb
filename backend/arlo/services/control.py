from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from arlo.config import Settings, settings as default_settings


class ControlError(Exception):
    def __init__(self, code: str, message: str):
        super().__init__(f"{message} (code {code})")
        self.code = code
        self.message = message


@dataclass(frozen=True)
class StartOptions:
    audio_capture: bool = False
    live_captions: bool = True

    def to_payload(self) -> dict:
        return {
            "audioOptions": {"rawAudio": self.audio_capture},
            "transcriptOptions": {"caption": self.live_captions},
        }


class ControlAPI(ABC):
    """host platform capability that switches live transcription on and off.
    both calls raise ControlError on any non-success."""

    @abstractmethod
    async def start(self, options: StartOptions) -> dict: ...

    @abstractmethod
    async def stop(self) -> dict: ...


class HttpControlAPI(ControlAPI):
    def __init__(
        self,
        credential: str | None = None,
        config: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._credential = credential
        self._config = config or default_settings
        self._transport = transport

    async def start(self, options: StartOptions) -> dict:
        return await self._call("startRTMS", options.to_payload())

    async def stop(self) -> dict:
        return await self._call("stopRTMS", {})

    async def _call(self, api: str, params: dict) -> dict:
        headers = {"Content-Type": "application/json"}
        if self._credential:
            headers["Authorization"] = f"Bearer {self._credential}"

        try:
            async with httpx.AsyncClient(
                timeout=self._config.control_timeout_s, transport=self._transport,
            ) as client:
                resp = await client.post(
                    f"{self._config.control_api_url.rstrip('/')}/{api}",
                    headers=headers,
                    json=params,
                )
        except httpx.HTTPError as e:
            raise ControlError("network", str(e) or type(e).__name__) from e

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if resp.is_success:
            return body

        # the platform reports codes as strings; keep them that way
        code = str(body.get("code", resp.status_code))
        message = body.get("message") or resp.reason_phrase or f"{api} failed"
        raise ControlError(code, message)
