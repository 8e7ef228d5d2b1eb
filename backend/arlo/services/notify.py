import logging
from collections import deque
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

from arlo.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

NotificationType = Literal["success", "info", "error"]


class Notification(BaseModel):
    type: NotificationType
    title: str
    message: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Notifier:
    """user-facing toast sink for one live session. keeps the most recent
    notifications so the UI can poll them."""

    def __init__(self, config: Settings | None = None):
        self._config = config or default_settings
        self._recent: deque[Notification] = deque(maxlen=self._config.notification_limit)

    def notify(self, type: NotificationType, message: str) -> Notification:
        note = Notification(type=type, title=self._config.app_name, message=message)
        self._recent.append(note)
        level = logging.WARNING if type == "error" else logging.INFO
        logger.log(level, "notification [%s] %s", type, message)
        return note

    def success(self, message: str) -> Notification:
        return self.notify("success", message)

    def info(self, message: str) -> Notification:
        return self.notify("info", message)

    def error(self, message: str) -> Notification:
        return self.notify("error", message)

    @property
    def recent(self) -> list[Notification]:
        return list(self._recent)
