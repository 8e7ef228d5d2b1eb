import time
from collections.abc import Callable


def now_ms() -> int:
    return int(time.time() * 1000)


class ExpiringKeyStore:
    """keyed flags that expire on their own after a ttl.

    one store is shared by every controller in the process, so a second
    controller attached to the same meeting sees a start already in flight."""

    def __init__(self, clock: Callable[[], int] = now_ms):
        self._clock = clock
        self._expires: dict[str, int] = {}

    def set(self, key: str, ttl_ms: int):
        self._expires[key] = self._clock() + ttl_ms

    def is_set(self, key: str) -> bool:
        expires = self._expires.get(key)
        if expires is None:
            return False
        if self._clock() >= expires:
            del self._expires[key]
            return False
        return True

    def delete(self, key: str):
        self._expires.pop(key, None)

    def clear(self):
        self._expires.clear()


start_guards = ExpiringKeyStore()


def start_guard_key(session_id: str) -> str:
    return f"rtms-starting-{session_id}"
