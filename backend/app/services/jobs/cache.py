from __future__ import annotations

import threading
import time
from typing import Callable, Optional, Protocol


class StatusCache(Protocol):
    """The subset of the redis-py client the job status tracker relies on."""

    def get(self, name: str) -> Optional[bytes | str]: ...

    def set(self, name: str, value: str, ex: Optional[int] = None) -> object: ...

    def delete(self, *names: str) -> int: ...


class MemoryCache:
    """In-process key/value store with per-key expiry.

    ``clock`` returns seconds and can be replaced to move time forward.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: dict[str, tuple[str, Optional[float]]] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> Optional[str]:
        with self._lock:
            item = self._data.get(name)
            if item is None:
                return None
            value, expires_at = item
            if expires_at is not None and self._clock() >= expires_at:
                del self._data[name]
                return None
            return value

    def set(self, name: str, value: str, ex: Optional[int] = None) -> bool:
        now = self._clock()
        expires_at = now + ex if ex is not None else None
        with self._lock:
            self._sweep(now)
            self._data[name] = (value, expires_at)
        return True

    def _sweep(self, now: float) -> None:
        expired = [k for k, (_, exp) in self._data.items() if exp is not None and now >= exp]
        for k in expired:
            del self._data[k]

    def delete(self, *names: str) -> int:
        n = 0
        with self._lock:
            for name in names:
                if self._data.pop(name, None) is not None:
                    n += 1
        return n

    def exists(self, name: str) -> bool:
        return self.get(name) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
