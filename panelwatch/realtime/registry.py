from __future__ import annotations

import threading
import uuid
from typing import Callable, Dict, List, Optional, Tuple

import structlog

from panelwatch.realtime.channel import Channel

log = structlog.get_logger(__name__)


def new_handle() -> str:
    return f"sub_{uuid.uuid4().hex}"


class SubscriberRegistry:
    """
    Live push channels keyed by an opaque handle.

    Enumeration works on a copy taken under the lock, so connects and
    disconnects during a broadcast neither break nor show up in it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_handle: Dict[str, Channel] = {}

    def register(self, channel: Channel) -> str:
        with self._lock:
            handle = new_handle()
            while handle in self._by_handle:
                handle = new_handle()
            self._by_handle[handle] = channel
            count = len(self._by_handle)
        log.info("subscriber_registered", handle=handle, subscribers=count)
        return handle

    def _pop(self, handle: str) -> Optional[Channel]:
        with self._lock:
            return self._by_handle.pop(handle, None)

    async def unregister(self, handle: str, reason: str = "Closed") -> bool:
        channel = self._pop(handle)
        if channel is None:
            return False
        try:
            await channel.close(code=1000, reason=reason)
        except Exception as e:
            # peer already gone; nothing left to release
            log.debug("subscriber_close_failed", handle=handle, error=str(e))
        log.info("subscriber_unregistered", handle=handle, reason=reason, subscribers=len(self))
        return True

    def snapshot(self) -> List[Tuple[str, Channel]]:
        with self._lock:
            return list(self._by_handle.items())

    def for_each(self, visit: Callable[[str, Channel], None]) -> None:
        for handle, channel in self.snapshot():
            visit(handle, channel)

    async def close_all(self, reason: str = "Shutdown") -> int:
        closed = 0
        for handle, _ in self.snapshot():
            if await self.unregister(handle, reason=reason):
                closed += 1
        return closed

    def __contains__(self, handle: object) -> bool:
        with self._lock:
            return handle in self._by_handle

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_handle)
