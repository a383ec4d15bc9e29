from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional

import structlog

from panelwatch.realtime.channel import Channel
from panelwatch.realtime.registry import SubscriberRegistry

log = structlog.get_logger(__name__)


@dataclass
class BroadcastResult:
    delivered: int = 0
    dropped: List[str] = field(default_factory=list)


class Broadcaster:
    """
    Fan one text frame out to every registered subscriber.

    Sends run concurrently and each one is bounded by send_timeout_s. A
    subscriber that is closed, errors or times out is unregistered after
    the sweep. broadcast() never raises.
    """

    def __init__(self, registry: SubscriberRegistry, send_timeout_s: float = 5.0) -> None:
        self.registry = registry
        self.send_timeout_s = send_timeout_s
        self.total_sent = 0
        self.total_dropped = 0

    async def _deliver(self, handle: str, channel: Channel, message: str) -> Optional[str]:
        if not channel.is_open:
            return "not_open"
        try:
            await asyncio.wait_for(channel.send(message), timeout=self.send_timeout_s)
        except asyncio.TimeoutError:
            return "timeout"
        except Exception as e:
            return f"send_failed: {e}"
        return None

    async def broadcast(self, message: str) -> BroadcastResult:
        targets = self.registry.snapshot()
        result = BroadcastResult()
        if not targets:
            return result

        outcomes = await asyncio.gather(
            *(self._deliver(handle, channel, message) for handle, channel in targets),
            return_exceptions=True,
        )

        for (handle, _), outcome in zip(targets, outcomes):
            if outcome is None:
                result.delivered += 1
                continue
            if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                raise outcome
            log.warning("subscriber_send_failed", handle=handle, error=str(outcome))
            result.dropped.append(handle)

        for handle in result.dropped:
            try:
                await self.registry.unregister(handle, reason="Cleanup")
            except Exception as e:
                log.warning("subscriber_cleanup_failed", handle=handle, error=str(e))

        self.total_sent += result.delivered
        self.total_dropped += len(result.dropped)
        return result
