from __future__ import annotations

import asyncio
import contextlib
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

import structlog

from panelwatch.chain.decoder import EventSchema, encode_frame
from panelwatch.chain.source import ChainSource
from panelwatch.chain.types import DomainEvent, ProjectionEntry
from panelwatch.errors import DecodeError
from panelwatch.projection import ProjectionStore
from panelwatch.realtime.broadcaster import Broadcaster

log = structlog.get_logger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class PollState(str, Enum):
    IDLE = "IDLE"
    FETCHING_HEIGHT = "FETCHING_HEIGHT"
    FETCHING_LOGS = "FETCHING_LOGS"
    DECODING = "DECODING"
    PROJECTING = "PROJECTING"
    BROADCASTING = "BROADCASTING"
    ADVANCING_CURSOR = "ADVANCING_CURSOR"
    SLEEPING = "SLEEPING"
    STOPPED = "STOPPED"


@dataclass
class PollConfig:
    interval_s: float = 10.0
    lookback_blocks: int = 0            # replayed behind the head on first poll
    confirmations: int = 0              # blocks held back from the head
    broadcast_anonymous: bool = False   # push events with a blank panel id


class PollLoop:
    """
    Chain poller: height -> logs -> decode -> project -> broadcast -> cursor.

    - One iteration at a time, on one asyncio task
    - The cursor only moves after a whole range has been handled
    - Source failures are logged and retried after the normal sleep
    - stop() wakes the sleep and abandons any in-flight RPC await
    """

    def __init__(
        self,
        source: ChainSource,
        schema: EventSchema,
        projection: ProjectionStore,
        broadcaster: Broadcaster,
        config: Optional[PollConfig] = None,
    ) -> None:
        self.source = source
        self.schema = schema
        self.projection = projection
        self.broadcaster = broadcaster
        self.config = config or PollConfig()

        self.cursor: Optional[int] = None
        self.state = PollState.IDLE

        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

        self.iterations = 0
        self.events_processed = 0
        self.decode_failures = 0
        self.source_failures = 0
        self.last_error: Optional[str] = None
        self.last_poll_ms: Optional[int] = None

    # -----------------
    # Lifecycle
    # -----------------
    @property
    def running(self) -> bool:
        return bool(self._task and not self._task.done())

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._task = asyncio.create_task(self.run(), name="chain-poller")

    async def stop(self) -> None:
        self._stop.set()
        task = self._task
        if task is None:
            return
        if not task.done():
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        self._task = None
        self.state = PollState.STOPPED

    async def run(self) -> None:
        log.info(
            "poller_started",
            schema=self.schema.name,
            interval_s=self.config.interval_s,
            confirmations=self.config.confirmations,
            lookback_blocks=self.config.lookback_blocks,
        )
        try:
            while not self._stop.is_set():
                try:
                    await self.poll_once()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    # cursor was not advanced; the range is retried next tick
                    self._record_failure("poll_iteration_failed", e)
                self.state = PollState.SLEEPING
                if await self._sleep():
                    break
        finally:
            self.state = PollState.STOPPED
            log.info("poller_stopped", cursor=self.cursor)

    async def _sleep(self) -> bool:
        """True when woken by stop()."""
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=self.config.interval_s)
        except asyncio.TimeoutError:
            return False
        return True

    # -----------------
    # One iteration
    # -----------------
    def _record_failure(self, event: str, err: Exception, **kw: Any) -> None:
        self.source_failures += 1
        self.last_error = f"{event}: {err}"[:300]
        log.error(event, error=str(err), cursor=self.cursor, **kw)

    async def poll_once(self) -> int:
        """
        Run one iteration. Returns the number of decoded events handled.
        """
        self.iterations += 1
        self.last_poll_ms = now_ms()

        self.state = PollState.FETCHING_HEIGHT
        try:
            height = await asyncio.to_thread(self.source.block_number)
        except Exception as e:
            self._record_failure("block_height_failed", e)
            self.state = PollState.SLEEPING
            return 0

        self.last_error = None
        target = int(height) - self.config.confirmations
        if self.cursor is None:
            self.cursor = max(target - self.config.lookback_blocks, 0)
            log.info("cursor_initialized", cursor=self.cursor, height=height)

        if target <= self.cursor:
            self.state = PollState.SLEEPING
            return 0

        from_block = self.cursor + 1
        self.state = PollState.FETCHING_LOGS
        try:
            raw_logs = await asyncio.to_thread(self.source.get_logs, from_block, target)
        except Exception as e:
            self._record_failure("logs_fetch_failed", e, from_block=from_block, to_block=target)
            self.state = PollState.SLEEPING
            return 0

        handled = await self.process_logs(raw_logs)

        self.state = PollState.ADVANCING_CURSOR
        self.cursor = target
        log.info("cursor_advanced", from_block=from_block, cursor=self.cursor, logs=len(raw_logs), events=handled)

        self.state = PollState.SLEEPING
        return handled

    def decode_all(self, raw_logs: List[Mapping[str, Any]]) -> List[DomainEvent]:
        events: List[DomainEvent] = []
        for raw in raw_logs:
            try:
                events.append(self.schema.decode(raw))
            except DecodeError as e:
                self.decode_failures += 1
                log.warning(
                    "log_decode_failed",
                    error=str(e),
                    block_number=raw.get("blockNumber"),
                    log_index=raw.get("logIndex"),
                )
        return events

    async def process_logs(self, raw_logs: List[Mapping[str, Any]]) -> int:
        self.state = PollState.DECODING
        events = self.decode_all(raw_logs)

        self.state = PollState.PROJECTING
        pairs: List[Tuple[str, Optional[ProjectionEntry]]] = [
            (e.panel_id, self.schema.derive(e)) for e in events
        ]
        self.projection.apply_batch(pairs)

        self.state = PollState.BROADCASTING
        for event in events:
            if not event.panel_id.strip() and not self.config.broadcast_anonymous:
                log.debug("anonymous_event_skipped", block_number=event.block_number)
                continue
            await self.broadcaster.broadcast(encode_frame(self.schema.frame(event)))

        self.events_processed += len(events)
        return len(events)

    def status(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "state": self.state.value,
            "schema": self.schema.name,
            "cursor": self.cursor,
            "interval_s": self.config.interval_s,
            "confirmations": self.config.confirmations,
            "iterations": self.iterations,
            "events_processed": self.events_processed,
            "decode_failures": self.decode_failures,
            "source_failures": self.source_failures,
            "last_error": self.last_error,
            "last_poll_ms": self.last_poll_ms,
        }
