from __future__ import annotations

from typing import Optional

from panelwatch.chain.decoder import EventSchema, get_schema
from panelwatch.chain.source import ChainSource, Web3ChainSource
from panelwatch.config import Settings
from panelwatch.poller import PollConfig, PollLoop
from panelwatch.projection import ProjectionStore
from panelwatch.realtime.broadcaster import Broadcaster
from panelwatch.realtime.registry import SubscriberRegistry


class ServiceContainer:
    """
    Process-wide wiring. Tests pass a fake source; production builds the
    web3 one from settings.
    """

    def __init__(self, settings: Optional[Settings] = None, source: Optional[ChainSource] = None) -> None:
        self.settings = settings or Settings.from_env()
        self.schema: EventSchema = get_schema(self.settings.event_schema)

        self.projection = ProjectionStore()
        self.registry = SubscriberRegistry()
        self.broadcaster = Broadcaster(self.registry, send_timeout_s=self.settings.send_timeout_s)

        self.source: ChainSource = source or Web3ChainSource(
            self.settings.rpc_url,
            self.settings.contract_address,
            self.schema.topic,
            timeout_s=self.settings.rpc_timeout_s,
        )

        self.poller = PollLoop(
            self.source,
            self.schema,
            self.projection,
            self.broadcaster,
            PollConfig(
                interval_s=self.settings.poll_interval_s,
                lookback_blocks=self.settings.lookback_blocks,
                confirmations=self.settings.confirmations,
                broadcast_anonymous=self.settings.broadcast_anonymous,
            ),
        )

    async def start(self) -> None:
        if self.settings.poller_enabled:
            self.poller.start()

    async def shutdown(self) -> None:
        await self.poller.stop()
        await self.registry.close_all()
        close = getattr(self.source, "close", None)
        if callable(close):
            close()
