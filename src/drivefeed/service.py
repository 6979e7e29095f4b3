"""Lifecycle owner for one channel binding.

``start`` returns once the bot session is authorized; ingestion then runs in
the background until the stop event is set. ``wait`` joins it.
"""
from __future__ import annotations

import asyncio
from typing import Optional

from .config import IngestSettings, get_settings
from .logging import get_logger
from .models.catalog import ChannelBinding
from .pipeline.ingest import ChannelIngestPipeline
from .repository.base import CatalogStore
from .telegram.client import BotCredentials
from .telegram.listener import ClientFactory, UpdateListener

logger = get_logger("drivefeed.service")


class ChannelIngestService:
    def __init__(
        self,
        credentials: BotCredentials,
        binding: ChannelBinding,
        store: CatalogStore,
        *,
        owner_id: int,
        settings: Optional[IngestSettings] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.binding = binding
        self.pipeline = ChannelIngestPipeline(
            binding,
            store,
            owner_id,
            idempotent=self.settings.idempotent_writes,
        )
        self.listener = UpdateListener.from_settings(
            credentials,
            self.pipeline.handle_update,
            self.settings,
            client_factory=client_factory,
        )
        self.logger = logger.bind(
            channel_id=binding.configured_channel_id,
            internal_channel_id=binding.normalized_channel_id,
        )

    async def start(self, stop: asyncio.Event) -> None:
        self.logger.info(
            "service_starting",
            channel_class=self.binding.channel_class.value,
            parent_id=self.binding.target_parent_id,
        )
        await self.listener.start(stop)
        self.logger.info("service_listening")

    async def wait(self) -> None:
        try:
            await self.listener.wait()
        finally:
            self.logger.info("service_stopped", **self.pipeline.stats.as_dict())

    async def run(self, stop: asyncio.Event) -> None:
        await self.start(stop)
        await self.wait()


__all__ = ["ChannelIngestService"]
