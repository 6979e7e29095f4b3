from __future__ import annotations

from typing import Optional

from ..errors import DuplicateEntry, IngestionFailed, SkippedMessage, StoreUnavailable
from ..logging import get_logger
from ..models.catalog import CatalogEntry, ChannelBinding
from ..models.updates import ChannelMessage, Update
from ..repository.base import CatalogStore
from .dispatcher import UpdateDispatcher
from .extractor import extract_document
from .types import IngestStats
from .writer import CatalogWriter

logger = get_logger("drivefeed.ingest")


class ChannelIngestPipeline:
    """Dispatcher, extractor and writer for one channel binding.

    Failures are isolated per message: they are logged and counted, never
    raised into the update stream.
    """

    def __init__(
        self,
        binding: ChannelBinding,
        store: CatalogStore,
        owner_id: int,
        *,
        idempotent: bool = False,
        writer: Optional[CatalogWriter] = None,
    ) -> None:
        self.binding = binding
        self.stats = IngestStats()
        self.writer = writer or CatalogWriter(store, binding, owner_id, idempotent=idempotent)
        self.dispatcher = UpdateDispatcher(binding, self.handle_message, self.stats)
        self.logger = logger.bind(channel_id=binding.configured_channel_id)

    async def handle_update(self, update: Update) -> None:
        await self.dispatcher.dispatch(update)

    async def handle_message(self, message: ChannelMessage) -> Optional[CatalogEntry]:
        try:
            metadata = extract_document(message)
        except SkippedMessage as skip:
            self.stats.record_skip(skip.reason)
            self.logger.info("ingest_skipped", message_id=message.id, reason=skip.reason)
            return None

        try:
            entry = await self.writer.write(message, metadata)
        except DuplicateEntry as exc:
            self.stats.duplicates += 1
            self.logger.info("ingest_duplicate", message_id=message.id, file_id=exc.entry_id)
            return None
        except IngestionFailed as exc:
            self.stats.failed += 1
            self.logger.error(
                "ingest_failed",
                message_id=message.id,
                filename=metadata.filename,
                attempts=exc.attempts,
            )
            return None
        except StoreUnavailable as exc:
            self.stats.failed += 1
            self.logger.error(
                "ingest_store_unavailable",
                message_id=message.id,
                filename=metadata.filename,
                error=str(exc),
            )
            return None

        self.stats.ingested += 1
        if entry.name != metadata.filename:
            self.stats.renamed += 1
        self.logger.info(
            "ingest_entry_created",
            message_id=message.id,
            file_id=entry.id,
            name=entry.name,
            size=entry.size_bytes,
            mime_type=entry.mime_type,
            parent_id=entry.parent_id,
        )
        return entry


__all__ = ["ChannelIngestPipeline"]
