from __future__ import annotations

from typing import Awaitable, Callable, Iterator

from ..logging import get_logger
from ..models.catalog import ChannelBinding
from ..models.updates import ChannelMessage, MessageUpdate, NoMessageUpdate, Update, UpdateBatch
from .types import IngestStats

MessageHandler = Callable[[ChannelMessage], Awaitable[None]]

logger = get_logger("drivefeed.dispatcher")


class UpdateDispatcher:
    """Flattens updates into messages and forwards those from the bound channel.

    Messages are handed to ``on_message`` one at a time, in delivery order.
    """

    def __init__(self, binding: ChannelBinding, on_message: MessageHandler, stats: IngestStats | None = None) -> None:
        self._binding = binding
        self._on_message = on_message
        self.stats = stats or IngestStats()
        self.logger = logger.bind(channel_id=binding.configured_channel_id)

    def _unpack(self, update: Update) -> Iterator[ChannelMessage]:
        if isinstance(update, UpdateBatch):
            for item in update.updates:
                yield from self._unpack(item)
        elif isinstance(update, MessageUpdate):
            yield update.message
        elif isinstance(update, NoMessageUpdate):
            self.stats.no_message += 1
            self.logger.debug("dispatch_no_message", update_kind=update.kind)
        else:
            self.stats.no_message += 1
            self.logger.warning("dispatch_unknown_update", update_type=type(update).__name__)

    def accepts(self, message: ChannelMessage) -> bool:
        # internal ids of broadcast channels and legacy groups overlap
        return (message.channel_class, message.channel_id) == (
            self._binding.channel_class,
            self._binding.normalized_channel_id,
        )

    async def dispatch(self, update: Update) -> None:
        self.stats.updates += 1
        for message in self._unpack(update):
            self.stats.messages += 1
            if not self.accepts(message):
                self.stats.filtered += 1
                self.logger.debug(
                    "dispatch_filtered",
                    message_id=message.id,
                    message_channel_id=message.channel_id,
                    message_channel_class=message.channel_class,
                    expected_channel_id=self._binding.normalized_channel_id,
                )
                continue
            await self._on_message(message)


__all__ = ["MessageHandler", "UpdateDispatcher"]
