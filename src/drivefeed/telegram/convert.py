"""Translate Telethon TL objects into the platform-neutral update model."""
from __future__ import annotations

from typing import Any, Optional, Tuple

from telethon.tl import types

from ..models.updates import (
    ChannelMessage,
    Document,
    DocumentAttribute,
    DocumentMedia,
    FilenameAttribute,
    Media,
    MessageUpdate,
    NoMessageUpdate,
    OtherAttribute,
    OtherMedia,
    Update,
    UpdateBatch,
)
from ..pipeline.channel_ids import ChannelClass


def _type_name(obj: Any) -> str:
    return type(obj).__name__


def _peer(peer: Any) -> Tuple[Optional[ChannelClass], Optional[int]]:
    if isinstance(peer, types.PeerChannel):
        return ChannelClass.BROADCAST, peer.channel_id
    if isinstance(peer, types.PeerChat):
        return ChannelClass.LEGACY, peer.chat_id
    return None, None


def convert_attribute(attribute: Any) -> DocumentAttribute:
    if isinstance(attribute, types.DocumentAttributeFilename):
        return FilenameAttribute(file_name=attribute.file_name or "")
    return OtherAttribute(kind=_type_name(attribute))


def convert_document(document: Any) -> Optional[Document]:
    if not isinstance(document, types.Document):
        return None
    return Document(
        id=document.id,
        size=int(document.size or 0),
        mime_type=document.mime_type or None,
        attributes=tuple(convert_attribute(attr) for attr in document.attributes or ()),
    )


def convert_media(media: Any) -> Optional[Media]:
    if media is None or isinstance(media, types.MessageMediaEmpty):
        return None
    if isinstance(media, types.MessageMediaDocument):
        return DocumentMedia(document=convert_document(media.document))
    return OtherMedia(kind=_type_name(media))


def convert_message(message: Any) -> Update:
    if isinstance(message, types.Message):
        channel_class, channel_id = _peer(message.peer_id)
        return MessageUpdate(
            message=ChannelMessage(
                id=message.id,
                channel_id=channel_id,
                channel_class=channel_class,
                date=message.date,
                media=convert_media(message.media),
                text=message.message or "",
            )
        )
    if isinstance(message, types.MessageService):
        return NoMessageUpdate(kind="service")
    return NoMessageUpdate(kind=_type_name(message))


def convert_update(update: Any) -> Update:
    """Convert any update container or single update into an :data:`Update`."""
    if isinstance(update, (types.Updates, types.UpdatesCombined)):
        return UpdateBatch(updates=tuple(convert_update(item) for item in update.updates))
    if isinstance(update, types.UpdateShort):
        return convert_update(update.update)
    if isinstance(update, types.UpdatesTooLong):
        return NoMessageUpdate(kind="too_long")
    if isinstance(update, (types.UpdateNewChannelMessage, types.UpdateNewMessage)):
        return convert_message(update.message)
    if isinstance(update, types.UpdateShortMessage):
        return MessageUpdate(
            message=ChannelMessage(id=update.id, channel_id=None, date=update.date, text=update.message or "")
        )
    if isinstance(update, types.UpdateShortChatMessage):
        return MessageUpdate(
            message=ChannelMessage(
                id=update.id,
                channel_id=update.chat_id,
                channel_class=ChannelClass.LEGACY,
                date=update.date,
                text=update.message or "",
            )
        )
    return NoMessageUpdate(kind=_type_name(update))


__all__ = ["convert_attribute", "convert_document", "convert_media", "convert_message", "convert_update"]
