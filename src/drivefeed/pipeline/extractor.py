from __future__ import annotations

import mimetypes
from pathlib import PurePosixPath
from typing import Dict, Optional

from ..errors import MissingFilename, NonDocumentMessage
from ..models.updates import ChannelMessage, DocumentMedia, FilenameAttribute
from .types import DocumentMetadata

DEFAULT_MIME_TYPE = "application/octet-stream"
DEFAULT_CATEGORY = "other"

CATEGORY_EXTENSIONS: Dict[str, frozenset[str]] = {
    "image": frozenset({".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp"}),
    "document": frozenset({".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx", ".txt"}),
    "video": frozenset({".mp4", ".avi", ".mkv", ".mov", ".wmv", ".flv"}),
    "audio": frozenset({".mp3", ".wav", ".ogg", ".flac", ".aac"}),
    "archive": frozenset({".zip", ".rar", ".7z", ".tar", ".gz"}),
}


def guess_mime_type(filename: str) -> str:
    mime, _ = mimetypes.guess_type(filename, strict=False)
    return mime or DEFAULT_MIME_TYPE


def categorize(filename: str) -> str:
    suffix = PurePosixPath(filename).suffix.lower()
    for category, extensions in CATEGORY_EXTENSIONS.items():
        if suffix in extensions:
            return category
    return DEFAULT_CATEGORY


def _filename(media: DocumentMedia) -> Optional[str]:
    document = media.document
    if document is None:
        return None
    for attribute in document.attributes:
        if isinstance(attribute, FilenameAttribute):
            name = attribute.file_name.strip()
            return name or None
    return None


def extract_document(message: ChannelMessage) -> DocumentMetadata:
    """Return the attached document's metadata.

    Raises ``NonDocumentMessage`` when the message carries no document and
    ``MissingFilename`` when the document has no usable filename attribute.
    """
    media = message.media
    if not isinstance(media, DocumentMedia):
        detail = "no media" if media is None else type(media).__name__
        raise NonDocumentMessage(message.id, detail)
    if media.document is None:
        raise NonDocumentMessage(message.id, "empty document")

    filename = _filename(media)
    if filename is None:
        raise MissingFilename(message.id)

    return DocumentMetadata(
        filename=filename,
        size_bytes=media.document.size,
        mime_type=guess_mime_type(filename),
        category=categorize(filename),
        message_id=message.id,
        document_id=media.document.id,
    )


__all__ = ["CATEGORY_EXTENSIONS", "DEFAULT_MIME_TYPE", "categorize", "extract_document", "guess_mime_type"]
