from __future__ import annotations

import secrets
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Callable, Iterator, Optional
from uuid import NAMESPACE_URL, uuid4, uuid5

from ..errors import IngestionFailed, NameCollision
from ..logging import get_logger
from ..models.catalog import CatalogEntry, ChannelBinding, EntryKind
from ..models.updates import ChannelMessage
from ..repository.base import CatalogStore
from .types import DocumentMetadata

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
RANDOM_TOKEN_LENGTH = 12

logger = get_logger("drivefeed.writer")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _random_token() -> str:
    return secrets.token_hex(RANDOM_TOKEN_LENGTH // 2)


def message_fingerprint(source_channel_id: int, message_id: int) -> str:
    """Stable entry id for one source message."""
    return str(uuid5(NAMESPACE_URL, f"telegram-channel:{source_channel_id}:{message_id}"))


def timestamped_name(filename: str, moment: datetime) -> str:
    path = PurePosixPath(filename)
    suffix = path.suffix
    stem = filename[: -len(suffix)] if suffix else filename
    return f"{stem}_{moment.strftime(TIMESTAMP_FORMAT)}{suffix}"


def tokenized_name(filename: str, token: str) -> str:
    return f"{token}_{PurePosixPath(filename).name}"


class CatalogWriter:
    """Turns extracted document metadata into a stored catalog entry.

    On a name collision the insert is retried twice: first with a timestamp
    suffix, then with a random token prefix. Each attempt gets a fresh id
    unless ``idempotent`` is set, in which case the id is derived from the
    source message and kept across attempts.
    """

    def __init__(
        self,
        store: CatalogStore,
        binding: ChannelBinding,
        owner_id: int,
        *,
        idempotent: bool = False,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = lambda: str(uuid4()),
        token_factory: Callable[[], str] = _random_token,
    ) -> None:
        self._store = store
        self._binding = binding
        self._owner_id = owner_id
        self._idempotent = idempotent
        self._clock = clock
        self._id_factory = id_factory
        self._token_factory = token_factory
        self.logger = logger.bind(channel_id=binding.configured_channel_id)

    def candidate_names(self, filename: str) -> Iterator[str]:
        yield filename
        yield timestamped_name(filename, self._clock())
        yield tokenized_name(filename, self._token_factory())

    def _entry_id(self, message: ChannelMessage) -> str:
        if self._idempotent:
            return message_fingerprint(self._binding.normalized_channel_id, message.id)
        return self._id_factory()

    def build_entry(self, message: ChannelMessage, metadata: DocumentMetadata, name: Optional[str] = None) -> CatalogEntry:
        now = self._clock()
        return CatalogEntry(
            id=self._entry_id(message),
            name=name or metadata.filename,
            kind=EntryKind.FILE,
            size_bytes=metadata.size_bytes,
            mime_type=metadata.mime_type,
            category=metadata.category,
            parent_id=self._binding.target_parent_id,
            owner_id=self._owner_id,
            source_channel_id=self._binding.normalized_channel_id,
            created_at=now,
            updated_at=now,
        )

    async def write(self, message: ChannelMessage, metadata: DocumentMetadata) -> CatalogEntry:
        """Insert a new entry; raises ``IngestionFailed`` once every name collided.

        ``StoreUnavailable`` and ``DuplicateEntry`` propagate unchanged.
        """
        attempts = 0
        for name in self.candidate_names(metadata.filename):
            attempts += 1
            entry = self.build_entry(message, metadata, name=name)
            try:
                await self._store.insert(entry, if_absent=self._idempotent)
            except NameCollision as exc:
                self.logger.info(
                    "catalog_name_collision",
                    message_id=message.id,
                    name=name,
                    attempt=attempts,
                    constraint=exc.constraint,
                )
                continue
            if name != metadata.filename:
                self.logger.info(
                    "catalog_entry_renamed",
                    message_id=message.id,
                    original_name=metadata.filename,
                    new_name=name,
                )
            return entry
        raise IngestionFailed(message.id, metadata.filename, attempts)


__all__ = ["CatalogWriter", "message_fingerprint", "timestamped_name", "tokenized_name"]
