from __future__ import annotations


class DriveFeedError(Exception):
    """Base class for every error raised by the ingestion pipeline."""


class ConfigurationError(DriveFeedError):
    """Required settings are missing or invalid."""


class UnsupportedChannelIdFormat(DriveFeedError, ValueError):
    def __init__(self, value: object, reason: str = "outside the supported ranges") -> None:
        self.value = value
        super().__init__(f"unsupported channel id {value!r}: {reason}")


class AuthError(DriveFeedError):
    """Bot authorization failed and will not succeed on its own."""


class RateLimited(AuthError):
    """The platform asked us to wait before authorizing again."""

    def __init__(self, retry_after: int) -> None:
        self.retry_after = retry_after
        super().__init__(f"rate limited by the platform, retry after {retry_after}s")


class ChannelConnectionError(DriveFeedError):
    """The session dropped and the reconnect budget was exhausted."""


class SkippedMessage(DriveFeedError):
    reason = "skipped"

    def __init__(self, message_id: int | None, detail: str = "") -> None:
        self.message_id = message_id
        text = f"message {message_id} skipped: {self.reason}"
        if detail:
            text = f"{text} ({detail})"
        super().__init__(text)


class NonDocumentMessage(SkippedMessage):
    reason = "non_document"


class MissingFilename(SkippedMessage):
    reason = "missing_filename"


class CatalogStoreError(DriveFeedError):
    pass


class NameCollision(CatalogStoreError):
    def __init__(self, name: str, constraint: str | None = None) -> None:
        self.name = name
        self.constraint = constraint
        super().__init__(f"catalog entry name already taken: {name!r}")


class DuplicateEntry(CatalogStoreError):
    """An entry with the same id is already stored."""

    def __init__(self, entry_id: str) -> None:
        self.entry_id = entry_id
        super().__init__(f"catalog entry {entry_id} already exists")


class StoreUnavailable(CatalogStoreError):
    pass


class IngestionFailed(DriveFeedError):
    def __init__(self, message_id: int | None, name: str, attempts: int) -> None:
        self.message_id = message_id
        self.name = name
        self.attempts = attempts
        super().__init__(
            f"could not store {name!r} from message {message_id} after {attempts} attempts"
        )


__all__ = [
    "AuthError",
    "CatalogStoreError",
    "ChannelConnectionError",
    "ConfigurationError",
    "DriveFeedError",
    "DuplicateEntry",
    "IngestionFailed",
    "MissingFilename",
    "NameCollision",
    "NonDocumentMessage",
    "RateLimited",
    "SkippedMessage",
    "StoreUnavailable",
    "UnsupportedChannelIdFormat",
]
