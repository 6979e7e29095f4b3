from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from telethon import TelegramClient

from ..config import IngestSettings


@dataclass(frozen=True)
class BotCredentials:
    api_id: int
    api_hash: str = field(repr=False)
    bot_token: str = field(repr=False)
    session: Optional[str] = None

    @property
    def bot_id(self) -> str:
        return self.bot_token.split(":", 1)[0]

    @classmethod
    def from_settings(cls, settings: IngestSettings) -> "BotCredentials":
        settings.require_runtime()
        return cls(
            api_id=int(settings.api_id),
            api_hash=settings.api_hash.get_secret_value(),
            bot_token=settings.bot_token.get_secret_value(),
            session=settings.session,
        )


def build_client(credentials: BotCredentials, flood_sleep_threshold: int = 60) -> TelegramClient:
    """Create a Telethon client whose reconnects are driven by the listener.

    A ``None`` session keeps the authorization in memory only.
    """
    return TelegramClient(
        credentials.session,
        credentials.api_id,
        credentials.api_hash,
        connection_retries=1,
        auto_reconnect=False,
        sequential_updates=True,
        flood_sleep_threshold=flood_sleep_threshold,
    )


__all__ = ["BotCredentials", "build_client"]
