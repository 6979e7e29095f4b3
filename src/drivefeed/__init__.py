"""Channel-to-catalog ingestion: documents posted to a Telegram channel become drive entries."""

__version__ = "0.1.0"
