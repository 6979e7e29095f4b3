"""Telegram side of the ingestion pipeline."""
