from __future__ import annotations

import argparse
import asyncio
import contextlib
import signal
import sys
from typing import List, Optional

from .config import IngestSettings, get_settings
from .errors import (
    AuthError,
    ChannelConnectionError,
    ConfigurationError,
    RateLimited,
    UnsupportedChannelIdFormat,
)
from .logging import get_logger, setup_logging
from .models.catalog import ChannelBinding
from .pipeline.channel_ids import ChannelClass, classify, denormalize, normalize
from .repository.base import CatalogStore
from .repository.memory import MemoryCatalogStore
from .repository.postgres import PostgresCatalogStore
from .service import ChannelIngestService
from .telegram.client import BotCredentials

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2
EXIT_RATE_LIMITED = 3

COMMANDS = ("run", "channel-id")

logger = get_logger("drivefeed.main")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="drivefeed",
        description="Ingest documents posted to a Telegram channel into the drive catalog",
    )
    subparsers = parser.add_subparsers(dest="command")

    run = subparsers.add_parser("run", help="Listen to the configured channel (default)")
    run.add_argument("--dry-run", action="store_true", help="Keep entries in memory instead of the database")
    run.add_argument("--parent", help="Directory id new entries attach to (overrides BOT_PARENT_ID)")
    run.add_argument("--channel", type=int, help="Public channel id (overrides BOT_CHANNEL_ID)")

    convert = subparsers.add_parser("channel-id", help="Convert between public and internal channel ids")
    convert.add_argument("value", type=int, help="Channel id to convert")
    convert.add_argument(
        "--internal",
        action="store_true",
        help="Treat VALUE as an internal id and print the public id",
    )
    convert.add_argument(
        "--class",
        dest="channel_class",
        choices=[item.value for item in ChannelClass],
        default=ChannelClass.BROADCAST.value,
        help="Channel class used with --internal (default: %(default)s)",
    )

    argv = list(sys.argv[1:] if argv is None else argv)
    # bare options belong to the default "run" command
    if not argv or argv[0] not in (*COMMANDS, "-h", "--help"):
        argv.insert(0, "run")
    return parser.parse_args(argv)


def _load_settings(args: argparse.Namespace) -> IngestSettings:
    try:
        settings = get_settings()
    except ValueError as exc:
        raise ConfigurationError(f"invalid settings: {exc}") from exc
    updates = {}
    if args.channel is not None:
        updates["channel_id"] = args.channel
    if args.parent:
        updates["target_parent_id"] = args.parent
    return settings.model_copy(update=updates) if updates else settings


def build_store(settings: IngestSettings, dry_run: bool) -> CatalogStore:
    if dry_run:
        return MemoryCatalogStore()
    return PostgresCatalogStore(
        settings.database_url,
        schema=settings.catalog_schema,
        name_constraint=settings.name_constraint,
    )


async def _serve(service: ChannelIngestService) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signum, stop.set)
    await service.run(stop)


def run_command(args: argparse.Namespace) -> int:
    try:
        settings = _load_settings(args)
    except ConfigurationError as exc:
        setup_logging()
        logger.error("ingest_config_invalid", error=str(exc))
        return EXIT_CONFIG

    setup_logging(settings.log_level)
    if not settings.enabled:
        logger.info("ingest_disabled")
        return EXIT_OK

    try:
        credentials = BotCredentials.from_settings(settings)
        binding = ChannelBinding.from_config(settings.channel_id, settings.target_parent_id)
    except (ConfigurationError, UnsupportedChannelIdFormat) as exc:
        logger.error("ingest_config_invalid", error=str(exc))
        return EXIT_CONFIG

    store = build_store(settings, args.dry_run)
    service = ChannelIngestService(
        credentials,
        binding,
        store,
        owner_id=settings.owner_id,
        settings=settings,
    )
    logger.info("ingest_started", dry_run=args.dry_run, channel_id=binding.configured_channel_id)
    try:
        asyncio.run(_serve(service))
    except RateLimited as exc:
        logger.error("ingest_rate_limited", retry_after=exc.retry_after)
        return EXIT_RATE_LIMITED
    except (AuthError, ChannelConnectionError) as exc:
        logger.error("ingest_session_failed", error=str(exc), error_type=type(exc).__name__)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.info("ingest_shutdown")
    return EXIT_OK


def channel_id_command(args: argparse.Namespace) -> int:
    try:
        if args.internal:
            public = denormalize(args.value, ChannelClass(args.channel_class))
            print(f"public={public} internal={args.value} class={args.channel_class}")
        else:
            print(f"public={args.value} internal={normalize(args.value)} class={classify(args.value).value}")
    except UnsupportedChannelIdFormat as exc:
        print(f"error: {exc}")
        return EXIT_CONFIG
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    if args.command == "channel-id":
        return channel_id_command(args)
    return run_command(args)


if __name__ == "__main__":
    raise SystemExit(main())
