"""Application entry point for the subrelay watcher."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from logging.handlers import RotatingFileHandler
from typing import Iterable, Optional

from art import tprint
from dotenv import load_dotenv

import settings
from adapters.subscription_notifier import SubscriptionNotifier
from adapters.telegram_history import TelethonHistorySource
from adapters.telegram_mapper import wire_update_handler
from client import build_client
from core.backfill import RECENT_CONVERSATIONS_LIMIT, BackfillReport, HistoryBackfill
from core.config import AppConfig
from core.errors import ConfigError
from core.live import LiveMessagePipeline
from core.monitor import HeartbeatReporter, MonitorState, ProgressReporter
from core.processor import MessageProcessor
from get_session import authorize

NAME = "SUBRELAY"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict, always: Iterable[Optional[str]] = ()) -> list[str]:
    values = [value for value in always if value]
    redact_cfg = config.get("redact", {}) if config else {}
    if redact_cfg.get("enabled", False):
        for name in redact_cfg.get("patterns", []):
            value = os.getenv(name)
            if value:
                values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging(app_config: AppConfig) -> None:
    config = app_config.logging or {}
    if not config.get("enabled", True):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    # Credentials never reach the logs, whatever the redact settings say.
    secrets = _collect_redaction_values(config, [os.getenv("API_HASH"), app_config.subscription.api_key])
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/subrelay.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)
    # Telethon is chatty at INFO about its own reconnects.
    logging.getLogger("telethon").setLevel(max(level, logging.WARNING))


def _log_startup_summary(config: AppConfig) -> None:
    filters = config.filters
    if filters.allowed_channels:
        LOGGER.info("Watching %s channels: %s", len(filters.allowed_channels), sorted(filters.allowed_channels))
    else:
        LOGGER.info("Watching all channels")
    LOGGER.info("Keywords: %s", list(filters.keywords))
    LOGGER.info("Whitelisted channels: %s", len(filters.whitelist_channels))


def _install_stop_signals(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            # Windows event loops do not support signal handlers; Ctrl+C
            # then surfaces as KeyboardInterrupt instead.
            pass


async def _login(client, connected: asyncio.Event) -> None:
    LOGGER.info("Connecting to Telegram...")
    await client.connect()
    # Dial progress is only meaningful until the transport is up; a QR scan
    # or code prompt is not a stall.
    connected.set()
    await authorize(client)


async def _connect(client, state: MonitorState, stop: Optional[asyncio.Event] = None) -> bool:
    """Connect and authorize while the progress reporter watches dial attempts.

    Returns False when ``stop`` is set before the login finishes; the client
    is disconnected in that case.
    """

    if stop is None:
        stop = asyncio.Event()
    connected = asyncio.Event()
    progress = asyncio.create_task(ProgressReporter(state).run(connected))
    login = asyncio.create_task(_login(client, connected))
    stopped = asyncio.create_task(stop.wait())
    try:
        await asyncio.wait({login, stopped}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        connected.set()
        stopped.cancel()
        if not login.done():
            login.cancel()
        await asyncio.gather(login, stopped, return_exceptions=True)
        await progress

    if login.cancelled():
        LOGGER.info("Stopped before the login finished")
        await client.disconnect()
        return False
    login.result()

    me = await client.get_me()
    LOGGER.info("Logged in as %s (ID: %s)", " ".join(filter(None, [me.first_name, me.last_name])), me.id)
    return True


async def _backfill(client, processor: MessageProcessor, config: AppConfig) -> BackfillReport:
    channels = sorted(config.filters.allowed_channels)
    if not channels:
        LOGGER.info("No channels configured, nothing to backfill")
        return BackfillReport()

    LOGGER.info("Fetching history for %s channels", len(channels))
    backfill = HistoryBackfill(TelethonHistorySource(client), processor)
    report = await backfill.backfill_channels(channels)
    LOGGER.info(
        "History backfill complete: channels=%s, failed=%s, links=%s",
        len(report.channels),
        len(report.errors),
        len(report.results),
    )
    return report


async def _watch(client, config: AppConfig, state: MonitorState) -> None:
    stop = asyncio.Event()
    _install_stop_signals(stop)

    if not await _connect(client, state, stop):
        return
    _log_startup_summary(config)

    processor = MessageProcessor(config.filters, SubscriptionNotifier(config.subscription))

    # Run the backfill before wiring real-time handlers to keep history
    # processing explicit and strictly ordered.
    if config.fetch_history_enabled:
        await _backfill(client, processor, config)
        if stop.is_set():
            LOGGER.info("Stopped after the history backfill")
            await client.disconnect()
            return

    live = LiveMessagePipeline(processor, state)
    wire_update_handler(client, live)
    heartbeat = asyncio.create_task(HeartbeatReporter(state).run(stop))

    LOGGER.info("Listening for new messages...")
    stopped = asyncio.ensure_future(stop.wait())
    await asyncio.wait({stopped, client.disconnected}, return_when=asyncio.FIRST_COMPLETED)

    LOGGER.info("Shutting down")
    stop.set()
    await live.close()
    await client.disconnect()
    await heartbeat


def _run(config: AppConfig) -> None:
    state = MonitorState()
    client = build_client(state, config.proxy)
    LOGGER.info("Starting subrelay")
    try:
        client.loop.run_until_complete(_watch(client, config, state))
    except KeyboardInterrupt:
        LOGGER.info("Interrupted")
    LOGGER.info("Stopped after %s message updates", state.dispatch_count)


def _run_backfill_once(config: AppConfig) -> None:
    state = MonitorState()
    client = build_client(state, config.proxy)

    async def _run_backfill() -> None:
        await _connect(client, state)
        processor = MessageProcessor(config.filters, SubscriptionNotifier(config.subscription))
        try:
            await _backfill(client, processor, config)
        finally:
            await client.disconnect()

    client.loop.run_until_complete(_run_backfill())


def _discover(config: AppConfig) -> None:
    client = build_client(proxy=config.proxy)

    async def _run_discover() -> None:
        await _connect(client, MonitorState())
        conversations = await TelethonHistorySource(client).list_recent_conversations(RECENT_CONVERSATIONS_LIMIT)
        if not conversations:
            print("No channels found among recent conversations.")
        for index, conversation in enumerate(conversations, start=1):
            marker = "*" if conversation.channel_id in config.filters.allowed_channels else " "
            print(f"{index}.{marker} {conversation.title} | {conversation.channel_id}")
        await client.disconnect()

    client.loop.run_until_complete(_run_discover())


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="subrelay")
    parser.add_argument("--config", default=settings.CONFIG_PATH, help="Path to config.json")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Watch live messages and relay links")
    subparsers.add_parser("backfill", help="Replay recent history of the configured channels, then exit")
    subparsers.add_parser("discover", help="List recent channels with their ids")

    args = parser.parse_args(argv)
    _print_banner()

    try:
        config = settings.load_settings(args.config)
        _configure_logging(config)
        if args.command == "backfill":
            _run_backfill_once(config)
        elif args.command == "discover":
            _discover(config)
        else:
            _run(config)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc


if __name__ == "__main__":
    main()
