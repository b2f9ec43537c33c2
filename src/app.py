"""Application entry point for the livewatch announcer."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import re
from logging.handlers import RotatingFileHandler
from typing import Iterable, Optional

from art import tprint
from dotenv import load_dotenv

import settings
from adapters.config_codec import config_to_dict
from adapters.discord_messenger import DiscordMessenger
from adapters.sqlite_config_store import SQLiteConfigStore
from client import build_discord_client, build_twitch_client, discord_token
from core.engine import ReconciliationEngine
from core.scheduler import PollingLoop

NAME = "LIVEWATCH"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


class _RedactingFormatter(logging.Formatter):
    """Formatter that masks secret values (tokens, client ids) in log output."""

    def __init__(self, secrets: Iterable[str]) -> None:
        super().__init__(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
        # Longest first so a secret containing another is masked whole.
        ordered = sorted({secret for secret in secrets if secret}, key=len, reverse=True)
        self._pattern = re.compile("|".join(map(re.escape, ordered))) if ordered else None

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        if self._pattern is None:
            return text
        return self._pattern.sub("***", text)


def _secret_values(redact: dict) -> list[str]:
    """Resolve the environment variable names listed under logging.redact."""

    if not redact.get("enabled", False):
        return []
    return [os.environ[name] for name in redact.get("patterns", []) if os.environ.get(name)]


def _file_handler(file_cfg: dict) -> RotatingFileHandler:
    path = file_cfg.get("path", "logs/livewatch.log")
    if not os.path.isabs(path):
        path = os.path.join(settings.PROJECT_ROOT, path)
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    return RotatingFileHandler(
        path,
        maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
        backupCount=int(file_cfg.get("backup_count", 5)),
        encoding="utf-8",
    )


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    # Secrets come from .env, so load it before resolving redactions.
    load_dotenv()
    level = getattr(logging, str(config.get("level", "INFO")).upper(), logging.INFO)
    formatter = _RedactingFormatter(_secret_values(config.get("redact", {})))

    handlers: list[logging.Handler] = []
    if config.get("console", True):
        handlers.append(logging.StreamHandler())
    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        handlers.append(_file_handler(file_cfg))
    if not handlers:
        return

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    logging.basicConfig(level=level, handlers=handlers)
    # discord.py logs every gateway event at INFO.
    if level > logging.DEBUG:
        logging.getLogger("discord").setLevel(logging.WARNING)


def _build_store() -> SQLiteConfigStore:
    store = SQLiteConfigStore(settings.DB_PATH)
    store.init_db()
    return store


async def _serve(run_forever: bool) -> None:
    logger = logging.getLogger(__name__)
    store = _build_store()
    discord_client = build_discord_client()
    twitch = build_twitch_client()
    engine = ReconciliationEngine(store, twitch, DiscordMessenger(discord_client), settings.POLLING)
    poller = PollingLoop(engine, lambda: settings.GUILD_IDS, settings.POLLING)
    token = discord_token()

    async def _poll_when_ready() -> None:
        await discord_client.wait_until_ready()
        logger.info("Discord client ready. Watching %s guilds", len(settings.GUILD_IDS))
        if run_forever:
            await poller.run_forever()
            return
        report = await poller.run_once()
        if report is not None:
            logger.info("Processed %s guilds, %s actions", len(report.processed), report.actions)

    try:
        async with discord_client:
            await discord_client.login(token)
            connect_task = asyncio.create_task(discord_client.connect(), name="livewatch.discord")
            poll_task = asyncio.create_task(_poll_when_ready(), name="livewatch.poll")
            done, pending = await asyncio.wait(
                {connect_task, poll_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
            for task in pending:
                task.cancel()
            for task in done:
                task.result()
    finally:
        poller.stop()
        await twitch.close()


def _run(run_forever: bool = True) -> None:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)
    logger.info("Starting livewatch")
    try:
        asyncio.run(_serve(run_forever))
    except KeyboardInterrupt:
        logger.info("Stopped by user")


def _show_config(guild_id: str) -> None:
    config = _build_store().get(guild_id)
    if config is None:
        print(f"No stored config for guild {guild_id}.")
        return
    print(json.dumps(config_to_dict(config), indent=2, ensure_ascii=False, sort_keys=True))


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="livewatch")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the polling loop")
    subparsers.add_parser("once", help="Run a single reconciliation cycle and exit")
    show = subparsers.add_parser("show-config", help="Print the stored config for a guild")
    show.add_argument("guild_id")

    args = parser.parse_args(argv)
    if args.command == "show-config":
        _show_config(args.guild_id)
        return
    if args.command == "once":
        _run(run_forever=False)
        return
    _run()


if __name__ == "__main__":
    main()
