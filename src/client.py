"""Client factories for livewatch.

We explicitly manage each client's lifecycle (login/connect/close) so it is
obvious when sessions are created and when they end.
"""

from __future__ import annotations

import logging
import os

import discord
from dotenv import load_dotenv

from adapters.twitch_helix import TwitchHelixClient

LOGGER = logging.getLogger(__name__)


def discord_token() -> str:
    """Return the bot token from the environment, failing fast if missing."""

    load_dotenv()
    token = os.getenv("DISCORD_TOKEN")
    if not token:
        raise RuntimeError("Missing DISCORD_TOKEN in environment")
    return token


def build_discord_client() -> discord.Client:
    """Create a discord.py client with only the intents livewatch needs."""

    # Announcements only need guild and channel access; no message content.
    intents = discord.Intents.none()
    intents.guilds = True
    LOGGER.info("Initializing Discord client")
    return discord.Client(intents=intents)


def build_twitch_client() -> TwitchHelixClient:
    """Create a Helix client from environment variables.

    We read TWITCH_CLIENT_ID/TWITCH_APP_TOKEN via python-dotenv to keep
    secrets out of the repo.
    """

    load_dotenv()

    client_id = os.getenv("TWITCH_CLIENT_ID")
    app_token = os.getenv("TWITCH_APP_TOKEN")

    if not client_id or not app_token:
        raise RuntimeError("Missing TWITCH_CLIENT_ID or TWITCH_APP_TOKEN in environment")

    LOGGER.info("Initializing Twitch Helix client")
    return TwitchHelixClient(client_id=client_id, app_token=app_token)
