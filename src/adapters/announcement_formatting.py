"""Announcement formatting helpers.

Keeping formatting here prevents drift between the send and edit paths and
keeps announcements consistent.
"""

from __future__ import annotations

import re
from urllib.parse import quote

import discord

from core.models import LiveBroadcastInfo

TWITCH_PURPLE = 0x9146FF

# escape_markdown leaves unpaired backticks alone.
_UNESCAPED_BACKTICK = re.compile(r"(?<!\\)`")


def stream_url(broadcast: LiveBroadcastInfo) -> str:
    return f"https://www.twitch.tv/{quote(broadcast.login)}"


def escape_title(title: str) -> str:
    """Escape Discord markdown (including backticks) in a stream title."""

    return _UNESCAPED_BACKTICK.sub(r"\\`", discord.utils.escape_markdown(title))


def format_author_line(broadcast: LiveBroadcastInfo) -> str:
    name = broadcast.display.user_display_name or broadcast.login
    category = broadcast.display.category_name
    if category:
        return f"{name} is playing {category}!"
    return f"{name} is live!"


def build_announcement_embed(broadcast: LiveBroadcastInfo) -> discord.Embed:
    """Create the embed posted for a live broadcast."""

    url = stream_url(broadcast)
    embed = discord.Embed(
        title=url,
        url=url,
        description=escape_title(broadcast.title),
        colour=TWITCH_PURPLE,
        timestamp=broadcast.started_at,
    )
    embed.set_author(name=format_author_line(broadcast), url=url)
    thumbnail = broadcast.display.thumbnail_url
    if thumbnail:
        embed.set_image(url=thumbnail.replace("-{width}x{height}", ""))
    return embed
