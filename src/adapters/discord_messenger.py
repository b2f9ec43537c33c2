"""Discord messaging adapter.

Implements the core MessagingPort with discord.py, translating "unknown
message", "unknown channel" and "missing access" errors into the core's
explicit outcomes.
"""

from __future__ import annotations

import logging
from typing import Sequence

import discord

from adapters.announcement_formatting import build_announcement_embed
from core.errors import MessagingSurfaceNotFound
from core.models import LiveBroadcastInfo
from core.ports import EditOutcome

LOGGER = logging.getLogger(__name__)

# Discord's bulk delete endpoint accepts at most 100 messages per call.
BULK_DELETE_LIMIT = 100

# Missing channels and messages, and channels the bot lost access to, are all
# treated as gone: retrying them every cycle cannot succeed.
_GONE = (discord.NotFound, discord.Forbidden)


class DiscordMessenger:
    """Messaging adapter that posts announcements through a discord.py client."""

    def __init__(self, client: discord.Client) -> None:
        self._client = client

    async def _channel(self, channel_id: str) -> discord.abc.Messageable:
        channel = self._client.get_channel(int(channel_id))
        if channel is not None:
            return channel
        try:
            return await self._client.fetch_channel(int(channel_id))
        except _GONE as exc:
            raise MessagingSurfaceNotFound(f"Channel {channel_id} is gone or inaccessible") from exc

    async def send(self, channel_id: str, broadcast: LiveBroadcastInfo) -> str:
        """Post an announcement and return the new message id."""

        channel = await self._channel(channel_id)
        try:
            message = await channel.send(
                embed=build_announcement_embed(broadcast),
                allowed_mentions=discord.AllowedMentions.none(),
            )
        except _GONE as exc:
            raise MessagingSurfaceNotFound(f"Cannot post in channel {channel_id}") from exc
        return str(message.id)

    async def edit(self, channel_id: str, message_id: str, broadcast: LiveBroadcastInfo) -> EditOutcome:
        """Edit an announcement in place; a missing message or channel is NOT_FOUND."""

        try:
            channel = await self._channel(channel_id)
            partial = channel.get_partial_message(int(message_id))
            await partial.edit(embed=build_announcement_embed(broadcast))
        except (*_GONE, MessagingSurfaceNotFound) as exc:
            LOGGER.debug("Edit of %s in %s failed: %r", message_id, channel_id, exc)
            return EditOutcome.NOT_FOUND
        return EditOutcome.EDITED

    async def bulk_delete(self, channel_id: str, message_ids: Sequence[str]) -> None:
        """Delete announcements, batching where Discord allows it.

        Every chunk is attempted even if an earlier one reports missing
        messages; MessagingSurfaceNotFound is raised afterwards if any did.
        """

        if not message_ids:
            return
        channel = await self._channel(channel_id)
        missing = 0
        for start in range(0, len(message_ids), BULK_DELETE_LIMIT):
            chunk = [discord.Object(id=int(message_id)) for message_id in message_ids[start : start + BULK_DELETE_LIMIT]]
            try:
                await channel.delete_messages(chunk)
            except _GONE as exc:
                LOGGER.debug("Chunk of %s deletes in %s failed: %r", len(chunk), channel_id, exc)
                missing += len(chunk)
                continue
            LOGGER.debug("Deleted %s announcements in %s", len(chunk), channel_id)
        if missing:
            raise MessagingSurfaceNotFound(f"{missing} messages in channel {channel_id} were already gone")
