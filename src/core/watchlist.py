"""Tenant watch-list management (core domain).

These operations back the moderator commands: following and blocking
broadcasters, following categories, editing required keywords and posting
one-off override announcements. Each returns a ``WatchResult`` carrying an
explicit outcome instead of raising for expected conditions such as
"already followed".
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, replace
from typing import Iterable, Optional

from core.models import EntityRef, MessageRecord, TenantWatchConfig
from core.ports import BroadcastPlatformPort, ConfigStorePort, MessagingPort

LOGGER = logging.getLogger(__name__)

_STREAM_REFERENCE_RE = re.compile(
    r"^\s*(?:https?://(?:www\.)?twitch\.tv/)?([A-Za-z0-9]\w{3,24})/?\s*$",
    re.IGNORECASE,
)


class WatchOutcome(enum.Enum):
    FOLLOWED = "followed"
    UNFOLLOWED = "unfollowed"
    ALREADY_FOLLOWED = "already_followed"
    NOT_FOLLOWED = "not_followed"
    BLOCKED = "blocked"
    UNBLOCKED = "unblocked"
    ALREADY_BLOCKED = "already_blocked"
    NOT_BLOCKED = "not_blocked"
    NOT_FOUND = "not_found"
    KEYWORDS_SET = "keywords_set"
    KEYWORD_ADDED = "keyword_added"
    KEYWORD_REMOVED = "keyword_removed"
    KEYWORD_EXISTS = "keyword_exists"
    KEYWORD_MISSING = "keyword_missing"
    KEYWORD_EMPTY = "keyword_empty"
    CHANNEL_SET = "channel_set"
    STREAM_DATA_CLEARED = "stream_data_cleared"
    POSTED = "posted"
    STREAM_OFFLINE = "stream_offline"
    INVALID_REFERENCE = "invalid_reference"


@dataclass(frozen=True)
class WatchResult:
    outcome: WatchOutcome
    entity: Optional[EntityRef] = None
    message_id: Optional[str] = None


def parse_stream_reference(reference: str) -> Optional[str]:
    """Return the lower-case login from a login or channel URL, or None."""

    match = _STREAM_REFERENCE_RE.match(reference or "")
    if match is None:
        return None
    return match.group(1).lower()


def normalize_keywords(keywords: Iterable[str]) -> tuple[str, ...]:
    """Trim, drop empties and deduplicate while keeping the given order."""

    cleaned = (keyword.strip() for keyword in keywords)
    return tuple(dict.fromkeys(keyword for keyword in cleaned if keyword))


def _without(mapping, key: str) -> dict[str, str]:
    return {name: value for name, value in mapping.items() if name != key}


class WatchlistService:
    """Read-modify-write operations on tenant watch configs."""

    def __init__(
        self,
        store: ConfigStorePort,
        platform: BroadcastPlatformPort,
        messaging: Optional[MessagingPort] = None,
    ) -> None:
        self._store = store
        self._platform = platform
        self._messaging = messaging

    def load(self, tenant_id: str) -> TenantWatchConfig:
        return self._store.get(tenant_id) or TenantWatchConfig.empty()

    def _save(self, tenant_id: str, config: TenantWatchConfig) -> None:
        self._store.set(tenant_id, config)

    # Primary channel

    def set_primary_channel(self, tenant_id: str, channel_id: str) -> WatchResult:
        config = self.load(tenant_id)
        self._save(tenant_id, replace(config, primary_channel_id=channel_id))
        return WatchResult(WatchOutcome.CHANNEL_SET)

    def get_primary_channel(self, tenant_id: str) -> Optional[str]:
        return self.load(tenant_id).primary_channel_id

    def clear_stream_data(self, tenant_id: str) -> WatchResult:
        """Forget every posted announcement and temporary block.

        Announcements already posted are left in place and will be posted
        again on the next cycle.
        """

        config = self.load(tenant_id)
        self._save(
            tenant_id,
            replace(config, primary_records={}, override_records={}, temporarily_blocked_broadcasters={}),
        )
        return WatchResult(WatchOutcome.STREAM_DATA_CLEARED)

    # Categories

    async def follow_category(self, tenant_id: str, name: str) -> WatchResult:
        category = await self._platform.lookup_category(name)
        if category is None:
            return WatchResult(WatchOutcome.NOT_FOUND)
        config = self.load(tenant_id)
        # The platform's canonical name is stored, since lookups also accept
        # alternative spellings.
        if category.name in config.followed_categories:
            return WatchResult(WatchOutcome.ALREADY_FOLLOWED, category)
        followed = {**config.followed_categories, category.name: category.id}
        self._save(tenant_id, replace(config, followed_categories=followed))
        return WatchResult(WatchOutcome.FOLLOWED, category)

    def unfollow_category(self, tenant_id: str, name: str) -> WatchResult:
        config = self.load(tenant_id)
        if name not in config.followed_categories:
            return WatchResult(WatchOutcome.NOT_FOLLOWED)
        self._save(tenant_id, replace(config, followed_categories=_without(config.followed_categories, name)))
        return WatchResult(WatchOutcome.UNFOLLOWED)

    def list_followed_categories(self, tenant_id: str) -> list[str]:
        return list(self.load(tenant_id).followed_categories)

    # Broadcasters

    async def follow_broadcaster(self, tenant_id: str, name: str) -> WatchResult:
        broadcaster = await self._platform.lookup_broadcaster(name)
        if broadcaster is None:
            return WatchResult(WatchOutcome.NOT_FOUND)
        config = self.load(tenant_id)
        key = broadcaster.name.lower()
        if key in config.followed_broadcasters:
            return WatchResult(WatchOutcome.ALREADY_FOLLOWED, broadcaster)
        followed = {**config.followed_broadcasters, key: broadcaster.id}
        self._save(tenant_id, replace(config, followed_broadcasters=followed))
        return WatchResult(WatchOutcome.FOLLOWED, broadcaster)

    def unfollow_broadcaster(self, tenant_id: str, name: str) -> WatchResult:
        key = name.strip().lower()
        config = self.load(tenant_id)
        if key not in config.followed_broadcasters:
            return WatchResult(WatchOutcome.NOT_FOLLOWED)
        self._save(tenant_id, replace(config, followed_broadcasters=_without(config.followed_broadcasters, key)))
        return WatchResult(WatchOutcome.UNFOLLOWED)

    def list_followed_broadcasters(self, tenant_id: str) -> list[str]:
        return list(self.load(tenant_id).followed_broadcasters)

    async def block_broadcaster(self, tenant_id: str, name: str) -> WatchResult:
        broadcaster = await self._platform.lookup_broadcaster(name)
        if broadcaster is None:
            return WatchResult(WatchOutcome.NOT_FOUND)
        config = self.load(tenant_id)
        key = broadcaster.name.lower()
        if key in config.blocked_broadcasters:
            return WatchResult(WatchOutcome.ALREADY_BLOCKED, broadcaster)
        blocked = {**config.blocked_broadcasters, key: broadcaster.id}
        self._save(tenant_id, replace(config, blocked_broadcasters=blocked))
        return WatchResult(WatchOutcome.BLOCKED, broadcaster)

    def unblock_broadcaster(self, tenant_id: str, name: str) -> WatchResult:
        """Remove a broadcaster from both the permanent and temporary block lists."""

        key = name.strip().lower()
        config = self.load(tenant_id)
        blocked = config.blocked_broadcasters
        temporary = config.temporarily_blocked_broadcasters
        if key not in blocked and key not in temporary:
            return WatchResult(WatchOutcome.NOT_BLOCKED)
        self._save(
            tenant_id,
            replace(
                config,
                blocked_broadcasters=_without(blocked, key),
                temporarily_blocked_broadcasters=_without(temporary, key),
            ),
        )
        return WatchResult(WatchOutcome.UNBLOCKED)

    def list_blocked(self, tenant_id: str) -> list[str]:
        config = self.load(tenant_id)
        return [*config.blocked_broadcasters, *config.temporarily_blocked_broadcasters]

    # Keywords

    def get_keywords(self, tenant_id: str) -> tuple[str, ...]:
        return self.load(tenant_id).required_keywords

    def set_keywords(self, tenant_id: str, keywords: Iterable[str]) -> WatchResult:
        config = self.load(tenant_id)
        self._save(tenant_id, replace(config, required_keywords=normalize_keywords(keywords)))
        return WatchResult(WatchOutcome.KEYWORDS_SET)

    def add_keyword(self, tenant_id: str, keyword: str) -> WatchResult:
        keyword = keyword.strip()
        if not keyword:
            return WatchResult(WatchOutcome.KEYWORD_EMPTY)
        config = self.load(tenant_id)
        if keyword in config.required_keywords:
            return WatchResult(WatchOutcome.KEYWORD_EXISTS)
        self._save(tenant_id, replace(config, required_keywords=(*config.required_keywords, keyword)))
        return WatchResult(WatchOutcome.KEYWORD_ADDED)

    def remove_keyword(self, tenant_id: str, keyword: str) -> WatchResult:
        keyword = keyword.strip()
        if not keyword:
            return WatchResult(WatchOutcome.KEYWORD_EMPTY)
        config = self.load(tenant_id)
        if keyword not in config.required_keywords:
            return WatchResult(WatchOutcome.KEYWORD_MISSING)
        remaining = tuple(existing for existing in config.required_keywords if existing != keyword)
        self._save(tenant_id, replace(config, required_keywords=remaining))
        return WatchResult(WatchOutcome.KEYWORD_REMOVED)

    def clear_keywords(self, tenant_id: str) -> WatchResult:
        return self.set_keywords(tenant_id, ())

    # Overrides

    def track_override(self, tenant_id: str, record: MessageRecord) -> None:
        """Track an override announcement so it is edited and removed with its stream."""

        config = self.load(tenant_id)
        existing = config.override_records.get(record.broadcaster_id, ())
        overrides = {**config.override_records, record.broadcaster_id: (*existing, record)}
        self._save(tenant_id, replace(config, override_records=overrides))

    async def post_override(
        self,
        tenant_id: str,
        channel_id: str,
        reference: str,
        do_not_delete: bool = False,
    ) -> WatchResult:
        """Announce one live broadcaster in any channel, outside the follow rules.

        With ``do_not_delete`` the message is posted but not tracked, so it
        stays after the stream ends.
        """

        if self._messaging is None:
            raise RuntimeError("post_override requires a messaging adapter")

        login = parse_stream_reference(reference)
        if login is None:
            return WatchResult(WatchOutcome.INVALID_REFERENCE)
        broadcaster = await self._platform.lookup_broadcaster(login)
        if broadcaster is None:
            return WatchResult(WatchOutcome.NOT_FOUND)
        live = await self._platform.query_live_by_broadcaster_ids([broadcaster.id])
        if not live:
            return WatchResult(WatchOutcome.STREAM_OFFLINE, broadcaster)

        broadcast = live[0]
        message_id = await self._messaging.send(channel_id, broadcast)
        if not do_not_delete:
            self.track_override(
                tenant_id,
                MessageRecord(
                    broadcaster_id=broadcast.broadcaster_id,
                    channel_id=channel_id,
                    message_id=message_id,
                    title=broadcast.title,
                    category_id=broadcast.category_id,
                ),
            )
        LOGGER.info("Posted override for %s in %s (tracked=%s)", login, channel_id, not do_not_delete)
        return WatchResult(WatchOutcome.POSTED, broadcaster, message_id)
