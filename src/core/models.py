"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types. They are frozen; changes are made
with ``dataclasses.replace`` so every cycle works on explicit values.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple


@dataclass(frozen=True)
class DisplayMetadata:
    """Presentation-only fields carried alongside a live broadcast."""

    user_login: str = ""
    user_display_name: str = ""
    category_name: str = ""
    thumbnail_url: str = ""


@dataclass(frozen=True)
class LiveBroadcastInfo:
    """One currently-live broadcast as seen by the platform this cycle."""

    broadcast_id: str
    broadcaster_id: str
    category_id: str
    title: str
    started_at: Optional[datetime] = None
    display: DisplayMetadata = field(default_factory=DisplayMetadata)

    @property
    def login(self) -> str:
        # The login is the stable, lower-case key used in name->id maps.
        return (self.display.user_login or self.broadcaster_id).lower()


@dataclass(frozen=True)
class Snapshot:
    """Read-only view of live broadcasts for one polling cycle."""

    by_broadcaster: Mapping[str, LiveBroadcastInfo]
    by_category: Mapping[str, Tuple[LiveBroadcastInfo, ...]]

    @classmethod
    def from_broadcasts(cls, broadcasts: Iterable[LiveBroadcastInfo]) -> "Snapshot":
        """Build a snapshot where each broadcaster has a single canonical entry.

        Later entries for the same broadcaster replace earlier ones, so callers
        pass lower-precedence results first.
        """

        by_broadcaster: dict[str, LiveBroadcastInfo] = {}
        for broadcast in broadcasts:
            by_broadcaster[broadcast.broadcaster_id] = broadcast

        by_category: dict[str, list[LiveBroadcastInfo]] = {}
        for broadcast in by_broadcaster.values():
            by_category.setdefault(broadcast.category_id, []).append(broadcast)

        return cls(
            by_broadcaster=MappingProxyType(by_broadcaster),
            by_category=MappingProxyType(
                {category_id: tuple(items) for category_id, items in by_category.items()}
            ),
        )

    @classmethod
    def empty(cls) -> "Snapshot":
        return cls.from_broadcasts(())

    def is_live(self, broadcaster_id: str) -> bool:
        return broadcaster_id in self.by_broadcaster

    def get(self, broadcaster_id: str) -> Optional[LiveBroadcastInfo]:
        return self.by_broadcaster.get(broadcaster_id)


@dataclass(frozen=True)
class MessageRecord:
    """A message believed to be live in some channel for one broadcaster."""

    broadcaster_id: str
    channel_id: str
    message_id: str
    title: str
    category_id: str

    def is_stale(self, broadcast: LiveBroadcastInfo) -> bool:
        """Return True when the posted content no longer matches the broadcast."""

        return self.title != broadcast.title or self.category_id != broadcast.category_id

    def refreshed(self, broadcast: LiveBroadcastInfo) -> "MessageRecord":
        return replace(self, title=broadcast.title, category_id=broadcast.category_id)


@dataclass(frozen=True)
class EntityRef:
    """A platform entity (broadcaster or category) resolved from a name."""

    id: str
    name: str
    display_name: str = ""


@dataclass(frozen=True)
class TenantWatchConfig:
    """Per-tenant watch rules plus the message records posted for it.

    ``primary_records`` is keyed by broadcaster id, which keeps at most one
    primary-channel record per broadcaster.
    """

    primary_channel_id: Optional[str] = None
    followed_broadcasters: Mapping[str, str] = field(default_factory=dict)
    followed_categories: Mapping[str, str] = field(default_factory=dict)
    required_keywords: Tuple[str, ...] = ()
    blocked_broadcasters: Mapping[str, str] = field(default_factory=dict)
    temporarily_blocked_broadcasters: Mapping[str, str] = field(default_factory=dict)
    primary_records: Mapping[str, MessageRecord] = field(default_factory=dict)
    override_records: Mapping[str, Tuple[MessageRecord, ...]] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "TenantWatchConfig":
        return cls()

    @property
    def followed_broadcaster_ids(self) -> frozenset[str]:
        return frozenset(self.followed_broadcasters.values())

    @property
    def followed_category_ids(self) -> frozenset[str]:
        return frozenset(self.followed_categories.values())

    @property
    def blocked_ids(self) -> frozenset[str]:
        return frozenset(self.blocked_broadcasters.values())

    @property
    def temporarily_blocked_ids(self) -> frozenset[str]:
        return frozenset(self.temporarily_blocked_broadcasters.values())

    def has_override_in(self, broadcaster_id: str, channel_id: Optional[str]) -> bool:
        """Return True if an override for this broadcaster was posted in the channel."""

        if channel_id is None:
            return False
        return any(
            record.channel_id == channel_id
            for record in self.override_records.get(broadcaster_id, ())
        )
