"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for storage, platform and messaging
adapters so that the core can be reused with different backends.
"""

from __future__ import annotations

import enum
from typing import Optional, Protocol, Sequence

from core.models import EntityRef, LiveBroadcastInfo, TenantWatchConfig


class EditOutcome(enum.Enum):
    """Result of editing a posted announcement."""

    EDITED = "edited"
    NOT_FOUND = "not_found"


class ConfigStorePort(Protocol):
    """Per-tenant config storage required by the core pipeline."""

    def get(self, tenant_id: str) -> Optional[TenantWatchConfig]:
        ...

    def set(self, tenant_id: str, config: TenantWatchConfig) -> None:
        ...


class BroadcastPlatformPort(Protocol):
    """Live broadcast lookups against the streaming platform."""

    async def query_live_by_broadcaster_ids(self, ids: Sequence[str]) -> list[LiveBroadcastInfo]:
        ...

    async def query_live_by_category_ids(self, ids: Sequence[str]) -> list[LiveBroadcastInfo]:
        ...

    async def lookup_broadcaster(self, name: str) -> Optional[EntityRef]:
        ...

    async def lookup_category(self, name: str) -> Optional[EntityRef]:
        ...


class MessagingPort(Protocol):
    """Announcement operations on the messaging surface.

    ``send`` and ``bulk_delete`` raise ``MessagingSurfaceNotFound`` when the
    channel (or, for single-id deletes, the message) is gone.
    """

    async def send(self, channel_id: str, broadcast: LiveBroadcastInfo) -> str:
        ...

    async def edit(self, channel_id: str, message_id: str, broadcast: LiveBroadcastInfo) -> EditOutcome:
        ...

    async def bulk_delete(self, channel_id: str, message_ids: Sequence[str]) -> None:
        ...
