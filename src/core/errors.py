"""Typed errors raised across the core and translated to by adapters."""

from __future__ import annotations

from typing import Iterable


class LiveWatchError(Exception):
    """Base class for livewatch errors."""


class UpstreamQueryFailure(LiveWatchError):
    """A batched platform query failed after its retries were exhausted."""

    def __init__(self, kind: str, ids: Iterable[str], message: str = "") -> None:
        self.kind = kind
        self.ids = tuple(ids)
        detail = message or "upstream query failed"
        super().__init__(f"{detail} ({kind}, {len(self.ids)} ids)")


class IdLimitExceeded(LiveWatchError, ValueError):
    """More ids were requested in one cycle than the safety ceiling allows."""


class MessagingSurfaceNotFound(LiveWatchError):
    """The target message or channel no longer exists on the messaging surface."""


class ConfigLoadFailure(LiveWatchError):
    """A stored tenant config could not be read or decoded."""


class ConfigPersistFailure(LiveWatchError):
    """A tenant config could not be written back to the store."""
