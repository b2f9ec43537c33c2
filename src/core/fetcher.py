"""Batched live-broadcast snapshot fetching (core domain).

The platform limits how many ids fit in one request, so id sets are split
into chunks and each chunk is queried (and retried) on its own. A chunk that
keeps failing only degrades the ids it contained; the rest of the snapshot
is still usable.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Sequence

from core.cache import AsyncCache
from core.config import FetchConfig
from core.errors import IdLimitExceeded, UpstreamQueryFailure
from core.models import LiveBroadcastInfo, Snapshot
from core.ports import BroadcastPlatformPort

LOGGER = logging.getLogger(__name__)

BROADCASTER = "broadcaster"
CATEGORY = "category"


def chunked(items: Sequence[str], size: int) -> Iterator[List[str]]:
    """Yield consecutive slices of at most ``size`` items."""

    if size < 1:
        raise ValueError(f"Chunk size must be positive, got {size}")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


@dataclass(frozen=True)
class FetchResult:
    """Snapshot plus the ids whose chunk could not be queried this cycle."""

    snapshot: Snapshot
    failed_broadcaster_ids: frozenset[str] = frozenset()
    failed_category_ids: frozenset[str] = frozenset()

    @property
    def degraded(self) -> bool:
        return bool(self.failed_broadcaster_ids or self.failed_category_ids)

    def unknown_broadcaster_ids(self, broadcaster_ids: Iterable[str]) -> frozenset[str]:
        """Return the given ids whose liveness was not observed this cycle."""

        return frozenset(broadcaster_ids) & self.failed_broadcaster_ids


class SnapshotFetcher:
    """Query live broadcasts for many ids using as few requests as possible."""

    def __init__(self, platform: BroadcastPlatformPort, config: Optional[FetchConfig] = None) -> None:
        self._platform = platform
        self._config = config or FetchConfig()

    async def fetch(
        self,
        broadcaster_ids: Iterable[str],
        category_ids: Iterable[str],
        cache: Optional[AsyncCache] = None,
    ) -> FetchResult:
        """Build this cycle's snapshot.

        Categories are queried first; broadcasters already seen live through
        a category are not queried again by id. Broadcaster-id results win
        over category results when both describe the same broadcaster.

        ``cache`` memoises whole chunk queries. A single call never repeats a
        chunk, so it only saves requests when the caller shares one cache
        across several ``fetch`` calls.
        """

        broadcaster_list = sorted(set(broadcaster_ids))
        category_list = sorted(set(category_ids))
        self._check_limit(BROADCASTER, broadcaster_list)
        self._check_limit(CATEGORY, category_list)
        if cache is None:
            cache = AsyncCache()

        category_results, failed_categories = await self._query_all(CATEGORY, category_list, cache)

        seen_live = {broadcast.broadcaster_id for broadcast in category_results}
        remaining = [broadcaster_id for broadcaster_id in broadcaster_list if broadcaster_id not in seen_live]
        broadcaster_results, failed_broadcasters = await self._query_all(BROADCASTER, remaining, cache)

        snapshot = Snapshot.from_broadcasts([*category_results, *broadcaster_results])
        LOGGER.debug(
            "Fetched snapshot: %s live broadcasters across %s categories",
            len(snapshot.by_broadcaster),
            len(snapshot.by_category),
        )
        return FetchResult(
            snapshot=snapshot,
            failed_broadcaster_ids=frozenset(failed_broadcasters),
            failed_category_ids=frozenset(failed_categories),
        )

    def _check_limit(self, kind: str, ids: Sequence[str]) -> None:
        if len(ids) > self._config.max_ids:
            raise IdLimitExceeded(
                f"The number of {kind} ids ({len(ids)}) exceeds the safety limit {self._config.max_ids}"
            )

    async def _query_all(
        self, kind: str, ids: Sequence[str], cache: AsyncCache
    ) -> tuple[list[LiveBroadcastInfo], set[str]]:
        results: list[LiveBroadcastInfo] = []
        failed: set[str] = set()
        for chunk in chunked(ids, self._config.batch_size):
            try:
                results.extend(await cache.fetch((kind, tuple(chunk)), lambda c=chunk: self._query_chunk(kind, c)))
            except UpstreamQueryFailure as exc:
                LOGGER.warning("Skipping %s ids this cycle: %s", len(chunk), exc)
                failed.update(chunk)
        return results, failed

    async def _query_chunk(self, kind: str, chunk: List[str]) -> list[LiveBroadcastInfo]:
        if kind == CATEGORY:
            query = self._platform.query_live_by_category_ids
        else:
            query = self._platform.query_live_by_broadcaster_ids

        attempts = max(1, self._config.retry_attempts)
        last_error: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            try:
                return list(await query(chunk))
            except Exception as exc:  # noqa: BLE001
                last_error = exc
                LOGGER.warning(
                    "Request for streams by %s failed attempt %s/%s: %r",
                    kind,
                    attempt,
                    attempts,
                    exc,
                )
                if attempt < attempts:
                    await asyncio.sleep(self._config.retry_delay_seconds)
        raise UpstreamQueryFailure(kind, chunk, f"query failed after {attempts} attempts") from last_error
