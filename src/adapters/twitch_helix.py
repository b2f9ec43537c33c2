"""Twitch Helix platform adapter.

Implements the core BroadcastPlatformPort over the Helix REST API using
aiohttp. Token acquisition is outside this adapter: it is handed a ready
app access token.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

import aiohttp

from core.errors import UpstreamQueryFailure
from core.models import DisplayMetadata, EntityRef, LiveBroadcastInfo

LOGGER = logging.getLogger(__name__)

HELIX_BASE_URL = "https://api.twitch.tv/helix"
# Helix accepts at most 100 ids per filter and 100 results per page.
MAX_PAGE_SIZE = 100
# Bound on pages per query, in case a cursor never terminates.
MAX_PAGES = 50


def broadcast_from_helix(raw: Mapping[str, Any]) -> LiveBroadcastInfo:
    """Map one Helix ``/streams`` item to a LiveBroadcastInfo."""

    started_at = None
    started_raw = raw.get("started_at")
    if started_raw:
        started_at = datetime.fromisoformat(str(started_raw).replace("Z", "+00:00"))
    return LiveBroadcastInfo(
        broadcast_id=str(raw["id"]),
        broadcaster_id=str(raw["user_id"]),
        category_id=str(raw.get("game_id") or ""),
        title=str(raw.get("title") or ""),
        started_at=started_at,
        display=DisplayMetadata(
            user_login=str(raw.get("user_login") or ""),
            user_display_name=str(raw.get("user_name") or ""),
            category_name=str(raw.get("game_name") or ""),
            thumbnail_url=str(raw.get("thumbnail_url") or ""),
        ),
    )


class TwitchHelixClient:
    """Live stream and name lookups against Twitch Helix."""

    def __init__(
        self,
        client_id: str,
        app_token: str,
        base_url: str = HELIX_BASE_URL,
        timeout_seconds: float = 15.0,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._client_id = client_id
        self._app_token = app_token
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session = session

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                headers={
                    "Client-Id": self._client_id,
                    "Authorization": f"Bearer {self._app_token}",
                },
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def _get(self, path: str, params: list[tuple[str, str]], kind: str, ids: Sequence[str]) -> dict:
        session = await self._ensure_session()
        url = f"{self._base_url}{path}"
        try:
            async with session.get(url, params=params) as resp:
                if resp.status != 200:
                    body = await resp.text()
                    raise UpstreamQueryFailure(kind, ids, f"Helix {path} returned {resp.status}: {body[:200]}")
                return await resp.json()
        except aiohttp.ClientError as exc:
            raise UpstreamQueryFailure(kind, ids, f"Helix {path} request failed: {exc!r}") from exc
        except asyncio.TimeoutError as exc:
            raise UpstreamQueryFailure(kind, ids, f"Helix {path} timed out") from exc

    async def _live_streams(self, filter_name: str, ids: Sequence[str], kind: str) -> list[LiveBroadcastInfo]:
        if not ids:
            return []
        if len(ids) > MAX_PAGE_SIZE:
            raise ValueError(f"At most {MAX_PAGE_SIZE} ids per request, got {len(ids)}")

        base_params = [(filter_name, value) for value in ids]
        base_params += [("type", "live"), ("first", str(MAX_PAGE_SIZE))]
        results: list[LiveBroadcastInfo] = []
        cursor: Optional[str] = None
        for _ in range(MAX_PAGES):
            params = list(base_params)
            if cursor:
                params.append(("after", cursor))
            payload = await self._get("/streams", params, kind, ids)
            results.extend(broadcast_from_helix(item) for item in payload.get("data") or [])
            cursor = (payload.get("pagination") or {}).get("cursor")
            if not cursor:
                break
        else:
            LOGGER.warning("Stopped paging /streams by %s after %s pages", filter_name, MAX_PAGES)
        return results

    async def query_live_by_broadcaster_ids(self, ids: Sequence[str]) -> list[LiveBroadcastInfo]:
        return await self._live_streams("user_id", ids, "broadcaster")

    async def query_live_by_category_ids(self, ids: Sequence[str]) -> list[LiveBroadcastInfo]:
        return await self._live_streams("game_id", ids, "category")

    async def lookup_broadcaster(self, name: str) -> Optional[EntityRef]:
        """Resolve a login (case-insensitive) to a broadcaster id."""

        login = name.strip().lower()
        payload = await self._get("/users", [("login", login)], "broadcaster", [login])
        items = payload.get("data") or []
        if not items:
            return None
        user = items[0]
        return EntityRef(id=str(user["id"]), name=str(user["login"]), display_name=str(user.get("display_name") or ""))

    async def lookup_category(self, name: str) -> Optional[EntityRef]:
        """Resolve a category name to its id and canonical platform name."""

        payload = await self._get("/games", [("name", name.strip())], "category", [name])
        items = payload.get("data") or []
        if not items:
            return None
        game = items[0]
        return EntityRef(id=str(game["id"]), name=str(game["name"]), display_name=str(game["name"]))
