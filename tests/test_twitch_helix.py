from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from adapters.twitch_helix import MAX_PAGE_SIZE, TwitchHelixClient, broadcast_from_helix


def test_broadcast_from_helix_maps_stream_fields() -> None:
    broadcast = broadcast_from_helix(
        {
            "id": "40952121085",
            "user_id": "101051819",
            "user_login": "afro",
            "user_name": "Afro",
            "game_id": "32982",
            "game_name": "Grand Theft Auto V",
            "type": "live",
            "title": "Jacob: Digital Den Laptops & Tablets",
            "started_at": "2021-03-10T03:18:11Z",
            "thumbnail_url": "https://static-cdn.jtvnw.net/previews-ttv/live_user_afro-{width}x{height}.jpg",
        }
    )
    assert broadcast.broadcast_id == "40952121085"
    assert broadcast.broadcaster_id == "101051819"
    assert broadcast.category_id == "32982"
    assert broadcast.started_at == datetime(2021, 3, 10, 3, 18, 11, tzinfo=timezone.utc)
    assert broadcast.display.category_name == "Grand Theft Auto V"
    assert broadcast.login == "afro"


def test_broadcast_from_helix_tolerates_missing_optional_fields() -> None:
    broadcast = broadcast_from_helix({"id": "1", "user_id": "2", "game_id": "", "title": None})
    assert broadcast.category_id == ""
    assert broadcast.title == ""
    assert broadcast.started_at is None
    assert broadcast.login == "2"


def test_live_queries_validate_batch_size_before_any_request() -> None:
    client = TwitchHelixClient(client_id="id", app_token="token")
    assert asyncio.run(client.query_live_by_broadcaster_ids([])) == []
    with pytest.raises(ValueError):
        asyncio.run(client.query_live_by_category_ids([str(i) for i in range(MAX_PAGE_SIZE + 1)]))
