from __future__ import annotations

import sqlite3

import pytest

from adapters.config_codec import SCHEMA_VERSION, config_from_dict, config_to_dict
from adapters.sqlite_config_store import SQLiteConfigStore
from core.errors import ConfigLoadFailure
from core.models import MessageRecord, TenantWatchConfig


def _store(tmp_path) -> SQLiteConfigStore:
    store = SQLiteConfigStore(str(tmp_path / "livewatch.db"))
    store.init_db()
    return store


def test_config_survives_a_round_trip(tmp_path) -> None:
    store = _store(tmp_path)
    record = MessageRecord("100", "chan", "m1", "Hello", "c1")
    override = MessageRecord("100", "other", "o1", "Hello", "c1")
    config = TenantWatchConfig(
        primary_channel_id="chan",
        followed_broadcasters={"alice": "100"},
        followed_categories={"Chess": "c1"},
        required_keywords=("chili", "any%"),
        blocked_broadcasters={"bob": "200"},
        temporarily_blocked_broadcasters={"carol": "300"},
        primary_records={"100": record},
        override_records={"100": (override,)},
    )
    store.set("g1", config)
    assert store.get("g1") == config
    assert store.list_tenants() == {"g1"}


def test_missing_tenant_returns_none(tmp_path) -> None:
    assert _store(tmp_path).get("nobody") is None


def test_upsert_replaces_the_document(tmp_path) -> None:
    store = _store(tmp_path)
    store.set("g1", TenantWatchConfig(primary_channel_id="a"))
    store.set("g1", TenantWatchConfig())
    assert store.get("g1") == TenantWatchConfig()


def test_corrupt_payload_raises_load_failure(tmp_path) -> None:
    store = _store(tmp_path)
    with sqlite3.connect(str(tmp_path / "livewatch.db")) as conn:
        conn.execute(
            "INSERT INTO tenant_configs (tenant_id, payload, updated_at) VALUES (?, ?, ?)",
            ("g1", "{not json", "2024-01-01T00:00:00+00:00"),
        )
    with pytest.raises(ConfigLoadFailure):
        store.get("g1")


def test_codec_rejects_bad_documents() -> None:
    with pytest.raises(ConfigLoadFailure):
        config_from_dict(["not", "an", "object"])
    with pytest.raises(ConfigLoadFailure):
        config_from_dict({"version": SCHEMA_VERSION + 1})
    with pytest.raises(ConfigLoadFailure):
        config_from_dict({"followed_broadcasters": ["alice"]})
    with pytest.raises(ConfigLoadFailure):
        config_from_dict({"primary_messages": {"100": {"title": "no channel"}}})


def test_codec_defaults_and_unset_channel() -> None:
    assert config_from_dict({}) == TenantWatchConfig()
    assert "primary_channel" not in config_to_dict(TenantWatchConfig())
