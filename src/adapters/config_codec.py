"""JSON document codec for tenant watch configs.

The stored shape is a flat, human-readable document so configs can be
inspected and edited by hand when debugging.
"""

from __future__ import annotations

from typing import Any, Mapping

from core.errors import ConfigLoadFailure
from core.models import MessageRecord, TenantWatchConfig

SCHEMA_VERSION = 1


def _record_to_dict(record: MessageRecord) -> dict[str, str]:
    return {
        "channel": record.channel_id,
        "message": record.message_id,
        "title": record.title,
        "category_id": record.category_id,
    }


def _record_from_dict(broadcaster_id: str, raw: Mapping[str, Any]) -> MessageRecord:
    return MessageRecord(
        broadcaster_id=broadcaster_id,
        channel_id=str(raw["channel"]),
        message_id=str(raw["message"]),
        title=str(raw.get("title", "")),
        category_id=str(raw.get("category_id", "")),
    )


def _str_map(raw: Any, field_name: str) -> dict[str, str]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigLoadFailure(f"{field_name} must be an object")
    return {str(name): str(value) for name, value in raw.items()}


def config_to_dict(config: TenantWatchConfig) -> dict[str, Any]:
    """Serialise a config to a JSON-compatible dict."""

    payload: dict[str, Any] = {
        "version": SCHEMA_VERSION,
        "followed_broadcasters": dict(config.followed_broadcasters),
        "followed_categories": dict(config.followed_categories),
        "keywords": list(config.required_keywords),
        "blocked_broadcasters": dict(config.blocked_broadcasters),
        "temporarily_blocked_broadcasters": dict(config.temporarily_blocked_broadcasters),
        "primary_messages": {
            broadcaster_id: _record_to_dict(record) for broadcaster_id, record in config.primary_records.items()
        },
        "override_messages": {
            broadcaster_id: [_record_to_dict(record) for record in records]
            for broadcaster_id, records in config.override_records.items()
        },
    }
    if config.primary_channel_id is not None:
        payload["primary_channel"] = config.primary_channel_id
    return payload


def config_from_dict(raw: Any) -> TenantWatchConfig:
    """Deserialise a stored document, raising ConfigLoadFailure on bad shapes."""

    if not isinstance(raw, dict):
        raise ConfigLoadFailure("Config document must be a JSON object")
    version = raw.get("version", SCHEMA_VERSION)
    if version != SCHEMA_VERSION:
        raise ConfigLoadFailure(f"Unsupported config version {version} (expected {SCHEMA_VERSION})")

    try:
        primary_raw = raw.get("primary_messages") or {}
        override_raw = raw.get("override_messages") or {}
        primary_records = {
            str(broadcaster_id): _record_from_dict(str(broadcaster_id), record)
            for broadcaster_id, record in primary_raw.items()
        }
        override_records = {
            str(broadcaster_id): tuple(_record_from_dict(str(broadcaster_id), record) for record in records)
            for broadcaster_id, records in override_raw.items()
            if records
        }
        keywords = raw.get("keywords") or []
        if not isinstance(keywords, list):
            raise ConfigLoadFailure("keywords must be a list")
        channel = raw.get("primary_channel")
        return TenantWatchConfig(
            primary_channel_id=str(channel) if channel is not None else None,
            followed_broadcasters=_str_map(raw.get("followed_broadcasters"), "followed_broadcasters"),
            followed_categories=_str_map(raw.get("followed_categories"), "followed_categories"),
            required_keywords=tuple(str(keyword) for keyword in keywords),
            blocked_broadcasters=_str_map(raw.get("blocked_broadcasters"), "blocked_broadcasters"),
            temporarily_blocked_broadcasters=_str_map(
                raw.get("temporarily_blocked_broadcasters"), "temporarily_blocked_broadcasters"
            ),
            primary_records=primary_records,
            override_records=override_records,
        )
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise ConfigLoadFailure(f"Malformed config document: {exc!r}") from exc

