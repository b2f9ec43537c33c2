from __future__ import annotations

from core.interests import collect_interests, tenant_broadcaster_interest
from core.models import MessageRecord, Snapshot, TenantWatchConfig

from fakes import live


def _record(broadcaster_id: str, channel_id: str = "chan") -> MessageRecord:
    return MessageRecord(broadcaster_id, channel_id, f"m{broadcaster_id}", "title", "cat")


def test_interests_are_deduplicated_across_tenants() -> None:
    configs = {
        "g1": TenantWatchConfig(followed_broadcasters={"a": "1", "b": "2"}, followed_categories={"Chess": "c1"}),
        "g2": TenantWatchConfig(followed_broadcasters={"b": "2"}, followed_categories={"Chess": "c1", "Art": "c2"}),
    }
    interests = collect_interests(configs)
    assert interests.broadcaster_ids == {"1", "2"}
    assert interests.category_ids == {"c1", "c2"}
    assert interests.tenant_broadcaster_ids["g2"] == {"2"}
    assert interests.tenant_category_ids["g1"] == {"c1"}


def test_absent_config_counts_as_empty() -> None:
    interests = collect_interests({"g1": None})
    assert interests.broadcaster_ids == frozenset()
    assert interests.category_ids == frozenset()
    assert interests.tenant_broadcaster_ids == {"g1": frozenset()}


def test_tracked_records_and_temporary_blocks_are_queried() -> None:
    config = TenantWatchConfig(
        primary_records={"5": _record("5")},
        override_records={"6": (_record("6", "other"),)},
        temporarily_blocked_broadcasters={"seven": "7"},
    )
    assert tenant_broadcaster_interest(config) == {"5", "6", "7"}


def test_snapshot_later_entries_win() -> None:
    from_category = live("1", category_id="c1", title="old")
    from_id = live("1", category_id="c2", title="new")
    snapshot = Snapshot.from_broadcasts([from_category, from_id])
    assert snapshot.get("1") is from_id
    assert "c1" not in snapshot.by_category
    assert snapshot.by_category["c2"] == (from_id,)
