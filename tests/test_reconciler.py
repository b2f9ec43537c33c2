from __future__ import annotations

from core.models import MessageRecord, Snapshot, TenantWatchConfig
from core.reconciler import CreateAction, reconcile

from fakes import live


def _record(broadcaster_id: str, channel_id: str = "chan", message_id: str = "", title: str = "Streaming") -> MessageRecord:
    return MessageRecord(broadcaster_id, channel_id, message_id or f"m{broadcaster_id}", title, "cat")


def test_new_live_broadcaster_gets_an_announcement() -> None:
    config = TenantWatchConfig(primary_channel_id="chan", followed_broadcasters={"alice": "1"})
    broadcast = live("1")
    plan = reconcile(config, Snapshot.from_broadcasts([broadcast]))
    assert plan.creates == (CreateAction(channel_id="chan", broadcast=broadcast),)
    assert not plan.deletes and not plan.updates


def test_no_announcements_without_a_primary_channel() -> None:
    config = TenantWatchConfig(
        followed_broadcasters={"alice": "1"},
        primary_records={"2": _record("2")},
    )
    plan = reconcile(config, Snapshot.from_broadcasts([live("1")]))
    assert plan.creates == ()
    # Records left from an earlier channel are still cleaned up.
    assert [delete.message_ids for delete in plan.deletes] == [("m2",)]


def test_override_in_primary_channel_prevents_duplicate() -> None:
    config = TenantWatchConfig(
        primary_channel_id="chan",
        followed_broadcasters={"alice": "1"},
        override_records={"1": (_record("1", "chan", "o1"),)},
    )
    plan = reconcile(config, Snapshot.from_broadcasts([live("1")]))
    assert plan.is_empty()


def test_changed_title_updates_in_place() -> None:
    config = TenantWatchConfig(
        primary_channel_id="chan",
        followed_broadcasters={"alice": "1"},
        primary_records={"1": _record("1", title="Hello")},
    )
    plan = reconcile(config, Snapshot.from_broadcasts([live("1", title="Hello again")]))
    assert len(plan) == 1
    update = plan.updates[0]
    assert update.primary
    assert update.broadcast.title == "Hello again"

    unchanged = reconcile(config, Snapshot.from_broadcasts([live("1", title="Hello")]))
    assert unchanged.is_empty()


def test_offline_and_unfollowed_records_are_deleted_grouped_by_channel() -> None:
    config = TenantWatchConfig(
        primary_channel_id="chan",
        followed_broadcasters={"alice": "1"},
        primary_records={"1": _record("1", message_id="m9"), "2": _record("2", message_id="m3")},
        override_records={"1": (_record("1", "other", "o1"), _record("1", "chan", "o2"))},
    )
    # 1 went offline, 2 is live but nobody follows it any more.
    plan = reconcile(config, Snapshot.from_broadcasts([live("2")]))
    assert [(delete.channel_id, delete.message_ids) for delete in plan.deletes] == [
        ("chan", ("m3", "m9", "o2")),
        ("other", ("o1",)),
    ]
    assert plan.creates == ()


def test_overrides_follow_liveness_and_permanent_blocks_only() -> None:
    override = _record("1", "other", "o1", title="old")
    config = TenantWatchConfig(
        override_records={"1": (override,)},
        temporarily_blocked_broadcasters={"alice": "1"},
    )
    plan = reconcile(config, Snapshot.from_broadcasts([live("1", title="new")]))
    assert plan.deletes == ()
    assert [update.record for update in plan.updates] == [override]
    assert not plan.updates[0].primary

    blocked = TenantWatchConfig(override_records={"1": (override,)}, blocked_broadcasters={"alice": "1"})
    plan = reconcile(blocked, Snapshot.from_broadcasts([live("1", title="new")]))
    assert [delete.message_ids for delete in plan.deletes] == [("o1",)]


def test_unobserved_broadcasters_are_left_untouched() -> None:
    config = TenantWatchConfig(
        primary_channel_id="chan",
        followed_broadcasters={"alice": "1"},
        primary_records={"1": _record("1")},
        override_records={"1": (_record("1", "other", "o1"),)},
    )
    plan = reconcile(config, Snapshot.empty(), skip_broadcaster_ids=frozenset({"1"}))
    assert plan.is_empty()


def test_reconcile_is_deterministic() -> None:
    config = TenantWatchConfig(
        primary_channel_id="chan",
        followed_broadcasters={"a": "1", "b": "2", "c": "3"},
        primary_records={"4": _record("4")},
    )
    snapshot = Snapshot.from_broadcasts([live("3"), live("1"), live("2")])
    first = reconcile(config, snapshot)
    assert first == reconcile(config, snapshot)
    assert [create.broadcaster_id for create in first.creates] == ["1", "2", "3"]
