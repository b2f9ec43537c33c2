from __future__ import annotations

import asyncio

from core.config import FetchConfig, PollingConfig
from core.engine import ReconciliationEngine
from core.models import MessageRecord, TenantWatchConfig

from fakes import BrokenMessenger, FakeMessenger, FakePlatform, MemoryStore, StallingMessenger, live

POLLING = PollingConfig(fetch=FetchConfig(retry_attempts=2, retry_delay_seconds=0))


def _engine(store, platform, messenger, polling=POLLING) -> ReconciliationEngine:
    return ReconciliationEngine(store, platform, messenger, polling)


def test_announcement_follows_a_stream_through_its_lifetime() -> None:
    store = MemoryStore({"g1": TenantWatchConfig(primary_channel_id="chan", followed_broadcasters={"alice": "100"})})
    platform = FakePlatform()
    messenger = FakeMessenger()
    engine = _engine(store, platform, messenger)

    platform.go_live(live("100", title="Hello", login="alice"))
    asyncio.run(engine.run_cycle(["g1"]))
    assert messenger.sent == [("chan", "100")]
    record = store.configs["g1"].primary_records["100"]
    assert record.title == "Hello"

    platform.go_live(live("100", title="Hello again", login="alice"))
    asyncio.run(engine.run_cycle(["g1"]))
    assert messenger.edited == [("chan", record.message_id)]
    assert messenger.in_channel("chan")[record.message_id].title == "Hello again"
    assert store.configs["g1"].primary_records["100"].title == "Hello again"

    platform.go_offline("100")
    asyncio.run(engine.run_cycle(["g1"]))
    assert messenger.deleted == [("chan", (record.message_id,))]
    assert messenger.messages == {}
    assert store.configs["g1"].primary_records == {}


def test_manually_deleted_announcement_is_not_reposted_until_next_stream() -> None:
    store = MemoryStore({"g1": TenantWatchConfig(primary_channel_id="chan", followed_broadcasters={"alice": "100"})})
    platform = FakePlatform()
    messenger = FakeMessenger()
    engine = _engine(store, platform, messenger)

    platform.go_live(live("100", title="Hello", login="alice"))
    asyncio.run(engine.run_cycle(["g1"]))
    message_id = store.configs["g1"].primary_records["100"].message_id
    messenger.remove("chan", message_id)

    # The deletion is noticed when the title changes and the edit fails.
    platform.go_live(live("100", title="Hello again", login="alice"))
    asyncio.run(engine.run_cycle(["g1"]))
    asyncio.run(engine.run_cycle(["g1"]))
    assert len(messenger.sent) == 1
    assert store.configs["g1"].temporarily_blocked_broadcasters == {"alice": "100"}

    platform.go_offline("100")
    asyncio.run(engine.run_cycle(["g1"]))
    assert store.configs["g1"].temporarily_blocked_broadcasters == {}

    platform.go_live(live("100", title="Back again", login="alice"))
    asyncio.run(engine.run_cycle(["g1"]))
    assert len(messenger.sent) == 2


def test_manually_deleted_override_in_primary_channel_is_not_replaced() -> None:
    override = MessageRecord("100", "chan", "o1", "Hello", "cat")
    store = MemoryStore(
        {
            "g1": TenantWatchConfig(
                primary_channel_id="chan",
                followed_broadcasters={"alice": "100"},
                override_records={"100": (override,)},
            )
        }
    )
    platform = FakePlatform()
    # The override was removed by a moderator before the title changed.
    messenger = FakeMessenger()
    engine = _engine(store, platform, messenger)

    platform.go_live(live("100", title="Hello again", login="alice"))
    asyncio.run(engine.run_cycle(["g1"]))
    asyncio.run(engine.run_cycle(["g1"]))
    assert messenger.sent == []
    config = store.configs["g1"]
    assert config.override_records == {}
    assert config.temporarily_blocked_broadcasters == {"alice": "100"}


def test_stalled_tenant_does_not_hold_up_the_others() -> None:
    store = MemoryStore(
        {
            "g1": TenantWatchConfig(primary_channel_id="c1", followed_broadcasters={"alice": "1"}),
            "g2": TenantWatchConfig(primary_channel_id="c2", followed_broadcasters={"bob": "2"}),
        }
    )
    platform = FakePlatform()
    platform.go_live(live("1"), live("2"))
    messenger = StallingMessenger(stalled_channels=["c1"])
    polling = PollingConfig(interval_seconds=0.05, fetch=FetchConfig(retry_delay_seconds=0))
    engine = _engine(store, platform, messenger, polling)

    first = asyncio.run(asyncio.wait_for(engine.run_cycle(["g1", "g2"]), timeout=5))
    assert "g1" in first.failed_tenants
    assert first.processed == ["g2"]
    assert "2" in store.configs["g2"].primary_records

    platform.go_offline("2")
    second = asyncio.run(asyncio.wait_for(engine.run_cycle(["g1", "g2"]), timeout=5))
    assert "g1" in second.failed_tenants
    assert store.configs["g2"].primary_records == {}
    assert messenger.in_channel("c2") == {}


def test_messages_sent_before_a_failure_are_still_recorded() -> None:
    store = MemoryStore(
        {"g1": TenantWatchConfig(primary_channel_id="chan", followed_broadcasters={"a": "1", "b": "2"})}
    )
    platform = FakePlatform()
    platform.go_live(live("1"), live("2"))
    messenger = BrokenMessenger(sends_before_failure=1)
    engine = _engine(store, platform, messenger)

    report = asyncio.run(engine.run_cycle(["g1"]))
    assert "g1" in report.failed_tenants
    assert list(store.configs["g1"].primary_records) == ["1"]

    # The next cycle only posts what is still missing.
    messenger.sends_left = 1
    asyncio.run(engine.run_cycle(["g1"]))
    assert messenger.sent == [("chan", "1"), ("chan", "2")]


def test_failed_fetch_never_deletes_announcements() -> None:
    record = MessageRecord("100", "chan", "m1", "Hello", "cat")
    config = TenantWatchConfig(
        primary_channel_id="chan",
        followed_broadcasters={"alice": "100"},
        primary_records={"100": record},
    )
    store = MemoryStore({"g1": config})
    platform = FakePlatform()
    platform.fail_broadcasters = True
    messenger = FakeMessenger()

    report = asyncio.run(_engine(store, platform, messenger).run_cycle(["g1"]))
    assert report.degraded_tenants == ["g1"]
    assert report.processed == ["g1"]
    assert messenger.deleted == []
    assert store.writes == []
    assert store.configs["g1"] == config


def test_one_tenant_failing_does_not_stop_the_others() -> None:
    followed = {"alice": "100"}
    store = MemoryStore(
        {
            "g1": TenantWatchConfig(primary_channel_id="c1", followed_broadcasters=followed),
            "g2": TenantWatchConfig(primary_channel_id="c2", followed_broadcasters=followed),
        }
    )
    store.fail_writes_for.add("g1")
    store.fail_reads_for.add("g3")
    platform = FakePlatform()
    platform.go_live(live("100"))
    messenger = FakeMessenger()

    report = asyncio.run(_engine(store, platform, messenger).run_cycle(["g1", "g2", "g3"]))
    assert set(report.failed_tenants) == {"g1", "g3"}
    assert report.processed == ["g2"]
    assert "100" in store.configs["g2"].primary_records
    assert store.configs["g1"].primary_records == {}


def test_tenants_share_one_query_per_cycle() -> None:
    followed = {"alice": "100"}
    store = MemoryStore(
        {
            "g1": TenantWatchConfig(primary_channel_id="c1", followed_broadcasters=followed),
            "g2": TenantWatchConfig(primary_channel_id="c2", followed_broadcasters=followed),
        }
    )
    platform = FakePlatform()
    platform.go_live(live("100"))
    messenger = FakeMessenger()

    asyncio.run(_engine(store, platform, messenger).run_cycle(["g1", "g2", "g-new"]))
    assert platform.broadcaster_calls == [["100"]]
    assert sorted(messenger.sent) == [("c1", "100"), ("c2", "100")]
    # A tenant that never configured anything is processed but not written.
    assert "g-new" not in store.writes


def test_second_cycle_on_unchanged_state_does_nothing() -> None:
    store = MemoryStore(
        {
            "g1": TenantWatchConfig(
                primary_channel_id="chan",
                followed_broadcasters={"alice": "100"},
                followed_categories={"Chess": "c1"},
            )
        }
    )
    platform = FakePlatform()
    platform.go_live(live("100"), live("200", category_id="c1"), live("300", category_id="c2"))
    messenger = FakeMessenger()
    engine = _engine(store, platform, messenger)

    first = asyncio.run(engine.run_cycle(["g1"]))
    assert first.actions == 2
    writes = len(store.writes)

    second = asyncio.run(engine.run_cycle(["g1"]))
    assert second.actions == 0
    assert len(store.writes) == writes


def test_cycle_aborts_when_too_many_ids_are_requested() -> None:
    store = MemoryStore(
        {"g1": TenantWatchConfig(primary_channel_id="chan", followed_broadcasters={"a": "1", "b": "2", "c": "3"})}
    )
    platform = FakePlatform()
    platform.go_live(live("1"))
    messenger = FakeMessenger()
    polling = PollingConfig(fetch=FetchConfig(max_ids=2))

    report = asyncio.run(_engine(store, platform, messenger, polling).run_cycle(["g1"]))
    assert report.aborted
    assert platform.broadcaster_calls == []
    assert messenger.sent == []
