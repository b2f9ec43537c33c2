"""Reconciliation of posted announcements against live state (core domain).

``reconcile`` is pure: it never talks to the messaging surface and never
mutates the config. It only describes what the executor has to do so that
exactly one current announcement exists per reportable broadcast.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, Iterable, Mapping, Optional, Tuple, Union

from core.classifier import Classification, Verdict, classify
from core.models import LiveBroadcastInfo, MessageRecord, Snapshot, TenantWatchConfig


@dataclass(frozen=True)
class CreateAction:
    """Post a new primary-channel announcement."""

    channel_id: str
    broadcast: LiveBroadcastInfo

    @property
    def broadcaster_id(self) -> str:
        return self.broadcast.broadcaster_id


@dataclass(frozen=True)
class UpdateAction:
    """Edit an existing announcement whose title or category changed."""

    record: MessageRecord
    broadcast: LiveBroadcastInfo
    primary: bool

    @property
    def broadcaster_id(self) -> str:
        return self.record.broadcaster_id


@dataclass(frozen=True)
class DeleteAction:
    """Delete every listed announcement in one channel."""

    channel_id: str
    records: Tuple[MessageRecord, ...]

    @property
    def message_ids(self) -> Tuple[str, ...]:
        return tuple(record.message_id for record in self.records)


Action = Union[CreateAction, UpdateAction, DeleteAction]


@dataclass(frozen=True)
class ReconcilePlan:
    """Actions for one tenant, applied as deletes, then updates, then creates."""

    deletes: Tuple[DeleteAction, ...] = ()
    updates: Tuple[UpdateAction, ...] = ()
    creates: Tuple[CreateAction, ...] = ()

    @property
    def actions(self) -> Tuple[Action, ...]:
        return (*self.deletes, *self.updates, *self.creates)

    def is_empty(self) -> bool:
        return not (self.deletes or self.updates or self.creates)

    def __len__(self) -> int:
        return len(self.deletes) + len(self.updates) + len(self.creates)


def _group_deletes(records: Iterable[MessageRecord]) -> Tuple[DeleteAction, ...]:
    by_channel: dict[str, list[MessageRecord]] = {}
    for record in records:
        by_channel.setdefault(record.channel_id, []).append(record)
    return tuple(
        DeleteAction(
            channel_id=channel_id,
            records=tuple(sorted(by_channel[channel_id], key=lambda record: record.message_id)),
        )
        for channel_id in sorted(by_channel)
    )


def reconcile(
    config: TenantWatchConfig,
    snapshot: Snapshot,
    verdicts: Optional[Mapping[str, Verdict]] = None,
    skip_broadcaster_ids: AbstractSet[str] = frozenset(),
) -> ReconcilePlan:
    """Diff the tenant's records against this cycle's verdicts.

    Broadcasters in ``skip_broadcaster_ids`` had their liveness hidden by a
    failed upstream query; their records are left untouched until a cycle
    observes them again.
    """

    if verdicts is None:
        verdicts = classify(config, snapshot)

    stale: list[MessageRecord] = []
    updates: list[UpdateAction] = []
    creates: list[CreateAction] = []

    # Overrides are only checked against liveness and permanent blocks, never
    # against the follow/keyword rules.
    blocked = config.blocked_ids
    for broadcaster_id in sorted(config.override_records):
        if broadcaster_id in skip_broadcaster_ids:
            continue
        records = config.override_records[broadcaster_id]
        broadcast = snapshot.get(broadcaster_id)
        if broadcast is None or broadcaster_id in blocked:
            stale.extend(records)
            continue
        for record in records:
            if record.is_stale(broadcast):
                updates.append(UpdateAction(record=record, broadcast=broadcast, primary=False))

    for broadcaster_id in sorted(config.primary_records):
        if broadcaster_id in skip_broadcaster_ids:
            continue
        record = config.primary_records[broadcaster_id]
        verdict = verdicts.get(broadcaster_id)
        if verdict is None or verdict.kind is not Classification.REPORT_PRIMARY or verdict.broadcast is None:
            stale.append(record)
            continue
        if record.is_stale(verdict.broadcast):
            updates.append(UpdateAction(record=record, broadcast=verdict.broadcast, primary=True))

    channel_id = config.primary_channel_id
    if channel_id is not None:
        for broadcaster_id in sorted(verdicts):
            verdict = verdicts[broadcaster_id]
            if broadcaster_id in skip_broadcaster_ids:
                continue
            if verdict.kind is not Classification.REPORT_PRIMARY or verdict.broadcast is None:
                continue
            # Already announced here, either automatically or by an override.
            if broadcaster_id in config.primary_records or config.has_override_in(broadcaster_id, channel_id):
                continue
            creates.append(CreateAction(channel_id=channel_id, broadcast=verdict.broadcast))

    return ReconcilePlan(
        deletes=_group_deletes(stale),
        updates=tuple(updates),
        creates=tuple(creates),
    )
