"""Apply reconciliation plans against the messaging surface.

The executor is the only core component with side effects. Actions are
applied one by one for a tenant, and the resulting config is returned rather
than persisted, so the caller decides when the new state becomes durable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import AbstractSet, Optional

from core.errors import MessagingSurfaceNotFound
from core.models import MessageRecord, Snapshot, TenantWatchConfig
from core.ports import EditOutcome, MessagingPort
from core.reconciler import CreateAction, DeleteAction, ReconcilePlan, UpdateAction

LOGGER = logging.getLogger(__name__)


@dataclass
class ExecutionStats:
    created: int = 0
    updated: int = 0
    deleted: int = 0
    vanished: int = 0
    unblocked: int = 0

    @property
    def changed(self) -> bool:
        return any((self.created, self.updated, self.deleted, self.vanished, self.unblocked))


@dataclass(frozen=True)
class ExecutionResult:
    config: TenantWatchConfig
    stats: ExecutionStats
    error: Optional[Exception] = None


class _RecordBook:
    """Mutable working copy of a tenant's records for the length of one apply."""

    def __init__(self, config: TenantWatchConfig) -> None:
        self.primary_channel_id: Optional[str] = config.primary_channel_id
        self.primary: dict[str, MessageRecord] = dict(config.primary_records)
        self.overrides: dict[str, list[MessageRecord]] = {
            broadcaster_id: list(records) for broadcaster_id, records in config.override_records.items()
        }
        self.temporarily_blocked: dict[str, str] = dict(config.temporarily_blocked_broadcasters)

    def forget(self, record: MessageRecord) -> None:
        if self.primary.get(record.broadcaster_id) == record:
            del self.primary[record.broadcaster_id]
            return
        records = self.overrides.get(record.broadcaster_id, [])
        if record in records:
            records.remove(record)

    def swap(self, old: MessageRecord, new: MessageRecord) -> None:
        if self.primary.get(old.broadcaster_id) == old:
            self.primary[old.broadcaster_id] = new
            return
        records = self.overrides.get(old.broadcaster_id, [])
        if old in records:
            records[records.index(old)] = new

    def to_config(self, base: TenantWatchConfig) -> TenantWatchConfig:
        return replace(
            base,
            primary_channel_id=self.primary_channel_id,
            primary_records=self.primary,
            override_records={
                broadcaster_id: tuple(records) for broadcaster_id, records in self.overrides.items() if records
            },
            temporarily_blocked_broadcasters=self.temporarily_blocked,
        )


class ActionExecutor:
    """Sends, edits and deletes announcements, absorbing already-gone targets."""

    def __init__(self, messaging: MessagingPort) -> None:
        self._messaging = messaging

    async def apply(
        self,
        config: TenantWatchConfig,
        plan: ReconcilePlan,
        snapshot: Snapshot,
        skip_broadcaster_ids: AbstractSet[str] = frozenset(),
    ) -> ExecutionResult:
        """Apply ``plan`` and return the tenant config reflecting its effects.

        A missing message or channel is absorbed. Any other error stops the
        plan: the result then carries the error along with the records of the
        actions that already went through, so sent messages are not orphaned.
        """

        book = _RecordBook(config)
        stats = ExecutionStats()

        try:
            for delete in plan.deletes:
                await self._delete(book, delete)
                stats.deleted += len(delete.records)

            for update in plan.updates:
                if await self._update(book, update):
                    stats.updated += 1
                else:
                    stats.vanished += 1

            for create in plan.creates:
                if await self._create(book, create):
                    stats.created += 1
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception(
                "Stopped applying plan after %s actions",
                stats.created + stats.updated + stats.deleted + stats.vanished,
            )
            return ExecutionResult(config=book.to_config(config), stats=stats, error=exc)

        # Temporary blocks only last for the stream during which they were set.
        for name, broadcaster_id in list(book.temporarily_blocked.items()):
            if broadcaster_id in skip_broadcaster_ids or snapshot.is_live(broadcaster_id):
                continue
            del book.temporarily_blocked[name]
            stats.unblocked += 1

        return ExecutionResult(config=book.to_config(config), stats=stats)

    async def _delete(self, book: _RecordBook, action: DeleteAction) -> None:
        for record in action.records:
            book.forget(record)
        try:
            await self._messaging.bulk_delete(action.channel_id, action.message_ids)
        except MessagingSurfaceNotFound:
            # Already deleted by someone else, or the channel is gone.
            LOGGER.debug("Messages %s in %s were already gone", action.message_ids, action.channel_id)

    async def _update(self, book: _RecordBook, action: UpdateAction) -> bool:
        record = action.record
        outcome = await self._messaging.edit(record.channel_id, record.message_id, action.broadcast)
        if outcome is EditOutcome.EDITED:
            book.swap(record, record.refreshed(action.broadcast))
            return True

        book.forget(record)
        if action.primary or record.channel_id == book.primary_channel_id:
            # A moderator removed the announcement from the primary channel;
            # do not repost it until the broadcaster is next seen offline.
            book.temporarily_blocked[action.broadcast.login] = record.broadcaster_id
        LOGGER.info(
            "Announcement %s for %s vanished from %s",
            record.message_id,
            record.broadcaster_id,
            record.channel_id,
        )
        return False

    async def _create(self, book: _RecordBook, action: CreateAction) -> bool:
        if action.channel_id != book.primary_channel_id:
            return False
        try:
            message_id = await self._messaging.send(action.channel_id, action.broadcast)
        except MessagingSurfaceNotFound:
            # Monitoring stays off for this tenant until a new channel is set.
            LOGGER.warning("Primary channel %s no longer exists; clearing it", action.channel_id)
            book.primary_channel_id = None
            return False

        broadcast = action.broadcast
        book.primary[broadcast.broadcaster_id] = MessageRecord(
            broadcaster_id=broadcast.broadcaster_id,
            channel_id=action.channel_id,
            message_id=message_id,
            title=broadcast.title,
            category_id=broadcast.category_id,
        )
        return True
