"""Core reconciliation cycle.

This module is integration-agnostic. It only relies on ports for config
storage, platform queries and messaging, enabling other frontends or
adapters without changes here.

One cycle runs in a strict order:
1) Load every tenant config (absent -> empty)
2) Aggregate interests across tenants
3) Fetch one shared snapshot in batched queries
4) Per tenant: classify, reconcile, execute, persist

Tenants are isolated from each other: a failure while handling one tenant
is logged and reported, and never stops the others. Each tenant's work is
bounded by ``PollingConfig.tenant_timeout`` so a stalled tenant cannot hold
up the cycle either.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from core.cache import AsyncCache
from core.classifier import classify
from core.config import PollingConfig
from core.errors import ConfigPersistFailure, IdLimitExceeded
from core.executor import ActionExecutor, ExecutionResult
from core.fetcher import FetchResult, SnapshotFetcher
from core.interests import Interests, collect_interests
from core.models import TenantWatchConfig
from core.ports import BroadcastPlatformPort, ConfigStorePort, MessagingPort
from core.reconciler import reconcile

LOGGER = logging.getLogger(__name__)


@dataclass
class CycleReport:
    """Summary of one cycle, mostly for logging and tests."""

    processed: list[str] = field(default_factory=list)
    failed_tenants: dict[str, str] = field(default_factory=dict)
    degraded_tenants: list[str] = field(default_factory=list)
    actions: int = 0
    aborted: bool = False


class ReconciliationEngine:
    """Orchestrates interest aggregation, fetching, reconciliation and persistence."""

    def __init__(
        self,
        store: ConfigStorePort,
        platform: BroadcastPlatformPort,
        messaging: MessagingPort,
        polling: Optional[PollingConfig] = None,
    ) -> None:
        self._store = store
        self._polling = polling or PollingConfig()
        self._fetcher = SnapshotFetcher(platform, self._polling.fetch)
        self._executor = ActionExecutor(messaging)

    async def run_cycle(self, tenant_ids: Iterable[str]) -> CycleReport:
        """Run one full reconciliation cycle for the given tenants."""

        report = CycleReport()
        configs = self._load_configs(tenant_ids, report)
        if not configs:
            return report

        interests = collect_interests(configs)
        try:
            # One cache per cycle: nothing goes stale across cycles. A single fetch
            # never hits it; it is here so extra fetches in the cycle share results.
            fetched = await self._fetcher.fetch(
                interests.broadcaster_ids,
                interests.category_ids,
                cache=AsyncCache(),
            )
        except IdLimitExceeded:
            LOGGER.exception("Cycle aborted before querying the platform")
            report.aborted = True
            return report

        semaphore = asyncio.Semaphore(max(1, self._polling.max_concurrent_tenants))

        async def _bounded(tenant_id: str, config: TenantWatchConfig) -> None:
            async with semaphore:
                await self._process_tenant(tenant_id, config, fetched, interests, report)

        await asyncio.gather(*(_bounded(tenant_id, config) for tenant_id, config in configs.items()))

        LOGGER.info(
            "Cycle complete: tenants=%s, actions=%s, degraded=%s, failed=%s",
            len(report.processed),
            report.actions,
            len(report.degraded_tenants),
            len(report.failed_tenants),
        )
        return report

    async def reconcile_tenant(
        self,
        tenant_id: str,
        config: TenantWatchConfig,
        fetched: FetchResult,
        interests: Interests,
    ) -> ExecutionResult:
        """Classify, reconcile and execute for one tenant, then persist on change."""

        snapshot = fetched.snapshot
        skip = fetched.unknown_broadcaster_ids(interests.tenant_broadcaster_ids.get(tenant_id, ()))

        verdicts = classify(config, snapshot)
        plan = reconcile(config, snapshot, verdicts, skip_broadcaster_ids=skip)
        result = await self._executor.apply(config, plan, snapshot, skip_broadcaster_ids=skip)

        if result.config != config:
            self._persist(tenant_id, result.config)
        if not plan.is_empty():
            LOGGER.info(
                "Tenant %s: created=%s updated=%s deleted=%s vanished=%s",
                tenant_id,
                result.stats.created,
                result.stats.updated,
                result.stats.deleted,
                result.stats.vanished,
            )
        return result

    def _load_configs(self, tenant_ids: Iterable[str], report: CycleReport) -> dict[str, TenantWatchConfig]:
        configs: dict[str, TenantWatchConfig] = {}
        for tenant_id in dict.fromkeys(tenant_ids):
            try:
                config = self._store.get(tenant_id)
            except Exception as exc:  # noqa: BLE001
                LOGGER.exception("Failed to load config for tenant %s", tenant_id)
                report.failed_tenants[tenant_id] = repr(exc)
                continue
            configs[tenant_id] = config or TenantWatchConfig.empty()
        return configs

    async def _process_tenant(
        self,
        tenant_id: str,
        config: TenantWatchConfig,
        fetched: FetchResult,
        interests: Interests,
        report: CycleReport,
    ) -> None:
        tenant_categories = interests.tenant_category_ids.get(tenant_id, frozenset())
        tenant_broadcasters = interests.tenant_broadcaster_ids.get(tenant_id, frozenset())
        if fetched.unknown_broadcaster_ids(tenant_broadcasters) or tenant_categories & fetched.failed_category_ids:
            report.degraded_tenants.append(tenant_id)

        # A tenant stuck on the messaging surface must not hold up the others
        # or the next cycle.
        timeout = self._polling.tenant_timeout
        try:
            result = await asyncio.wait_for(
                self.reconcile_tenant(tenant_id, config, fetched, interests),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            LOGGER.error("Tenant %s did not finish within %ss; skipped this cycle", tenant_id, timeout)
            report.failed_tenants[tenant_id] = f"timed out after {timeout}s"
            return
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Failed to reconcile tenant %s", tenant_id)
            report.failed_tenants[tenant_id] = repr(exc)
            return

        stats = result.stats
        report.actions += stats.created + stats.updated + stats.deleted + stats.vanished
        if result.error is not None:
            report.failed_tenants[tenant_id] = repr(result.error)
            return
        report.processed.append(tenant_id)

    def _persist(self, tenant_id: str, config: TenantWatchConfig) -> None:
        try:
            self._store.set(tenant_id, config)
        except ConfigPersistFailure:
            raise
        except Exception as exc:
            raise ConfigPersistFailure(f"Could not persist config for tenant {tenant_id}") from exc
