"""Interest aggregation across tenants (core domain).

Collects every broadcaster and category id that has to be queried this
cycle, so the fetcher can issue a few large requests for all tenants at once.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from core.models import TenantWatchConfig


@dataclass(frozen=True)
class Interests:
    """Deduplicated upstream ids for one cycle, plus the per-tenant breakdown."""

    broadcaster_ids: frozenset[str]
    category_ids: frozenset[str]
    tenant_broadcaster_ids: Mapping[str, frozenset[str]]
    tenant_category_ids: Mapping[str, frozenset[str]]


def tenant_broadcaster_interest(config: TenantWatchConfig) -> frozenset[str]:
    """Return the broadcaster ids whose liveness this tenant depends on.

    Tracked records and temporary blocks are included so that going offline
    is observed directly, even for broadcasters nobody follows.
    """

    ids = set(config.followed_broadcasters.values())
    ids.update(config.override_records.keys())
    ids.update(config.primary_records.keys())
    ids.update(config.temporarily_blocked_broadcasters.values())
    return frozenset(ids)


def collect_interests(configs: Mapping[str, Optional[TenantWatchConfig]]) -> Interests:
    """Aggregate the ids to query for all tenants processed this cycle."""

    broadcaster_ids: set[str] = set()
    category_ids: set[str] = set()
    per_tenant_broadcasters: dict[str, frozenset[str]] = {}
    per_tenant_categories: dict[str, frozenset[str]] = {}

    for tenant_id, config in configs.items():
        # Absent config means the tenant has not set anything up yet.
        config = config or TenantWatchConfig.empty()
        tenant_broadcasters = tenant_broadcaster_interest(config)
        tenant_categories = config.followed_category_ids
        per_tenant_broadcasters[tenant_id] = tenant_broadcasters
        per_tenant_categories[tenant_id] = tenant_categories
        broadcaster_ids.update(tenant_broadcasters)
        category_ids.update(tenant_categories)

    return Interests(
        broadcaster_ids=frozenset(broadcaster_ids),
        category_ids=frozenset(category_ids),
        tenant_broadcaster_ids=per_tenant_broadcasters,
        tenant_category_ids=per_tenant_categories,
    )
