"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class FetchConfig:
    """Upstream query limits for the snapshot fetcher."""

    batch_size: int = 100
    max_ids: int = 2000
    retry_attempts: int = 5
    retry_delay_seconds: float = 0.5


@dataclass(frozen=True)
class PollingConfig:
    """Scheduling settings for the reconciliation loop."""

    # Helix responses are cached upstream for about a minute, so polling
    # faster than this only returns the same data.
    interval_seconds: float = 62.0
    initial_delay_seconds: float = 5.0
    max_concurrent_tenants: int = 8
    # Upper bound on one tenant's work per cycle; None means the polling interval.
    tenant_timeout_seconds: Optional[float] = None
    fetch: FetchConfig = FetchConfig()

    @property
    def tenant_timeout(self) -> Optional[float]:
        """Seconds one tenant may take per cycle, or None for no bound."""

        timeout = self.interval_seconds if self.tenant_timeout_seconds is None else self.tenant_timeout_seconds
        return timeout if timeout > 0 else None
