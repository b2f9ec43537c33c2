"""Async polling loop for reconciliation cycles."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable, Optional

from core.config import PollingConfig
from core.engine import CycleReport, ReconciliationEngine

LOGGER = logging.getLogger(__name__)


class PollingLoop:
    """Runs one cycle at a time on a fixed interval until stop() is called."""

    def __init__(
        self,
        engine: ReconciliationEngine,
        tenant_ids: Callable[[], Iterable[str]],
        polling: Optional[PollingConfig] = None,
    ) -> None:
        self._engine = engine
        self._tenant_ids = tenant_ids
        self._polling = polling or PollingConfig()
        self._stop_event = asyncio.Event()
        self.cycles_run = 0

    async def run_once(self) -> Optional[CycleReport]:
        """Run a single cycle, logging instead of raising on unexpected errors."""

        try:
            report = await self._engine.run_cycle(list(self._tenant_ids()))
        except Exception:  # noqa: BLE001
            LOGGER.exception("Reconciliation cycle failed")
            return None
        finally:
            self.cycles_run += 1
        return report

    async def run_forever(self) -> None:
        """Run cycles until stop() is called. Cycles never overlap."""

        if await self._wait(self._polling.initial_delay_seconds):
            return
        while not self._stop_event.is_set():
            await self.run_once()
            if await self._wait(self._polling.interval_seconds):
                return

    def stop(self) -> None:
        """Signal the loop to stop."""

        self._stop_event.set()

    async def _wait(self, seconds: float) -> bool:
        # Returns True when stop() was called during the wait.
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=max(0.0, seconds))
        except asyncio.TimeoutError:
            return False
        return True
