"""Fixed-interval scheduler that drives the poll coordinator."""

import asyncio
import logging
import time
from typing import Awaitable, Callable

from .coordinator import PollCoordinator, PollResult

logger = logging.getLogger(__name__)

ResultCallback = Callable[[PollResult], Awaitable[None]]


class PollScheduler:
    """Runs one polling cycle per interval until stopped."""

    def __init__(
        self,
        coordinator: PollCoordinator,
        interval_seconds: float,
        on_result: ResultCallback | None = None,
    ):
        self.coordinator = coordinator
        self.interval_seconds = interval_seconds
        self.on_result = on_result
        self._stop = asyncio.Event()
        self._cycles = 0

    @property
    def cycles(self) -> int:
        return self._cycles

    async def run(self):
        """Poll until stop() is called. The first cycle runs immediately."""
        self._stop.clear()
        logger.info(f"Polling every {self.interval_seconds:g}s")

        while not self._stop.is_set():
            started = time.monotonic()
            await self._run_once()

            remaining = self.interval_seconds - (time.monotonic() - started)
            if remaining <= 0:
                continue
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=remaining)
            except asyncio.TimeoutError:
                pass

    async def _run_once(self):
        try:
            result = await self.coordinator.run_cycle()
        except Exception as e:
            logger.error(f"Polling cycle crashed: {e}", exc_info=True)
            return

        self._cycles += 1
        if result.skipped:
            return
        if result.success:
            logger.info(
                f"Polling completed: {result.processed} new transactions, "
                f"{len(result.notifications)} notifications"
            )
        else:
            logger.warning(
                f"Polling completed with errors: {result.processed} new transactions, "
                f"errors: {'; '.join(result.errors)}"
            )

        if self.on_result:
            try:
                await self.on_result(result)
            except Exception as e:
                logger.error(f"Error in poll result callback: {e}")

    def stop(self):
        """Ask the loop to exit after the current cycle."""
        self._stop.set()
