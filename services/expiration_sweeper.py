"""Periodic trigger that runs the expiration sweep inside the API process."""

import asyncio
import logging

from models.lifecycle_results import SweepReport
from services.image_lifecycle import ImageLifecycleEngine

logger = logging.getLogger(__name__)


class ExpirationSweeper:
    """Run `ImageLifecycleEngine.sweep_expired` on a fixed interval."""

    def __init__(self, engine: ImageLifecycleEngine, interval_seconds: int = 60) -> None:
        """
        Args:
            engine: Engine whose sweep is invoked.
            interval_seconds: Seconds to sleep between sweeps.
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._engine = engine
        self.interval_seconds = interval_seconds

    async def run_once(self) -> SweepReport:
        return await self._engine.sweep_expired()

    async def run_periodic(self) -> None:
        """
        Repeatedly sweep at the configured interval until cancelled.

        Overlapping with other sweep triggers (another process, the HTTP
        endpoint) is fine; the transition each sweep applies is idempotent.
        """
        while True:
            try:
                await self.run_once()
                await asyncio.sleep(self.interval_seconds)
            except asyncio.CancelledError:
                logger.info("Expiration sweeper stopped")
                break
            except Exception:
                # Avoid crashing the loop; sleep before retrying on the next tick.
                logger.exception("Expiration sweep failed; retrying in %ss", self.interval_seconds)
                await asyncio.sleep(self.interval_seconds)
