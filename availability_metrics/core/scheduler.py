"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Availability Metrics, a product of Garudex Labs

Probe scheduling for Availability Metrics.

The scheduler runs every probe once immediately and then once per tick of a
fixed-period timer until asked to stop. Iterations never overlap: ticks that
fall due while an iteration is still running are dropped.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from availability_metrics.core.models import Outcome
from availability_metrics.core.probes import Probe
from availability_metrics.logging_config import clear_iteration_id, get_logger, set_iteration_id
from availability_metrics.monitoring.metrics import MetricSink

logger = get_logger(__name__)


DEFAULT_POLL_INTERVAL_SECONDS = 60.0


class ProbeScheduler:
    """
    Owns the probe set and drives it on a fixed period.

    Probes run in registration order. With max_concurrency above 1 they run
    concurrently within an iteration, but an iteration always completes before
    the next one starts.
    """

    def __init__(
        self,
        probes: Sequence[Probe],
        sink: MetricSink,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_concurrency: int = 1,
    ):
        """
        Initialize ProbeScheduler.

        Args:
            probes: Probes to run, in execution order
            sink: MetricSink used to record probes that fail unexpectedly
            poll_interval: Seconds between iterations (default: 60)
            max_concurrency: Maximum probes running at once (default: 1)
        """
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")

        self.probes = tuple(probes)
        self.sink = sink
        self.poll_interval = float(poll_interval)
        self.max_concurrency = max_concurrency

        self.iterations_completed = 0
        self.last_iteration_at: Optional[datetime] = None
        self._running = False

        logger.info(
            f"Poll interval: {self.poll_interval}s, probes: {len(self.probes)}, "
            f"max_concurrency: {self.max_concurrency}"
        )

    @property
    def running(self) -> bool:
        return self._running

    async def run(self, stop_event: asyncio.Event) -> None:
        """
        Run iterations until stop_event is set.

        The first iteration starts immediately. Setting stop_event while an
        iteration is in flight cancels it, which aborts outstanding requests.

        Args:
            stop_event: Cancellation signal owned by the caller
        """
        self._running = True
        loop = asyncio.get_running_loop()
        next_tick = loop.time()

        try:
            while not stop_event.is_set():
                if not await self._run_until_stopped(stop_event):
                    break

                next_tick += self.poll_interval
                now = loop.time()
                if now > next_tick:
                    # Drop ticks that fell due during a slow iteration
                    missed = int((now - next_tick) // self.poll_interval) + 1
                    next_tick += missed * self.poll_interval
                    logger.warning(f"iteration overran poll interval, skipped {missed} tick(s)")

                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=next_tick - now)
                except asyncio.TimeoutError:
                    pass
        finally:
            self._running = False
            logger.info("shutting down check loop")

    async def _run_until_stopped(self, stop_event: asyncio.Event) -> bool:
        """Run one iteration, cancelling it if stop_event fires first."""
        iteration = asyncio.ensure_future(self.run_iteration())
        stopper = asyncio.ensure_future(stop_event.wait())

        try:
            await asyncio.wait({iteration, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopper.cancel()

        if iteration.done():
            iteration.result()
            return True

        logger.info("stop requested, cancelling in-flight checks")
        iteration.cancel()
        try:
            await iteration
        except asyncio.CancelledError:
            pass
        return False

    async def run_iteration(self) -> List[Outcome]:
        """
        Execute every probe once.

        Returns:
            Outcomes in probe registration order
        """
        iteration_id = set_iteration_id()
        started = time.monotonic()
        logger.debug(f"starting iteration {iteration_id}")

        try:
            if self.max_concurrency == 1:
                outcomes = [await self._execute(probe) for probe in self.probes]
            else:
                semaphore = asyncio.Semaphore(self.max_concurrency)

                async def bounded(probe: Probe) -> Outcome:
                    async with semaphore:
                        return await self._execute(probe)

                outcomes = list(await asyncio.gather(*(bounded(p) for p in self.probes)))
        finally:
            clear_iteration_id()

        self.iterations_completed += 1
        self.last_iteration_at = datetime.now(timezone.utc)

        failed = sum(1 for outcome in outcomes if not outcome.ok)
        logger.info(
            f"iteration {iteration_id} completed: {len(outcomes) - failed} succeeded, "
            f"{failed} failed, duration {time.monotonic() - started:.2f}s"
        )
        return outcomes

    async def _execute(self, probe: Probe) -> Outcome:
        try:
            return await probe.execute()
        except Exception as e:
            logger.error(f"{probe.name} check raised unexpectedly: {e}", exc_info=True)
            outcome = Outcome.failed(str(e) or type(e).__name__, kind="internal")
            self.sink.record_outcome(probe.name, outcome)
            return outcome

    async def aclose(self) -> None:
        """Release resources held by the probes."""
        for probe in self.probes:
            try:
                await probe.aclose()
            except Exception as e:
                logger.warning(f"failed to close probe {probe.name}: {e}")

    def health(self) -> Dict[str, Any]:
        """Liveness details for the /health endpoint."""
        return {
            "status": "healthy" if self._running else "unhealthy",
            "probes": len(self.probes),
            "iterations_completed": self.iterations_completed,
            "last_iteration_at": self.last_iteration_at.isoformat() if self.last_iteration_at else None,
        }
