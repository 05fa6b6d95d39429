"""Concurrent per-device statistics for the fleet overview."""

from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Optional, Sequence

from datastore.readings import ReadingStore, build_default_store
from errors import InternalError
from models.records import Device, Reading
from services.freshness import is_online
from settings import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceStats:
    device: Device
    reading_count: int
    latest_timestamp: Optional[datetime]
    latest_frequency: Optional[float]
    is_online: bool
    degraded: bool = False


class DeviceStatsService:
    """Runs the count and latest-reading lookups for every device concurrently.

    Store calls block, so each sub-query runs on the service's thread pool.
    An ``asyncio.Semaphore`` caps how many sub-queries are in flight. Each
    one gets ``timeout`` seconds to reach a worker and another ``timeout``
    seconds once a worker has picked it up, so queueing time never counts
    against the query itself. A timed-out query keeps its thread until the
    store call returns; the pool carries ``spare_workers`` extra threads so
    such stragglers do not starve later devices or later requests. Results
    always come back in the order the devices were given.
    """

    def __init__(
        self,
        store: ReadingStore,
        concurrency: int = 8,
        timeout: float = 2.0,
        spare_workers: Optional[int] = None,
    ) -> None:
        self.store = store
        self.concurrency = concurrency
        self.timeout = timeout
        spare = concurrency if spare_workers is None else spare_workers
        self.executor = ThreadPoolExecutor(
            max_workers=concurrency + spare, thread_name_prefix="device-stats"
        )

    async def collect(
        self,
        devices: Sequence[Device],
        now: datetime,
        fail_fast: bool = False,
    ) -> list[DeviceStats]:
        if not devices:
            return []

        started = time.perf_counter()
        semaphore = asyncio.Semaphore(self.concurrency)
        tasks = [
            asyncio.create_task(self._device_stats(device, now, semaphore, fail_fast))
            for device in devices
        ]
        try:
            # gather preserves argument order whatever the completion order.
            results = await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            # Reap every task so failures beyond the first are retrieved too.
            await asyncio.gather(*tasks, return_exceptions=True)

        degraded_count = sum(1 for stats in results if stats.degraded)
        logger.info(
            "Collected device stats",
            extra={
                "device_count": len(results),
                "degraded_count": degraded_count,
                "elapsed_ms": int((time.perf_counter() - started) * 1000),
            },
        )
        return list(results)

    def shutdown(self) -> None:
        """Release worker threads during application shutdown."""
        self.executor.shutdown(wait=False, cancel_futures=True)

    def _snapshot(self, device_id: str) -> tuple[int, Optional[Reading]]:
        return self.store.count_readings(device_id), self.store.latest_reading(device_id)

    async def _run_snapshot(self, device_id: str) -> tuple[int, Optional[Reading]]:
        loop = asyncio.get_running_loop()
        picked_up = asyncio.Event()

        def job() -> tuple[int, Optional[Reading]]:
            loop.call_soon_threadsafe(picked_up.set)
            return self._snapshot(device_id)

        future = loop.run_in_executor(self.executor, job)
        try:
            await asyncio.wait_for(picked_up.wait(), timeout=self.timeout)
            return await asyncio.wait_for(future, timeout=self.timeout)
        finally:
            # No-op once the job has finished; drops it from the queue otherwise.
            future.cancel()

    async def _device_stats(
        self,
        device: Device,
        now: datetime,
        semaphore: asyncio.Semaphore,
        fail_fast: bool,
    ) -> DeviceStats:
        async with semaphore:
            try:
                count, latest = await self._run_snapshot(device.id)
            except Exception as exc:
                reason = "timeout" if isinstance(exc, asyncio.TimeoutError) else type(exc).__name__
                if fail_fast:
                    raise InternalError(
                        f"Statistics for device {device.id!r} are unavailable."
                    ) from exc
                logger.warning(
                    "Device stats sub-query failed; reporting device as offline",
                    extra={"device_id": device.id, "reason": reason},
                )
                return DeviceStats(
                    device=device,
                    reading_count=0,
                    latest_timestamp=None,
                    latest_frequency=None,
                    is_online=False,
                    degraded=True,
                )

        return DeviceStats(
            device=device,
            reading_count=count,
            latest_timestamp=latest.timestamp if latest is not None else None,
            latest_frequency=latest.measurements.frequency if latest is not None else None,
            is_online=is_online(latest, now),
        )


@lru_cache
def build_default_stats_service() -> DeviceStatsService:
    settings = get_settings()
    return DeviceStatsService(
        store=build_default_store(),
        concurrency=settings.fanout_concurrency,
        timeout=settings.fanout_timeout,
    )
