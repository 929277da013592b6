"""
Customer Status Change Detector

Periodically snapshots customer signal status from the database, diffs it
against the last observed value per customer and emits one StatusChange per
transition. Events go to registered callbacks and to async subscriptions;
the poller entry point forwards a subscription to a Redis stream.
"""
import asyncio
import inspect
import logging
import signal
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import partial
from typing import Optional
from uuid import UUID

import redis.asyncio as redis
from redis.exceptions import RedisError

from spectra.config import settings
from spectra.db import SessionLocal
from spectra.errors import TransientFetchError
from spectra.logging import configure_logging
from spectra.metrics import CUSTOMER_STATUS_CHANGES, STATUS_DETECTOR_TICKS
from spectra.models.customer import CustomerStatus
from spectra.services.customers import customers as customer_service

logger = logging.getLogger(__name__)

REDIS_STREAM_MAXLEN = 100000


@dataclass(frozen=True)
class StatusChange:
    """One observed customer status transition."""
    customer_id: UUID
    customer_name: str
    old_status: CustomerStatus
    new_status: CustomerStatus
    timestamp: datetime

    def describe(self) -> str:
        name = self.customer_name
        if self.new_status == CustomerStatus.LOS:
            return f"LOS alert: {name} lost signal"
        if self.old_status == CustomerStatus.LOS and self.new_status == CustomerStatus.ONLINE:
            return f"Recovered: {name} is back online"
        if self.new_status == CustomerStatus.ONLINE:
            return f"{name} is now online"
        if self.new_status == CustomerStatus.OFFLINE:
            return f"{name} went offline"
        return f"{name}: {self.old_status.value} → {self.new_status.value}"

    def as_stream_fields(self) -> dict[str, str]:
        return {
            "customer_id": str(self.customer_id),
            "customer_name": self.customer_name,
            "old_status": self.old_status.value,
            "new_status": self.new_status.value,
            "timestamp": self.timestamp.isoformat(),
            "message": self.describe(),
        }


class StatusTracker:
    """Last observed status per customer and the diff against a new snapshot.

    A customer seen for the first time is recorded silently, so the first
    snapshot never produces events.
    """

    def __init__(self):
        self._previous: dict[UUID, CustomerStatus] = {}

    def __len__(self) -> int:
        return len(self._previous)

    def previous_status(self, customer_id: UUID) -> Optional[CustomerStatus]:
        return self._previous.get(customer_id)

    def observe(
        self,
        snapshot: Iterable[tuple],
        now: Optional[datetime] = None,
    ) -> list[StatusChange]:
        now = now or datetime.now(timezone.utc)
        changes = []
        for customer_id, name, status in snapshot:
            status = CustomerStatus(status)
            previous = self._previous.get(customer_id)
            if previous is not None and previous != status:
                changes.append(
                    StatusChange(
                        customer_id=customer_id,
                        customer_name=name,
                        old_status=previous,
                        new_status=status,
                        timestamp=now,
                    )
                )
            self._previous[customer_id] = status
        return changes


def fetch_snapshot(limit: int = 1000) -> list[tuple]:
    """Read (id, name, status) rows in a short-lived session."""
    db = SessionLocal()
    try:
        return customer_service.status_snapshot(db, limit=limit)
    finally:
        db.close()


_CLOSED = object()


class StatusSubscription:
    """Async iterator over the StatusChange events of one detector.

    ``close()`` ends iteration; cancelling the consuming task works too.
    """

    def __init__(self, detector: "StatusChangeDetector"):
        self._detector = detector
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def __aiter__(self):
        return self

    async def __anext__(self) -> StatusChange:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        return self._queue.qsize()

    def _offer(self, change: StatusChange) -> None:
        if not self._closed:
            self._queue.put_nowait(change)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._detector._subscriptions.discard(self)
        self._queue.put_nowait(_CLOSED)


class StatusChangeDetector:
    """
    Interval-driven snapshot/diff loop.

    The scheduler only spawns ticks. Each tick runs as its own task behind a
    busy flag: a tick that comes due while the previous one is still
    fetching is skipped, not queued. ``disable()`` stops the scheduler and
    keeps the tracker, so ``enable()`` resumes without a new baseline.
    """

    def __init__(
        self,
        fetch: Optional[Callable[[], Iterable[tuple]]] = None,
        poll_interval_ms: int = settings.status_poll_interval_ms,
        fetch_timeout_s: float = settings.status_fetch_timeout_s,
        page_size: int = settings.status_poll_page_size,
    ):
        self.poll_interval_ms = poll_interval_ms
        self.fetch_timeout_s = fetch_timeout_s
        self._fetch = fetch or partial(fetch_snapshot, limit=page_size)
        self.tracker = StatusTracker()
        self._callbacks: list[Callable] = []
        self._subscriptions: set[StatusSubscription] = set()
        self._scheduler: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None
        self._fetch_task: Optional[asyncio.Future] = None
        self._busy = False
        self.tick_count = 0
        self.skipped_count = 0
        self.last_error: Optional[TransientFetchError] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and not self._scheduler.done()

    @property
    def busy(self) -> bool:
        return self._busy

    def add_callback(self, callback: Callable) -> None:
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callable) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def subscribe(self) -> StatusSubscription:
        subscription = StatusSubscription(self)
        self._subscriptions.add(subscription)
        return subscription

    def enable(self) -> None:
        """Start (or resume) scheduled ticks; the first one fires immediately."""
        if self.running:
            return
        self._scheduler = asyncio.create_task(self._schedule())
        logger.info(
            "Status detector enabled (interval %sms, %d customers tracked)",
            self.poll_interval_ms,
            len(self.tracker),
        )

    async def disable(self) -> None:
        """Cancel the scheduler. A tick already running is left to finish."""
        scheduler, self._scheduler = self._scheduler, None
        if scheduler is None:
            return
        scheduler.cancel()
        try:
            await scheduler
        except asyncio.CancelledError:
            pass
        logger.info("Status detector disabled")

    async def check_now(self) -> Optional[list[StatusChange]]:
        """Run one tick on demand. Returns None if a tick is already in flight."""
        if not self._acquire():
            return None
        return await self._run_tick()

    async def wait_idle(self) -> None:
        """Wait for the running tick and any fetch thread it left behind."""
        if self._tick_task is not None and not self._tick_task.done():
            await asyncio.shield(self._tick_task)
        if self._fetch_task is not None and not self._fetch_task.done():
            await asyncio.wait([self._fetch_task])

    async def close(self) -> None:
        await self.disable()
        await self.wait_idle()
        for subscription in list(self._subscriptions):
            subscription.close()

    async def _schedule(self):
        interval_seconds = self.poll_interval_ms / 1000.0
        while True:
            self._spawn_tick()
            await asyncio.sleep(interval_seconds)

    def _spawn_tick(self) -> None:
        if not self._acquire():
            return
        self._tick_task = asyncio.create_task(self._run_tick())

    def _acquire(self) -> bool:
        if self._busy:
            self.skipped_count += 1
            STATUS_DETECTOR_TICKS.labels(result="skipped").inc()
            logger.warning("Previous status check still running; skipping tick")
            return False
        self._busy = True
        return True

    async def _fetch_snapshot(self, fetch_task: asyncio.Future) -> list[tuple]:
        try:
            snapshot = await asyncio.wait_for(
                asyncio.shield(fetch_task), timeout=self.fetch_timeout_s
            )
        except Exception as exc:
            raise TransientFetchError(
                "Customer status fetch failed",
                {"error": str(exc) or type(exc).__name__},
            ) from exc
        return list(snapshot)

    def _release(self, fetch_task: asyncio.Future) -> None:
        # Runs once the worker thread is really done, even after a timeout.
        self._busy = False
        if not fetch_task.cancelled() and fetch_task.exception() is not None:
            logger.debug("Abandoned status fetch finished with %r", fetch_task.exception())

    async def _run_tick(self) -> list[StatusChange]:
        fetch_task = asyncio.ensure_future(asyncio.to_thread(self._fetch))
        self._fetch_task = fetch_task
        try:
            try:
                snapshot = await self._fetch_snapshot(fetch_task)
            except TransientFetchError as exc:
                self.last_error = exc
                STATUS_DETECTOR_TICKS.labels(result="failed").inc()
                logger.warning("Status check skipped: %s (%s)", exc, exc.details)
                return []
            self.last_error = None
            changes = self.tracker.observe(snapshot)
            self.tick_count += 1
            STATUS_DETECTOR_TICKS.labels(result="ok").inc()
            for change in changes:
                await self._dispatch(change)
            return changes
        finally:
            if fetch_task.done():
                self._busy = False
            else:
                fetch_task.add_done_callback(self._release)

    async def _dispatch(self, change: StatusChange) -> None:
        CUSTOMER_STATUS_CHANGES.labels(
            old_status=change.old_status.value, new_status=change.new_status.value
        ).inc()
        logger.info("%s", change.describe())
        for subscription in list(self._subscriptions):
            subscription._offer(change)
        for callback in list(self._callbacks):
            try:
                result = callback(change)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Status change callback %r failed", callback)


class RedisStatusPublisher:
    """Forwards StatusChange events to a Redis stream."""

    def __init__(
        self,
        redis_url: str = settings.redis_url,
        stream: str = settings.status_redis_stream,
        maxlen: int = REDIS_STREAM_MAXLEN,
        client: Optional[redis.Redis] = None,
    ):
        self.redis_url = redis_url
        self.stream = stream
        self.maxlen = maxlen
        self._redis = client
        self.published_count = 0

    async def _get_redis(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    async def publish(self, change: StatusChange) -> None:
        r = await self._get_redis()
        await r.xadd(self.stream, change.as_stream_fields(), maxlen=self.maxlen)
        self.published_count += 1

    async def run(self, subscription: StatusSubscription) -> None:
        async for change in subscription:
            try:
                await self.publish(change)
            except RedisError as exc:
                logger.error("Failed to publish status change for %s: %s", change.customer_id, exc)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


async def main():
    """Entry point for the status detector service."""
    configure_logging()

    if not settings.status_poll_enabled:
        logger.warning("Customer status polling is disabled")
        return

    detector = StatusChangeDetector()
    publisher = RedisStatusPublisher()
    subscription = detector.subscribe()
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()

    def handle_signal():
        logger.info("Received shutdown signal")
        stop.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal)

    publish_task = asyncio.create_task(publisher.run(subscription))
    detector.enable()
    try:
        await stop.wait()
    finally:
        await detector.close()
        await publish_task
        await publisher.close()
        logger.info(
            "Status detector stopped: %d ticks, %d skipped, %d events published",
            detector.tick_count,
            detector.skipped_count,
            publisher.published_count,
        )


if __name__ == "__main__":
    asyncio.run(main())
