"""
Dispatch Queue + Scheduler

Drains pending enchantment lookups with:
- At most `max_concurrent` workers in flight
- A single global minimum interval between dispatches (shared by every
  worker, so the aggregate request rate to WotLKDB stays bounded)
- Explicit delayed re-enqueue for retries. Retries go to the FRONT of the
  queue so resolutions already started finish before new cold lookups.

Front insertion can starve fresh lookups while WotLKDB keeps failing.
That is the current policy, not an accident; see DESIGN.md.
"""
import asyncio
import logging
import time
from collections import deque
from typing import Awaitable, Callable, Deque, Optional, Set

from armory.services.resolution import QueueItem

logger = logging.getLogger(__name__)


class DispatchQueue:
    """FIFO of QueueItems with head insertion for retries."""

    def __init__(self):
        self._items: Deque[QueueItem] = deque()

    def __len__(self) -> int:
        return len(self._items)

    def put(self, item: QueueItem) -> None:
        self._items.append(item)

    def put_front(self, item: QueueItem) -> None:
        self._items.appendleft(item)

    def pop(self) -> Optional[QueueItem]:
        if not self._items:
            return None
        return self._items.popleft()

    def keys(self):
        return [item.key for item in self._items]


class RateGate:
    """
    Global minimum interval between dispatches.

    Waits out the remainder of `min_interval` since the previous dispatch
    across all workers, then stamps the new dispatch time.
    """

    def __init__(self, min_interval: float = 0.5, clock: Callable[[], float] = time.monotonic):
        self.min_interval = min_interval
        self._clock = clock
        self._last_dispatch: Optional[float] = None
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        async with self._lock:
            if self._last_dispatch is not None:
                elapsed = self._clock() - self._last_dispatch
                if elapsed < self.min_interval:
                    wait_time = self.min_interval - elapsed
                    logger.debug(f"[DISPATCH] Throttling {wait_time:.2f}s (min interval)")
                    await asyncio.sleep(wait_time)
            self._last_dispatch = self._clock()


class DispatchScheduler:
    """
    Bounded worker pool over a DispatchQueue.

    Usage:
        scheduler = DispatchScheduler(handler=process_item, max_concurrent=3,
                                      rate_gate=RateGate(0.5))
        scheduler.submit(QueueItem(key=3539, future=future))
    """

    def __init__(
        self,
        handler: Callable[[QueueItem], Awaitable[None]],
        max_concurrent: int = 3,
        rate_gate: Optional[RateGate] = None,
        queue: Optional[DispatchQueue] = None,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._handler = handler
        self.max_concurrent = max_concurrent
        self.rate_gate = rate_gate or RateGate()
        self.queue = queue or DispatchQueue()

        self._active = 0
        self.peak_active = 0
        self._slot_freed = asyncio.Event()
        self._loop_task: Optional[asyncio.Task] = None
        self._workers: Set[asyncio.Task] = set()
        self._delayed: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def active(self) -> int:
        return self._active

    @property
    def retries_scheduled(self) -> int:
        return len(self._delayed)

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def submit(self, item: QueueItem) -> None:
        """Enqueue a fresh lookup at the tail."""
        self.queue.put(item)
        self._ensure_running()

    def requeue_after(self, item: QueueItem, delay: float) -> None:
        """Put `item` back at the head of the queue once `delay` has elapsed."""
        task = asyncio.get_running_loop().create_task(self._requeue_later(item, delay))
        self._delayed.add(task)
        task.add_done_callback(self._delayed.discard)

    async def _requeue_later(self, item: QueueItem, delay: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
        self.queue.put_front(item)
        logger.debug(f"[DISPATCH] Requeued {item.key} at head (attempt {item.attempt})")
        self._ensure_running()

    def _ensure_running(self) -> None:
        if self._closed:
            return
        if not self.is_running:
            self._loop_task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while len(self.queue):
            if self._active >= self.max_concurrent:
                self._slot_freed.clear()
                await self._slot_freed.wait()
                continue

            item = self.queue.pop()
            self._active += 1
            self.peak_active = max(self.peak_active, self._active)

            await self.rate_gate.wait()

            worker = asyncio.get_running_loop().create_task(self._work(item))
            self._workers.add(worker)
            worker.add_done_callback(self._workers.discard)

    async def _work(self, item: QueueItem) -> None:
        try:
            await self._handler(item)
        except Exception:
            logger.exception(f"[DISPATCH] Worker crashed handling enchantment {item.key}")
        finally:
            self._active -= 1
            self._slot_freed.set()

    async def close(self) -> None:
        """Stop dispatching, cancel pending retries, let running workers finish."""
        self._closed = True
        for task in list(self._delayed):
            task.cancel()
        if self._loop_task is not None and not self._loop_task.done():
            self._loop_task.cancel()
        pending = list(self._delayed) + list(self._workers)
        if self._loop_task is not None:
            pending.append(self._loop_task)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
