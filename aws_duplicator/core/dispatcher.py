"""Bounded worker pool that distributes copy tasks and retries failed copies."""

import asyncio
import inspect
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Optional

from aws_duplicator.core.completion_barrier import CompletionBarrier
from aws_duplicator.models.copy_task import CopyTask

logger = logging.getLogger(__name__)

# Pool defaults
NUM_COPIERS = 10
MAX_ATTEMPTS = 3
QUEUE_SIZE = 999

# Marks a closed queue; every receiver that sees it stops reading
_CLOSED = object()


class CopyDispatcher:
    """Distributes copy tasks across a fixed pool of workers with naive retry.

    A producer fills the work queue in task order and then closes it. Each
    worker drains the queue, tries ``copy_fn`` up to ``max_attempts`` times per
    task and reports the destination key of every task that never succeeded
    to the failure queue. Once all workers have exited a supervisor closes the
    failure queue, which lets ``run`` finish draining it.
    """

    def __init__(
        self,
        copy_fn: Callable[[CopyTask], Any],
        worker_count: int = NUM_COPIERS,
        max_attempts: int = MAX_ATTEMPTS,
        queue_size: int = QUEUE_SIZE,
        attempt_timeout: Optional[float] = None,
    ):
        """Initialize the dispatcher.

        Args:
            copy_fn: Performs one copy attempt. May be a coroutine function or a
                blocking callable; blocking callables run in a thread pool sized
                to ``worker_count``, and an awaitable they return is awaited.
                Raising or returning False marks the attempt as failed.
            worker_count: Number of concurrent workers
            max_attempts: Attempts per task before it is reported as failed
            queue_size: Capacity of the work queue (0 means unbounded)
            attempt_timeout: Optional per-attempt limit in seconds; None waits forever
        """
        if worker_count < 1:
            raise ValueError(f"worker_count must be positive, got {worker_count}")
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be positive, got {max_attempts}")
        if queue_size < 0:
            raise ValueError(f"queue_size must be non-negative, got {queue_size}")

        self.copy_fn = copy_fn
        self.worker_count = worker_count
        self.max_attempts = max_attempts
        self.queue_size = queue_size
        self.attempt_timeout = attempt_timeout
        self._is_async = inspect.iscoroutinefunction(copy_fn) or inspect.iscoroutinefunction(
            getattr(copy_fn, "__call__", None)
        )

        # Statistics
        self._stats = {
            "tasks_enqueued": 0,
            "tasks_succeeded": 0,
            "tasks_failed": 0,
            "attempts": 0,
            "retries": 0,
            "active_workers": 0,
        }

        # Run state
        self.running = False
        self._executor: Optional[ThreadPoolExecutor] = None

    async def run(self, tasks: Iterable[CopyTask]) -> List[str]:
        """Copy every task and return the destination keys that failed all attempts.

        A dispatcher handles one run at a time; counters are reset when a run starts.

        Args:
            tasks: Finite collection of copy tasks

        Returns:
            Destination keys of permanently failed tasks, each exactly once, in no particular order
        """
        if self.running:
            raise RuntimeError("CopyDispatcher is already running")

        tasks = list(tasks)
        self.running = True
        self.reset_statistics()
        logger.info(f"Dispatching {len(tasks)} copy tasks to {self.worker_count} workers")

        work_queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        failure_queue: asyncio.Queue = asyncio.Queue()
        barrier = CompletionBarrier(self.worker_count)

        # Blocking copy functions get one thread per worker
        if not self._is_async:
            self._executor = ThreadPoolExecutor(max_workers=self.worker_count, thread_name_prefix="copier")

        workers = [
            asyncio.create_task(
                self._worker(worker_id, work_queue, failure_queue, barrier),
                name=f"copier-{worker_id}",
            )
            for worker_id in range(self.worker_count)
        ]
        supervisor = asyncio.create_task(self._close_when_done(barrier, failure_queue))

        failed: List[str] = []
        try:
            for task in tasks:
                await work_queue.put(task)
                self._stats["tasks_enqueued"] += 1

            # Close the work queue: one marker per worker
            for _ in range(self.worker_count):
                await work_queue.put(_CLOSED)

            while True:
                dest_key = await failure_queue.get()
                if dest_key is _CLOSED:
                    break
                failed.append(dest_key)

            await asyncio.gather(supervisor, *workers)

        finally:
            for pending in (supervisor, *workers):
                if not pending.done():
                    pending.cancel()
            if self._executor is not None:
                self._executor.shutdown(wait=False)
                self._executor = None
            self.running = False

        logger.info(f"Dispatch finished: {len(tasks) - len(failed)} copied, {len(failed)} failed")
        return failed

    def run_blocking(self, tasks: Iterable[CopyTask]) -> List[str]:
        """Synchronous wrapper around ``run`` for callers without an event loop."""
        return asyncio.run(self.run(tasks))

    async def _worker(
        self,
        worker_id: int,
        work_queue: asyncio.Queue,
        failure_queue: asyncio.Queue,
        barrier: CompletionBarrier,
    ) -> None:
        """Take tasks until the work queue is closed."""
        logger.debug(f"Copier {worker_id} started")

        try:
            while True:
                task = await work_queue.get()
                if task is _CLOSED:
                    break

                self._stats["active_workers"] += 1
                try:
                    if not await self._copy_with_retry(task):
                        await failure_queue.put(task.dest_key)
                finally:
                    self._stats["active_workers"] -= 1

        finally:
            barrier.arrive()
            logger.debug(f"Copier {worker_id} exited")

    async def _close_when_done(self, barrier: CompletionBarrier, failure_queue: asyncio.Queue) -> None:
        """Close the failure queue once every worker has exited."""
        await barrier.wait()
        await failure_queue.put(_CLOSED)

    async def _copy_with_retry(self, task: CopyTask) -> bool:
        """Attempt a copy up to ``max_attempts`` times, stopping at the first success.

        Args:
            task: Copy task to perform

        Returns:
            True if any attempt succeeded, False otherwise
        """
        for attempt in range(1, self.max_attempts + 1):
            self._stats["attempts"] += 1
            if attempt > 1:
                self._stats["retries"] += 1

            if await self._attempt(task):
                self._stats["tasks_succeeded"] += 1
                logger.debug(f"Copied {task} on attempt {attempt}")
                return True

            logger.debug(f"Attempt {attempt}/{self.max_attempts} failed for {task.dest_key}")

        self._stats["tasks_failed"] += 1
        logger.error(f"Giving up on {task.dest_key} after {self.max_attempts} attempts")
        return False

    async def _call(self, task: CopyTask) -> Any:
        """Invoke ``copy_fn`` and resolve its result."""
        if self._is_async:
            result = self.copy_fn(task)
        else:
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(self._executor, self.copy_fn, task)

        # Plain wrappers around coroutine functions hand back an awaitable
        while inspect.isawaitable(result):
            result = await result
        return result

    async def _attempt(self, task: CopyTask) -> bool:
        """Run ``copy_fn`` once and turn its outcome into success or failure."""
        try:
            if self.attempt_timeout is None:
                result = await self._call(task)
            else:
                result = await asyncio.wait_for(self._call(task), timeout=self.attempt_timeout)

        except asyncio.TimeoutError:
            logger.warning(f"Copy to {task.dest_key} timed out after {self.attempt_timeout}s")
            return False
        except Exception as e:
            logger.warning(f"Copy to {task.dest_key} failed: {e}")
            return False

        return result is not False

    def get_statistics(self) -> Dict[str, Any]:
        """Get dispatcher statistics.

        Returns:
            Statistics dictionary
        """
        return {
            "worker_count": self.worker_count,
            "max_attempts": self.max_attempts,
            **self._stats,
        }

    def reset_statistics(self) -> None:
        """Reset statistics counters."""
        self._stats = {
            "tasks_enqueued": 0,
            "tasks_succeeded": 0,
            "tasks_failed": 0,
            "attempts": 0,
            "retries": 0,
            "active_workers": self._stats["active_workers"],  # Keep active count
        }


async def copy_all(tasks: Iterable[CopyTask], copy_fn: Callable[[CopyTask], Any], **kwargs) -> List[str]:
    """Run a one-off dispatcher over ``tasks`` and return the failed destination keys."""
    dispatcher = CopyDispatcher(copy_fn, **kwargs)
    return await dispatcher.run(tasks)
