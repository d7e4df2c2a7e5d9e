# analysis queue - bounded in-memory work queue for entry analysis
# N worker tasks pull entry ids off an asyncio.Queue; started and stopped
# from the app lifespan so requests never await an analysis
#
# per entry id:
#   - at most one job waits in the queue (resubmits replace its content)
#   - at most one job runs; a submit during the run is deferred until it ends

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

Handler = Callable[[str, str], Awaitable[bool]]


class AnalysisQueue:
    """fire-and-forget analysis jobs keyed by entry id"""

    def __init__(self, handler: Handler, concurrency: int = 4, maxsize: int = 100):
        self._handler = handler
        self._concurrency = max(1, concurrency)
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._queued: dict[str, str] = {}
        self._deferred: dict[str, str] = {}
        self._running: set[str] = set()
        self._workers: list[asyncio.Task] = []

        self.submitted = 0
        self.completed = 0
        self.failed = 0
        self.rejected = 0

    @property
    def started(self) -> bool:
        return bool(self._workers)

    def submit(self, entry_id: str, content: str) -> bool:
        """queue an entry for analysis; false when the queue is full"""
        if entry_id in self._queued:
            self._queued[entry_id] = content
            return True
        if entry_id in self._running:
            self._deferred[entry_id] = content
            return True
        return self._enqueue(entry_id, content)

    def _enqueue(self, entry_id: str, content: str) -> bool:
        try:
            self._queue.put_nowait(entry_id)
        except asyncio.QueueFull:
            self.rejected += 1
            logger.warning(f"Analysis queue full, dropping entry {entry_id} (it stays unprocessed)")
            return False
        self._queued[entry_id] = content
        self.submitted += 1
        return True

    async def _worker(self, index: int):
        while True:
            entry_id = await self._queue.get()
            try:
                content = self._queued.pop(entry_id, None)
                if content is None:
                    continue
                self._running.add(entry_id)
                try:
                    ok = await self._handler(entry_id, content)
                except Exception as e:
                    logger.exception(f"Analysis worker {index} crashed on entry {entry_id}: {e}")
                    ok = False
                if ok:
                    self.completed += 1
                else:
                    self.failed += 1
            finally:
                self._running.discard(entry_id)
                deferred = self._deferred.pop(entry_id, None)
                if deferred is not None:
                    self._enqueue(entry_id, deferred)
                self._queue.task_done()

    def start(self):
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"analysis-worker-{i}")
            for i in range(self._concurrency)
        ]
        logger.info(f"Analysis queue started with {self._concurrency} workers")

    async def stop(self):
        if not self._workers:
            return
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info(f"Analysis queue stopped ({self._queue.qsize()} jobs left unprocessed)")

    async def join(self, timeout: Optional[float] = None):
        """wait until every queued and deferred job has been handled"""
        if timeout is None:
            await self._queue.join()
        else:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)

    def stats(self) -> dict:
        return {
            "queued": len(self._queued),
            "running": len(self._running),
            "submitted": self.submitted,
            "completed": self.completed,
            "failed": self.failed,
            "rejected": self.rejected,
        }
