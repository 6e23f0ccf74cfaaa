"""
Distributes the files that need fetching across a fixed pool of workers.
"""

import asyncio
import logging

from rich.markup import escape

from patch_cli.models.context import PatchContext
from patch_cli.models.manifest import FetchJob, FetchResult, ManifestEntry

from .fetcher import ResumableFetcher

log = logging.getLogger(__name__)


class FetchDispatcher:
    """
    Runs `worker_count` workers over one FIFO queue.

    Every entry is queued before any worker starts. Worker `i` is bound to
    mirror `i mod N` for its whole life. `dispatch()` returns only once every
    entry has been acknowledged by exactly one worker.
    """

    def __init__(self, context: PatchContext, fetcher: ResumableFetcher):
        self.context = context
        self.fetcher = fetcher

    async def _worker(
        self,
        worker_id: int,
        queue: "asyncio.Queue[ManifestEntry]",
        results: list[FetchResult],
    ) -> None:
        endpoint = self.context.endpoint_for_worker(worker_id)
        log.debug(f"Worker {worker_id} bound to mirror #{endpoint.index}.")
        while True:
            entry = await queue.get()
            job = FetchJob(entry, endpoint)
            try:
                results.append(await self.fetcher.fetch(job))
            except Exception as e:
                # A bug in one transfer must not take down the other workers
                log.error(
                    f"[red]✗ Unexpected error while fetching "
                    f"{escape(entry.path)}: {e}[/red]",
                    exc_info=log.getEffectiveLevel() == logging.DEBUG,
                )
                results.append(
                    FetchResult(entry, job.url, success=False, attempts=0, error=str(e))
                )
            finally:
                queue.task_done()

    async def dispatch(self, entries: list[ManifestEntry]) -> list[FetchResult]:
        """
        Fetches all entries and waits for every one of them to finish.

        Returns:
            One result per entry, in completion order.
        """
        if not entries:
            return []

        queue: asyncio.Queue[ManifestEntry] = asyncio.Queue()
        for entry in entries:
            queue.put_nowait(entry)

        results: list[FetchResult] = []
        workers = [
            asyncio.create_task(self._worker(worker_id, queue, results))
            for worker_id in range(self.context.worker_count)
        ]
        try:
            await queue.join()
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        return results
