"""
Transfers a single file from its assigned mirror, resuming a previous partial
download when possible and escalating once to a clean re-download.
"""

import asyncio
import logging
from pathlib import Path

import aiofiles
import aiohttp
from rich.markup import escape

from patch_cli.exceptions import DecompressionError, FetchError
from patch_cli.models.context import PatchContext
from patch_cli.models.manifest import FetchJob, FetchResult, TransferMode
from patch_cli.models.stats import PatchStats
from patch_cli.utils.formatting import format_size

from .events import NullProgress, ProgressListener
from .installer import InstallFinalizer

log = logging.getLogger(__name__)

PARTIAL_SUFFIX = ".tmp"

# Everything that aborts a single attempt without affecting other files
ATTEMPT_ERRORS = (
    aiohttp.ClientError,
    asyncio.TimeoutError,
    OSError,
    FetchError,
    DecompressionError,
)


def partial_path_for(final_path: Path) -> Path:
    """The `<path>.tmp` file that doubles as a resume checkpoint."""
    return final_path.with_name(final_path.name + PARTIAL_SUFFIX)


class ResumableFetcher:
    """
    Downloads one file with at most two attempts:

    1. RESUME: continue an existing `.tmp` with a Range request, or start one.
    2. FORCED_FRESH: only after a failed first attempt; download from byte 0.

    A file whose second attempt fails is abandoned for this run.
    """

    CHUNK_SIZE = 262144  # 256 KB
    ATTEMPT_ORDER = (TransferMode.RESUME, TransferMode.FORCED_FRESH)

    def __init__(
        self,
        session: aiohttp.ClientSession,
        context: PatchContext,
        progress: ProgressListener | None = None,
        stats: PatchStats | None = None,
        finalizer: InstallFinalizer | None = None,
    ):
        self.session = session
        self.context = context
        self.progress = progress or NullProgress()
        self.stats = stats or PatchStats()
        self.finalizer = finalizer or InstallFinalizer()

    async def fetch(self, job: FetchJob) -> FetchResult:
        """
        Runs the per-file state machine to a terminal state. Never raises for
        transfer, I/O or decompression failures.
        """
        url = job.url
        last_error: Exception | None = None

        for attempt, mode in enumerate(self.ATTEMPT_ORDER, start=1):
            try:
                await self._attempt(job, mode)
                return FetchResult(job.entry, url, success=True, attempts=attempt)
            except ATTEMPT_ERRORS as e:
                last_error = e
                if mode is TransferMode.RESUME:
                    self.stats.files_retried += 1
                    log.warning(
                        f"[yellow]{escape(job.entry.path)}: {e} ({url}), "
                        "retrying from scratch.[/yellow]"
                    )

        log.error(
            f"  [red]✗ Download for {escape(url)} failed again, check manually.[/] "
            f"({last_error})"
        )
        return FetchResult(
            job.entry,
            url,
            success=False,
            attempts=len(self.ATTEMPT_ORDER),
            error=str(last_error),
        )

    @staticmethod
    def resume_offset(partial_path: Path, mode: TransferMode) -> int:
        """Creates the target directory and returns the byte to resume from."""
        partial_path.parent.mkdir(parents=True, exist_ok=True)
        if mode is TransferMode.RESUME and partial_path.is_file():
            return partial_path.stat().st_size
        return 0

    async def _attempt(self, job: FetchJob, mode: TransferMode) -> None:
        entry = job.entry
        final_path = entry.local_path(self.context.install_dir)
        partial_path = partial_path_for(final_path)
        offset = await asyncio.to_thread(self.resume_offset, partial_path, mode)

        headers = {}
        if offset:
            headers["Range"] = f"bytes={offset}-"
            log.info(f"Resuming {escape(entry.path)} from byte position {format_size(offset)}.")

        started = success = False
        try:
            async with self.session.get(job.url, headers=headers) as response:
                response.raise_for_status()

                if offset and response.status != 206:
                    log.debug(
                        f"{job.url} ignored the range request "
                        f"(HTTP {response.status}), restarting from byte 0."
                    )
                    offset = 0
                elif offset:
                    self.stats.files_resumed += 1

                total = None
                if response.content_length is not None:
                    total = offset + response.content_length
                self.progress.transfer_started(entry.path, offset, total)
                started = True

                position = await self._stream_to_disk(
                    response, partial_path, offset, entry.path
                )
                if total is not None and position != total:
                    raise FetchError(
                        f"Connection closed at byte {position} of {total}."
                    )

            await self.finalizer.install(partial_path, final_path, entry.last_modified)
            success = True
        finally:
            if started:
                self.progress.transfer_finished(entry.path, success)

    async def _stream_to_disk(
        self,
        response: aiohttp.ClientResponse,
        partial_path: Path,
        offset: int,
        path: str,
    ) -> int:
        """Appends (offset > 0) or writes the body to the partial file."""
        file_mode = "ab" if offset else "wb"
        position = offset
        async with aiofiles.open(partial_path, file_mode) as f:
            async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
                await f.write(chunk)
                position += len(chunk)
                self.stats.bytes_transferred += len(chunk)
                self.progress.transfer_advanced(path, position)
        return position
