"""
The main orchestrator: probes the mirrors, loads the manifest, verifies the
installation and dispatches the downloads.
"""

import json
import logging
import time
from pathlib import Path

import aiohttp

from patch_cli.cdn.prober import EndpointProber
from patch_cli.cdn.session import create_session
from patch_cli.exceptions import NoReachableEndpointsError
from patch_cli.manifest.loader import ManifestLoader
from patch_cli.models.config import PatchConfig
from patch_cli.models.context import PatchContext
from patch_cli.models.manifest import FetchResult, Manifest
from patch_cli.models.stats import PatchStats

from .dispatcher import FetchDispatcher
from .events import NullProgress, ProgressListener
from .fetcher import ResumableFetcher
from .inventory import InventoryVerifier

log = logging.getLogger(__name__)


class PatchManager:
    """Orchestrates one reconciliation run."""

    def __init__(self, config: PatchConfig, progress: ProgressListener | None = None):
        self.config = config
        self.progress = progress or NullProgress()
        self.stats = PatchStats(dry_run=config.dry_run)
        self.results: list[FetchResult] = []
        self.start_time = time.monotonic()

    def save_session_stats(self) -> None:
        """Appends the current session's stats to a history file."""
        if not self.config.config_path:
            return
        stats_file = Path(self.config.config_path) / "session_history.jsonl"
        try:
            stats_file.parent.mkdir(parents=True, exist_ok=True)
            with open(stats_file, "a", encoding="utf-8") as f:
                session_data = {
                    "timestamp": int(time.time()),
                    "install_dir": self.config.install_dir,
                    **self.stats.as_dict(),
                    "duration_seconds": round(time.monotonic() - self.start_time, 2),
                }
                json.dump(session_data, f)
                f.write("\n")
        except OSError as e:
            log.warning(f"[yellow]Could not save session stats:[/] {e}")

    async def probe(self, session: aiohttp.ClientSession) -> PatchContext:
        """
        Probes the configured mirrors and freezes the run context.

        Raises:
            NoReachableEndpointsError: None of the mirrors answered.
        """
        prober = EndpointProber(session, timeout=self.config.probe_timeout)
        endpoints = await prober.probe(self.config.endpoints)
        if not endpoints:
            raise NoReachableEndpointsError(
                "There are no download servers online "
                f"(tried {len(self.config.endpoints)} mirrors)."
            )
        log.info(
            f"[green]✓[/] {len(endpoints)}/{len(self.config.endpoints)} "
            "download servers online."
        )
        return PatchContext.from_config(self.config, endpoints)

    async def load_manifest(
        self, session: aiohttp.ClientSession, context: PatchContext
    ) -> Manifest:
        loader = ManifestLoader(
            session, self.config.manifest_name, self.config.obfuscation_key
        )
        manifest = await loader.load(context.endpoints[0])
        self.stats.manifest_entries = len(manifest)
        log.info(f"Fetched version information for {len(manifest)} files.")
        return manifest

    async def run(self) -> PatchStats:
        """
        Runs the whole pipeline. Fatal conditions propagate as exceptions;
        per-file failures are only counted.

        Raises:
            NoReachableEndpointsError, ManifestFetchError, ManifestDecodeError
        """
        session = create_session(self.config)
        try:
            context = await self.probe(session)
            manifest = await self.load_manifest(session, context)

            verifier = InventoryVerifier(context, self.stats)
            to_fetch = await verifier.verify(manifest.entries)
            log.info(f"Found {len(to_fetch)} files that need to be updated.")

            if context.dry_run:
                return self.stats

            if to_fetch:
                self.progress.files_queued(len(to_fetch))
                fetcher = ResumableFetcher(session, context, self.progress, self.stats)
                dispatcher = FetchDispatcher(context, fetcher)
                self.results = await dispatcher.dispatch(to_fetch)

            for result in self.results:
                if result.success:
                    self.stats.files_fetched += 1
                else:
                    self.stats.files_failed += 1
        finally:
            await session.close()

        self.save_session_stats()
        return self.stats

    @property
    def failed_results(self) -> list[FetchResult]:
        return [r for r in self.results if not r.success]
