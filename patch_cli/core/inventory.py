"""
Walks the manifest against the local installation and decides which files
have to be fetched.
"""

import asyncio
import hashlib
import logging
import os
import stat
from pathlib import Path

from rich.markup import escape

from patch_cli.models.context import PatchContext
from patch_cli.models.manifest import LocalFileState, ManifestEntry
from patch_cli.models.stats import PatchStats

log = logging.getLogger(__name__)

HASH_CHUNK_SIZE = 1024 * 1024  # 1 MB


def hash_file(path: Path) -> str:
    """Returns the hex BLAKE2b-256 digest of a file's full content."""
    hasher = hashlib.blake2b(digest_size=32)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def restore_mtime(path: Path, last_modified: int) -> None:
    """Sets both access and modification time to the manifest's timestamp."""
    os.utime(path, (last_modified, last_modified))


class InventoryVerifier:
    """Classifies every manifest entry against the installation directory."""

    def __init__(self, context: PatchContext, stats: PatchStats | None = None):
        self.context = context
        self.stats = stats or PatchStats()

    def is_protected(self, mode: int) -> bool:
        return stat.S_IMODE(mode) == self.context.protected_mode

    def classify(self, entry: ManifestEntry) -> LocalFileState:
        """
        Determines the local state of one entry. Blocking; hashes the file.

        An up-to-date file gets its modification time restored to the
        manifest value unless this is a dry run.
        """
        local_path = entry.local_path(self.context.install_dir)
        try:
            st = local_path.stat()
        except FileNotFoundError:
            return LocalFileState.MISSING

        if self.is_protected(st.st_mode):
            return LocalFileState.PROTECTED

        try:
            digest = hash_file(local_path)
        except OSError as e:
            log.debug(f"Could not hash '{local_path}': {e}")
            return LocalFileState.STALE

        if digest != entry.content_hash:
            return LocalFileState.STALE

        if not self.context.dry_run:
            try:
                restore_mtime(local_path, entry.last_modified)
            except OSError as e:
                log.warning(f"[yellow]Could not restore mtime of {local_path}: {e}[/]")
        return LocalFileState.UP_TO_DATE

    async def verify(self, entries: tuple[ManifestEntry, ...]) -> list[ManifestEntry]:
        """
        Classifies all entries in manifest order.

        Returns:
            The entries that are missing or stale, in manifest order.
        """
        to_fetch: list[ManifestEntry] = []
        for entry in entries:
            state = await asyncio.to_thread(self.classify, entry)
            self.stats.record_state(state)

            if state is LocalFileState.PROTECTED:
                log.info(
                    f"  [yellow]○ Skipping:[/] [dim]{escape(entry.path)}[/dim] "
                    "(custom, read-only)"
                )
            elif state.needs_fetch:
                log.debug(f"Checking {entry.path}: need to download ({state.value}).")
                to_fetch.append(entry)
            else:
                log.debug(f"Checking {entry.path}: OK.")

        return to_fetch
