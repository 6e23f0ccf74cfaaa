"""
Dataclass for tracking patch session statistics.
"""

from dataclasses import dataclass

from .manifest import LocalFileState


@dataclass
class PatchStats:
    """Tracks what a reconciliation run found and what it transferred."""

    manifest_entries: int = 0
    files_up_to_date: int = 0
    files_protected: int = 0
    files_missing: int = 0
    files_stale: int = 0
    files_fetched: int = 0
    files_failed: int = 0
    files_resumed: int = 0
    files_retried: int = 0
    bytes_transferred: int = 0
    dry_run: bool = False

    @property
    def files_queued(self) -> int:
        return self.files_missing + self.files_stale

    def record_state(self, state: LocalFileState) -> None:
        """Counts one verifier classification."""
        if state is LocalFileState.MISSING:
            self.files_missing += 1
        elif state is LocalFileState.STALE:
            self.files_stale += 1
        elif state is LocalFileState.PROTECTED:
            self.files_protected += 1
        else:
            self.files_up_to_date += 1

    def as_dict(self) -> dict[str, int]:
        return {
            "manifest_entries": self.manifest_entries,
            "files_up_to_date": self.files_up_to_date,
            "files_protected": self.files_protected,
            "files_queued": self.files_queued,
            "files_fetched": self.files_fetched,
            "files_failed": self.files_failed,
            "files_resumed": self.files_resumed,
            "files_retried": self.files_retried,
            "bytes_transferred": self.bytes_transferred,
        }
