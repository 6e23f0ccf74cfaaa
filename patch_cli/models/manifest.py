"""
Data structures describing mirrors, manifest entries and the per-file work
that flows through the reconciliation pipeline.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


def normalize_manifest_path(path: str) -> str:
    """Manifests may use Windows separators; everything downstream uses '/'."""
    return path.replace("\\", "/")


@dataclass(frozen=True)
class Endpoint:
    """One interchangeable content-delivery mirror."""

    index: int
    base_url: str

    def url_for(self, path: str) -> str:
        """Builds the download URL of a manifest path on this mirror."""
        return self.base_url + normalize_manifest_path(path).lstrip("/")


@dataclass(frozen=True)
class ManifestEntry:
    """A single expected file: where it lives, its digest and its mtime."""

    path: str
    content_hash: str
    last_modified: int

    def local_path(self, install_dir: Path) -> Path:
        """Resolves the entry below the installation directory."""
        return Path(install_dir).joinpath(*normalize_manifest_path(self.path).split("/"))


@dataclass(frozen=True)
class Manifest:
    """The decoded manifest; `declared_count` always equals `len(entries)`."""

    declared_count: int
    entries: tuple[ManifestEntry, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.entries)


class LocalFileState(Enum):
    """Classification of a local file against its manifest entry."""

    MISSING = "missing"
    STALE = "stale"  # Content digest differs from the manifest
    PROTECTED = "protected"  # Read-only by convention, never touched
    UP_TO_DATE = "up_to_date"

    @property
    def needs_fetch(self) -> bool:
        return self in (LocalFileState.MISSING, LocalFileState.STALE)


class TransferMode(Enum):
    """
    The two attempts a file gets per run. A failure in RESUME escalates to
    FORCED_FRESH; a failure in FORCED_FRESH abandons the file.
    """

    RESUME = "resume"
    FORCED_FRESH = "forced_fresh"


@dataclass(frozen=True)
class FetchJob:
    """A manifest entry bound to the mirror of the worker that picked it up."""

    entry: ManifestEntry
    endpoint: Endpoint

    @property
    def url(self) -> str:
        return self.endpoint.url_for(self.entry.path)


@dataclass(frozen=True)
class FetchResult:
    """Terminal state of a single fetch job."""

    entry: ManifestEntry
    url: str
    success: bool
    attempts: int
    error: str | None = None
