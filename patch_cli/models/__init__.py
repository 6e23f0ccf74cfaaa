"""
Data Models Layer.

This package contains the Pydantic configuration model and the plain data
structures that flow through the patch pipeline.
"""

from .config import PatchConfig
from .context import PatchContext, assign_endpoint
from .manifest import (
    Endpoint,
    FetchJob,
    FetchResult,
    LocalFileState,
    Manifest,
    ManifestEntry,
    TransferMode,
)
from .stats import PatchStats

__all__ = [
    "Endpoint",
    "FetchJob",
    "FetchResult",
    "LocalFileState",
    "Manifest",
    "ManifestEntry",
    "PatchConfig",
    "PatchContext",
    "PatchStats",
    "TransferMode",
    "assign_endpoint",
]
