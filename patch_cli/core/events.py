"""
Progress events emitted by the transfer loop.

The core only reports byte positions; how they are rendered is up to the
listener (the CLI plugs in its Rich-based `ProgressManager`).
"""

from typing import Protocol


class ProgressListener(Protocol):
    """Receives per-transfer byte positions. One transfer per path at a time."""

    def files_queued(self, count: int) -> None:
        """`count` files are about to be dispatched."""

    def transfer_started(self, path: str, offset: int, total: int | None) -> None:
        """A transfer attempt began at `offset`; `total` is None if unknown."""

    def transfer_advanced(self, path: str, position: int) -> None:
        """`position` bytes of the file are now on disk."""

    def transfer_finished(self, path: str, success: bool) -> None:
        """The attempt ended, successfully or not."""


class NullProgress:
    """A listener that ignores every event."""

    def files_queued(self, count: int) -> None:
        pass

    def transfer_started(self, path: str, offset: int, total: int | None) -> None:
        pass

    def transfer_advanced(self, path: str, position: int) -> None:
        pass

    def transfer_finished(self, path: str, success: bool) -> None:
        pass
