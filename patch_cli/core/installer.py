"""
Turns a completed partial download into the installed file.
"""

import asyncio
import logging
import os
from pathlib import Path

import snappy

from patch_cli.exceptions import DecompressionError

from .inventory import restore_mtime

log = logging.getLogger(__name__)

# Stream identifier chunk written by S2 encoders; python-snappy only reads "sNaPpY"
S2_STREAM_HEADER = b"\xff\x06\x00\x00S2sTwO"


class InstallFinalizer:
    """Decompresses a Snappy-framed payload into its final path."""

    @staticmethod
    def _finalize(partial_path: Path, final_path: Path, last_modified: int) -> None:
        with open(partial_path, "rb") as src:
            if src.read(len(S2_STREAM_HEADER)) == S2_STREAM_HEADER:
                raise DecompressionError(
                    f"'{partial_path.name}' is S2-framed; mirrors must serve "
                    "Snappy-framed payloads."
                )
            src.seek(0)
            final_path.parent.mkdir(parents=True, exist_ok=True)
            try:
                with open(final_path, "wb") as dst:
                    snappy.stream_decompress(src, dst)
            except OSError:
                raise
            except Exception as e:
                # The destination now holds a truncated payload; don't leave it around
                final_path.unlink(missing_ok=True)
                raise DecompressionError(
                    f"Could not decompress '{partial_path.name}': {e}"
                ) from e

        os.remove(partial_path)
        restore_mtime(final_path, last_modified)

    async def install(
        self, partial_path: Path, final_path: Path, last_modified: int
    ) -> None:
        """
        Decompresses `partial_path` into `final_path`, deletes the partial
        file and stamps the manifest's modification time on the result.

        Raises:
            DecompressionError: The payload is not a valid Snappy stream.
            OSError: Local I/O failed.
        """
        await asyncio.to_thread(self._finalize, partial_path, final_path, last_modified)
        log.debug(f"Installed {final_path}")
