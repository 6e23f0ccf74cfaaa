"""
Binary manifest codec.

After de-obfuscation the layout is::

    [16-byte reserved header][uint32 LE entry count][entry]*

    entry = [uint32 LE path length][path bytes]
            [uint32 LE hash length][hash bytes (hex text)]
            [int64 LE last-modified, unix seconds]
"""

import logging
import struct

from patch_cli.exceptions import ManifestDecodeError
from patch_cli.models.config import DEFAULT_OBFUSCATION_KEY
from patch_cli.models.manifest import Manifest, ManifestEntry, normalize_manifest_path

log = logging.getLogger(__name__)

HEADER_SIZE = 16
COUNT = struct.Struct("<I")
LENGTH = struct.Struct("<I")
TIMESTAMP = struct.Struct("<q")


def xor_obfuscate(data: bytes, key: int = DEFAULT_OBFUSCATION_KEY) -> bytes:
    """
    XORs byte `i` with `((i mod 255) + key) mod 256`.

    The transform is its own inverse, so the same call obfuscates and
    de-obfuscates. It hides the manifest from casual inspection only.
    """
    # The rolling key repeats every 255 bytes
    pad = bytes(((i % 0xFF) + key) & 0xFF for i in range(0xFF))
    return bytes(b ^ pad[i % 0xFF] for i, b in enumerate(data))


class _Reader:
    """Bounds-checked cursor over the de-obfuscated manifest."""

    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    @property
    def remaining(self) -> int:
        return len(self.data) - self.offset

    def take(self, size: int, what: str) -> bytes:
        if size > self.remaining:
            raise ManifestDecodeError(
                f"Manifest truncated while reading {what}: needed {size} bytes at "
                f"offset {self.offset}, only {self.remaining} left."
            )
        chunk = self.data[self.offset : self.offset + size]
        self.offset += size
        return chunk

    def unpack(self, fmt: struct.Struct, what: str) -> int:
        return fmt.unpack(self.take(fmt.size, what))[0]


def _validate_path(path: str, index: int) -> None:
    parts = normalize_manifest_path(path).split("/")
    if not path or not any(parts):
        raise ManifestDecodeError(f"Manifest entry {index} has an empty path.")
    if path.startswith(("/", "\\")) or (len(path) > 1 and path[1] == ":"):
        raise ManifestDecodeError(
            f"Manifest entry {index} has an absolute path: {path!r}"
        )
    if ".." in parts:
        raise ManifestDecodeError(
            f"Manifest entry {index} escapes the install directory: {path!r}"
        )


def decode_manifest(data: bytes) -> Manifest:
    """
    Parses an already de-obfuscated manifest.

    Raises:
        ManifestDecodeError: If the buffer runs out before every declared entry
        is read, or an entry is unusable.
    """
    reader = _Reader(data)
    reader.take(HEADER_SIZE, "reserved header")
    declared_count = reader.unpack(COUNT, "entry count")

    entries: list[ManifestEntry] = []
    seen: set[str] = set()
    for index in range(declared_count):
        what = f"entry {index}/{declared_count}"
        path_len = reader.unpack(LENGTH, f"{what} path length")
        raw_path = reader.take(path_len, f"{what} path")
        hash_len = reader.unpack(LENGTH, f"{what} hash length")
        raw_hash = reader.take(hash_len, f"{what} hash")
        last_modified = reader.unpack(TIMESTAMP, f"{what} timestamp")

        try:
            path = raw_path.decode("utf-8")
            content_hash = raw_hash.decode("ascii")
        except UnicodeDecodeError as e:
            raise ManifestDecodeError(f"Manifest {what} is not valid text: {e}") from e

        _validate_path(path, index)
        key = normalize_manifest_path(path)
        if key in seen:
            raise ManifestDecodeError(f"Manifest lists {path!r} more than once.")
        seen.add(key)

        entries.append(ManifestEntry(path, content_hash, last_modified))

    if reader.remaining:
        log.debug(f"Ignoring {reader.remaining} trailing bytes after the manifest.")

    return Manifest(declared_count=declared_count, entries=tuple(entries))


def load_manifest_blob(blob: bytes, key: int = DEFAULT_OBFUSCATION_KEY) -> Manifest:
    """De-obfuscates and decodes a manifest exactly as served by a mirror."""
    return decode_manifest(xor_obfuscate(blob, key))
