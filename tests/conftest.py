"""Shared pytest fixtures for all tests."""

import hashlib
import io
import struct

import aiohttp
import pytest
import pytest_asyncio
import snappy
from aiohttp import web
from aiohttp.test_utils import TestServer

from patch_cli.manifest.codec import xor_obfuscate
from patch_cli.models import Endpoint, PatchContext

MANIFEST_NAME = "version.bin"
UNREACHABLE_URL = "http://127.0.0.1:1/"


def blake2b_hex(data: bytes) -> str:
    """Digest in the form the manifest carries it."""
    return hashlib.blake2b(data, digest_size=32).hexdigest()


def compress(data: bytes) -> bytes:
    """Wraps content in the Snappy framing format the mirrors serve."""
    dst = io.BytesIO()
    snappy.stream_compress(io.BytesIO(data), dst)
    return dst.getvalue()


def encode_manifest(entries, key=0x69, count=None, header=bytes(16), trailer=b""):
    """
    Builds an obfuscated manifest blob.

    Args:
        entries: (path, hash, last_modified) tuples
        key: XOR key; None returns the plain layout
        count: Declared entry count, defaults to len(entries)
    """
    body = bytearray(header)
    body += struct.pack("<I", len(entries) if count is None else count)
    for path, content_hash, last_modified in entries:
        raw_path = path.encode("utf-8")
        raw_hash = content_hash.encode("ascii")
        body += struct.pack("<I", len(raw_path)) + raw_path
        body += struct.pack("<I", len(raw_hash)) + raw_hash
        body += struct.pack("<q", last_modified)
    body += trailer
    if key is None:
        return bytes(body)
    return xor_obfuscate(bytes(body), key)


class FakeCdn:
    """
    A local mirror serving compressed payloads, with switches for the
    failure modes real mirrors show.
    """

    def __init__(self, files=None, manifest=None):
        self.files: dict[str, bytes] = dict(files or {})
        self.manifest = manifest
        self.requests: list[tuple[str, str, str | None]] = []
        self.head_status = 200
        self.fail_paths: set[str] = set()
        self.fail_ranges = False
        self.ignore_ranges = False
        self.drop_ranges_after: int | None = None
        self.server: TestServer | None = None

        self.app = web.Application()
        self.app.router.add_route("*", "/{path:.*}", self.handle)

    async def start(self):
        self.server = TestServer(self.app)
        await self.server.start_server()
        return self

    async def close(self):
        if self.server:
            await self.server.close()

    @property
    def base_url(self) -> str:
        return str(self.server.make_url("/"))

    def publish(self, path: str, content: bytes) -> bytes:
        """Serves `content` compressed under `path`; returns the payload."""
        payload = compress(content)
        self.files[path] = payload
        return payload

    def gets(self, path: str) -> list[str | None]:
        """Range headers of every GET for `path`, in arrival order."""
        return [rng for method, p, rng in self.requests if method == "GET" and p == path]

    async def handle(self, request: web.Request) -> web.Response:
        path = request.match_info["path"]
        range_header = request.headers.get("Range")
        self.requests.append((request.method, path, range_header))

        if request.method == "HEAD":
            return web.Response(status=self.head_status)
        if path == MANIFEST_NAME and self.manifest is not None:
            return web.Response(body=self.manifest)
        if path in self.fail_paths:
            return web.Response(status=500)
        if path not in self.files:
            return web.Response(status=404)

        data = self.files[path]
        if range_header and not self.ignore_ranges:
            if self.fail_ranges:
                return web.Response(status=500)
            start = int(range_header.removeprefix("bytes=").rstrip("-"))
            if start >= len(data):
                return web.Response(status=416)
            if self.drop_ranges_after is not None:
                return await self._drop_midway(request, data[start:])
            return web.Response(
                status=206,
                body=data[start:],
                headers={"Content-Range": f"bytes {start}-{len(data) - 1}/{len(data)}"},
            )
        return web.Response(body=data)

    async def _drop_midway(self, request: web.Request, body: bytes) -> web.StreamResponse:
        """Starts a 206 for `body`, sends part of it and hangs up."""
        response = web.StreamResponse(status=206)
        response.content_length = len(body)
        await response.prepare(request)
        await response.write(body[: self.drop_ranges_after])
        request.transport.close()
        return response


@pytest_asyncio.fixture
async def cdn():
    """A running mirror with no content."""
    mirror = await FakeCdn().start()
    yield mirror
    await mirror.close()


@pytest_asyncio.fixture
async def second_cdn():
    """Another running mirror, for multi-mirror scenarios."""
    mirror = await FakeCdn().start()
    yield mirror
    await mirror.close()


@pytest_asyncio.fixture
async def session():
    """A plain client session, closed after the test."""
    async with aiohttp.ClientSession() as client:
        yield client


@pytest.fixture
def install_dir(tmp_path):
    """
    Create temporary installation directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to an empty install directory
    """
    path = tmp_path / "game"
    path.mkdir()
    return path


@pytest.fixture
def make_context(install_dir):
    """Factory for a run context pointing at `install_dir`."""

    def _make(*base_urls, worker_count=1, dry_run=False):
        return PatchContext(
            install_dir=install_dir,
            endpoints=tuple(Endpoint(i, url) for i, url in enumerate(base_urls)),
            worker_count=worker_count,
            protected_mode=0o444,
            dry_run=dry_run,
        )

    return _make
