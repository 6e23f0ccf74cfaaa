"""
Fetches the binary manifest from the first reachable mirror and decodes it.
"""

import asyncio
import logging

import aiohttp

from patch_cli.exceptions import ManifestFetchError
from patch_cli.models.config import DEFAULT_MANIFEST_NAME, DEFAULT_OBFUSCATION_KEY
from patch_cli.models.manifest import Endpoint, Manifest

from .codec import load_manifest_blob

log = logging.getLogger(__name__)


class ManifestLoader:
    """Downloads `version.bin` (or the configured name) and decodes it."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        manifest_name: str = DEFAULT_MANIFEST_NAME,
        obfuscation_key: int = DEFAULT_OBFUSCATION_KEY,
    ):
        self.session = session
        self.manifest_name = manifest_name
        self.obfuscation_key = obfuscation_key

    async def fetch(self, endpoint: Endpoint) -> bytes:
        """
        Downloads the raw manifest. There is no failover: a failure on the
        given mirror is final.
        """
        url = endpoint.url_for(self.manifest_name)
        log.debug(f"Fetching manifest from {url}")
        try:
            async with self.session.get(url) as response:
                response.raise_for_status()
                return await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ManifestFetchError(f"Could not fetch the manifest from {url}: {e}") from e

    async def load(self, endpoint: Endpoint) -> Manifest:
        """
        Fetches and decodes the manifest.

        Raises:
            ManifestFetchError: The download failed.
            ManifestDecodeError: The content is truncated or malformed.
        """
        blob = await self.fetch(endpoint)
        manifest = load_manifest_blob(blob, self.obfuscation_key)
        log.debug(f"Decoded {len(manifest)} manifest entries ({len(blob)} bytes).")
        return manifest
