"""
Determines which of the configured mirrors are currently reachable.
"""

import asyncio
import logging

import aiohttp

from patch_cli.models.manifest import Endpoint

log = logging.getLogger(__name__)


class EndpointProber:
    """Issues a lightweight HEAD request against every candidate mirror."""

    def __init__(self, session: aiohttp.ClientSession, timeout: float = 10.0):
        self.session = session
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def _probe(self, endpoint: Endpoint) -> bool:
        try:
            async with self.session.head(
                endpoint.base_url, timeout=self.timeout, allow_redirects=True
            ) as response:
                if response.status == 200:
                    return True
                log.debug(
                    f"Mirror #{endpoint.index} ({endpoint.base_url}) answered "
                    f"HTTP {response.status}."
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.debug(f"Mirror #{endpoint.index} ({endpoint.base_url}) is down: {e}")
        return False

    async def probe(self, base_urls: list[str]) -> tuple[Endpoint, ...]:
        """
        Probes all mirrors concurrently.

        Args:
            base_urls: The configured mirrors, in priority order.

        Returns:
            The reachable mirrors, in configured order. May be empty; deciding
            whether that is fatal is left to the caller.
        """
        candidates = [Endpoint(index, url) for index, url in enumerate(base_urls)]
        results = await asyncio.gather(*(self._probe(c) for c in candidates))
        reachable = tuple(c for c, ok in zip(candidates, results) if ok)
        log.debug(f"{len(reachable)}/{len(candidates)} mirrors reachable.")
        return reachable
