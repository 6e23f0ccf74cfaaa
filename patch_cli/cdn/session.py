"""
Builds the aiohttp client session shared by the prober, the manifest loader
and every download worker of a run.
"""

import logging

import aiohttp

from patch_cli import __version__
from patch_cli.models.config import PatchConfig

log = logging.getLogger(__name__)


def create_session(config: PatchConfig) -> aiohttp.ClientSession:
    """
    Creates the connection pool for one patch run.

    The session is owned by the caller, which must close it. Must be called
    from within a running event loop.

    Args:
        config: Validated configuration; `max_workers` sizes the pool.
    """
    connector = aiohttp.TCPConnector(
        limit=config.max_workers * 2,  # Total connections
        limit_per_host=config.max_workers,  # Per mirror
        ttl_dns_cache=600,  # 10 minutes
        keepalive_timeout=30,
        enable_cleanup_closed=True,
        force_close=False,
    )
    timeout = aiohttp.ClientTimeout(
        total=None,
        sock_connect=config.connect_timeout,
        sock_read=config.read_timeout,
    )
    session = aiohttp.ClientSession(
        connector=connector,
        timeout=timeout,
        headers={
            "User-Agent": f"patch-cli/{__version__}",
            # Range offsets must refer to the stored payload, not a re-encoded one
            "Accept-Encoding": "identity",
        },
    )
    log.debug(f"Created download pool with limit_per_host={config.max_workers}")
    return session
