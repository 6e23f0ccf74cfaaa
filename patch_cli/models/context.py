"""
Immutable run context shared read-only by every stage of the pipeline.
"""

from dataclasses import dataclass
from pathlib import Path

from .config import PatchConfig
from .manifest import Endpoint


def assign_endpoint(endpoints: tuple[Endpoint, ...], worker_id: int) -> Endpoint:
    """
    Statically binds a worker to a mirror: `endpoints[worker_id mod N]`.

    The assignment is fixed for the worker's lifetime; a worker stuck on a slow
    mirror is not rebalanced onto a faster one.
    """
    if not endpoints:
        raise ValueError("Cannot assign an endpoint from an empty list.")
    return endpoints[worker_id % len(endpoints)]


@dataclass(frozen=True)
class PatchContext:
    """The reachable mirrors and the knobs the workers need, fixed at startup."""

    install_dir: Path
    endpoints: tuple[Endpoint, ...]
    worker_count: int
    protected_mode: int
    dry_run: bool = False

    @classmethod
    def from_config(
        cls, config: PatchConfig, endpoints: tuple[Endpoint, ...]
    ) -> "PatchContext":
        return cls(
            install_dir=Path(config.install_dir).expanduser(),
            endpoints=tuple(endpoints),
            worker_count=config.max_workers,
            protected_mode=config.protected_mode,
            dry_run=config.dry_run,
        )

    @property
    def reachable_count(self) -> int:
        return len(self.endpoints)

    def endpoint_for_worker(self, worker_id: int) -> Endpoint:
        return assign_endpoint(self.endpoints, worker_id)
