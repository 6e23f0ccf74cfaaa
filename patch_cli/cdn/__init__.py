"""
Mirror Layer.

This package handles the HTTP session and the health probing of the
content-delivery mirrors.
"""

from .prober import EndpointProber
from .session import create_session

__all__ = ["EndpointProber", "create_session"]
