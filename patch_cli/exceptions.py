"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class PatchCliError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(PatchCliError):
    """Raised for issues related to configuration loading or validation."""


class NoReachableEndpointsError(PatchCliError):
    """Raised when none of the configured mirrors answered the health probe."""


class ManifestFetchError(PatchCliError):
    """Raised when the manifest could not be downloaded from the first mirror."""


class ManifestDecodeError(PatchCliError):
    """Raised when the manifest is truncated or structurally invalid."""


class FetchError(PatchCliError):
    """Raised when a mirror answers a file request with an unusable response."""


class DecompressionError(PatchCliError):
    """Raised when a downloaded payload cannot be decompressed into place."""
