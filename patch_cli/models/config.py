"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

import os

from pydantic import BaseModel, ConfigDict, Field, field_validator

NUM_DEFAULT_MIRRORS = 5
DEFAULT_ENDPOINTS = [
    f"https://cdn{index}.burningsw.to/" for index in range(NUM_DEFAULT_MIRRORS)
]
DEFAULT_MANIFEST_NAME = "version.bin"
DEFAULT_OBFUSCATION_KEY = 0x69
# Files with exactly these permission bits are user-customised and left alone
DEFAULT_PROTECTED_MODE = 0o444


def default_worker_count() -> int:
    """One worker per available CPU, as the host reports it, capped at 64."""
    return min(os.cpu_count() or 4, 64)


class PatchConfig(BaseModel):
    """A validated configuration model for the application."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # Mirrors
    endpoints: list[str] = Field(default_factory=lambda: list(DEFAULT_ENDPOINTS))
    manifest_name: str = DEFAULT_MANIFEST_NAME
    obfuscation_key: int = DEFAULT_OBFUSCATION_KEY

    # Installation
    install_dir: str = Field(default_factory=os.getcwd)
    protected_mode: int = DEFAULT_PROTECTED_MODE

    # Transfer Settings
    max_workers: int = Field(default_factory=default_worker_count)
    probe_timeout: float = 10.0
    connect_timeout: float = 15.0
    read_timeout: float = 90.0
    dry_run: bool = False

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)

    @field_validator("endpoints")
    @classmethod
    def validate_endpoints(cls, v: list[str]) -> list[str]:
        """
        Requires at least one http(s) mirror and normalises every base URL to
        end with a slash so file paths can be appended directly.
        """
        normalised = []
        for url in v:
            url = url.strip()
            if not url:
                continue
            if not url.startswith(("http://", "https://")):
                raise ValueError(f"Endpoint must be an http(s) URL, got: {url}")
            if not url.endswith("/"):
                url += "/"
            normalised.append(url)

        if not normalised:
            raise ValueError("At least one endpoint must be configured.")
        return list(dict.fromkeys(normalised))

    @field_validator("manifest_name")
    @classmethod
    def validate_manifest_name(cls, v: str) -> str:
        if not v or v.startswith(("/", "\\")):
            raise ValueError("Manifest name must be a non-empty relative path.")
        return v

    @field_validator("obfuscation_key")
    @classmethod
    def validate_obfuscation_key(cls, v: int) -> int:
        if not 0 <= v <= 0xFF:
            raise ValueError("Obfuscation key must fit in a single byte (0-255).")
        return v

    @field_validator("install_dir")
    @classmethod
    def validate_install_dir(cls, v: str) -> str:
        if not v:
            raise ValueError("Install directory cannot be empty.")
        return v

    @field_validator("protected_mode", mode="before")
    @classmethod
    def validate_protected_mode(cls, v):
        """Accepts permission bits as an int or an octal string like '0444'."""
        if isinstance(v, str):
            text = v.strip().lower().removeprefix("0o")
            try:
                v = int(text, 8)
            except ValueError as e:
                raise ValueError(
                    f"Protected mode must be an octal permission string, got: {v}"
                ) from e
        if not isinstance(v, int) or not 0 <= v <= 0o7777:
            raise ValueError("Protected mode must be between 0000 and 7777 (octal).")
        return v

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        """Ensures a reasonable number of workers."""
        if v < 1 or v > 64:
            raise ValueError("Max workers must be between 1 and 64.")
        return v

    @field_validator("probe_timeout", "connect_timeout", "read_timeout")
    @classmethod
    def validate_timeouts(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeouts must be positive.")
        return v

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path", "dry_run"}
        return {key for key in cls.model_fields if key not in internal_fields}
