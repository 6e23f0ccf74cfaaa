"""
Reads, writes and upgrades the INI configuration file.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from patch_cli.exceptions import ConfigurationError
from patch_cli.models.config import PatchConfig
from patch_cli.utils.formatting import format_mode

log = logging.getLogger(__name__)

SECTION = "DEFAULT"
INT_KEYS = ("obfuscation_key", "max_workers")
FLOAT_KEYS = ("probe_timeout", "connect_timeout", "read_timeout")
STR_KEYS = ("manifest_name", "install_dir", "protected_mode")


def _to_ini_value(key: str, value: Any) -> str:
    if key == "protected_mode":
        return format_mode(value)
    if isinstance(value, list):
        return ",".join(map(str, value))
    return str(value)


def _validated(settings: dict[str, Any], **extra: Any) -> PatchConfig:
    try:
        return PatchConfig(**settings, **extra)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed:\n{e}") from e


class ConfigManager:
    """Owns one `config.ini`; a missing file simply means built-in defaults."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, cli_options: dict[str, Any] | None = None) -> PatchConfig:
        """
        Merges the file (if any) with command-line overrides and validates
        the result.

        Args:
            cli_options: Values given on the command line; they win over the file.

        Raises:
            ConfigurationError: The file is unreadable or a value is invalid.
        """
        values: dict[str, Any] = {}
        if self.config_file_path.is_file():
            try:
                self._parser.read(self.config_file_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(f"Cannot parse {self.config_file_path}: {e}") from e
            if self._migrate_if_needed():
                log.info("[yellow]Added new default settings to the config file.[/yellow]")
            values = self._get_config_as_dict()
        else:
            log.debug(f"No config file at '{self.config_file_path}', using defaults.")

        values.update(cli_options or {})
        return _validated(values, config_path=str(self.config_file_path.parent))

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """
        Writes a fresh config file: `settings` plus defaults for everything else.

        `install_dir` is only written when given, so an unconfigured install
        keeps following the working directory.
        """
        config = _validated(settings)
        parser = configparser.ConfigParser(interpolation=None)
        for key in sorted(PatchConfig.get_ini_keys()):
            if key == "install_dir" and key not in settings:
                continue
            parser[SECTION][key] = _to_ini_value(key, getattr(config, key))
        self._write(parser)

    def _write(self, parser: configparser.ConfigParser) -> None:
        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as f:
                parser.write(f)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Converts the raw INI strings to the types `PatchConfig` expects."""
        section = self._parser[SECTION]
        values: dict[str, Any] = {}
        try:
            if "endpoints" in section:
                values["endpoints"] = [
                    url.strip() for url in section["endpoints"].split(",") if url.strip()
                ]
            values.update({key: section[key] for key in STR_KEYS if key in section})
            # Base 0 so the key can be written in hex, e.g. 0x69
            values.update({key: int(section[key], 0) for key in INT_KEYS if key in section})
            values.update({key: section.getfloat(key) for key in FLOAT_KEYS if key in section})
        except ValueError as e:
            raise ConfigurationError(f"Invalid value in configuration file: {e}") from e
        return values

    def _migrate_if_needed(self) -> bool:
        """Fills keys added in newer versions into an existing file."""
        section = self._parser[SECTION]
        missing = [
            key
            for key in sorted(PatchConfig.get_ini_keys())
            if key not in section and key != "install_dir"
        ]
        if not missing:
            return False

        defaults = PatchConfig()
        for key in missing:
            section[key] = _to_ini_value(key, getattr(defaults, key))
            log.debug(f"Migrating config: added '{key} = {section[key]}'.")
        try:
            self._write(self._parser)
        except ConfigurationError as e:
            log.error(f"Could not save migrated configuration file: {e}")
            return False
        return True
