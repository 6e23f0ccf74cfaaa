"""Tests for configuration validation and the INI config file."""

import configparser

import pytest
from pydantic import ValidationError

from patch_cli.exceptions import ConfigurationError
from patch_cli.models import PatchConfig
from patch_cli.models.config import DEFAULT_ENDPOINTS
from patch_cli.storage import ConfigManager
from patch_cli.utils.formatting import (
    format_duration,
    format_mode,
    format_size,
    shorten_path,
)


@pytest.fixture
def config_file(tmp_path):
    return tmp_path / "patch-cli" / "config.ini"


def test_defaults():
    config = PatchConfig()

    assert config.endpoints == DEFAULT_ENDPOINTS
    assert len(config.endpoints) == 5
    assert config.manifest_name == "version.bin"
    assert config.obfuscation_key == 0x69
    assert config.protected_mode == 0o444
    assert config.max_workers >= 1
    assert not config.dry_run


def test_endpoints_are_normalised():
    config = PatchConfig(endpoints=[" http://a.example ", "https://b.example/", "http://a.example/"])
    assert config.endpoints == ["http://a.example/", "https://b.example/"]


@pytest.mark.parametrize("endpoints", [[], [""], ["ftp://mirror/"]])
def test_invalid_endpoints(endpoints):
    with pytest.raises(ValidationError):
        PatchConfig(endpoints=endpoints)


@pytest.mark.parametrize("value", ["0444", "0o444", "444", 0o444])
def test_protected_mode_accepts_octal(value):
    assert PatchConfig(protected_mode=value).protected_mode == 0o444


@pytest.mark.parametrize(
    "field,value",
    [
        ("protected_mode", "rw-r--r--"),
        ("max_workers", 0),
        ("max_workers", 65),
        ("obfuscation_key", 256),
        ("read_timeout", 0),
        ("manifest_name", "/version.bin"),
    ],
)
def test_invalid_values(field, value):
    with pytest.raises(ValidationError):
        PatchConfig(**{field: value})


def test_missing_file_uses_defaults(config_file):
    config = ConfigManager(config_file).load_config()

    assert config.endpoints == DEFAULT_ENDPOINTS
    assert config.config_path == str(config_file.parent)
    assert not config_file.exists()


def test_save_and_load(config_file, tmp_path):
    """Test a saved config reads back with the same values."""
    manager = ConfigManager(config_file)
    manager.save_new_config(
        {"endpoints": ["http://m1/", "http://m2/"], "install_dir": str(tmp_path / "game")}
    )

    config = ConfigManager(config_file).load_config()

    assert config.endpoints == ["http://m1/", "http://m2/"]
    assert config.install_dir == str(tmp_path / "game")
    parser = configparser.ConfigParser(interpolation=None)
    parser.read(config_file)
    assert parser["DEFAULT"]["protected_mode"] == "0444"
    assert parser["DEFAULT"]["endpoints"] == "http://m1/,http://m2/"


def test_save_omits_install_dir_by_default(config_file):
    ConfigManager(config_file).save_new_config({})
    parser = configparser.ConfigParser(interpolation=None)
    parser.read(config_file)
    assert "install_dir" not in parser["DEFAULT"]
    assert "dry_run" not in parser["DEFAULT"]


def test_save_rejects_invalid_settings(config_file):
    with pytest.raises(ConfigurationError):
        ConfigManager(config_file).save_new_config({"max_workers": 500})
    assert not config_file.exists()


def test_cli_options_override_file(config_file, tmp_path):
    ConfigManager(config_file).save_new_config({"max_workers": 4})

    config = ConfigManager(config_file).load_config(
        {"max_workers": 9, "install_dir": str(tmp_path), "dry_run": True}
    )

    assert config.max_workers == 9
    assert config.install_dir == str(tmp_path)
    assert config.dry_run


def test_hex_obfuscation_key(config_file):
    config_file.parent.mkdir(parents=True)
    config_file.write_text("[DEFAULT]\nobfuscation_key = 0x2a\n")
    assert ConfigManager(config_file).load_config().obfuscation_key == 42


def test_migration_adds_missing_keys(config_file):
    """Test an old config file gets the keys it lacks, keeping its own values."""
    config_file.parent.mkdir(parents=True)
    config_file.write_text("[DEFAULT]\nendpoints = http://old-mirror/\n")

    config = ConfigManager(config_file).load_config()

    assert config.endpoints == ["http://old-mirror/"]
    parser = configparser.ConfigParser(interpolation=None)
    parser.read(config_file)
    assert parser["DEFAULT"]["endpoints"] == "http://old-mirror/"
    assert parser["DEFAULT"]["read_timeout"] == "90.0"
    assert "install_dir" not in parser["DEFAULT"]


def test_invalid_number_in_file(config_file):
    config_file.parent.mkdir(parents=True)
    config_file.write_text("[DEFAULT]\nmax_workers = lots\n")
    with pytest.raises(ConfigurationError):
        ConfigManager(config_file).load_config()


def test_malformed_file(config_file):
    config_file.parent.mkdir(parents=True)
    config_file.write_text("this is not an ini file\n")
    with pytest.raises(ConfigurationError):
        ConfigManager(config_file).load_config()


def test_formatting_helpers():
    assert format_size(0) == "0 B"
    assert format_size(512) == "512.0 B"
    assert format_size(1536) == "1.5 KB"
    assert format_size(5 * 1024**3) == "5.0 GB"
    assert format_duration(0) == "0s"
    assert format_duration(3725) == "1h 2m 5s"
    assert format_duration(120) == "2m"
    assert format_mode(0o444) == "0444"
    assert shorten_path("short/path.bin") == "short/path.bin"
    long_path = "a/" * 40 + "file.bin"
    assert shorten_path(long_path, 20) == "…" + long_path[-19:]
    assert len(shorten_path(long_path, 20)) == 20
