"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from patch_cli import __version__
from patch_cli.cdn.prober import EndpointProber
from patch_cli.cdn.session import create_session
from patch_cli.core.patch_manager import PatchManager
from patch_cli.exceptions import PatchCliError
from patch_cli.storage.config_manager import ConfigManager

from .formatters import (
    format_error_with_suggestions,
    print_config,
    print_probe_table,
    print_summary_panel,
    print_validation_table,
)
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("patch_cli")

app = typer.Typer(
    name="patch-cli",
    help=(
        "Brings an installation up to date with its mirrors, downloading only the"
        " files that are missing or changed. Use 'patch-cli <command> --help' for"
        " more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "patch-cli"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


def _load_config(cli_options: dict | None = None):
    try:
        return ConfigManager(CONFIG_FILE).load_config(cli_options)
    except PatchCliError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the configuration file."
    ),
):
    """Patch CLI"""
    if version:
        console.print(f"[bold]patch-cli[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("patch_cli").setLevel(log_level)

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]patch-cli init[/cyan]"
                " first."
            )
            raise typer.Exit(code=1)
        config_manager = ConfigManager(CONFIG_FILE)
        try:
            config_manager.load_config()
        except PatchCliError as e:
            console.print(format_error_with_suggestions(e))
            raise typer.Exit(code=1) from e
        print_config(CONFIG_FILE, config_manager._get_config_as_dict())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    endpoints: list[str] | None = typer.Option(  # noqa: B008
        None,
        "--endpoint",
        "-e",
        help="Mirror base URL, in priority order (repeatable). Defaults to the public mirrors.",
    ),
    install_dir: Path | None = typer.Option(  # noqa: B008
        None,
        "--install-dir",
        "-d",
        help="Installation directory to store in the config (default: where you run).",
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing config without asking."
    ),
):
    """Write a configuration file with default settings."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {}
    if endpoints:
        settings["endpoints"] = endpoints
    if install_dir:
        settings["install_dir"] = str(install_dir.expanduser().resolve())

    try:
        ConfigManager(CONFIG_FILE).save_new_config(settings)
    except PatchCliError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e
    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Ready to patch! Try: [cyan]patch-cli update[/cyan]")


@app.command(name="update")
def update_command(
    install_dir: Path | None = typer.Option(  # noqa: B008
        None,
        "--install-dir",
        "-d",
        help="Directory to reconcile against the manifest (default: config or cwd).",
    ),
    workers: int | None = typer.Option(
        None,
        "-w",
        "--workers",
        help="Number of simultaneous downloads (default: one per CPU).",
    ),
    endpoints: list[str] | None = typer.Option(  # noqa: B008
        None,
        "--endpoint",
        "-e",
        help="Mirror base URL to use instead of the configured ones (repeatable).",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Only verify local files and report what would be downloaded.",
    ),
):
    """
    Verify the installation and download missing or changed files.

    Mirrors must serve Snappy-framed payloads; S2-only streams are rejected.
    """
    cli_options = {
        key: value
        for key, value in {
            "install_dir": str(install_dir) if install_dir else None,
            "max_workers": workers,
            "endpoints": endpoints or None,
        }.items()
        if value is not None
    }
    cli_options["dry_run"] = dry_run
    config = _load_config(cli_options)
    log.debug(f"Effective configuration: {config!r}")

    async def _update_async():
        async with ProgressManager(
            console=console, enabled=not config.dry_run
        ) as progress_manager:
            manager = PatchManager(config, progress_manager)
            start_time = time.monotonic()
            await manager.run()
            duration = time.monotonic() - start_time
            return manager, duration, progress_manager.get_statistics()

    if config.dry_run:
        console.print("[bold cyan]🔍 Verifying installation...[/bold cyan]")
    else:
        console.print("[bold cyan]📦 Starting update session...[/bold cyan]")

    try:
        manager, duration, progress_stats = asyncio.run(_update_async())
    except PatchCliError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e

    print_summary_panel(
        manager.stats, duration, manager.failed_results, progress_stats
    )


@app.command()
def probe():
    """Check which mirrors are currently reachable."""
    config = _load_config()

    async def _probe_async():
        session = create_session(config)
        try:
            prober = EndpointProber(session, timeout=config.probe_timeout)
            return await prober.probe(config.endpoints)
        finally:
            await session.close()

    console.print("\n[dim]Probing download servers...[/dim]")
    reachable = asyncio.run(_probe_async())
    print_probe_table(config.endpoints, reachable)
    if not reachable:
        console.print("[bold red]✗ There are no download servers online.[/bold red]")
        raise typer.Exit(code=1)


@app.command()
def validate():
    """Validate the current configuration."""
    config = _load_config()
    print_validation_table(config)
