"""
Rich renderers for errors, configuration, mirror status and the end-of-run
summary.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from patch_cli.exceptions import (
    ConfigurationError,
    ManifestDecodeError,
    ManifestFetchError,
    NoReachableEndpointsError,
)
from patch_cli.models.config import PatchConfig
from patch_cli.models.manifest import Endpoint, FetchResult
from patch_cli.models.stats import PatchStats
from patch_cli.utils.formatting import format_duration, format_mode, format_size

HINTS: dict[type[Exception], tuple[str, ...]] = {
    NoReachableEndpointsError: (
        "Check that this machine can reach the internet.",
        "The mirrors may be down for maintenance.",
        "Run `patch-cli probe` to see the status of every mirror.",
    ),
    ManifestFetchError: (
        "The first reachable mirror did not serve the manifest.",
        "Retry in a few minutes, or pick a mirror with `--endpoint`.",
    ),
    ManifestDecodeError: (
        "The manifest is truncated or not in the expected format.",
        "Check `obfuscation_key` and `manifest_name` in the config.",
        "A mirror may have been mid-update; retry shortly.",
    ),
    ConfigurationError: (
        "Run `patch-cli validate` to see the effective settings.",
        "Run `patch-cli init --force` to recreate a default config.",
    ),
}
DEFAULT_HINTS = ("Run the command again with -vv for detailed logs.",)


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Wraps an error and the hints for its type into a red panel."""
    hints = next(
        (tips for kind, tips in HINTS.items() if isinstance(error, kind)),
        DEFAULT_HINTS,
    )

    headline = Text.assemble((f"{type(error).__name__}: ", "bold red"), str(error))
    parts = [headline, Text(""), Text("What to try", style="bold yellow")]
    parts.extend(Text(f"  • {tip}") for tip in hints)
    if context:
        parts.append(Text(f"\n{context}", style="dim"))

    return Panel(
        Group(*parts),
        title="[bold red]Patching Failed[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Prints the raw key/value pairs of the config file."""
    lines = []
    for key, value in config_data.items():
        if isinstance(value, list):
            value = ", ".join(value)
        lines.append(f"{key} = {value}")

    Console().print(
        Panel(
            escape("\n".join(lines)) or "[dim](empty)[/dim]",
            title=f"[bold]{escape(str(config_path))}[/bold]",
            border_style="cyan",
        )
    )


def print_validation_table(config: PatchConfig):
    """Prints the effective settings after file and CLI options are merged."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("Install directory", f"[green]{escape(config.install_dir)}[/green]")
    for index, url in enumerate(config.endpoints):
        table.add_row("Mirrors" if index == 0 else "", f"#{index} {escape(url)}")
    table.add_row("Manifest", escape(config.manifest_name))
    table.add_row("Workers", str(config.max_workers))
    table.add_row("Protected mode", format_mode(config.protected_mode))
    table.add_row(
        "Timeouts",
        f"probe {config.probe_timeout:g}s, connect {config.connect_timeout:g}s, "
        f"read {config.read_timeout:g}s",
    )

    Console().print(
        Panel(table, title="[bold green]✓ Configuration OK[/bold green]", border_style="green")
    )


def print_probe_table(base_urls: list[str], reachable: tuple[Endpoint, ...]):
    """Prints one row per configured mirror with its probe outcome."""
    online = {endpoint.index for endpoint in reachable}
    table = Table(title="Mirror Status", box=box.ROUNDED)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Mirror", style="cyan")
    table.add_column("Status")
    for index, url in enumerate(base_urls):
        status = "[green]✓ online[/green]" if index in online else "[red]✗ offline[/red]"
        table.add_row(str(index), escape(url), status)
    Console().print(table)


def _summary_rows(
    stats: PatchStats, duration_s: float, progress_stats: dict | None
) -> list[tuple[str, str]]:
    rows = [
        ("Manifest entries", str(stats.manifest_entries)),
        ("Up to date", f"[green]{stats.files_up_to_date}[/green]"),
    ]
    if stats.files_protected:
        rows.append(("Protected", f"[yellow]{stats.files_protected} (read-only, kept)[/yellow]"))

    queued = [
        f"[cyan]{count} {label}[/cyan]"
        for count, label in ((stats.files_missing, "missing"), (stats.files_stale, "changed"))
        if count
    ]
    if queued:
        label = "Would download" if stats.dry_run else "Queued"
        rows.append((label, " + ".join(queued)))

    if not stats.dry_run:
        rows.append(("Installed", f"[bold green]{stats.files_fetched}[/bold green]"))
        if stats.files_resumed:
            rows.append(("Resumed", f"[blue]{stats.files_resumed}[/blue]"))
        if stats.files_retried:
            rows.append(("Retried from scratch", f"[yellow]{stats.files_retried}[/yellow]"))
        if stats.files_failed:
            rows.append(("Failed", f"[bold red]{stats.files_failed}[/bold red]"))
        speed = stats.bytes_transferred / duration_s if duration_s > 0 else 0
        rows.append(
            (
                "Transferred",
                f"[cyan]{format_size(stats.bytes_transferred)}[/cyan] "
                f"[dim]({format_size(int(speed))}/s)[/dim]",
            )
        )
        if progress_stats:
            rows.append(("Peak concurrent", str(progress_stats.get("peak_concurrent", 0))))

    rows.append(("Elapsed", f"[blue]{format_duration(duration_s)}[/blue]"))
    return rows


def print_summary_panel(
    stats: PatchStats,
    duration_s: float,
    failures: list[FetchResult] | None = None,
    progress_stats: dict | None = None,
):
    """Prints the end-of-run summary and lists files that need manual attention."""
    console = Console()

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column()
    for label, value in _summary_rows(stats, duration_s, progress_stats):
        table.add_row(label, value)

    if stats.dry_run:
        title, border = "🔍 [bold]Verification Summary[/bold]", "yellow"
    elif stats.files_failed:
        title, border = "⚠ [bold]Update Finished With Errors[/bold]", "red"
    else:
        title, border = "📦 [bold]Installation Up To Date[/bold]", "green"

    console.print()
    console.print(Panel(table, title=title, border_style=border, expand=False, padding=(1, 2)))

    if failures:
        failed = Table(title="Check these files manually", box=box.SIMPLE)
        failed.add_column("File", style="red")
        failed.add_column("URL", style="dim")
        failed.add_column("Last error")
        for result in failures:
            failed.add_row(
                escape(result.entry.path), escape(result.url), escape(result.error or "")
            )
        console.print(failed)
