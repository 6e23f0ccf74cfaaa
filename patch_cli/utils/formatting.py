"""
Helper functions for formatting data into human-readable strings.
"""

SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_size(bytes_size: int) -> str:
    """Formats bytes into a human-readable size string (e.g., '145.3 MB')."""
    if bytes_size <= 0:
        return "0 B"
    size = float(bytes_size)
    for unit in SIZE_UNITS[:-1]:
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} {SIZE_UNITS[-1]}"


def format_duration(seconds: float) -> str:
    """Formats a duration into a compact string (e.g., '2h 34m 12s')."""
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    parts = [f"{value}{unit}" for value, unit in ((hours, "h"), (minutes, "m")) if value]
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def format_mode(mode: int) -> str:
    """Renders permission bits the way chmod takes them (e.g., '0444')."""
    return f"{mode:04o}"


def shorten_path(path: str, width: int = 50) -> str:
    """Keeps the tail of a long manifest path, which holds the file name."""
    if len(path) <= width:
        return path
    return "…" + path[-(width - 1) :]
