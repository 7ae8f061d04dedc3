"""Human-readable byte counts shared by the service listings and the CLI."""

SIZE_UNITS = ("KB", "MB", "GB", "TB")


def format_file_size(size_bytes: int) -> str:
    """
    Format a byte count with 1024-based steps (e.g., "512 B", "1.50 MB").

    Args:
        size_bytes: Size in bytes

    Returns:
        Human-readable size with two decimals above one KB
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    size = float(size_bytes)
    for unit in SIZE_UNITS:
        size /= 1024.0
        if size < 1024.0 or unit == SIZE_UNITS[-1]:
            return f"{size:.2f} {unit}"
