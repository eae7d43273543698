"""Human-readable formatting helpers."""

from procmon.inspector import SystemMemory
from procmon.models import ProcessStatus

_UNITS = [("GB", 1024**3), ("MB", 1024**2), ("KB", 1024)]


def format_bytes(size: int | float) -> str:
    """Format bytes as a human-readable string, e.g. '1.50 MB'."""
    for unit, scale in _UNITS:
        if size >= scale:
            return f"{size / scale:.2f} {unit}"
    return f"{int(size)} B"


def truncate_string(text: str, max_len: int) -> str:
    """Cut `text` to `max_len` characters, marking the cut with '...'."""
    if len(text) <= max_len:
        return text
    if max_len <= 3:
        return text[:max_len]
    return text[: max_len - 3] + "..."


def format_status(status: ProcessStatus) -> str:
    return status.value


def format_system_memory(mem: SystemMemory) -> str:
    usage = (mem.used / mem.total * 100.0) if mem.total else 0.0
    return (
        f"System Memory: {format_bytes(mem.used)} / {format_bytes(mem.total)} "
        f"({usage:.1f}% used, {format_bytes(mem.available)} available)"
    )


def format_system_swap(mem: SystemMemory) -> str:
    if mem.swap_total == 0:
        return "Swap: N/A"
    usage = mem.swap_used / mem.swap_total * 100.0
    return f"Swap: {format_bytes(mem.swap_used)} / {format_bytes(mem.swap_total)} ({usage:.1f}% used)"
