"""Runtime configuration for the live dashboard."""

from dataclasses import dataclass
from pathlib import Path

from procmon.models import SortKey

DEFAULT_INTERVAL = 1.0
MIN_INTERVAL = 0.1
DEFAULT_GRAPH_POINTS = 60
RENDER_TICK = 0.25


@dataclass(slots=True, frozen=True)
class MonitorConfig:
    """
    Settings for one live monitoring session.

    Raises ValueError on construction when a value is out of range.
    """

    name_filter: str
    interval: float = DEFAULT_INTERVAL
    min_memory_mb: int | None = None
    log_path: Path | None = None
    graph_points: int = DEFAULT_GRAPH_POINTS  # 0 disables the trend panel
    tree_mode: bool = False
    sort_key: SortKey = SortKey.MEMORY

    def __post_init__(self) -> None:
        if self.interval < MIN_INTERVAL:
            raise ValueError(f"interval must be at least {MIN_INTERVAL}s, got {self.interval}")
        if self.min_memory_mb is not None and self.min_memory_mb < 0:
            raise ValueError("minimum memory cannot be negative")
        if self.graph_points < 0:
            raise ValueError("graph points cannot be negative")

    @property
    def min_memory_bytes(self) -> int | None:
        if self.min_memory_mb is None:
            return None
        return self.min_memory_mb * 1024 * 1024
