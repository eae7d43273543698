"""Fixed-capacity trailing window of per-tick totals for trend graphs."""

from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from procmon.models import ProcessSnapshot


@dataclass(slots=True, frozen=True)
class WindowEntry:
    """Aggregate totals of one sampling tick."""

    timestamp: datetime
    total_memory_bytes: int
    total_cpu_percent: float


class RollingWindow:
    """
    FIFO ring of the most recent per-tick totals.

    Once full, every push evicts exactly the oldest entry.
    """

    def __init__(self, capacity: int) -> None:
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 1:
            raise ValueError(f"capacity must be a positive integer, got {capacity!r}")
        self._entries: deque[WindowEntry] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._entries.maxlen

    def __len__(self) -> int:
        return len(self._entries)

    def push(self, snapshots: Sequence[ProcessSnapshot]) -> None:
        """Append the totals of one tick's snapshots. Empty input is ignored."""
        if not snapshots:
            return
        self._entries.append(
            WindowEntry(
                # all snapshots of a tick share one timestamp
                timestamp=snapshots[0].timestamp,
                total_memory_bytes=sum(s.memory_bytes for s in snapshots),
                total_cpu_percent=sum(s.cpu_percent for s in snapshots),
            )
        )

    def entries(self) -> list[WindowEntry]:
        return list(self._entries)

    def timestamps(self) -> list[datetime]:
        return [e.timestamp for e in self._entries]

    def memory_series(self) -> list[int]:
        """Total memory per tick, oldest first."""
        return [e.total_memory_bytes for e in self._entries]

    def cpu_series(self) -> list[int]:
        """Total CPU per tick truncated to whole percent, oldest first."""
        return [int(e.total_cpu_percent) for e in self._entries]

    def max_memory(self) -> int:
        return max((e.total_memory_bytes for e in self._entries), default=0)

    def max_cpu(self) -> float:
        return max((e.total_cpu_percent for e in self._entries), default=0.0)
