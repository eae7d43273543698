"""Sampling loop engine for procmon."""

import logging
import time
from dataclasses import dataclass
from datetime import datetime

from procmon.errors import StorageUnavailable
from procmon.grouper import filter_records, group_threads
from procmon.history import HistoryStore
from procmon.inspector import ProcessInspector, SystemMemory, read_system_memory
from procmon.models import ProcessSnapshot, ProcessTreeNode
from procmon.rolling import RollingWindow

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class TickResult:
    """Everything acquired in one sampling tick."""

    timestamp: datetime
    nodes: list[ProcessTreeNode]
    system: SystemMemory

    @property
    def snapshots(self) -> list[ProcessSnapshot]:
        return [node.snapshot for node in self.nodes]


@dataclass(slots=True)
class SamplerState:
    """
    Mutable state of one monitoring session, owned by the sampling loop.

    The rolling window and history store are optional; a history store is
    dropped (and `history_disabled` set) after its first write failure.
    """

    window: RollingWindow | None = None
    history: HistoryStore | None = None
    last_sample: float | None = None
    latest: TickResult | None = None
    history_disabled: bool = False
    ticks: int = 0


class ProcessSampler:
    """
    Acquires, filters and groups process records once per interval.

    Rendering may call `tick()` as often as it likes; acquisition, window
    updates and store appends happen at most once per elapsed interval.
    """

    def __init__(
        self,
        inspector: ProcessInspector,
        name_filter: str | None = None,
        min_memory_bytes: int | None = None,
        interval: float = 1.0,
    ) -> None:
        """
        Initialize the ProcessSampler.

        Args:
            inspector: Source of raw thread records.
            name_filter: Substring a process name must contain.
            min_memory_bytes: Minimum RSS for a process to be kept.
            interval: Seconds between samples.
        """
        self._inspector = inspector
        self._name_filter = name_filter
        self._min_memory_bytes = min_memory_bytes
        self._interval = interval

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def name_filter(self) -> str | None:
        return self._name_filter

    @property
    def min_memory_bytes(self) -> int | None:
        return self._min_memory_bytes

    def is_due(self, state: SamplerState, now: float) -> bool:
        """Check whether a new sample should be taken at monotonic time `now`."""
        return state.last_sample is None or now - state.last_sample >= self._interval

    def sample(self) -> TickResult:
        """Acquire raw records and reduce them to one node per process."""
        timestamp = datetime.now().astimezone()
        records = filter_records(
            self._inspector.collect(),
            name=self._name_filter,
            min_memory_bytes=self._min_memory_bytes,
        )
        nodes = group_threads(records, self._inspector.thread_count, timestamp)
        return TickResult(timestamp=timestamp, nodes=nodes, system=read_system_memory())

    def tick(self, state: SamplerState, now: float | None = None) -> TickResult | None:
        """
        Run one sampling step if the interval has elapsed.

        Returns:
            The new tick result, or None when no sample was due.
        """
        now = time.monotonic() if now is None else now
        if not self.is_due(state, now):
            return None

        result = self.sample()
        state.last_sample = now
        state.latest = result
        state.ticks += 1

        snapshots = result.snapshots
        if state.window is not None:
            state.window.push(snapshots)
        if state.history is not None:
            self._record(state, snapshots)
        return result

    @staticmethod
    def _record(state: SamplerState, snapshots: list[ProcessSnapshot]) -> None:
        try:
            state.history.insert(snapshots)
        except StorageUnavailable as exc:
            logger.warning("History logging disabled: %s", exc)
            state.history.close()
            state.history = None
            state.history_disabled = True
