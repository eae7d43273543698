"""Summary statistics over a time-ordered set of process snapshots."""

from collections.abc import Sequence
from dataclasses import asdict, dataclass
from datetime import datetime

from procmon.errors import EmptyInputError
from procmon.models import ProcessSnapshot


@dataclass(slots=True, frozen=True)
class TimeRange:
    start: datetime
    end: datetime


@dataclass(slots=True, frozen=True)
class MemoryStats:
    min_bytes: int
    avg_bytes: float
    max_bytes: int


@dataclass(slots=True, frozen=True)
class CpuStats:
    min_percent: float
    avg_percent: float
    max_percent: float


@dataclass(slots=True, frozen=True)
class ProcessCountStats:
    """Distinct processes observed per sampling tick."""

    min: int
    max: int
    avg: float


@dataclass(slots=True, frozen=True)
class PeakDetail:
    metric: str  # "Memory" or "CPU"
    value: float
    timestamp: datetime
    pid: int
    process_name: str


@dataclass(slots=True, frozen=True)
class AnalysisResult:
    time_range: TimeRange
    memory_stats: MemoryStats
    cpu_stats: CpuStats
    process_count: ProcessCountStats
    total_records: int
    peak_details: list[PeakDetail]

    def to_dict(self) -> dict:
        """Plain-data form with ISO-8601 timestamps, suitable for JSON."""
        data = asdict(self)
        data["time_range"] = {
            "from": self.time_range.start.isoformat(),
            "to": self.time_range.end.isoformat(),
        }
        for peak, raw in zip(self.peak_details, data["peak_details"]):
            raw["timestamp"] = peak.timestamp.isoformat()
        return data


def analyze(snapshots: Sequence[ProcessSnapshot]) -> AnalysisResult:
    """
    Reduce snapshots into summary statistics.

    Records are expected in ascending timestamp order; the first and last
    delimit the time range. Every record counts once in the memory and CPU
    figures, regardless of process id.

    Raises:
        EmptyInputError: `snapshots` is empty.
    """
    if not snapshots:
        raise EmptyInputError("No snapshots provided for analysis")

    total = len(snapshots)
    memory = [s.memory_bytes for s in snapshots]
    cpu = [s.cpu_percent for s in snapshots]

    pids_by_tick: dict[datetime, set[int]] = {}
    for snapshot in snapshots:
        pids_by_tick.setdefault(snapshot.timestamp, set()).add(snapshot.pid)
    counts = [len(pids) for pids in pids_by_tick.values()]

    # max() keeps the first of equal maxima
    peak_memory = max(snapshots, key=lambda s: s.memory_bytes)
    peak_cpu = max(snapshots, key=lambda s: s.cpu_percent)

    return AnalysisResult(
        time_range=TimeRange(start=snapshots[0].timestamp, end=snapshots[-1].timestamp),
        memory_stats=MemoryStats(
            min_bytes=min(memory),
            avg_bytes=sum(memory) / total,
            max_bytes=max(memory),
        ),
        cpu_stats=CpuStats(
            min_percent=min(cpu),
            avg_percent=sum(cpu) / total,
            max_percent=max(cpu),
        ),
        process_count=ProcessCountStats(
            min=min(counts),
            max=max(counts),
            avg=sum(counts) / len(counts),
        ),
        total_records=total,
        peak_details=[
            _peak("Memory", peak_memory.memory_bytes, peak_memory),
            _peak("CPU", peak_cpu.cpu_percent, peak_cpu),
        ],
    )


def _peak(metric: str, value: float, snapshot: ProcessSnapshot) -> PeakDetail:
    return PeakDetail(
        metric=metric,
        value=value,
        timestamp=snapshot.timestamp,
        pid=snapshot.pid,
        process_name=snapshot.name,
    )
