"""Data models for procmon."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class ProcessStatus(Enum):
    """Coarse process state, tagged with the string stored in history."""

    RUNNING = "Run"
    SLEEPING = "Sleep"
    IDLE = "Idle"
    ZOMBIE = "Zombie"
    UNKNOWN = "Unknown"

    @classmethod
    def from_tag(cls, tag: str) -> "ProcessStatus":
        """Decode a stored status tag. Unrecognised tags map to UNKNOWN."""
        try:
            return cls(tag)
        except ValueError:
            return cls.UNKNOWN

    @classmethod
    def from_psutil(cls, status: str | None) -> "ProcessStatus":
        """Map a psutil STATUS_* string onto the coarse status set."""
        return _PSUTIL_STATUS.get(status or "", cls.UNKNOWN)


_PSUTIL_STATUS = {
    "running": ProcessStatus.RUNNING,
    "sleeping": ProcessStatus.SLEEPING,
    "disk-sleep": ProcessStatus.SLEEPING,
    "waiting": ProcessStatus.SLEEPING,
    "idle": ProcessStatus.IDLE,
    "parked": ProcessStatus.IDLE,
    "zombie": ProcessStatus.ZOMBIE,
}


class SortKey(Enum):
    """Sort keys for the process list and tree siblings."""

    MEMORY = "memory"
    CPU = "cpu"
    PID = "pid"
    NAME = "name"


@dataclass(slots=True, frozen=True)
class RawThreadRecord:
    """One thread as reported by a process inspector.

    cpu_percent and memory_bytes carry whole-process values, so every thread
    of a group reports the same numbers.
    """

    thread_id: int
    group_id: int
    parent_group_id: int | None
    name: str
    cpu_percent: float
    memory_bytes: int
    status: ProcessStatus


@dataclass(slots=True, frozen=True)
class ProcessSnapshot:
    """Immutable snapshot of one logical process at one instant."""

    timestamp: datetime
    pid: int  # thread group id, never a thread id
    name: str
    cpu_percent: float  # 0.0 - 100.0 * core_count
    memory_bytes: int  # RSS
    thread_count: int
    status: ProcessStatus


@dataclass(slots=True, frozen=True)
class ProcessTreeNode:
    """A process snapshot annotated with its position in the ancestry forest."""

    snapshot: ProcessSnapshot
    parent_pid: int | None = None
    depth: int = 0
    is_last_child: bool = False

    @property
    def pid(self) -> int:
        return self.snapshot.pid

    @property
    def name(self) -> str:
        return self.snapshot.name

    @property
    def cpu_percent(self) -> float:
        return self.snapshot.cpu_percent

    @property
    def memory_bytes(self) -> int:
        return self.snapshot.memory_bytes
