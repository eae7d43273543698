"""Process inspectors: acquisition of raw thread records from the OS."""

import logging
import os
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

import psutil

from procmon.models import ProcessStatus, RawThreadRecord

logger = logging.getLogger(__name__)

# Attributes fetched for every process in one oneshot() pass
_ATTRS = ["pid", "ppid", "name", "status", "cpu_percent", "memory_info"]


@dataclass(slots=True, frozen=True)
class SystemMemory:
    """Host-wide memory and swap figures in bytes."""

    total: int
    used: int
    available: int
    swap_total: int
    swap_used: int


def read_system_memory() -> SystemMemory:
    """Read current memory and swap usage."""
    mem = psutil.virtual_memory()
    swap = psutil.swap_memory()
    return SystemMemory(
        total=mem.total,
        used=mem.used,
        available=mem.available,
        swap_total=swap.total,
        swap_used=swap.used,
    )


class ProcessInspector(ABC):
    """Source of raw thread records plus an accurate per-group thread count."""

    @abstractmethod
    def collect(self) -> list[RawThreadRecord]:
        """Return raw records for every live process/thread that can be read."""

    @abstractmethod
    def thread_count(self, group_id: int) -> int:
        """Return the number of threads in the given thread group."""

    def _iter_processes(self):
        """
        Yield (process, info) pairs for all readable processes.

        Processes that vanish or deny access mid-iteration are skipped.
        """
        for proc in psutil.process_iter(attrs=_ATTRS):
            try:
                with proc.oneshot():
                    yield proc, proc.info
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue

    @staticmethod
    def _record(info: dict, thread_id: int) -> RawThreadRecord:
        mem_info = info.get("memory_info")
        ppid = info.get("ppid")
        return RawThreadRecord(
            thread_id=thread_id,
            group_id=info["pid"],
            parent_group_id=ppid if ppid else None,
            name=info.get("name") or "",
            cpu_percent=info.get("cpu_percent") or 0.0,
            memory_bytes=mem_info.rss if mem_info else 0,
            status=ProcessStatus.from_psutil(info.get("status")),
        )


class ProcfsInspector(ProcessInspector):
    """
    Full-fidelity inspector for hosts exposing /proc.

    Emits one record per thread, each tagged with its owning thread group,
    and reads accurate thread counts from /proc/<pid>/status.
    """

    def __init__(self, proc_root: str | os.PathLike = "/proc") -> None:
        self._proc_root = Path(proc_root)

    def collect(self) -> list[RawThreadRecord]:
        records: list[RawThreadRecord] = []
        for proc, info in self._iter_processes():
            pid = info["pid"]
            try:
                thread_ids = [t.id for t in proc.threads()]
            except (psutil.NoSuchProcess, psutil.ZombieProcess):
                continue
            except psutil.AccessDenied:
                thread_ids = [pid]

            # The main thread shares its id with the group
            if pid not in thread_ids:
                thread_ids.insert(0, pid)
            records.extend(self._record(info, tid) for tid in thread_ids)
        return records

    def thread_count(self, group_id: int) -> int:
        status_path = self._proc_root / str(group_id) / "status"
        try:
            with open(status_path, encoding="utf-8") as fh:
                for line in fh:
                    if line.startswith("Threads:"):
                        return max(1, int(line.split()[1]))
        except (OSError, ValueError, IndexError):
            logger.debug("thread count unavailable for %s", group_id)
        return 1


class BasicInspector(ProcessInspector):
    """Reduced-fidelity inspector: one record per process, one thread each."""

    def collect(self) -> list[RawThreadRecord]:
        return [self._record(info, info["pid"]) for _, info in self._iter_processes()]

    def thread_count(self, group_id: int) -> int:
        return 1


def select_inspector() -> ProcessInspector:
    """Pick the inspector matching the capabilities of this host."""
    if sys.platform.startswith("linux") and os.path.isdir("/proc"):
        return ProcfsInspector()
    logger.info("per-process thread metadata unavailable; thread counts fixed at 1")
    return BasicInspector()
