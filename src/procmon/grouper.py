"""Collapse raw thread records into one record per logical process."""

from collections.abc import Callable, Iterable
from datetime import datetime

from procmon.models import ProcessSnapshot, ProcessTreeNode, RawThreadRecord


def filter_records(
    records: Iterable[RawThreadRecord],
    name: str | None = None,
    min_memory_bytes: int | None = None,
) -> list[RawThreadRecord]:
    """Keep records whose name contains `name` and whose RSS meets the minimum."""
    return [
        record
        for record in records
        if (name is None or name in record.name)
        and (min_memory_bytes is None or record.memory_bytes >= min_memory_bytes)
    ]


def group_threads(
    records: Iterable[RawThreadRecord],
    thread_count: Callable[[int], int],
    timestamp: datetime,
) -> list[ProcessTreeNode]:
    """
    Reduce thread records to one node per thread group.

    The main thread (thread_id == group_id) is preferred as the representative
    because only it carries reliable parent linkage; otherwise the first member
    seen stands in for the group. Thread counts come from `thread_count`, not
    from the number of records, since the input may already be filtered.

    Args:
        records: Raw records, possibly partial.
        thread_count: Accurate thread count lookup by group id.
        timestamp: Sampling instant stamped on every snapshot.

    Returns:
        Unpositioned tree nodes (depth 0), in first-seen group order.
    """
    representatives: dict[int, RawThreadRecord] = {}
    for record in records:
        current = representatives.get(record.group_id)
        if current is None or (
            record.thread_id == record.group_id and current.thread_id != current.group_id
        ):
            representatives[record.group_id] = record

    return [
        ProcessTreeNode(
            snapshot=ProcessSnapshot(
                timestamp=timestamp,
                pid=group_id,
                name=record.name,
                cpu_percent=record.cpu_percent,
                memory_bytes=record.memory_bytes,
                thread_count=thread_count(group_id),
                status=record.status,
            ),
            parent_pid=record.parent_group_id,
        )
        for group_id, record in representatives.items()
    ]
