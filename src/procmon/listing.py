"""Plain-text process listings for single-shot output."""

from procmon.formatting import (
    format_bytes,
    format_status,
    format_system_memory,
    format_system_swap,
    truncate_string,
)
from procmon.models import ProcessTreeNode, SortKey
from procmon.monitor import TickResult
from procmon.tree import build_process_tree, sort_nodes, tree_prefixes

_ROW = "{:<8} {:<{width}} {:<8} {:<8} {:<12} {:<15}"


def render_process(node: ProcessTreeNode) -> str:
    """Detail block for a single process."""
    return "\n".join(
        [
            "Process Information:",
            f"  PID:     {node.pid}",
            f"  Name:    {node.name}",
            f"  Threads: {node.snapshot.thread_count}",
            f"  CPU:     {node.cpu_percent:.2f}%",
            f"  Memory:  {format_bytes(node.memory_bytes)}",
            f"  Status:  {format_status(node.snapshot.status)}",
        ]
    )


def render_listing(
    result: TickResult,
    name: str,
    sort_key: SortKey,
    tree_mode: bool = False,
    min_memory_mb: int | None = None,
) -> str:
    """
    Render matching processes with system info and totals.

    `result.nodes` must be non-empty.
    """
    nodes = result.nodes
    memories = [n.memory_bytes for n in nodes]
    total_memory = sum(memories)
    total_cpu = sum(n.cpu_percent for n in nodes)
    total_threads = sum(n.snapshot.thread_count for n in nodes)

    heading = f"Processes matching '{name}'"
    if min_memory_mb is not None:
        heading += f" (>= {min_memory_mb} MB)"
    heading += f" (sorted by {sort_key.value}):"

    width = 35 if tree_mode else 25
    lines = [
        "=== System Information ===",
        format_system_memory(result.system),
        format_system_swap(result.system),
        "",
        "=== Process Information (Tree View) ===" if tree_mode else "=== Process Information ===",
        heading,
        f"Total: {len(nodes)} process(es) ({total_threads} threads)",
        f"Memory: {format_bytes(total_memory)} (Min: {format_bytes(min(memories))}, "
        f"Avg: {format_bytes(total_memory // len(nodes))}, Max: {format_bytes(max(memories))})",
        f"CPU: {total_cpu:.2f}%",
        "",
        _ROW.format("PID", "Name", "Threads", "CPU %", "Memory", "Status", width=width),
        "-" * (width + 57),
    ]

    if tree_mode:
        flattened = build_process_tree(nodes, sort_key)
        names = [
            prefix + truncate_string(node.name, max(30 - node.depth * 3, 4))
            for node, prefix in zip(flattened, tree_prefixes(flattened))
        ]
        ordered = list(zip(flattened, names))
    else:
        ordered = [(node, truncate_string(node.name, width)) for node in sort_nodes(nodes, sort_key)]

    for node, display_name in ordered:
        lines.append(
            _ROW.format(
                node.pid,
                display_name,
                node.snapshot.thread_count,
                f"{node.cpu_percent:.2f}",
                format_bytes(node.memory_bytes),
                format_status(node.snapshot.status),
                width=width,
            )
        )
    return "\n".join(lines)
