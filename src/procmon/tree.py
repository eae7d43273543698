"""Process ancestry reconstruction and tree display ordering."""

from collections.abc import Callable, Iterable, Sequence
from dataclasses import replace
from typing import Any

from procmon.models import ProcessTreeNode, SortKey

TREE_BRANCH = "├─ "
TREE_LAST = "└─ "
TREE_VERTICAL = "│  "
TREE_SPACE = "   "


def sort_key_func(sort_key: SortKey) -> Callable[[ProcessTreeNode], Any]:
    """Return the extraction function for a sort key.

    Memory and CPU sort descending, pid and name ascending.
    """
    if sort_key is SortKey.MEMORY:
        return lambda n: -n.memory_bytes
    if sort_key is SortKey.CPU:
        return lambda n: -n.cpu_percent
    if sort_key is SortKey.PID:
        return lambda n: n.pid
    if sort_key is SortKey.NAME:
        return lambda n: n.name
    raise ValueError(f"unknown sort key: {sort_key!r}")


def sort_nodes(nodes: Iterable[ProcessTreeNode], sort_key: SortKey) -> list[ProcessTreeNode]:
    """Stable sort of a flat process list."""
    return sorted(nodes, key=sort_key_func(sort_key))


def build_process_tree(
    nodes: Sequence[ProcessTreeNode],
    sort_key: SortKey,
) -> list[ProcessTreeNode]:
    """
    Rebuild the parent/child forest of `nodes` and flatten it for display.

    A node is a root when it has no parent, names itself as parent, or its
    parent is not part of `nodes`. Roots and every sibling list are sorted by
    `sort_key`; the forest is emitted depth-first in pre-order with `depth`
    and `is_last_child` filled in.

    Nodes caught in a parent cycle (A -> B -> A) are unreachable from any
    root. One member of each such cycle is promoted to a root, so every
    input node is emitted exactly once.
    """
    if not nodes:
        return []

    arena: dict[int, ProcessTreeNode] = {node.pid: node for node in nodes}
    children: dict[int, list[int]] = {}
    roots: list[int] = []

    for pid, node in arena.items():
        parent = node.parent_pid
        if parent is None or parent == pid or parent not in arena:
            roots.append(pid)
        else:
            children.setdefault(parent, []).append(pid)

    key = sort_key_func(sort_key)

    def ordered(pids: Iterable[int]) -> list[int]:
        return sorted(pids, key=lambda p: key(arena[p]))

    _promote_cycles(arena, children, roots, ordered)

    roots = ordered(roots)
    children = {pid: ordered(kids) for pid, kids in children.items()}

    result: list[ProcessTreeNode] = []
    stack = [(pid, 0, i == len(roots) - 1) for i, pid in enumerate(roots)]
    stack.reverse()
    while stack:
        pid, depth, is_last = stack.pop()
        result.append(replace(arena[pid], depth=depth, is_last_child=is_last))
        kids = children.get(pid, [])
        for i in range(len(kids) - 1, -1, -1):
            stack.append((kids[i], depth + 1, i == len(kids) - 1))
    return result


def _descendants(pid: int, children: dict[int, list[int]]) -> set[int]:
    seen = {pid}
    pending = [pid]
    while pending:
        for child in children.get(pending.pop(), []):
            if child not in seen:
                seen.add(child)
                pending.append(child)
    return seen


def _promote_cycles(
    arena: dict[int, ProcessTreeNode],
    children: dict[int, list[int]],
    roots: list[int],
    ordered: Callable[[Iterable[int]], list[int]],
) -> None:
    """Detach one member of every parent cycle and make it a root, in place."""
    reachable: set[int] = set()
    for pid in roots:
        reachable |= _descendants(pid, children)

    while len(reachable) < len(arena):
        start = ordered(pid for pid in arena if pid not in reachable)[0]

        # Walk up until a node repeats; that node lies on the cycle
        walked: set[int] = set()
        pid = start
        while pid not in walked:
            walked.add(pid)
            pid = arena[pid].parent_pid

        children[arena[pid].parent_pid].remove(pid)
        roots.append(pid)
        reachable |= _descendants(pid, children)


def tree_prefix(depth: int, is_last_child: bool, prefix_stack: Sequence[bool]) -> str:
    """
    Build the connector prefix for one tree row.

    Args:
        depth: Depth of the row, 0 for roots.
        is_last_child: Whether the row is the last of its siblings.
        prefix_stack: For each ancestor level below the root, whether that
            ancestor still has siblings to come.
    """
    if depth == 0:
        return ""
    parts = [TREE_VERTICAL if has_sibling else TREE_SPACE for has_sibling in prefix_stack[: depth - 1]]
    parts.append(TREE_LAST if is_last_child else TREE_BRANCH)
    return "".join(parts)


def tree_prefixes(flattened: Iterable[ProcessTreeNode]) -> list[str]:
    """Connector prefixes for a pre-order flattened tree, one per node."""
    prefixes: list[str] = []
    continuing: list[bool] = []
    for node in flattened:
        if node.depth == 0:
            continuing.clear()
            prefixes.append("")
            continue
        del continuing[node.depth - 1 :]
        prefixes.append(tree_prefix(node.depth, node.is_last_child, continuing))
        continuing.append(not node.is_last_child)
    return prefixes
