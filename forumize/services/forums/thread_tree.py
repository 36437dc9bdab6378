"""
Thread tree helpers for the nested `threads -> replies` comment JSON.

Traversal is iterative and addresses nodes by index path, e.g. (2, 0, 1)
is `threads[2].replies[0].replies[1]`. Mutating helpers return a new tree
and never touch their input.
"""
from __future__ import annotations

import copy
from collections import Counter
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

Path = Tuple[int, ...]


def walk(threads: Sequence[Dict[str, Any]]) -> Iterator[Tuple[Path, Dict[str, Any]]]:
    """Depth-first, pre-order: each node is yielded before its replies."""
    stack: List[Tuple[Path, Dict[str, Any]]] = [((i,), node) for i, node in enumerate(threads)][::-1]
    while stack:
        path, node = stack.pop()
        yield path, node
        replies = node.get("replies") or []
        for j in range(len(replies) - 1, -1, -1):
            stack.append((path + (j,), replies[j]))


def find_path(threads: Sequence[Dict[str, Any]], comment_id: str) -> Optional[Path]:
    for path, node in walk(threads):
        if node.get("id") == comment_id:
            return path
    return None


def get_node(threads: Sequence[Dict[str, Any]], path: Path) -> Dict[str, Any]:
    node = threads[path[0]]
    for idx in path[1:]:
        node = node["replies"][idx]
    return node


def append_reply(
    threads: Sequence[Dict[str, Any]], comment_id: str, reply: Dict[str, Any],
) -> Optional[List[Dict[str, Any]]]:
    """Copy of `threads` with `reply` appended under `comment_id`, or None."""
    path = find_path(threads, comment_id)
    if path is None:
        return None
    updated = copy.deepcopy(list(threads))
    parent = get_node(updated, path)
    if not parent.get("replies"):
        parent["replies"] = []
    parent["replies"].append(reply)
    return updated


def flatten(threads: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [node for _, node in walk(threads)]


def count_by_category(threads: Sequence[Dict[str, Any]], key: str = "category") -> Counter:
    return Counter(node.get(key) for _, node in walk(threads))
