"""Parent-first ordering of a flat todo list.

``list`` hands back records in whatever order the store returns them. The UI
renders a todo immediately followed by its subtree, so the flat set is walked
depth-first from every root, following each ``children`` list in order.

The walk tolerates inconsistent data: child ids missing from the input are
skipped, an id listed under two parents is emitted once (first occurrence),
and records nothing reaches (dangling ``parent_id``, cycles, unmirrored
links) are emitted afterwards as if they were roots. Every input record is
emitted exactly once.
"""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Set, Tuple

from .models import Todo


def _walk(
    start: Todo,
    index: Dict[str, Todo],
    emitted: Set[str],
) -> Iterator[Tuple[int, Todo]]:
    # Explicit stack so deep trees cannot hit the recursion limit.
    stack: List[Tuple[int, Todo]] = [(0, start)]
    while stack:
        depth, todo = stack.pop()
        if todo.id in emitted:
            continue
        emitted.add(todo.id)
        yield depth, todo
        for child_id in reversed(todo.children):
            child = index.get(child_id)
            if child is not None and child.id not in emitted:
                stack.append((depth + 1, child))


def _topmost_pending(todo: Todo, index: Dict[str, Todo], emitted: Set[str]) -> Todo:
    """Climb ``parent_id`` links through records not yet emitted."""

    seen = {todo.id}
    current = todo
    while current.parent_id:
        parent = index.get(current.parent_id)
        if parent is None or parent.id in emitted or parent.id in seen:
            break
        seen.add(parent.id)
        current = parent
    return current


def iter_tree(todos: Iterable[Todo]) -> Iterator[Tuple[int, Todo]]:
    """Yield ``(depth, todo)`` pairs in parent-first, depth-first order."""

    records = list(todos)
    index: Dict[str, Todo] = {}
    for todo in records:
        index.setdefault(todo.id, todo)

    emitted: Set[str] = set()
    for todo in records:
        if todo.is_root and todo.id not in emitted:
            yield from _walk(todo, index, emitted)

    for todo in records:
        while todo.id not in emitted:
            yield from _walk(_topmost_pending(todo, index, emitted), index, emitted)


def assemble_tree(todos: Iterable[Todo]) -> List[Todo]:
    """Return ``todos`` reordered so every parent precedes its subtree."""

    return [todo for _, todo in iter_tree(todos)]
