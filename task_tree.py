"""
Task hierarchy and status derivation.

Tasks are kept flat, keyed by id, with a parent reference. ``TaskTree`` does a
single indexing pass to find each task's children, so every walk below is a
dictionary lookup rather than a scan over all tasks.
"""

from collections import defaultdict
from datetime import date, datetime, time, timezone
from typing import Dict, Iterable, Iterator, List, Optional

from schemas import COMPLETED, IN_PROGRESS, NOT_STARTED, OVERDUE, TaskRecord


class TaskTree:
    def __init__(self, tasks: Iterable[TaskRecord]):
        self.tasks: Dict[str, TaskRecord] = {}
        self.children: Dict[str, List[str]] = defaultdict(list)
        for task in tasks:
            self.tasks[task.id] = task
        for task in self.tasks.values():
            if task.parent_task_id and task.parent_task_id in self.tasks:
                self.children[task.parent_task_id].append(task.id)

    def __contains__(self, task_id: str) -> bool:
        return task_id in self.tasks

    def get(self, task_id: str) -> Optional[TaskRecord]:
        return self.tasks.get(task_id)

    def subtasks(self, task_id: str) -> List[TaskRecord]:
        return [self.tasks[child_id] for child_id in self.children.get(task_id, [])]

    def is_leaf(self, task_id: str) -> bool:
        return not self.children.get(task_id)

    def is_root(self, task_id: str) -> bool:
        # a parent that is missing from the snapshot makes the task a root
        task = self.tasks[task_id]
        return not task.parent_task_id or task.parent_task_id not in self.tasks

    def roots(self) -> List[TaskRecord]:
        return [task for task_id, task in self.tasks.items() if self.is_root(task_id)]

    def root_of(self, task_id: str) -> str:
        seen = set()
        current = task_id
        while not self.is_root(current):
            if current in seen:
                raise ValueError(f"Cycle in task parents at {current}")
            seen.add(current)
            current = self.tasks[current].parent_task_id
        return current

    def depth(self, task_id: str) -> int:
        """Number of tasks on the path from the root down to this one, inclusive."""
        seen = set()
        current = task_id
        levels = 1
        while not self.is_root(current):
            if current in seen:
                raise ValueError(f"Cycle in task parents at {current}")
            seen.add(current)
            current = self.tasks[current].parent_task_id
            levels += 1
        return levels

    def walk(self, task_id: str) -> Iterator[TaskRecord]:
        """Yield the task and all of its descendants, parents before children."""
        stack = [task_id]
        seen = set()
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            yield self.tasks[current]
            stack.extend(reversed(self.children.get(current, [])))


def due_moment(due_date: date) -> datetime:
    return datetime.combine(due_date, time.min, tzinfo=timezone.utc)


def is_past_due(task: TaskRecord, now: datetime) -> bool:
    return due_moment(task.due_date) < now


def _settle(tree: TaskTree, task: TaskRecord, now: datetime, cache: Dict[str, str]) -> str:
    past_due = is_past_due(task, now)

    if tree.is_leaf(task.id):
        if task.status == COMPLETED:
            return COMPLETED
        return OVERDUE if past_due else task.status

    # children are settled first; one missing here can only sit on a parent cycle
    statuses = [cache[child_id] for child_id in tree.children[task.id] if child_id in cache]
    if all(s == COMPLETED for s in statuses):
        return COMPLETED
    if any(s == IN_PROGRESS for s in statuses):
        return IN_PROGRESS
    if past_due or any(s == OVERDUE for s in statuses):
        return OVERDUE
    return NOT_STARTED


def effective_status(
    tree: TaskTree,
    task_id: str,
    now: Optional[datetime] = None,
    cache: Optional[Dict[str, str]] = None,
) -> str:
    """
    Status shown for a task.

    Leaf tasks: COMPLETED always wins, otherwise OVERDUE once the due date has
    passed, otherwise the stored status. Composite tasks roll up from their
    subtasks in this order: all COMPLETED, any IN_PROGRESS, any OVERDUE (or the
    task's own due date passed), else NOT_STARTED.

    The subtree is settled bottom-up by walking it in reverse preorder, so the
    depth of the hierarchy never touches the interpreter's stack.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    if cache is None:
        cache = {}
    if task_id in cache:
        return cache[task_id]

    for task in reversed(list(tree.walk(task_id))):
        if task.id not in cache:
            cache[task.id] = _settle(tree, task, now, cache)
    return cache[task_id]


def effective_statuses(tree: TaskTree, now: Optional[datetime] = None) -> Dict[str, str]:
    if now is None:
        now = datetime.now(timezone.utc)
    cache: Dict[str, str] = {}
    for root in tree.roots():
        effective_status(tree, root.id, now, cache)
    for task_id in tree.tasks:
        if task_id not in cache:
            effective_status(tree, task_id, now, cache)
    return cache
