"""Who may do what to a task, given where it sits in the tree."""

from datetime import date, datetime, timezone
from typing import Dict, Optional

from errors import AuthorizationError, NotFoundError, ValidationError
from schemas import COMPLETED, CurrentUser, TaskRecord, UserRecord
from task_tree import TaskTree, effective_status

# a root task sits at depth 1
MAX_TASK_DEPTH = 20


def can_update_status(task: TaskRecord, user: CurrentUser, tree: TaskTree) -> bool:
    return task.assignee_id == user.id and not user.is_admin and tree.is_leaf(task.id)


def can_create_subtask(
    task: TaskRecord,
    user: CurrentUser,
    tree: TaskTree,
    now: Optional[datetime] = None,
    cache: Optional[Dict[str, str]] = None,
) -> bool:
    if task.assignee_id != user.id or user.is_admin:
        return False
    return effective_status(tree, task.id, now, cache) != COMPLETED


def require_non_admin(user: CurrentUser) -> None:
    if user.is_admin:
        raise AuthorizationError("This operation is not allowed for admin users")


def require_admin(user: CurrentUser) -> None:
    if not user.is_admin:
        raise AuthorizationError("Admin access required")


def ensure_can_create_task(user: CurrentUser) -> None:
    require_non_admin(user)
    if user.status != "approved":
        raise AuthorizationError("Account not approved yet")


def ensure_can_update_status(task: TaskRecord, user: CurrentUser, tree: TaskTree) -> None:
    require_non_admin(user)
    if task.assignee_id != user.id:
        raise AuthorizationError("Can only update tasks assigned to you")
    if not tree.is_leaf(task.id):
        raise AuthorizationError("Status of a task with subtasks is derived from its subtasks")


def ensure_can_create_subtask(parent: TaskRecord, user: CurrentUser, tree: TaskTree, now: Optional[datetime] = None) -> None:
    require_non_admin(user)
    if parent.assignee_id != user.id:
        raise AuthorizationError("Only the assignee of a task can create subtasks")
    if effective_status(tree, parent.id, now) == COMPLETED:
        raise AuthorizationError("Cannot add subtasks to a completed task")


def ensure_nesting_depth(parent: TaskRecord, tree: TaskTree) -> None:
    if tree.depth(parent.id) >= MAX_TASK_DEPTH:
        raise ValidationError(f"Tasks cannot be nested more than {MAX_TASK_DEPTH} levels deep")


def ensure_assignable(assignee: Optional[UserRecord]) -> None:
    if assignee is None:
        raise NotFoundError("Assignee not found")
    if assignee.role == "admin":
        raise ValidationError("Tasks cannot be assigned to admin users")
    if assignee.status != "approved":
        raise ValidationError("Assignee account is not approved")


def ensure_due_date(due_date: date, parent: Optional[TaskRecord] = None, today: Optional[date] = None) -> None:
    if today is None:
        today = datetime.now(timezone.utc).date()
    if due_date < today:
        raise ValidationError("due_date cannot be in the past")
    if parent is not None and due_date > parent.due_date:
        raise ValidationError("Subtask due date cannot be later than the parent task's due date")
