"""
TaskFlow operations.

Route handlers in ``main.py`` stay thin and call into these functions, passing
the database and the caller's ``CurrentUser`` explicitly. Every rule that
guards a mutation is enforced here, never left to the client.
"""

import logging
from datetime import date, datetime, timezone
from typing import List, Optional, Tuple

from pymongo.database import Database

import permissions
from database import parse_object_id
from errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from groups import derive_groups, group_members, member_ids, root_id_from_group_id
from schemas import (
    COMPLETED,
    TASK_STATUSES,
    CurrentUser,
    GroupMember,
    MessageRecord,
    Notification,
    TaskGroup,
    TaskRecord,
    TaskStats,
    TaskView,
    UserRecord,
)
from security import create_access_token, hash_password, verify_password
from stores import MessageStore, TaskStore, UserStore
from task_tree import TaskTree, effective_statuses

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
ADMIN_DECISIONS = ("approved", "rejected")


def _required(**fields: Optional[str]) -> None:
    missing = [f"{name} is required" for name, value in fields.items() if value is None or not str(value).strip()]
    if missing:
        raise ValidationError(missing[0], missing)


# Identity & approval

def register_user(db: Database, name: str, email: str, password: str) -> UserRecord:
    _required(name=name, email=email, password=password)
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"password must be at least {MIN_PASSWORD_LENGTH} characters")
    users = UserStore(db)
    if users.find_user_by_email(email):
        raise ConflictError("User already exists")
    # role is always "user"; admins are never self-registered
    return users.insert_user(name.strip(), email, hash_password(password))


def authenticate(db: Database, email: str, password: str) -> Tuple[str, UserRecord]:
    users = UserStore(db)
    doc = users.find_user_by_email(email)
    if not doc or not verify_password(password, doc.get("password_hash", "")):
        raise AuthenticationError("Invalid credentials")
    user = users.to_record(doc)
    if user.status != "approved":
        raise AuthorizationError("Account not approved yet")
    logger.info("User %s logged in", user.id)
    return create_access_token(user), user


def resolve_session(db: Database, claims: dict) -> CurrentUser:
    user = UserStore(db).get_user(claims["sub"])
    if user is None:
        raise AuthenticationError("User not found")
    if user.status != "approved":
        raise AuthorizationError("Account not approved yet")
    return CurrentUser(id=user.id, name=user.name, email=user.email, role=user.role, status=user.status)


def set_user_status(db: Database, admin: CurrentUser, user_id: str, status: str) -> Tuple[UserRecord, bool]:
    """Approve or reject a pending account. Returns the user and whether anything changed."""
    permissions.require_admin(admin)
    if status not in ADMIN_DECISIONS:
        raise ValidationError("Invalid status")
    users = UserStore(db)
    user = users.get_user(str(parse_object_id(user_id, "User")))
    if user is None:
        raise NotFoundError("User not found")
    if user.status == status:
        return user, False
    if user.status != "pending":
        raise ConflictError(f"User is already {user.status}")
    updated = users.update_user_status(user.id, status)
    logger.info("Admin %s set user %s to %s", admin.id, user.id, status)
    return updated, True


def ensure_admin_account(db: Database, name: str, email: str, password: str) -> Optional[UserRecord]:
    users = UserStore(db)
    if users.find_user_by_email(email):
        return None
    admin = users.insert_user(name, email, hash_password(password), role="admin", status="approved")
    logger.info("Bootstrapped admin account %s", email)
    return admin


# Tasks

def load_tree(db: Database) -> TaskTree:
    return TaskTree(TaskStore(db).list_tasks_with_assignee_and_creator_names())


def _matches(task: TaskRecord, search: str) -> bool:
    needle = search.lower()
    return needle in task.title.lower() or needle in (task.description or "").lower()


def list_task_views(
    db: Database,
    user: CurrentUser,
    search: Optional[str] = None,
    scope: str = "all",
    now: Optional[datetime] = None,
) -> List[TaskView]:
    tree = load_tree(db)
    if now is None:
        now = datetime.now(timezone.utc)
    statuses = effective_statuses(tree, now)

    def build(task: TaskRecord) -> TaskView:
        return TaskView(
            **task.model_dump(),
            effective_status=statuses[task.id],
            can_update_status=permissions.can_update_status(task, user, tree),
            can_create_subtask=permissions.can_create_subtask(task, user, tree, now, statuses),
            subtasks=[build(sub) for sub in tree.subtasks(task.id)],
        )

    roots = tree.roots()
    if scope == "mine":
        roots = [t for t in roots if t.assignee_id == user.id]
    elif scope == "created":
        roots = [t for t in roots if t.created_by == user.id]
    if search:
        roots = [t for t in roots if _matches(t, search)]
    return [build(task) for task in roots]


def task_stats(tree: TaskTree, user: CurrentUser) -> TaskStats:
    stats = TaskStats()
    for task in tree.tasks.values():
        if task.created_by == user.id:
            stats.assigned_by_me += 1
        if task.assignee_id != user.id:
            continue
        stats.my_tasks += 1
        if task.status == COMPLETED:
            stats.completed_by_me += 1
        else:
            stats.assigned_to_me += 1
    return stats


def create_task(
    db: Database,
    user: CurrentUser,
    title: str,
    description: str,
    assignee_id: str,
    due_date: date,
    parent_task_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[TaskRecord, UserRecord]:
    permissions.ensure_can_create_task(user)
    _required(title=title, description=description, assignee_id=assignee_id)
    if now is None:
        now = datetime.now(timezone.utc)

    parent = None
    if parent_task_id:
        tree = load_tree(db)
        parent = tree.get(str(parse_object_id(parent_task_id, "Parent task")))
        if parent is None:
            raise NotFoundError("Parent task not found")
        permissions.ensure_can_create_subtask(parent, user, tree, now)
        permissions.ensure_nesting_depth(parent, tree)

    permissions.ensure_due_date(due_date, parent, today=now.date())

    assignee = UserStore(db).get_user(str(parse_object_id(assignee_id, "Assignee")))
    permissions.ensure_assignable(assignee)

    task = TaskStore(db).insert_task(
        title=title.strip(),
        description=description.strip(),
        assignee_id=assignee.id,
        created_by=user.id,
        due_date=due_date,
        parent_task_id=parent.id if parent else None,
    )
    return task, assignee


def update_task_status(db: Database, user: CurrentUser, task_id: str, status: Optional[str]) -> TaskRecord:
    # admins are turned away before the payload is even looked at
    permissions.require_non_admin(user)
    if status not in TASK_STATUSES:
        raise ValidationError("Invalid status")
    tree = load_tree(db)
    task = tree.get(str(parse_object_id(task_id, "Task")))
    if task is None:
        raise NotFoundError("Task not found")
    permissions.ensure_can_update_status(task, user, tree)
    updated = TaskStore(db).update_task_status(task.id, status)
    logger.info("User %s set task %s to %s", user.id, task.id, status)
    return updated


# Groups

def list_groups(db: Database, user: CurrentUser) -> List[TaskGroup]:
    return derive_groups(load_tree(db), user.id)


def list_group_members(db: Database, user: CurrentUser, group_id: str) -> List[GroupMember]:
    tree = load_tree(db)
    root_id = root_id_from_group_id(group_id)
    if root_id not in tree or not tree.is_root(root_id):
        raise NotFoundError("Task group not found")
    members = member_ids(tree, root_id)
    if not user.is_admin and user.id not in members:
        raise AuthorizationError("Not a member of this task group")
    return group_members(tree, root_id, user.id, UserStore(db).get_users(members))


# Messaging

def conversation(db: Database, user: CurrentUser, other_user_id: str) -> List[MessageRecord]:
    other = UserStore(db).get_user(str(parse_object_id(other_user_id, "User")))
    if other is None:
        raise NotFoundError("User not found")
    return MessageStore(db).list_messages_between(user.id, other.id)


def send_message(
    db: Database, user: CurrentUser, receiver_id: str, content: str, group_id: Optional[str] = None
) -> MessageRecord:
    _required(receiver_id=receiver_id, content=content)
    receiver = UserStore(db).get_user(str(parse_object_id(receiver_id, "Receiver")))
    if receiver is None:
        raise NotFoundError("Receiver not found")
    return MessageStore(db).insert_message(user.id, receiver.id, content, group_id)


def list_notifications(db: Database, user: CurrentUser, limit: int, unread_only: bool = True) -> List[Notification]:
    return MessageStore(db).list_notifications(user.id, limit, unread_only)


def mark_message_read(db: Database, user: CurrentUser, message_id: str) -> MessageRecord:
    message = MessageStore(db).mark_read(str(parse_object_id(message_id, "Message")), user.id)
    if message is None:
        raise NotFoundError("Message not found")
    return message
