"""
Ad-hoc groups derived from the task tree.

A group is never stored. Each root task defines one, and its members are the
root's creator plus everyone who created or is assigned any task underneath
it. A user sees the groups of every root they touch.
"""

from typing import Dict, List, Mapping, Optional, Set

from schemas import GroupMember, TaskGroup, UserRecord
from task_tree import TaskTree

GROUP_PREFIX = "task_"


def group_id_for(root_id: str) -> str:
    return f"{GROUP_PREFIX}{root_id}"


def root_id_from_group_id(group_id: str) -> str:
    if group_id.startswith(GROUP_PREFIX):
        return group_id[len(GROUP_PREFIX):]
    return group_id


def member_ids(tree: TaskTree, root_id: str) -> Set[str]:
    members = {tree.tasks[root_id].created_by}
    for task in tree.walk(root_id):
        members.add(task.assignee_id)
        members.add(task.created_by)
    return members


def root_ids_for_user(tree: TaskTree, user_id: str) -> Set[str]:
    return {
        tree.root_of(task.id)
        for task in tree.tasks.values()
        if task.assignee_id == user_id or task.created_by == user_id
    }


def derive_groups(tree: TaskTree, user_id: str) -> List[TaskGroup]:
    groups = []
    for root_id in root_ids_for_user(tree, user_id):
        root = tree.tasks[root_id]
        groups.append(
            TaskGroup(
                id=group_id_for(root_id),
                task_id=root_id,
                task_title=root.title,
                task_description=root.description,
                created_by=root.created_by,
                created_by_name=root.created_by_name,
                created_at=root.created_at,
                member_count=len(member_ids(tree, root_id)),
            )
        )
    # newest first; ids break ties between roots created in the same instant
    groups.sort(key=lambda g: (g.created_at, g.task_id), reverse=True)
    return groups


def _known_names(tree: TaskTree, root_id: str) -> Dict[str, str]:
    names: Dict[str, str] = {}
    for task in tree.walk(root_id):
        if task.assignee_name:
            names.setdefault(task.assignee_id, task.assignee_name)
        if task.created_by_name:
            names.setdefault(task.created_by, task.created_by_name)
    return names


def group_members(
    tree: TaskTree,
    root_id: str,
    current_user_id: Optional[str] = None,
    users: Optional[Mapping[str, UserRecord]] = None,
) -> List[GroupMember]:
    users = users or {}
    names = _known_names(tree, root_id)
    creator_id = tree.tasks[root_id].created_by

    members = []
    for uid in member_ids(tree, root_id):
        user = users.get(uid)
        members.append(
            GroupMember(
                user_id=uid,
                user_name=user.name if user else names.get(uid, ""),
                user_email=user.email if user else "",
                role="creator" if uid == creator_id else "member",
                is_current_user=uid == current_user_id,
            )
        )
    members.sort(key=lambda m: (m.role != "creator", m.user_name.casefold(), m.user_id))
    return members
