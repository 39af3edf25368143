"""Tests for group derivation from the task tree."""

from datetime import timedelta

from conftest import NOW, make_task
from groups import derive_groups, group_id_for, group_members, member_ids, root_id_from_group_id
from schemas import UserRecord
from task_tree import TaskTree

USERS = {
    uid: UserRecord(id=uid, name=name, email=f"{uid}@example.com", role="user", status="approved")
    for uid, name in [("g", "Gina"), ("u", "Uma"), ("x", "Xavier"), ("y", "yann"), ("b", "Abel")]
}


def build_tree():
    return TaskTree(
        [
            make_task("G", assignee="x", creator="g", created_at=NOW - timedelta(days=5)),
            make_task("F", parent="G", assignee="u", creator="x"),
            make_task("F2", parent="G", assignee="y", creator="x"),
            make_task("F3", parent="F", assignee="x", creator="u"),
            make_task("K", assignee="u", creator="b", created_at=NOW - timedelta(days=1)),
            make_task("L", assignee="b", creator="y", created_at=NOW),
        ]
    )


def test_subtask_assignee_gets_group_of_root():
    tree = build_tree()
    groups = {g.task_id: g for g in derive_groups(tree, "u")}
    assert set(groups) == {"G", "K"}
    assert member_ids(tree, "G") == {"g", "x", "u", "y"}
    assert groups["G"].member_count == 4
    assert groups["G"].id == "task_G"


def test_members_are_unique_and_ordered():
    tree = build_tree()
    members = group_members(tree, "G", current_user_id="u", users=USERS)
    assert [m.user_id for m in members] == ["g", "u", "x", "y"]
    assert [m.role for m in members] == ["creator", "member", "member", "member"]
    assert [m.is_current_user for m in members] == [False, True, False, False]
    assert len({m.user_id for m in members}) == len(members)


def test_groups_newest_first():
    tree = build_tree()
    assert [g.task_id for g in derive_groups(tree, "b")] == ["L", "K"]


def test_derivation_is_idempotent():
    tree = build_tree()
    assert derive_groups(tree, "x") == derive_groups(tree, "x")
    assert group_members(tree, "G", "x", USERS) == group_members(tree, "G", "x", USERS)


def test_trivial_group_for_single_task():
    tree = TaskTree([make_task("T", assignee="a", creator="c")])
    (group,) = derive_groups(tree, "a")
    assert group.member_count == 2


def test_self_assigned_task_still_forms_a_group():
    tree = TaskTree([make_task("T", assignee="a", creator="a")])
    (group,) = derive_groups(tree, "a")
    assert group.member_count == 1
    (member,) = group_members(tree, "T", "a")
    assert member.role == "creator"


def test_uninvolved_user_has_no_groups():
    assert derive_groups(build_tree(), "nobody") == []


def test_member_names_fall_back_to_task_records():
    tree = TaskTree([make_task("T", assignee="a", creator="c", assignee_name="Ann", creator_name="Cid")])
    members = group_members(tree, "T")
    assert [(m.user_id, m.user_name) for m in members] == [("c", "Cid"), ("a", "Ann")]


def test_group_id_round_trip():
    assert root_id_from_group_id(group_id_for("abc")) == "abc"
    assert root_id_from_group_id("abc") == "abc"
