"""Shared fixtures: an in-memory Mongo, an API client bound to it, and user/task factories."""

from datetime import date, datetime, timedelta, timezone

import mongomock
import pytest
from fastapi.testclient import TestClient

import main
from database import ensure_indexes, get_db
from schemas import TaskRecord
from security import create_access_token, hash_password
from stores import TaskStore, UserStore

PASSWORD = "secret123"
PASSWORD_HASH = hash_password(PASSWORD)

NOW = datetime(2025, 5, 1, 12, 0, tzinfo=timezone.utc)


def today():
    return datetime.now(timezone.utc).date()


def make_task(
    task_id,
    parent=None,
    status="NOT_STARTED",
    due=date(2025, 6, 1),
    assignee="u-assignee",
    creator="u-creator",
    created_at=None,
    title=None,
    assignee_name=None,
    creator_name=None,
):
    return TaskRecord(
        id=task_id,
        title=title or f"Task {task_id}",
        description=f"Description of {task_id}",
        assignee_id=assignee,
        assignee_name=assignee_name,
        created_by=creator,
        created_by_name=creator_name,
        status=status,
        due_date=due,
        parent_task_id=parent,
        created_at=created_at or NOW - timedelta(days=10),
    )


@pytest.fixture
def db():
    mongo = mongomock.MongoClient(tz_aware=True)
    mongo.drop_database("taskflow_test")
    database = mongo["taskflow_test"]
    ensure_indexes(database)
    yield database
    mongo.drop_database("taskflow_test")


@pytest.fixture
def client(db):
    main.app.dependency_overrides[get_db] = lambda: db
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    users = UserStore(db)

    def _make(name, email=None, role="user", status="approved"):
        email = email or f"{name.lower()}@example.com"
        return users.insert_user(name, email, PASSWORD_HASH, role=role, status=status)

    return _make


@pytest.fixture
def auth():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user)}"}

    return _headers


@pytest.fixture
def admin(make_user):
    return make_user("Admin", role="admin")


@pytest.fixture
def alice(make_user):
    return make_user("Alice")


@pytest.fixture
def bob(make_user):
    return make_user("Bob")


@pytest.fixture
def carol(make_user):
    return make_user("Carol")


@pytest.fixture
def insert_task(db):
    tasks = TaskStore(db)

    def _insert(title, assignee, creator, due=None, parent=None, description="details"):
        return tasks.insert_task(
            title=title,
            description=description,
            assignee_id=assignee.id,
            created_by=creator.id,
            due_date=due or today() + timedelta(days=30),
            parent_task_id=parent.id if parent else None,
        )

    return _insert
