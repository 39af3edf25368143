"""
Persistence for users, tasks and messages.

Each store wraps one MongoDB collection and hands back pydantic records with
string ids, so nothing above this layer touches ObjectId or raw documents.
"""

import logging
from datetime import date, datetime, time, timezone
from typing import Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import as_utc, create_document
from errors import ConflictError
from schemas import (
    Message,
    MessageRecord,
    Notification,
    Task,
    TaskRecord,
    User,
    UserRecord,
)

logger = logging.getLogger(__name__)

NEWEST_FIRST = [("created_at", DESCENDING), ("_id", DESCENDING)]
OLDEST_FIRST = [("created_at", ASCENDING), ("_id", ASCENDING)]


def _object_ids(ids: Iterable[str]) -> List[ObjectId]:
    return [ObjectId(i) for i in set(ids) if i and ObjectId.is_valid(i)]


class UserStore:
    collection_name = "user"

    def __init__(self, db: Database):
        self.db = db
        self.collection = db[self.collection_name]

    @staticmethod
    def to_record(doc: dict) -> UserRecord:
        created_at = doc.get("created_at")
        return UserRecord(
            id=str(doc["_id"]),
            name=doc.get("name", ""),
            email=doc["email"],
            role=doc.get("role", "user"),
            status=doc.get("status", "pending"),
            created_at=as_utc(created_at) if created_at else None,
        )

    def find_user_by_email(self, email: str) -> Optional[dict]:
        """Raw document, password hash included; only authentication should need it."""
        return self.collection.find_one({"email": email.lower()})

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        if not ObjectId.is_valid(user_id):
            return None
        doc = self.collection.find_one({"_id": ObjectId(user_id)})
        return self.to_record(doc) if doc else None

    def get_users(self, user_ids: Iterable[str]) -> Dict[str, UserRecord]:
        docs = self.collection.find({"_id": {"$in": _object_ids(user_ids)}})
        return {str(doc["_id"]): self.to_record(doc) for doc in docs}

    def insert_user(self, name: str, email: str, password_hash: str, role: str = "user", status: str = "pending") -> UserRecord:
        user = User(name=name, email=email.lower(), password_hash=password_hash, role=role, status=status)
        try:
            uid = create_document(self.db, self.collection_name, user)
        except DuplicateKeyError:
            raise ConflictError("User already exists")
        logger.info("Inserted %s user %s with status %s", role, uid, status)
        return UserRecord(id=uid, **user.model_dump(exclude={"password_hash"}))

    def list_users(self) -> List[UserRecord]:
        return [self.to_record(doc) for doc in self.collection.find({}).sort(NEWEST_FIRST)]

    def list_approved_users(self) -> List[UserRecord]:
        docs = self.collection.find({"status": "approved"}).sort([("name", ASCENDING), ("_id", ASCENDING)])
        return [self.to_record(doc) for doc in docs]

    def update_user_status(self, user_id: str, status: str) -> Optional[UserRecord]:
        doc = self.collection.find_one_and_update(
            {"_id": ObjectId(user_id)},
            {"$set": {"status": status}},
            return_document=ReturnDocument.AFTER,
        )
        return self.to_record(doc) if doc else None


class TaskStore:
    collection_name = "task"

    def __init__(self, db: Database):
        self.db = db
        self.collection = db[self.collection_name]
        self.users = UserStore(db)

    @staticmethod
    def to_record(doc: dict, names: Optional[Dict[str, UserRecord]] = None) -> TaskRecord:
        names = names or {}
        assignee = names.get(doc["assignee_id"])
        creator = names.get(doc["created_by"])
        return TaskRecord(
            id=str(doc["_id"]),
            title=doc["title"],
            description=doc.get("description", ""),
            assignee_id=doc["assignee_id"],
            assignee_name=assignee.name if assignee else None,
            created_by=doc["created_by"],
            created_by_name=creator.name if creator else None,
            status=doc.get("status", "NOT_STARTED"),
            due_date=as_utc(doc["due_date"]).date(),
            parent_task_id=doc.get("parent_task_id"),
            created_at=as_utc(doc["created_at"]),
        )

    def list_tasks_with_assignee_and_creator_names(self) -> List[TaskRecord]:
        docs = list(self.collection.find({}).sort(NEWEST_FIRST))
        user_ids = [d["assignee_id"] for d in docs] + [d["created_by"] for d in docs]
        names = self.users.get_users(user_ids)
        return [self.to_record(doc, names) for doc in docs]

    def get_task(self, task_id: str) -> Optional[TaskRecord]:
        if not ObjectId.is_valid(task_id):
            return None
        doc = self.collection.find_one({"_id": ObjectId(task_id)})
        return self.to_record(doc) if doc else None

    def insert_task(
        self,
        title: str,
        description: str,
        assignee_id: str,
        created_by: str,
        due_date: date,
        parent_task_id: Optional[str] = None,
    ) -> TaskRecord:
        task = Task(
            title=title,
            description=description,
            assignee_id=assignee_id,
            created_by=created_by,
            due_date=datetime.combine(due_date, time.min, tzinfo=timezone.utc),
            parent_task_id=parent_task_id,
        )
        tid = create_document(self.db, self.collection_name, task)
        logger.info("Inserted task %s (parent=%s) assigned to %s", tid, parent_task_id, assignee_id)
        return self.to_record({"_id": tid, **task.model_dump()})

    def update_task_status(self, task_id: str, status: str) -> Optional[TaskRecord]:
        doc = self.collection.find_one_and_update(
            {"_id": ObjectId(task_id)},
            {"$set": {"status": status}},
            return_document=ReturnDocument.AFTER,
        )
        return self.to_record(doc) if doc else None


class MessageStore:
    collection_name = "message"

    def __init__(self, db: Database):
        self.db = db
        self.collection = db[self.collection_name]
        self.users = UserStore(db)

    @staticmethod
    def to_record(doc: dict, names: Optional[Dict[str, UserRecord]] = None) -> MessageRecord:
        sender = (names or {}).get(doc["sender_id"])
        return MessageRecord(
            id=str(doc["_id"]),
            sender_id=doc["sender_id"],
            sender_name=sender.name if sender else None,
            receiver_id=doc["receiver_id"],
            group_id=doc.get("group_id"),
            message_type=doc.get("message_type", "direct"),
            content=doc["content"],
            is_read=doc.get("is_read", False),
            created_at=as_utc(doc["created_at"]),
        )

    def list_messages_between(self, user_a: str, user_b: str) -> List[MessageRecord]:
        query = {
            "message_type": "direct",
            "$or": [
                {"sender_id": user_a, "receiver_id": user_b},
                {"sender_id": user_b, "receiver_id": user_a},
            ],
        }
        docs = list(self.collection.find(query).sort(OLDEST_FIRST))
        names = self.users.get_users([user_a, user_b])
        return [self.to_record(doc, names) for doc in docs]

    def insert_message(self, sender_id: str, receiver_id: str, content: str, group_id: Optional[str] = None) -> MessageRecord:
        message = Message(
            sender_id=sender_id,
            receiver_id=receiver_id,
            group_id=group_id,
            content=content,
            message_type="group" if group_id else "direct",
        )
        mid = create_document(self.db, self.collection_name, message)
        return self.to_record({"_id": mid, **message.model_dump()}, self.users.get_users([sender_id]))

    def mark_read(self, message_id: str, receiver_id: str) -> Optional[MessageRecord]:
        doc = self.collection.find_one_and_update(
            {"_id": ObjectId(message_id), "receiver_id": receiver_id},
            {"$set": {"is_read": True}},
            return_document=ReturnDocument.AFTER,
        )
        return self.to_record(doc) if doc else None

    def list_notifications(self, receiver_id: str, limit: int, unread_only: bool = False) -> List[Notification]:
        query = {"receiver_id": receiver_id, "message_type": "direct"}
        if unread_only:
            query["is_read"] = False
        docs = list(self.collection.find(query).sort(NEWEST_FIRST).limit(limit))
        names = self.users.get_users(d["sender_id"] for d in docs)
        notifications = []
        for doc in docs:
            sender = names.get(doc["sender_id"])
            notifications.append(
                Notification(
                    id=str(doc["_id"]),
                    message=doc["content"],
                    from_user=sender.name if sender else None,
                    is_read=doc.get("is_read", False),
                    created_at=as_utc(doc["created_at"]),
                )
            )
        return notifications
