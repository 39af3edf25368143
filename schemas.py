"""
Database Schemas for the TaskFlow Backend

Collections are inferred from Pydantic model class names (lowercased):
- User -> "user"
- Task -> "task"
- Message -> "message"

Document models describe what gets written to MongoDB. Record and view models
describe what is read back and what the API returns; every id in them is the
ObjectId hex string.
"""

from datetime import date, datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

# Auth and Users
Role = Literal["admin", "user"]
UserStatus = Literal["pending", "approved", "rejected"]

# Tasks
TaskStatus = Literal["NOT_STARTED", "IN_PROGRESS", "COMPLETED"]
EffectiveStatus = Literal["NOT_STARTED", "IN_PROGRESS", "COMPLETED", "OVERDUE"]
TASK_STATUSES = ("NOT_STARTED", "IN_PROGRESS", "COMPLETED")

NOT_STARTED = "NOT_STARTED"
IN_PROGRESS = "IN_PROGRESS"
COMPLETED = "COMPLETED"
OVERDUE = "OVERDUE"

# Messages
MessageType = Literal["direct", "group"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: EmailStr
    password_hash: str
    role: Role = "user"
    status: UserStatus = "pending"
    created_at: datetime = Field(default_factory=utcnow)


class Task(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=5000)
    assignee_id: str
    created_by: str
    status: TaskStatus = "NOT_STARTED"
    # stored as midnight UTC of the due day
    due_date: datetime
    parent_task_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class Message(BaseModel):
    sender_id: str
    receiver_id: str
    group_id: Optional[str] = None
    content: str = Field(..., min_length=1, max_length=5000)
    message_type: MessageType = "direct"
    is_read: bool = False
    created_at: datetime = Field(default_factory=utcnow)


# Read side
class UserRecord(BaseModel):
    id: str
    name: str
    email: str
    role: Role
    status: UserStatus
    created_at: Optional[datetime] = None


class TaskRecord(BaseModel):
    id: str
    title: str
    description: str = ""
    assignee_id: str
    assignee_name: Optional[str] = None
    created_by: str
    created_by_name: Optional[str] = None
    status: TaskStatus = "NOT_STARTED"
    due_date: date
    parent_task_id: Optional[str] = None
    created_at: datetime


class CurrentUser(BaseModel):
    """The session: who is calling, resolved once per request."""

    id: str
    name: str
    email: str
    role: Role
    status: UserStatus = "approved"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class TaskView(TaskRecord):
    effective_status: EffectiveStatus
    can_update_status: bool = False
    can_create_subtask: bool = False
    subtasks: List["TaskView"] = []


class TaskStats(BaseModel):
    my_tasks: int = 0
    assigned_to_me: int = 0
    assigned_by_me: int = 0
    completed_by_me: int = 0


class GroupMember(BaseModel):
    user_id: str
    user_name: str
    user_email: str = ""
    role: Literal["creator", "member"]
    is_current_user: bool = False


class TaskGroup(BaseModel):
    id: str
    task_id: str
    task_title: str
    task_description: str = ""
    created_by: str
    created_by_name: Optional[str] = None
    created_at: datetime
    member_count: int


class MessageRecord(BaseModel):
    id: str
    sender_id: str
    sender_name: Optional[str] = None
    receiver_id: str
    group_id: Optional[str] = None
    message_type: MessageType = "direct"
    content: str
    is_read: bool = False
    created_at: datetime


class Notification(BaseModel):
    id: str
    type: Literal["message"] = "message"
    title: str = "New Message"
    message: str
    from_user: Optional[str] = None
    is_read: bool = False
    created_at: datetime


TaskView.model_rebuild()
