import logging
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import List, Literal, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Header, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr, Field
from pymongo.database import Database
from pymongo.errors import PyMongoError

import notifier
import services
from config import get_settings
from database import ensure_indexes, get_db
from errors import AppError, AuthenticationError, AuthorizationError
from schemas import (
    CurrentUser,
    GroupMember,
    MessageRecord,
    Notification,
    Role,
    TaskGroup,
    TaskStats,
    TaskView,
    UserRecord,
)
from security import decode_access_token
from stores import UserStore

# Settings
settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    database = get_db()
    try:
        ensure_indexes(database)
        if settings.admin_email and settings.admin_password:
            services.ensure_admin_account(database, settings.admin_name, settings.admin_email, settings.admin_password)
    except PyMongoError:
        logger.exception("Database initialisation failed; continuing without it")
    yield


app = FastAPI(title="TaskFlow Backend API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error mapping

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        errors.append(f"{field} {err.get('msg', 'is invalid')}".strip())
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"errors": errors})


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError):
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Session

def get_current_user(
    authorization: Optional[str] = Header(default=None),
    database: Database = Depends(get_db),
) -> CurrentUser:
    if not authorization:
        raise AuthenticationError("Access token required")
    if not authorization.lower().startswith("bearer ") or len(authorization.split()) != 2:
        raise AuthenticationError("Invalid authorization header")
    claims = decode_access_token(authorization.split()[1])
    return services.resolve_session(database, claims)


# RBAC helpers

def require_roles(*allowed_roles: Role):
    async def _dep(user: CurrentUser = Depends(get_current_user)):
        if user.role not in allowed_roles:
            if "admin" in allowed_roles:
                raise AuthorizationError("Admin access required")
            raise AuthorizationError("This operation is not allowed for admin users")
        return user
    return _dep


# Auth Routes
class RegisterRequest(BaseModel):
    name: str = Field(..., max_length=120)
    email: EmailStr
    password: str

class LoginRequest(BaseModel):
    email: EmailStr
    password: str


@app.post("/api/register", status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, database: Database = Depends(get_db)):
    user = services.register_user(database, payload.name, payload.email, payload.password)
    return {"message": "User registered successfully. Awaiting admin approval.", "user": user}


@app.post("/api/login")
def login(payload: LoginRequest, database: Database = Depends(get_db)):
    token, user = services.authenticate(database, payload.email, payload.password)
    return {
        "access_token": token,
        "token_type": "bearer",
        "user": {
            **user.model_dump(exclude={"created_at"}),
            "username": user.name or user.email.split("@")[0],
        },
    }


@app.post("/api/logout")
def logout(_: CurrentUser = Depends(get_current_user)):
    # Stateless JWT: the client drops its session and token
    return {"message": "Logged out"}


@app.get("/api/me", response_model=CurrentUser)
def me(user: CurrentUser = Depends(get_current_user)):
    return user


# User Routes
class UserStatusUpdate(BaseModel):
    status: str


@app.get("/api/users", response_model=List[UserRecord])
def list_users(_: CurrentUser = Depends(require_roles("admin")), database: Database = Depends(get_db)):
    return UserStore(database).list_users()


@app.get("/api/users/approved", response_model=List[UserRecord])
def list_approved_users(_: CurrentUser = Depends(get_current_user), database: Database = Depends(get_db)):
    return UserStore(database).list_approved_users()


@app.patch("/api/users/{user_id}/status")
def update_user_status(
    user_id: str,
    payload: UserStatusUpdate,
    background_tasks: BackgroundTasks,
    admin: CurrentUser = Depends(require_roles("admin")),
    database: Database = Depends(get_db),
):
    user, changed = services.set_user_status(database, admin, user_id, payload.status)
    if changed:
        background_tasks.add_task(notifier.notify_user_status, user)
    return {"message": f"User {user.status} successfully", "user": user}


# Task Routes
class TaskCreate(BaseModel):
    title: str = Field(..., max_length=200)
    description: str = Field(..., max_length=5000)
    assignee_id: str
    due_date: date
    parent_task_id: Optional[str] = None

class TaskStatusUpdate(BaseModel):
    status: Optional[str] = None


@app.get("/api/tasks", response_model=List[TaskView])
def list_tasks(
    search: Optional[str] = None,
    scope: Literal["all", "mine", "created"] = "all",
    user: CurrentUser = Depends(get_current_user),
    database: Database = Depends(get_db),
):
    return services.list_task_views(database, user, search=search, scope=scope)


@app.get("/api/tasks/stats", response_model=TaskStats)
def get_task_stats(user: CurrentUser = Depends(get_current_user), database: Database = Depends(get_db)):
    return services.task_stats(services.load_tree(database), user)


@app.post("/api/tasks", status_code=status.HTTP_201_CREATED)
def create_task(
    payload: TaskCreate,
    background_tasks: BackgroundTasks,
    user: CurrentUser = Depends(require_roles("user")),
    database: Database = Depends(get_db),
):
    task, assignee = services.create_task(
        database,
        user,
        title=payload.title,
        description=payload.description,
        assignee_id=payload.assignee_id,
        due_date=payload.due_date,
        parent_task_id=payload.parent_task_id,
    )
    background_tasks.add_task(notifier.notify_task_assigned, assignee, task)
    return {"message": "Task created successfully", "task": task}


@app.patch("/api/tasks/{task_id}/status")
def update_task_status(
    task_id: str,
    payload: TaskStatusUpdate,
    user: CurrentUser = Depends(require_roles("user")),
    database: Database = Depends(get_db),
):
    task = services.update_task_status(database, user, task_id, payload.status)
    return {"message": "Task status updated successfully", "task": task}


# Task groups
@app.get("/api/task-groups", response_model=List[TaskGroup])
def list_task_groups(user: CurrentUser = Depends(get_current_user), database: Database = Depends(get_db)):
    return services.list_groups(database, user)


@app.get("/api/task-groups/{group_id}/members", response_model=List[GroupMember])
def list_task_group_members(group_id: str, user: CurrentUser = Depends(get_current_user), database: Database = Depends(get_db)):
    return services.list_group_members(database, user, group_id)


# Messages
class MessageCreate(BaseModel):
    receiver_id: str
    content: str = Field(..., max_length=5000)
    group_id: Optional[str] = None


@app.get("/api/messages/{other_user_id}", response_model=List[MessageRecord])
def get_messages(other_user_id: str, user: CurrentUser = Depends(get_current_user), database: Database = Depends(get_db)):
    return services.conversation(database, user, other_user_id)


@app.post("/api/messages", response_model=MessageRecord, status_code=status.HTTP_201_CREATED)
def send_message(payload: MessageCreate, user: CurrentUser = Depends(get_current_user), database: Database = Depends(get_db)):
    return services.send_message(database, user, payload.receiver_id, payload.content, payload.group_id)


@app.get("/api/notifications", response_model=List[Notification])
def get_notifications(
    include_read: bool = False,
    user: CurrentUser = Depends(get_current_user),
    database: Database = Depends(get_db),
):
    return services.list_notifications(database, user, settings.notification_limit, unread_only=not include_read)


@app.patch("/api/messages/{message_id}/read", response_model=MessageRecord)
def mark_message_read(message_id: str, user: CurrentUser = Depends(get_current_user), database: Database = Depends(get_db)):
    return services.mark_message_read(database, user, message_id)


# Healthcheck
@app.get("/api/health")
def healthcheck():
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "poll_interval_seconds": settings.poll_interval_seconds,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
