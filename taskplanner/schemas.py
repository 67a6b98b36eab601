import re
import uuid
from datetime import datetime
from typing import Annotated, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, EmailStr, Field, PlainSerializer, field_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from .dates import isoformat_utc, to_naive_utc
from .models import TaskPriority, TaskStatus, UserRole

ISO_DAY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")

# Public sort keys and the task columns they map to
SORT_FIELDS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "title": "title",
    "status": "status",
    "priority": "priority",
    "dueDate": "due_date",
    "createdFor": "created_for",
}

UtcDatetime = Annotated[datetime, PlainSerializer(isoformat_utc, return_type=str)]
DataT = TypeVar("DataT")


def blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


def coerce_datetime(value):
    """Promote bare ``YYYY-MM-DD`` strings to UTC midnight and drop blanks."""
    value = blank_to_none(value)
    if isinstance(value, str) and ISO_DAY_RE.match(value.strip()):
        return value.strip() + "T00:00:00Z"
    return value


def check_object_id(value: Optional[str], label: str) -> Optional[str]:
    if value is None:
        return None
    try:
        return str(uuid.UUID(value))
    except (ValueError, AttributeError, TypeError):
        raise PydanticCustomError("invalid_id", "Invalid {label} ID", {"label": label})


def check_password_strength(value: str) -> str:
    if not PASSWORD_RE.match(value):
        raise PydanticCustomError(
            "password_strength",
            "Password must contain at least one uppercase letter, one lowercase letter, and one number",
        )
    return value


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


# AUTH

class UserCreate(CamelModel):
    name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6, max_length=100)
    role: UserRole = UserRole.USER

    @field_validator("email")
    @classmethod
    def _lowercase_email(cls, value):
        if len(value) > 100:
            raise PydanticCustomError("email_length", "Email cannot exceed 100 characters")
        return value.strip().lower()

    @field_validator("password")
    @classmethod
    def _strong_password(cls, value):
        return check_password_strength(value)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def _lowercase_email(cls, value):
        return value.strip().lower()


class PasswordUpdate(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6, max_length=100)
    confirm_password: str = Field(min_length=1)

    @field_validator("new_password")
    @classmethod
    def _strong_password(cls, value):
        return check_password_strength(value)

    @field_validator("confirm_password")
    @classmethod
    def _passwords_match(cls, value, info):
        if "new_password" in info.data and value != info.data["new_password"]:
            raise PydanticCustomError("password_mismatch", "Passwords don't match")
        return value


class UserRef(CamelModel):
    id: str
    name: str
    email: str

    class Config:
        from_attributes = True


class UserOut(UserRef):
    role: UserRole


class AuthData(BaseModel):
    user: UserOut
    token: str


class ProfileData(BaseModel):
    user: UserOut


# TASKS

class TaskPayload(CamelModel):
    class Config:
        use_enum_values = True

    @field_validator("due_date", "created_for", mode="before", check_fields=False)
    @classmethod
    def _coerce_dates(cls, value):
        return coerce_datetime(value)

    @field_validator("due_date", "created_for", check_fields=False)
    @classmethod
    def _utc_dates(cls, value):
        return to_naive_utc(value) if value is not None else None

    @field_validator("assigned_to", mode="before", check_fields=False)
    @classmethod
    def _blank_assignee(cls, value):
        return blank_to_none(value)

    @field_validator("assigned_to", check_fields=False)
    @classmethod
    def _assignee_id(cls, value):
        return check_object_id(value, "user")


class TaskCreate(TaskPayload):
    title: str = Field(min_length=3, max_length=100)
    description: str = Field(min_length=5, max_length=1000)
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[datetime] = None
    created_for: Optional[datetime] = None
    assigned_to: Optional[str] = None


class TaskUpdate(TaskPayload):
    title: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = Field(None, min_length=5, max_length=1000)
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None
    created_for: Optional[datetime] = None
    assigned_to: Optional[str] = None


class TaskFilter(CamelModel):
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    search: Optional[str] = Field(None, max_length=100)
    created_by: Optional[str] = None
    assigned_to: Optional[str] = None
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    sort_by: str = "createdAt"
    sort_dir: Literal["asc", "desc"] = "desc"

    @field_validator("status", "priority", "search", "created_by", "assigned_to", mode="before")
    @classmethod
    def _blank_filters(cls, value):
        return blank_to_none(value)

    @field_validator("created_by", "assigned_to")
    @classmethod
    def _user_ids(cls, value):
        return check_object_id(value, "user")

    @field_validator("sort_by")
    @classmethod
    def _known_sort_field(cls, value):
        if value not in SORT_FIELDS:
            raise PydanticCustomError(
                "sort_field",
                "sortBy must be one of: {fields}",
                {"fields": ", ".join(SORT_FIELDS)},
            )
        return value


class TaskOut(CamelModel):
    id: str
    title: str
    description: str
    status: TaskStatus
    priority: TaskPriority
    due_date: Optional[UtcDatetime] = None
    created_for: UtcDatetime
    created_by: UserRef
    assigned_to: Optional[UserRef] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime

    class Config:
        from_attributes = True


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class TaskData(BaseModel):
    task: TaskOut


class TaskListData(BaseModel):
    tasks: List[TaskOut]
    pagination: Pagination


class DatedTaskData(CamelModel):
    task: TaskOut
    date: str
    formatted_date: str


class DayTasksData(CamelModel):
    tasks: List[TaskOut]
    date: str
    formatted_date: str


# ENVELOPES

class Message(BaseModel):
    success: bool = True
    message: str


class Envelope(Message, Generic[DataT]):
    data: DataT


class HealthStatus(BaseModel):
    status: str = "up"
    timestamp: str
