from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime, timezone
from typing import Generic, List, Optional, TypeVar

from models import TaskPriority, TaskStatus

T = TypeVar("T")


def to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Shift an aware datetime to UTC; None passes through."""
    if value is None:
        return None
    return value.astimezone(timezone.utc)


class ApiModel(BaseModel):
    """
    Base for every request/response body.

    Fields are snake_case in Python and camelCase on the wire. Request bodies
    accept both spellings.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# Error schemas
class ValidationIssue(BaseModel):
    field: str
    message: str
    type: str


class ErrorResponse(BaseModel):
    detail: str
    issues: List[ValidationIssue] = Field(default_factory=list)


# User schemas
class User(ApiModel):
    id: int
    name: str
    email: str
    created_at: datetime


# Project schemas
class ProjectBase(ApiModel):
    name: str = Field(..., min_length=2, max_length=255)
    description: Optional[str] = Field(None, max_length=300)


class ProjectCreate(ProjectBase):
    pass


class ProjectUpdate(ApiModel):
    """Partial update: omitted fields are untouched, description=null clears it."""
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    description: Optional[str] = Field(None, max_length=300)
    archived: Optional[bool] = None

    @field_validator("name", "archived")
    @classmethod
    def reject_null(cls, value, info):
        if value is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return value


class Project(ApiModel):
    id: int
    owner_id: int
    name: str
    description: Optional[str] = None
    archived: bool
    created_at: datetime
    updated_at: datetime


class ProjectRef(ApiModel):
    id: int
    name: str


# Task schemas
class TaskBase(ApiModel):
    title: str = Field(..., min_length=2, max_length=255)
    description: Optional[str] = Field(None, max_length=400)
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[AwareDatetime] = None

    @field_validator("due_date")
    @classmethod
    def due_date_to_utc(cls, value):
        return to_utc(value)


class TaskCreate(TaskBase):
    pass


class TaskUpdate(ApiModel):
    """Partial update: omitted fields are untouched, description/dueDate=null clears them."""
    title: Optional[str] = Field(None, min_length=2, max_length=255)
    description: Optional[str] = Field(None, max_length=400)
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[AwareDatetime] = None

    @field_validator("title", "status", "priority")
    @classmethod
    def reject_null(cls, value, info):
        if value is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return value

    @field_validator("due_date")
    @classmethod
    def due_date_to_utc(cls, value):
        return to_utc(value)


class Task(ApiModel):
    id: int
    project_id: int
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    due_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class TaskWithProject(Task):
    project: ProjectRef


# Listing envelope
class Paginated(ApiModel, Generic[T]):
    items: List[T] = Field(default_factory=list)
    total: int
    page: int
    page_size: int
    total_pages: int


# Dashboard schemas
class StatusCounts(ApiModel):
    todo: int = 0
    doing: int = 0
    done: int = 0


class DashboardSummary(ApiModel):
    project_count: int
    task_count: int
    by_status: StatusCounts
