"""
Pydantic models for repository input validation.

Repositories accept these for create/patch operations so that
malformed input is rejected before any row is written.
"""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..database.models import TaskStatusEnum
from ..database.exceptions import ValidationError
from ..utils.validation import validate_email, validate_hex_color


# ============================================
# CLIENTS
# ============================================

class ClientCreate(BaseModel):
    """Input for creating a client."""
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., max_length=255)
    hourly_rate_usd: float = Field(0.0, ge=0)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        v = v.strip()
        if not validate_email(v):
            raise ValueError("invalid email address")
        return v


class ClientUpdate(BaseModel):
    """Partial update of a client; only set fields are applied."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    hourly_rate_usd: Optional[float] = Field(None, ge=0)

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        if v is not None and not validate_email(v.strip()):
            raise ValueError("invalid email address")
        return v.strip() if v else v


# ============================================
# TASKS
# ============================================

class TaskCreate(BaseModel):
    """Input for creating a task."""
    name: str = Field(..., min_length=1, max_length=500)
    status: TaskStatusEnum = TaskStatusEnum.BACKLOG
    description: Optional[str] = None
    assignee_id: Optional[str] = Field(None, max_length=100)
    tag_ids: List[int] = Field(default_factory=list)


class TaskUpdate(BaseModel):
    """Partial update of a task; tag_ids replaces links wholesale when set."""
    name: Optional[str] = Field(None, min_length=1, max_length=500)
    status: Optional[TaskStatusEnum] = None
    description: Optional[str] = None
    assignee_id: Optional[str] = Field(None, max_length=100)
    tag_ids: Optional[List[int]] = None


# ============================================
# TAGS
# ============================================

class TagCreate(BaseModel):
    """Input for creating or renaming a tag."""
    name: str = Field(..., min_length=1, max_length=100)
    color: Optional[str] = Field(None, max_length=20)

    @field_validator("color")
    @classmethod
    def check_color(cls, v):
        if v is not None and not validate_hex_color(v):
            raise ValueError("color must be a hex value like #6366f1")
        return v


# ============================================
# TIME ENTRIES
# ============================================

class TimeEntryUpdate(BaseModel):
    """
    Patch for a time entry.

    Only fields explicitly provided are applied (``model_fields_set``),
    so ``task_id=None`` clears the task while omitting it leaves it alone.
    """
    task_id: Optional[int] = None
    task_name: Optional[str] = Field(None, max_length=500)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    tag_ids: Optional[List[int]] = None


def parse_input(model_cls, **data):
    """Build a schema instance, surfacing pydantic errors as ValidationError."""
    try:
        return model_cls(**data)
    except PydanticValidationError as e:
        messages = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}" for err in e.errors()
        )
        raise ValidationError(messages) from e
