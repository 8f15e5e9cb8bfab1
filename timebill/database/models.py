"""
SQLAlchemy models for the time tracking store.

Schema includes:
- Clients with an hourly rate and optional portal user
- Projects owned by a user and billed to one client
- Tasks with a per-project display number and status
- User-scoped tags, linked to tasks and time entries
- Completed time entries with provenance
- One active timer row per user
- Invoice snapshots
"""

from datetime import datetime, date
from typing import Optional, List
from sqlalchemy import (
    Column,
    String,
    Text,
    Integer,
    Boolean,
    DateTime,
    Date,
    Float,
    ForeignKey,
    JSON,
    Index,
    Table,
)
from sqlalchemy.orm import DeclarativeBase, relationship, Mapped, mapped_column
from sqlalchemy.sql import func
import enum


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# ==================== ENUMS ====================

class TaskStatusEnum(str, enum.Enum):
    BACKLOG = "backlog"
    TODO = "todo"
    PROGRESS = "progress"
    DONE = "done"


class EntrySourceEnum(str, enum.Enum):
    AUTOMATIC = "automatic"  # Materialized by stopping a timer
    MANUAL = "manual"        # Entered with explicit bounds
    CORRECTED = "corrected"  # Automatic entry whose bounds were edited


class StatsPeriodEnum(str, enum.Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


# ==================== JUNCTION TABLES ====================

task_tags = Table(
    "task_tags",
    Base.metadata,
    Column("task_id", Integer, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)

time_entry_tags = Table(
    "time_entry_tags",
    Base.metadata,
    Column("time_entry_id", Integer, ForeignKey("time_entries.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


# ==================== CLIENTS ====================

class ClientDB(Base):
    """Billing counterparty for projects."""
    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    hourly_rate_usd: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    # External user granted read-only portal access
    invited_user_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    projects: Mapped[List["ProjectDB"]] = relationship("ProjectDB", back_populates="client")

    __table_args__ = (
        Index("idx_clients_user", "user_id"),
        Index("idx_clients_invited", "invited_user_id"),
    )


# ==================== PROJECTS ====================

class ProjectDB(Base):
    """Unit of billable work for one client."""
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    client_id: Mapped[int] = mapped_column(Integer, ForeignKey("clients.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    client: Mapped["ClientDB"] = relationship("ClientDB", back_populates="projects", lazy="joined")
    tasks: Mapped[List["TaskDB"]] = relationship("TaskDB", back_populates="project")

    __table_args__ = (
        Index("idx_projects_user", "user_id"),
        Index("idx_projects_client", "client_id"),
        Index("idx_projects_name", "name"),
    )


# ==================== TASKS ====================

class TaskDB(Base):
    """Task inside a project."""
    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=TaskStatusEnum.BACKLOG.value, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    assignee_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    task_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    project: Mapped["ProjectDB"] = relationship("ProjectDB", back_populates="tasks")
    tags: Mapped[List["TagDB"]] = relationship("TagDB", secondary=task_tags, lazy="selectin")

    __table_args__ = (
        Index("idx_tasks_project", "project_id"),
        Index("idx_tasks_status", "status"),
    )

    @property
    def completed(self) -> bool:
        """Legacy boolean view of the status."""
        return self.status == TaskStatusEnum.DONE.value


# ==================== TAGS ====================

class TagDB(Base):
    """User-scoped label for tasks and time entries."""
    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[str] = mapped_column(String(20), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("idx_tags_user", "user_id"),
    )


# ==================== TIME TRACKING ====================

class TimeEntryDB(Base):
    """Completed, bounded span of tracked time."""
    __tablename__ = "time_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Links
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    task_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True)
    task_name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Time data
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Provenance
    source: Mapped[str] = mapped_column(String(20), default=EntrySourceEnum.MANUAL.value, nullable=False)

    # Metadata
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    task: Mapped[Optional["TaskDB"]] = relationship("TaskDB", lazy="joined")
    tags: Mapped[List["TagDB"]] = relationship("TagDB", secondary=time_entry_tags, lazy="selectin")

    __table_args__ = (
        Index("idx_time_user", "user_id"),
        Index("idx_time_project", "project_id"),
        Index("idx_time_start", "start_time"),
        Index("idx_time_end", "end_time"),
    )

    @property
    def duration_minutes(self) -> float:
        return (self.end_time - self.start_time).total_seconds() / 60


class ActiveTimerDB(Base):
    """Currently running timer per user (only one allowed)."""
    __tablename__ = "active_timers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    project_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True
    )
    task_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True)
    task_name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Tags applied to the entry when the timer is stopped
    tag_ids: Mapped[List[int]] = mapped_column(JSON, default=list, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    project: Mapped[Optional["ProjectDB"]] = relationship("ProjectDB", lazy="joined")


# ==================== INVOICES ====================

class InvoiceDB(Base):
    """Immutable billing snapshot for a project and period."""
    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)

    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    total_minutes: Mapped[float] = mapped_column(Float, nullable=False)
    amount_usd: Mapped[float] = mapped_column(Float, nullable=False)

    # Lifecycle
    is_sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    is_paid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_invoices_project", "project_id"),
        Index("idx_invoices_period_end", "period_end"),
    )
