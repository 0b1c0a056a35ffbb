"""Task 采集任务模型."""

from datetime import datetime

from sqlmodel import Field, SQLModel

from datacollector.utils.dates import utc_now


class TaskStatus:
    """任务状态."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class Task(SQLModel, table=True):
    """一次针对单个数据源的采集尝试."""

    __tablename__ = "tasks"  # type: ignore[assignment]

    id: int | None = Field(default=None, primary_key=True)
    source_id: int = Field(foreign_key="sources.id", index=True)
    status: str = Field(
        default=TaskStatus.PENDING,
        description="状态: pending|running|completed|failed",
    )
    items_found: int = Field(default=0, description="抓取到的条目数")
    items_new: int = Field(default=0, description="新入库条目数")
    error: str | None = Field(default=None, description="错误信息")
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)
