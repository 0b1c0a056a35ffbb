"""Source 数据源模型."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from datacollector.utils.dates import utc_now


class SourceType(StrEnum):
    """数据源平台类型."""

    BILIBILI = "bilibili"
    YOUTUBE = "youtube"
    ZSXQ = "zsxq"
    RSS = "rss"
    WEB = "web"


class Source(SQLModel, table=True):
    """用户配置的采集来源."""

    __tablename__ = "sources"  # type: ignore[assignment]

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(description="显示名称")
    type: str = Field(description="平台类型: bilibili|youtube|zsxq|rss|web")
    config: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
        description="平台相关配置: mid / group_id / channel_id / feed_url / url / max_items",
    )
    is_active: bool = Field(default=True, description="是否启用")
    last_collected_at: datetime | None = Field(
        default=None, description="最近一次成功采集时间，为空表示从未采集"
    )
    last_error: str | None = Field(default=None, description="最近一次错误信息")
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def is_first_collect(self) -> bool:
        """是否首次采集."""
        return self.last_collected_at is None
