"""Content 已采集内容模型."""

from datetime import datetime

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

from datacollector.utils.dates import utc_now


class Content(SQLModel, table=True):
    """已落盘的内容记录，(source_id, external_id) 唯一."""

    __tablename__ = "contents"  # type: ignore[assignment]
    __table_args__ = (UniqueConstraint("source_id", "external_id"),)

    id: int | None = Field(default=None, primary_key=True)
    source_id: int = Field(foreign_key="sources.id", index=True)
    external_id: str = Field(description="平台原生 ID")
    title: str
    author: str | None = None
    url: str | None = None
    tags: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    file_path: str = Field(description="Markdown 文件路径（相对数据目录）")
    published_at: str | None = Field(default=None, description="发布时间 ISO 字符串")
    collected_at: datetime = Field(default_factory=utc_now)
