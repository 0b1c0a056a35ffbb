"""存储服务：数据源、内容、任务、配置的读写."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sqlalchemy import func, or_
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import col, select

from datacollector.models.content import Content
from datacollector.models.database import database_url_for, open_database
from datacollector.models.settings import SettingItem
from datacollector.models.source import Source, SourceType
from datacollector.models.task import Task

logger = logging.getLogger(__name__)

SOURCE_FIELDS = {"name", "type", "config", "is_active", "last_collected_at", "last_error"}
TASK_FIELDS = {"status", "items_found", "items_new", "error", "started_at", "completed_at"}


@dataclass
class ContentRow:
    """内容记录 + 所属数据源信息（用于索引和列表）."""

    content: Content
    source_type: str
    source_name: str


class StorageService:
    """存储服务.

    引擎和会话工厂是实例字段；数据目录变化时通过 ``ensure_data_dir`` 重新打开，
    调用方不要假设同一个连接能跨数据目录存活。
    """

    def __init__(
        self,
        on_open: Callable[["StorageService"], Awaitable[None]] | None = None,
    ) -> None:
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None
        self._data_dir: Path | None = None
        self._on_open = on_open

    @property
    def data_dir(self) -> Path:
        """当前数据目录."""
        if self._data_dir is None:
            msg = "存储未初始化，请先调用 ensure_data_dir()"
            raise RuntimeError(msg)
        return self._data_dir

    async def ensure_data_dir(self, data_dir: Path) -> None:
        """打开数据目录下的数据库；目录变化时关闭旧连接重新打开."""
        data_dir = data_dir.expanduser().resolve()
        if self._engine is not None and self._data_dir == data_dir:
            return

        if self._engine is not None:
            logger.info(f"数据目录变更: {self._data_dir} -> {data_dir}，重新打开数据库")
            await self.close()

        data_dir.mkdir(parents=True, exist_ok=True)
        await self.open(database_url_for(data_dir), data_dir)

    async def open(self, database_url: str, data_dir: Path) -> None:
        """打开指定连接串的数据库并执行迁移."""
        self._engine, self._session_factory = await open_database(database_url)
        self._data_dir = data_dir
        if self._on_open is not None:
            await self._on_open(self)

    async def close(self) -> None:
        """关闭数据库连接."""
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._session_factory = None
        self._data_dir = None

    def session(self) -> AsyncSession:
        """新建会话."""
        if self._session_factory is None:
            msg = "存储未初始化，请先调用 ensure_data_dir()"
            raise RuntimeError(msg)
        return self._session_factory()

    # ---------- Sources ----------

    async def create_source(
        self,
        name: str,
        type: SourceType | str,  # noqa: A002
        config: dict[str, Any] | None = None,
        is_active: bool = True,
    ) -> Source:
        """新建数据源."""
        source = Source(
            name=name,
            type=SourceType(type).value,
            config=dict(config or {}),
            is_active=is_active,
        )
        async with self.session() as session:
            session.add(source)
            await session.commit()
            await session.refresh(source)
        return source

    async def get_source(self, source_id: int) -> Source | None:
        """按 ID 获取数据源."""
        async with self.session() as session:
            return await session.get(Source, source_id)

    async def list_sources(self, active_only: bool = False) -> list[Source]:
        """列出数据源，最新创建的在前."""
        stmt = select(Source).order_by(col(Source.created_at).desc(), col(Source.id).desc())
        if active_only:
            stmt = stmt.where(col(Source.is_active).is_(True))
        async with self.session() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def update_source(self, source_id: int, **fields: Any) -> Source | None:
        """部分更新数据源."""
        unknown = set(fields) - SOURCE_FIELDS
        if unknown:
            msg = f"不支持更新的字段: {sorted(unknown)}"
            raise ValueError(msg)

        async with self.session() as session:
            source = await session.get(Source, source_id)
            if source is None:
                return None
            for key, value in fields.items():
                if key == "type":
                    value = SourceType(value).value
                if key == "config":
                    value = dict(value or {})
                setattr(source, key, value)
            session.add(source)
            await session.commit()
            await session.refresh(source)
            return source

    async def delete_source(self, source_id: int) -> bool:
        """删除数据源（已采集的内容保留）."""
        async with self.session() as session:
            source = await session.get(Source, source_id)
            if source is None:
                return False
            await session.delete(source)
            await session.commit()
            return True

    # ---------- Contents ----------

    async def content_exists(self, source_id: int, external_id: str) -> bool:
        """(source_id, external_id) 是否已存在."""
        stmt = (
            select(Content.id)
            .where(Content.source_id == source_id)
            .where(Content.external_id == external_id)
            .limit(1)
        )
        async with self.session() as session:
            result = await session.execute(stmt)
            return result.first() is not None

    async def insert_content(self, content: Content) -> int:
        """插入内容记录，返回 ID."""
        async with self.session() as session:
            session.add(content)
            await session.commit()
            await session.refresh(content)
        assert content.id is not None
        return content.id

    async def get_content_by_id(self, content_id: int) -> Content | None:
        """按 ID 获取内容."""
        async with self.session() as session:
            return await session.get(Content, content_id)

    async def update_content(self, content_id: int, **fields: Any) -> None:
        """更新内容字段（标题修复、路径迁移用）."""
        async with self.session() as session:
            content = await session.get(Content, content_id)
            if content is None:
                return
            for key, value in fields.items():
                setattr(content, key, value)
            session.add(content)
            await session.commit()

    async def delete_content(self, content_id: int) -> bool:
        """删除内容记录."""
        async with self.session() as session:
            content = await session.get(Content, content_id)
            if content is None:
                return False
            await session.delete(content)
            await session.commit()
            return True

    @staticmethod
    def _filter_contents(
        stmt: Any,
        source_type: str | None,
        source_id: int | None,
        search: str | None,
    ) -> Any:
        if source_type is not None:
            stmt = stmt.where(Source.type == source_type)
        if source_id is not None:
            stmt = stmt.where(Content.source_id == source_id)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(col(Content.title).like(pattern), col(Content.author).like(pattern))
            )
        return stmt

    async def list_contents(
        self,
        source_type: str | None = None,
        source_id: int | None = None,
        search: str | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[ContentRow]:
        """列出内容及其数据源类型，按采集时间倒序.

        ``search`` 对标题和作者做 LIKE 模糊匹配；``limit`` 为空时不分页。
        """
        stmt = (
            select(Content, Source.type, Source.name)
            .join(Source, col(Content.source_id) == col(Source.id))
            .order_by(col(Content.collected_at).desc(), col(Content.id).desc())
        )
        stmt = self._filter_contents(stmt, source_type, source_id, search)
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self.session() as session:
            result = await session.execute(stmt)
            return [
                ContentRow(content=row[0], source_type=row[1], source_name=row[2])
                for row in result.all()
            ]

    async def count_contents(
        self,
        source_type: str | None = None,
        source_id: int | None = None,
        search: str | None = None,
    ) -> int:
        """按与 ``list_contents`` 相同的条件计数."""
        stmt = select(func.count()).select_from(Content).join(
            Source, col(Content.source_id) == col(Source.id)
        )
        stmt = self._filter_contents(stmt, source_type, source_id, search)
        async with self.session() as session:
            result = await session.execute(stmt)
            return int(result.scalar_one())

    async def list_all_contents(self) -> list[Content]:
        """列出所有内容（含数据源已删除的）."""
        async with self.session() as session:
            result = await session.execute(select(Content))
            return list(result.scalars().all())

    async def list_authors(self, source_type: str | None = None) -> list[str]:
        """去重后的作者列表."""
        authors = {
            row.content.author
            for row in await self.list_contents(source_type=source_type)
            if row.content.author
        }
        return sorted(authors)

    # ---------- Tasks ----------

    async def insert_task(self, source_id: int) -> int:
        """新建 pending 任务，返回 ID."""
        task = Task(source_id=source_id)
        async with self.session() as session:
            session.add(task)
            await session.commit()
            await session.refresh(task)
        assert task.id is not None
        return task.id

    async def get_task(self, task_id: int) -> Task | None:
        """按 ID 获取任务."""
        async with self.session() as session:
            return await session.get(Task, task_id)

    async def update_task(self, task_id: int, **fields: Any) -> Task | None:
        """部分更新任务."""
        unknown = set(fields) - TASK_FIELDS
        if unknown:
            msg = f"不支持更新的字段: {sorted(unknown)}"
            raise ValueError(msg)

        async with self.session() as session:
            task = await session.get(Task, task_id)
            if task is None:
                return None
            for key, value in fields.items():
                setattr(task, key, value)
            session.add(task)
            await session.commit()
            await session.refresh(task)
            return task

    async def list_tasks(self, source_id: int | None = None) -> list[Task]:
        """列出任务，最新的在前."""
        stmt = select(Task).order_by(col(Task.created_at).desc(), col(Task.id).desc())
        if source_id is not None:
            stmt = stmt.where(Task.source_id == source_id)
        async with self.session() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    # ---------- Settings ----------

    async def get_setting(self, key: str) -> str | None:
        """读取配置项."""
        async with self.session() as session:
            item = await session.get(SettingItem, key)
            return item.value if item else None

    async def set_setting(self, key: str, value: str) -> None:
        """写入配置项（存在则覆盖）."""
        async with self.session() as session:
            item = await session.get(SettingItem, key)
            if item is None:
                item = SettingItem(key=key, value=value)
            else:
                item.value = value
            session.add(item)
            await session.commit()

    async def get_all_settings(self) -> dict[str, str]:
        """读取所有配置项."""
        async with self.session() as session:
            result = await session.execute(select(SettingItem))
            return {item.key: item.value for item in result.scalars().all()}
