"""数据库引擎和会话工厂."""

import logging
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel import SQLModel

# 注册所有表
from datacollector.models import content, settings, source, task  # noqa: F401

logger = logging.getLogger(__name__)

DB_FILENAME = "collector.db"


def database_url_for(data_dir: Path) -> str:
    """数据目录下的 SQLite 连接串."""
    return f"sqlite+aiosqlite:///{data_dir / DB_FILENAME}"


def _set_sqlite_pragma(dbapi_connection, connection_record) -> None:  # noqa: ANN001
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


async def open_database(
    database_url: str,
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """创建引擎并建表."""
    engine = create_async_engine(database_url, echo=False)
    if database_url.startswith("sqlite") and ":memory:" not in database_url:
        event.listen(engine.sync_engine, "connect", _set_sqlite_pragma)

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    logger.info(f"数据库已打开: {database_url}")
    return engine, session_factory
