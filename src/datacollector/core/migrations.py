"""一次性数据迁移.

每个迁移用配置表里的一个键做标记，值为修复的行数；标记存在即跳过。
迁移在数据库打开时按顺序执行，都是幂等的。
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from datacollector.core.artifacts import body_text, replace_title
from datacollector.core.files import FileStore
from datacollector.core.storage import StorageService
from datacollector.models.source import SourceType
from datacollector.utils.zsxq_tags import extract_title, to_plain_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Migration:
    """一个版本化迁移."""

    key: str
    run: Callable[[StorageService, FileStore], Awaitable[int]]


def title_from_artifact(raw: str) -> str | None:
    """从 Markdown 正文重新提取知识星球帖子标题."""
    body = body_text(raw)
    if not body:
        return None
    return extract_title(to_plain_text(body)) or None


async def repair_zsxq_titles(storage: StorageService, files: FileStore) -> int:
    """用正文重新生成知识星球标题，同步数据库、frontmatter 和 # 标题."""
    fixed = 0
    for row in await storage.list_contents(source_type=SourceType.ZSXQ.value):
        content = row.content
        raw = files.read(content.file_path)
        if raw is None:
            continue

        new_title = title_from_artifact(raw)
        if not new_title:
            continue

        assert content.id is not None
        await storage.update_content(content.id, title=new_title)
        try:
            files.write(content.file_path, replace_title(raw, new_title))
        except OSError as e:
            logger.warning(f"[migration] 标题写回文件失败 {content.file_path}: {e}")
        fixed += 1
    return fixed


async def relativize_file_paths(storage: StorageService, files: FileStore) -> int:
    """数据目录下的绝对路径改为相对路径."""
    fixed = 0
    for content in await storage.list_all_contents():
        path = Path(content.file_path)
        if not path.is_absolute():
            continue
        relative = files.relative(path)
        if relative == content.file_path:
            continue

        assert content.id is not None
        await storage.update_content(content.id, file_path=relative)
        fixed += 1
    return fixed


MIGRATIONS: list[Migration] = [
    Migration("zsxq_titles_v4", repair_zsxq_titles),
    Migration("file_paths_relative_v1", relativize_file_paths),
]


async def run_migrations(
    storage: StorageService,
    migrations: list[Migration] | None = None,
) -> dict[str, int]:
    """执行尚未执行过的迁移，返回本次执行的迁移及其修复行数."""
    files = FileStore(storage.data_dir)
    applied: dict[str, int] = {}

    for migration in migrations if migrations is not None else MIGRATIONS:
        if await storage.get_setting(migration.key) is not None:
            continue

        fixed = await migration.run(storage, files)
        await storage.set_setting(migration.key, str(fixed))
        applied[migration.key] = fixed
        if fixed:
            logger.info(f"[migration] {migration.key} 修复 {fixed} 条")

    return applied
