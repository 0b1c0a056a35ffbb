"""去重 + 落盘：把采集结果写成 Markdown 文件和内容记录."""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from datacollector.collectors.base import CollectedItem
from datacollector.core.artifacts import build_filename, render_markdown
from datacollector.core.files import FileStore
from datacollector.core.storage import StorageService
from datacollector.models.content import Content
from datacollector.models.source import SourceType
from datacollector.utils.zsxq_tags import to_markdown

logger = logging.getLogger(__name__)


@dataclass
class PersistResult:
    """一批条目的入库统计."""

    found: int = 0
    new: int = 0
    failed: int = 0


def decode_body(item: CollectedItem) -> str:
    """落盘前的正文：知识星球的 <e> 标签转 Markdown."""
    if item.source_type == SourceType.ZSXQ:
        return to_markdown(item.content)
    return item.content


class PersistenceGateway:
    """按 (source_id, external_id) 去重后落盘.

    先检查再插入，只在串行采集下成立；单条的存储或文件错误只影响该条。
    """

    def __init__(self, storage: StorageService, files: FileStore) -> None:
        self.storage = storage
        self.files = files

    async def save_items(self, source_id: int, items: list[CollectedItem]) -> PersistResult:
        """
        保存一批条目.

        Args:
            source_id: 数据源 ID
            items: 采集器产出的条目

        Returns:
            found / new / failed 统计
        """
        result = PersistResult(found=len(items))

        for item in items:
            try:
                if await self.storage.content_exists(source_id, item.external_id):
                    continue
                await self.save_item(source_id, item)
            except (OSError, SQLAlchemyError) as e:
                result.failed += 1
                logger.exception(f"保存失败 [{item.source_type}] {item.external_id}: {e}")
                continue
            result.new += 1

        return result

    async def save_item(self, source_id: int, item: CollectedItem) -> int:
        """写 Markdown 文件并插入内容记录，返回内容 ID."""
        path = self.artifact_path(item)
        file_path = self.files.write(path, render_markdown(item, decode_body(item)))

        try:
            return await self.storage.insert_content(
                Content(
                    source_id=source_id,
                    external_id=item.external_id,
                    title=item.title,
                    author=item.author,
                    url=item.url,
                    tags=list(item.tags),
                    file_path=file_path,
                    published_at=item.published_at or None,
                )
            )
        except SQLAlchemyError:
            # 记录没插进去，文件也不留
            self.files.delete(file_path)
            raise

    def artifact_path(self, item: CollectedItem) -> str:
        """``<平台>/<日期>_<作者>_<标题>.md``，文件名已被占用时追加 external_id."""
        directory = str(item.source_type)
        path = f"{directory}/{build_filename(item)}"
        if self.files.exists(path):
            path = f"{directory}/{build_filename(item, suffix=item.external_id[:12])}"
        return path
