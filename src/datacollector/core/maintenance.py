"""数据维护：索引生成和存储整理."""

import logging
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from datacollector.core.artifacts import (
    FIRST_HEADING,
    INDEX_FILENAME,
    render_index,
    split_frontmatter,
    summarize,
)
from datacollector.core.files import FileStore
from datacollector.core.storage import StorageService
from datacollector.models.content import Content
from datacollector.models.source import SourceType
from datacollector.utils.zsxq_tags import has_tag_fragment, to_markdown

logger = logging.getLogger(__name__)

FRONTMATTER_SOURCE = re.compile(r"^source:\s*(\S+)", re.MULTILINE)
YAML_KEY = re.compile(r"^\w+:")


@dataclass
class MigrateStorageResult:
    """存储整理结果."""

    total: int = 0
    cleaned: int = 0
    word_count_added: int = 0
    errors: list[str] = field(default_factory=list)


async def _source_types(storage: StorageService) -> dict[int, str]:
    return {s.id: s.type for s in await storage.list_sources() if s.id is not None}


def _content_type(content: Content, source_types: dict[int, str]) -> str:
    """内容所属平台；数据源已删除时按文件所在目录推断."""
    return (
        source_types.get(content.source_id)
        or PurePosixPath(content.file_path).parent.name
        or "unknown"
    )


async def generate_index(storage: StorageService, files: FileStore) -> str:
    """重新生成数据目录下的 ``_index.md``，返回写入的路径."""
    contents = await storage.list_all_contents()
    source_types = await _source_types(storage)
    counts, authors = summarize(
        [(_content_type(c, source_types), c.author) for c in contents]
    )
    path = files.write(INDEX_FILENAME, render_index(counts, authors, len(contents)))
    logger.info(f"索引已更新: {len(contents)} 条")
    return path


def clean_frontmatter(frontmatter: str) -> str:
    """删除 frontmatter 中被截断标题留下的 <e 标签碎片行."""
    kept = []
    for line in frontmatter.split("\n"):
        if line == "---" or YAML_KEY.match(line) or not line.strip():
            kept.append(line)
        elif not has_tag_fragment(line):
            kept.append(line)
    return "\n".join(kept)


def add_word_count(frontmatter: str, body: str) -> str:
    """frontmatter 缺少 word_count 时补上."""
    count = len(FIRST_HEADING.sub("", body.lstrip("\n"), count=1).strip())
    if "\ncollected_at:" in frontmatter:
        return frontmatter.replace("\ncollected_at:", f"\nword_count: {count}\ncollected_at:", 1)
    return re.sub(r"\n---\n$", f"\nword_count: {count}\n---\n", frontmatter)


async def migrate_storage(storage: StorageService, files: FileStore) -> MigrateStorageResult:
    """
    整理已落盘的 Markdown 文件.

    - 知识星球正文中残留的 <e> 标签转为 Markdown；
    - 删除 frontmatter 里的标签碎片行；
    - 补全缺失的 word_count；
    - 最后重新生成索引。
    """
    contents = await storage.list_all_contents()
    source_types = await _source_types(storage)
    result = MigrateStorageResult(total=len(contents))

    for content in contents:
        path = content.file_path
        raw = files.read(path)
        if raw is None:
            result.errors.append(f"missing: {path}")
            continue

        parts = split_frontmatter(raw)
        if parts is None:
            result.errors.append(f"no frontmatter: {path}")
            continue
        frontmatter, body = parts
        changed = False

        source_type = source_types.get(content.source_id)
        if source_type is None:
            match = FRONTMATTER_SOURCE.search(frontmatter)
            source_type = match.group(1) if match else ""

        if source_type == SourceType.ZSXQ:
            if "<e " in body:
                body = to_markdown(body)
                changed = True
                result.cleaned += 1
            if has_tag_fragment(frontmatter):
                frontmatter = clean_frontmatter(frontmatter)
                changed = True

        if "word_count:" not in frontmatter:
            frontmatter = add_word_count(frontmatter, body)
            changed = True
            result.word_count_added += 1

        if changed:
            try:
                files.write(path, frontmatter + body)
            except OSError as e:
                result.errors.append(f"{path}: {e}")

    await generate_index(storage, files)
    logger.info(
        f"存储整理完成: 共 {result.total} 条，清理 {result.cleaned} 条，"
        f"补充字数 {result.word_count_added} 条，错误 {len(result.errors)} 条"
    )
    return result
