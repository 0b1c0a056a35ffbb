"""测试索引生成和存储整理."""

import pytest

from datacollector.core.files import FileStore
from datacollector.core.maintenance import (
    add_word_count,
    clean_frontmatter,
    generate_index,
    migrate_storage,
)
from datacollector.models.content import Content
from datacollector.models.source import SourceType

OLD_ZSXQ_FILE = """---
source: zsxq
author: 星主
title: "标题"
<e type="web" href="https%3A%2F%2Fa.com
url: https://wx.zsxq.com/topic/1
collected_at: 2024-01-01T00:00:00.000Z
---

# 标题

<e type="text_bold" title="%E9%87%8D%E7%82%B9"/>正文
"""


@pytest.fixture
def files(storage) -> FileStore:
    """数据目录文件存储."""
    return FileStore(storage.data_dir)


async def add_content(storage, files, source_id: int, path: str, text: str | None, author: str = "a") -> None:
    """写文件并插入记录；``text`` 为 None 时只插记录."""
    if text is not None:
        files.write(path, text)
    await storage.insert_content(
        Content(source_id=source_id, external_id=path, title="t", author=author, file_path=path)
    )


class TestGenerateIndex:
    """测试索引生成."""

    async def test_counts_by_platform(self, storage, files, make_source) -> None:
        """按平台统计数量和作者."""
        rss = await make_source(SourceType.RSS, {"feed_url": "x"})
        zsxq = await make_source(SourceType.ZSXQ, {"group_id": "1"})
        await add_content(storage, files, rss.id, "rss/1.md", None, author="甲")
        await add_content(storage, files, rss.id, "rss/2.md", None, author="乙")
        await add_content(storage, files, zsxq.id, "zsxq/1.md", None, author="丙")

        path = await generate_index(storage, files)

        assert path == "_index.md"
        text = files.read(path)
        assert text is not None
        assert "总计: 3 条" in text
        assert "| rss | 2 | 乙, 甲 |" in text or "| rss | 2 | 甲, 乙 |" in text
        assert "| zsxq | 1 | 丙 |" in text

    async def test_deleted_source_uses_directory(self, storage, files, make_source) -> None:
        """数据源删除后按文件目录归类."""
        source = await make_source(SourceType.YOUTUBE, {"channel_id": "UC1"})
        await add_content(storage, files, source.id, "youtube/1.md", None)
        await storage.delete_source(source.id)

        await generate_index(storage, files)

        assert "| youtube | 1 |" in (files.read("_index.md") or "")

    async def test_empty(self, storage, files) -> None:
        """没有内容时也生成."""
        await generate_index(storage, files)
        assert "总计: 0 条" in (files.read("_index.md") or "")


class TestFrontmatterHelpers:
    """测试 frontmatter 修补."""

    def test_clean_frontmatter(self) -> None:
        """删除标签碎片行，保留正常键."""
        frontmatter = '---\ntitle: "x"\n<e type="web" href="a\nurl: y\n---\n'
        assert clean_frontmatter(frontmatter) == '---\ntitle: "x"\nurl: y\n---\n'

    def test_add_word_count_before_collected_at(self) -> None:
        """word_count 插在 collected_at 前面."""
        frontmatter = "---\ntitle: x\ncollected_at: now\n---\n"
        assert add_word_count(frontmatter, "\n# x\n\n正文\n") == (
            "---\ntitle: x\nword_count: 2\ncollected_at: now\n---\n"
        )

    def test_add_word_count_at_end(self) -> None:
        """没有 collected_at 时追加到末尾."""
        assert add_word_count("---\ntitle: x\n---\n", "abc") == "---\ntitle: x\nword_count: 3\n---\n"


class TestMigrateStorage:
    """测试存储整理."""

    async def test_cleans_zsxq_file(self, storage, files, make_source) -> None:
        """正文标签转 Markdown，frontmatter 碎片删除，补 word_count."""
        source = await make_source(SourceType.ZSXQ, {"group_id": "1"})
        await add_content(storage, files, source.id, "zsxq/old.md", OLD_ZSXQ_FILE)

        result = await migrate_storage(storage, files)

        assert (result.total, result.cleaned, result.word_count_added) == (1, 1, 1)
        assert result.errors == []
        text = files.read("zsxq/old.md") or ""
        assert "**重点**正文" in text
        assert "<e " not in text
        assert "word_count: 8\ncollected_at:" in text
        assert files.exists("_index.md")

    async def test_reports_problems(self, storage, files, make_source) -> None:
        """文件缺失或没有 frontmatter 时记录错误."""
        source = await make_source(SourceType.RSS, {"feed_url": "x"})
        await add_content(storage, files, source.id, "rss/missing.md", None)
        await add_content(storage, files, source.id, "rss/plain.md", "# 没有 frontmatter\n")

        result = await migrate_storage(storage, files)

        assert sorted(result.errors) == ["missing: rss/missing.md", "no frontmatter: rss/plain.md"]

    async def test_untouched_when_complete(self, storage, files, make_source) -> None:
        """完整的文件不改动."""
        source = await make_source(SourceType.RSS, {"feed_url": "x"})
        text = "---\nsource: rss\nword_count: 2\n---\n\n# t\n\n正文\n"
        await add_content(storage, files, source.id, "rss/ok.md", text)

        result = await migrate_storage(storage, files)

        assert (result.cleaned, result.word_count_added) == (0, 0)
        assert files.read("rss/ok.md") == text
