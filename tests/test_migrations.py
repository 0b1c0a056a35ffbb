"""测试一次性数据迁移."""

import pytest

from datacollector.collectors.base import CollectedItem
from datacollector.core.artifacts import render_markdown
from datacollector.core.files import FileStore
from datacollector.core.migrations import (
    MIGRATIONS,
    Migration,
    relativize_file_paths,
    repair_zsxq_titles,
    run_migrations,
    title_from_artifact,
)
from datacollector.models.content import Content
from datacollector.models.source import SourceType


@pytest.fixture
def files(storage) -> FileStore:
    """数据目录文件存储."""
    return FileStore(storage.data_dir)


def zsxq_artifact(title: str, body: str) -> str:
    """知识星球帖子的 Markdown 文件."""
    item = CollectedItem(
        external_id="1",
        title=title,
        author="星主",
        url="https://wx.zsxq.com/topic/1",
        content=body,
        source_type=SourceType.ZSXQ,
        tags=["知识星球"],
        published_at="2024-01-02T03:04:05.000Z",
    )
    return render_markdown(item, body)


class TestRunMigrations:
    """测试迁移执行和标记."""

    async def test_flags_set_on_open(self, storage) -> None:
        """打开数据库时执行所有迁移，标记为修复行数."""
        for migration in MIGRATIONS:
            assert await storage.get_setting(migration.key) == "0"

    async def test_runs_once(self, storage) -> None:
        """标记存在时不再执行."""
        calls = []

        async def fix(storage, files) -> int:
            calls.append(1)
            return 3

        migrations = [Migration("custom_v1", fix)]
        assert await run_migrations(storage, migrations) == {"custom_v1": 3}
        assert await run_migrations(storage, migrations) == {}
        assert calls == [1]
        assert await storage.get_setting("custom_v1") == "3"


class TestRepairZsxqTitles:
    """测试知识星球标题修复."""

    def test_title_from_artifact(self) -> None:
        """从正文重新提取标题."""
        raw = zsxq_artifact("坏标题<e type=", "**重点内容**\n后文")
        assert title_from_artifact(raw) == "**重点内容**"

    async def test_updates_database_and_file(self, storage, files, make_source) -> None:
        """数据库标题、frontmatter 和 # 标题一起更新."""
        source = await make_source(SourceType.ZSXQ, {"group_id": "1"})
        path = files.write("zsxq/post.md", zsxq_artifact("截断的<e type=", "今天的分享内容\n详情"))
        content_id = await storage.insert_content(
            Content(source_id=source.id, external_id="1", title="截断的<e type=", file_path=path)
        )

        fixed = await repair_zsxq_titles(storage, files)

        assert fixed == 1
        content = await storage.get_content_by_id(content_id)
        assert content is not None
        assert content.title == "今天的分享内容"
        raw = files.read(path)
        assert raw is not None
        assert 'title: "今天的分享内容"' in raw
        assert "# 今天的分享内容\n" in raw
        assert "<e type=" not in raw

    async def test_missing_file_skipped(self, storage, files, make_source) -> None:
        """文件不存在时跳过."""
        source = await make_source(SourceType.ZSXQ, {"group_id": "1"})
        await storage.insert_content(
            Content(source_id=source.id, external_id="1", title="t", file_path="zsxq/none.md")
        )
        assert await repair_zsxq_titles(storage, files) == 0


class TestRelativizeFilePaths:
    """测试绝对路径迁移."""

    async def test_absolute_paths_relativized(self, storage, files, make_source) -> None:
        """数据目录下的绝对路径改为相对路径，其他保持不变."""
        source = await make_source(SourceType.RSS, {"feed_url": "x"})
        inside = str(storage.data_dir / "rss" / "a.md")
        first = await storage.insert_content(
            Content(source_id=source.id, external_id="1", title="a", file_path=inside)
        )
        second = await storage.insert_content(
            Content(source_id=source.id, external_id="2", title="b", file_path="rss/b.md")
        )
        third = await storage.insert_content(
            Content(source_id=source.id, external_id="3", title="c", file_path="/elsewhere/c.md")
        )

        assert await relativize_file_paths(storage, files) == 1

        paths = [(await storage.get_content_by_id(i)).file_path for i in (first, second, third)]
        assert paths == ["rss/a.md", "rss/b.md", "/elsewhere/c.md"]
