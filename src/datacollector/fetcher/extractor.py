"""网页正文提取器."""

import asyncio
import re
from concurrent.futures import ThreadPoolExecutor

from pydantic import BaseModel
from trafilatura import extract, extract_metadata

from datacollector.utils.html_parser import collapse_whitespace


class ArticleResult(BaseModel):
    """正文提取结果."""

    title: str | None = None
    author: str | None = None
    content: str = ""  # 纯文本版本
    word_count: int = 0


class FullTextExtractor:
    """使用 trafilatura 提取网页正文（readability 风格）."""

    def __init__(self) -> None:
        self._executor = ThreadPoolExecutor(max_workers=2)

    async def extract(self, html: str, url: str) -> ArticleResult:
        """
        从已下载的 HTML 中提取正文.

        trafilatura 是同步库，这里用线程池包装成异步。
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._executor,
            self._extract_sync,
            html,
            url,
        )

    def _extract_sync(self, html: str, url: str) -> ArticleResult:
        """同步提取正文和元数据."""
        text_content = extract(
            html,
            url=url,
            include_comments=False,
            include_tables=True,
            output_format="txt",
            favor_precision=False,
        )
        metadata = extract_metadata(html, default_url=url)

        title = metadata.title if metadata else None
        author = metadata.author if metadata else None
        if not title:
            title = self._html_title(html)

        content = collapse_whitespace(self._clean_text(text_content or ""))
        return ArticleResult(
            title=title,
            author=author,
            content=content,
            word_count=len(content),
        )

    def _html_title(self, html: str) -> str | None:
        """读取 <title>."""
        match = re.search(r"<title[^>]*>([^<]*)</title>", html, re.IGNORECASE)
        return match.group(1).strip() or None if match else None

    def _clean_text(self, text: str) -> str:
        """清理纯文本内容."""
        # 移除残留标签
        text = re.sub(r"<[^>]*>", "", text)
        # 移除常见的无效字符
        text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f]", "", text)
        return text.strip()
