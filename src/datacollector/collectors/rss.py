"""RSS / Atom 订阅源采集."""

import logging
from datetime import UTC, datetime
from typing import Any

import feedparser

from datacollector.collectors.base import BaseCollector, CollectedItem
from datacollector.core.errors import CollectorError
from datacollector.models.source import SourceType
from datacollector.utils.dates import now_iso, to_iso
from datacollector.utils.html_parser import html_to_text

logger = logging.getLogger(__name__)


def entry_external_id(entry: dict[str, Any]) -> str:
    """条目 ID：guid > link > title."""
    for key in ("id", "link", "title"):
        value = (entry.get(key) or "").strip()
        if value:
            return value
    return ""


def entry_content(entry: dict[str, Any]) -> str:
    """正文：content:encoded / content > summary，去掉 HTML 标签."""
    raw = ""
    for block in entry.get("content") or []:
        value = block.get("value") if isinstance(block, dict) else None
        if value:
            raw = value
            break
    if not raw:
        raw = entry.get("summary") or ""
    return html_to_text(raw)


def entry_published(entry: dict[str, Any]) -> str:
    """发布时间，feedparser 解析出的时间元组都是 UTC."""
    for field in ("published_parsed", "updated_parsed"):
        parsed = entry.get(field)
        if not parsed:
            continue
        try:
            return to_iso(datetime(*parsed[:6], tzinfo=UTC))
        except (TypeError, ValueError):
            continue
    return now_iso()


def entry_tags(entry: dict[str, Any]) -> list[str]:
    """分类标签，没有时用 ``RSS``."""
    terms = [
        tag.get("term", "").strip()
        for tag in entry.get("tags") or []
        if isinstance(tag, dict)
    ]
    return [t for t in terms if t] or ["RSS"]


class RssCollector(BaseCollector):
    """通用 RSS / Atom 采集."""

    source_type = SourceType.RSS

    async def fetch_items(self) -> list[CollectedItem]:
        """解析订阅源，遇到已采集的条目停止."""
        feed_url = self.config_value("feed_url")
        response = await self.http.get(feed_url)
        if response.status_code == 404:
            msg = f"订阅源不存在: 404（{feed_url}）"
            raise CollectorError(msg)

        feed = feedparser.parse(response.text)
        if feed.bozo and not feed.entries:
            msg = f"订阅源解析失败: {feed.get('bozo_exception')}"
            raise CollectorError(msg)

        items: list[CollectedItem] = []
        for entry in feed.entries:
            if self.limit_reached(len(items)):
                break

            external_id = entry_external_id(entry)
            if not external_id:
                logger.warning(f"[rss] 跳过缺少 ID 的条目: {feed_url}")
                continue
            if await self.content_exists(external_id):
                break

            items.append(
                CollectedItem(
                    external_id=external_id,
                    title=(entry.get("title") or "").strip(),
                    author=entry.get("author") or self.source.name,
                    url=entry.get("link") or "",
                    content=entry_content(entry),
                    source_type=SourceType.RSS,
                    tags=entry_tags(entry),
                    published_at=entry_published(entry),
                )
            )

        logger.info(f"[rss] {self.source.name} 新条目 {len(items)} 条")
        return items
