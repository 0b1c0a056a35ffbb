"""知识星球帖子采集."""

import logging
from typing import Any

from datacollector.collectors.base import BaseCollector, CollectedItem
from datacollector.core.errors import CollectorError, CredentialError
from datacollector.models.source import SourceType
from datacollector.utils.dates import normalize_iso
from datacollector.utils.zsxq_tags import extract_title, to_plain_text

logger = logging.getLogger(__name__)

API_BASE = "https://api.zsxq.com/v2"
PAGE_SIZE = 20


def zsxq_headers(cookie: str) -> dict[str, str]:
    """知识星球请求头."""
    return {"accept": "application/json", "Cookie": cookie}


def best_image_url(image: dict[str, Any]) -> str | None:
    """取分辨率最高的图片地址：original > large > thumbnail."""
    for size in ("original", "large", "thumbnail"):
        url = (image.get(size) or {}).get("url")
        if url:
            return url
    return None


def build_topic_content(topic: dict[str, Any]) -> str:
    """正文（保留原始 <e> 标签）+ 图片 + 精选评论."""
    talk = topic.get("talk") or {}
    content = talk.get("text") or (topic.get("question") or {}).get("text") or ""

    images = talk.get("images") or []
    if images:
        urls = [url for url in (best_image_url(img) for img in images) if url]
        content += "\n"
        for url in urls:
            content += f"\n![图片]({url})"
        if not urls:
            content += f"\n[包含 {len(images)} 张图片]"

    comments = topic.get("show_comments") or []
    if comments:
        content += "\n\n---\n**精选评论：**"
        for comment in comments:
            commenter = (comment.get("owner") or {}).get("name") or "匿名"
            content += f"\n> **{commenter}**：{comment.get('text') or ''}"

    return content


def topic_title(topic: dict[str, Any]) -> str:
    """从解码后的正文中取标题."""
    talk = topic.get("talk") or {}
    raw_text = talk.get("text") or (topic.get("question") or {}).get("text") or ""
    title = extract_title(to_plain_text(raw_text))
    return title or f"知识星球帖子 {topic.get('create_time', '')}"


class ZsxqCollector(BaseCollector):
    """按星球 group_id 采集帖子，用上一页最后一条的 create_time 作为翻页游标."""

    source_type = SourceType.ZSXQ

    async def fetch_items(self) -> list[CollectedItem]:
        """分页拉取帖子，遇到已采集的帖子停止."""
        group_id = self.config_value("group_id")
        cookie = await self.context.credentials.get_credential(SourceType.ZSXQ)
        if not cookie:
            msg = "未登录知识星球，请先在设置中登录"
            raise CredentialError(msg)

        items: list[CollectedItem] = []
        end_time: str | None = None

        for _ in range(self.max_pages):
            limit = self.item_limit
            count = min(PAGE_SIZE, limit - len(items)) if limit is not None else PAGE_SIZE
            params: dict[str, str | int] = {"count": count}
            if end_time:
                params["end_time"] = end_time

            topics = await self._fetch_page(group_id, params, cookie)
            if not topics:
                break

            hit_existing = False
            for topic in topics:
                topic_id = str(topic.get("topic_id", ""))
                if not topic_id:
                    logger.warning(f"[zsxq] 跳过缺少 topic_id 的帖子: {topic!r}")
                    continue
                if await self.content_exists(topic_id):
                    hit_existing = True
                    break

                items.append(self._to_item(topic_id, topic))
                if self.limit_reached(len(items)):
                    break

            end_time = topics[-1].get("create_time")
            if hit_existing or self.limit_reached(len(items)) or len(topics) < count:
                break
            if not end_time:
                break

        logger.info(f"[zsxq] {self.source.name} 新帖子 {len(items)} 条")
        return items

    async def _fetch_page(
        self,
        group_id: str,
        params: dict[str, str | int],
        cookie: str,
    ) -> list[dict[str, Any]]:
        url = f"{API_BASE}/groups/{group_id}/topics"
        try:
            response = await self.http.get(url, params=params, headers=zsxq_headers(cookie))
        except CredentialError as e:
            msg = "知识星球 Cookie 已失效，请重新登录"
            raise CredentialError(msg) from e
        if response.status_code == 404:
            msg = f"ZSXQ API error: 404（星球 {group_id} 不存在）"
            raise CollectorError(msg)

        data = response.json()
        if data.get("succeeded") is False:
            resp_data = data.get("resp_data") or {}
            if data.get("code") == 401 or resp_data.get("code") == 401:
                msg = "知识星球 Cookie 已失效，请重新登录"
                raise CredentialError(msg)
            msg = f"ZSXQ API error: {resp_data.get('err_msg') or data.get('code')}"
            raise CollectorError(msg)

        topics = (data.get("resp_data") or {}).get("topics") or []
        return [t for t in topics if isinstance(t, dict)]

    def _to_item(self, topic_id: str, topic: dict[str, Any]) -> CollectedItem:
        owner = ((topic.get("talk") or {}).get("owner") or {}).get("name")
        return CollectedItem(
            external_id=topic_id,
            title=topic_title(topic),
            author=owner or self.source.name,
            url=f"https://wx.zsxq.com/topic/{topic_id}",
            content=build_topic_content(topic),
            source_type=SourceType.ZSXQ,
            tags=["知识星球"],
            published_at=normalize_iso(topic.get("create_time")),
        )
