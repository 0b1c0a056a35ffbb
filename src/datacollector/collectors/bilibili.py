"""B站 UP 主视频采集."""

import logging
import re
from dataclasses import dataclass
from typing import Any

from datacollector.collectors.base import BaseCollector, CollectedItem, SubtitleType
from datacollector.core.credentials import CredentialStore
from datacollector.core.errors import CollectorError, CredentialError, ResponseShapeError
from datacollector.fetcher.http import HttpFetcher
from datacollector.fetcher.signing import key_from_url
from datacollector.models.source import SourceType
from datacollector.utils.dates import from_timestamp

logger = logging.getLogger(__name__)

API_BASE = "https://api.bilibili.com"
NAV_URL = f"{API_BASE}/x/web-interface/nav"
VIDEO_LIST_URL = f"{API_BASE}/x/space/wbi/arc/search"
PAGELIST_URL = f"{API_BASE}/x/player/pagelist"
PLAYER_URL = f"{API_BASE}/x/player/wbi/v2"
PAGE_SIZE = 50

# 风控校验失败，一般是没有带有效 Cookie（SESSDATA）
RISK_CONTROL_CODE = -352

SENTENCE_END = re.compile(r"(?<=[。！？；;!?])")


@dataclass
class BilibiliVideo:
    """视频列表中的一条."""

    bvid: str
    title: str
    author: str
    created: int
    length: str
    description: str


@dataclass
class SubtitleResult:
    """字幕抓取结果."""

    text: str
    type: SubtitleType
    parts: int | None = None


def subtitle_type_for(lan: str) -> SubtitleType:
    """按字幕语言标记类型，非中文一律归为英文."""
    is_zh = lan.removeprefix("ai-").startswith("zh")
    if lan.startswith("ai-"):
        return "ai-zh" if is_zh else "ai-en"
    return "zh-CN" if is_zh else "en"


def bilibili_headers(cookie: str | None) -> dict[str, str]:
    """B站请求头."""
    headers = {"Referer": "https://www.bilibili.com"}
    if cookie:
        headers["Cookie"] = cookie
    return headers


async def fetch_wbi_keys(http: HttpFetcher, credentials: CredentialStore) -> tuple[str, str]:
    """从 nav 接口读取 wbi 的 img_key / sub_key."""
    cookie = await credentials.get_credential(SourceType.BILIBILI)
    response = await http.get(NAV_URL, headers=bilibili_headers(cookie))
    data = response.json() if response.status_code != 404 else {}
    wbi = (data.get("data") or {}).get("wbi_img") or {}

    if not wbi.get("img_url") or not wbi.get("sub_url"):
        msg = "无法获取 wbi keys，请检查 Cookie 是否有效"
        raise CredentialError(msg)

    return key_from_url(wbi["img_url"]), key_from_url(wbi["sub_url"])


def split_sentences(text: str) -> list[str]:
    """按句末标点断句."""
    return [s.strip() for s in SENTENCE_END.split(text) if s.strip()]


def format_subtitle_lines(lines: list[str]) -> str:
    """字幕行整理：去掉连续重复行（AI 字幕常见），再按标点断句，每句一行."""
    output: list[str] = []
    previous = ""
    for raw in lines:
        line = raw.strip()
        if line == previous:
            continue
        previous = line
        output.extend(split_sentences(line))
    return "\n".join(output)


class BilibiliCollector(BaseCollector):
    """按 UP 主 mid 采集视频，优先取字幕，取不到时用简介."""

    source_type = SourceType.BILIBILI

    async def _headers(self) -> dict[str, str]:
        cookie = await self.context.credentials.get_credential(SourceType.BILIBILI)
        return bilibili_headers(cookie)

    async def fetch_items(self) -> list[CollectedItem]:
        """抓取视频列表并逐个补充字幕."""
        videos = await self.fetch_video_list()
        items: list[CollectedItem] = []

        for video in videos:
            content = video.description
            subtitle_type: SubtitleType = "description" if content else "none"
            parts: int | None = None

            try:
                result = await self.fetch_subtitles(video.bvid)
            except Exception as e:
                logger.warning(f"[bilibili] {video.bvid} 字幕获取失败，使用简介: {e}")
                result = None

            if result:
                content = result.text
                subtitle_type = result.type
                parts = result.parts

            items.append(
                CollectedItem(
                    external_id=video.bvid,
                    title=video.title,
                    author=video.author or self.source.name,
                    url=f"https://www.bilibili.com/video/{video.bvid}",
                    content=content,
                    source_type=SourceType.BILIBILI,
                    tags=["bilibili"],
                    published_at=from_timestamp(video.created),
                    duration=video.length or None,
                    subtitle_type=subtitle_type,
                    parts=parts,
                )
            )

        return items

    async def fetch_video_list(self) -> list[BilibiliVideo]:
        """分页拉取视频列表，遇到已采集的视频停止."""
        mid = self.config_value("mid")
        headers = await self._headers()
        videos: list[BilibiliVideo] = []

        for page in range(1, self.max_pages + 1):
            query = await self.context.wbi_signer.sign({"mid": mid, "ps": PAGE_SIZE, "pn": page})
            response = await self.http.get(f"{VIDEO_LIST_URL}?{query}", headers=headers)
            if response.status_code == 404:
                msg = f"Bilibili API error: 404 ({mid})"
                raise CollectorError(msg)

            data = response.json()
            code = data.get("code")
            if code == RISK_CONTROL_CODE:
                msg = "B站风控校验失败。请在「设置 → B站」中粘贴你的 Cookie（必须包含 SESSDATA）"
                raise CredentialError(msg)
            if code != 0:
                msg = f"Bilibili API error {code}: {data.get('message') or ''}"
                raise CollectorError(msg)

            vlist = self._parse_vlist(data)
            hit_existing = False

            for entry in vlist:
                if await self.content_exists(entry.bvid):
                    hit_existing = True
                    break
                videos.append(entry)
                if self.limit_reached(len(videos)):
                    break

            if hit_existing or self.limit_reached(len(videos)) or len(vlist) < PAGE_SIZE:
                break

        logger.info(f"[bilibili] {self.source.name} 新视频 {len(videos)} 个")
        return videos

    def _parse_vlist(self, data: dict[str, Any]) -> list[BilibiliVideo]:
        try:
            raw_list = ((data.get("data") or {}).get("list") or {}).get("vlist") or []
        except AttributeError as e:
            msg = "视频列表结构异常"
            raise ResponseShapeError(msg) from e

        videos: list[BilibiliVideo] = []
        for v in raw_list:
            if not isinstance(v, dict) or not v.get("bvid"):
                logger.warning(f"[bilibili] 跳过结构异常的视频条目: {v!r}")
                continue
            videos.append(
                BilibiliVideo(
                    bvid=v["bvid"],
                    title=v.get("title") or "",
                    author=v.get("author") or "",
                    created=int(v.get("created") or 0),
                    length=v.get("length") or "",
                    description=v.get("description") or "",
                )
            )
        return videos

    async def fetch_subtitles(self, bvid: str) -> SubtitleResult | None:
        """逐个分 P 抓取字幕，多 P 视频按分 P 加标题."""
        headers = await self._headers()
        response = await self.http.get(PAGELIST_URL, params={"bvid": bvid}, headers=headers)
        if response.status_code == 404:
            return None

        page_data = response.json()
        pages = page_data.get("data") or []
        if page_data.get("code") != 0 or not pages:
            return None

        is_multi_part = len(pages) > 1
        texts: list[str] = []
        final_type: SubtitleType = "description"

        for index, page in enumerate(pages):
            try:
                part = await self._fetch_part_subtitle(bvid, page["cid"], headers)
            except (CollectorError, KeyError, ValueError) as e:
                logger.warning(f"[bilibili] {bvid} P{index + 1} 字幕获取失败: {e}")
                continue
            if part is None:
                continue

            text, part_type = part
            if index == 0:
                final_type = part_type
            if is_multi_part:
                texts.append(f"## P{index + 1}: {page.get('part', '')}\n\n{text}")
            else:
                texts.append(text)

        if not texts:
            return None

        return SubtitleResult(
            text="\n\n".join(texts),
            type=final_type,
            parts=len(pages) if is_multi_part else None,
        )

    async def _fetch_part_subtitle(
        self,
        bvid: str,
        cid: int,
        headers: dict[str, str],
    ) -> tuple[str, SubtitleType] | None:
        query = await self.context.wbi_signer.sign({"bvid": bvid, "cid": cid})
        response = await self.http.get(f"{PLAYER_URL}?{query}", headers=headers)
        if response.status_code == 404:
            return None

        player = response.json()
        if player.get("code") != 0:
            return None
        subtitles = ((player.get("data") or {}).get("subtitle") or {}).get("subtitles") or []
        if not subtitles:
            return None

        # 优先人工字幕，其次 AI 字幕
        human = next((s for s in subtitles if s.get("lan") == "zh-CN"), None)
        auto = next((s for s in subtitles if s.get("lan") == "ai-zh"), None)
        chosen = human or auto or subtitles[0]
        subtitle_type = subtitle_type_for(str(chosen.get("lan") or ""))

        subtitle_url = chosen.get("subtitle_url") or ""
        if not subtitle_url:
            return None
        if subtitle_url.startswith("//"):
            subtitle_url = "https:" + subtitle_url

        response = await self.http.get(subtitle_url, headers=headers)
        if response.status_code == 404:
            return None
        body = response.json().get("body")
        if not isinstance(body, list):
            return None

        text = format_subtitle_lines([str(line.get("content", "")) for line in body])
        if not text:
            return None
        return text, subtitle_type
