"""YouTube 频道 / 播放列表视频采集."""

import logging
from dataclasses import dataclass
from typing import Any

from datacollector.collectors.base import BaseCollector, CollectedItem, SubtitleType
from datacollector.collectors.bilibili import format_subtitle_lines
from datacollector.core.errors import CollectorError
from datacollector.fetcher.signing import (
    YOUTUBE_ORIGIN,
    build_sapisid_hash,
    youtube_auth_headers,
)
from datacollector.models.source import SourceType
from datacollector.utils.dates import normalize_iso
from datacollector.utils.html_parser import xml_entries
from datacollector.utils.json_tree import JsonValue, find_renderers, first_run_text, text_of

logger = logging.getLogger(__name__)

FEED_URL = f"{YOUTUBE_ORIGIN}/feeds/videos.xml"
BROWSE_URL = f"{YOUTUBE_ORIGIN}/youtubei/v1/browse"
PLAYER_URL = f"{YOUTUBE_ORIGIN}/youtubei/v1/player"
CLIENT_VERSION = "2.20250312.04.00"
# 频道 "视频" 标签页，按最新排序
VIDEOS_TAB_PARAMS = "EgZ2aWRlb3PyBgQKAjoA"


def innertube_context() -> dict[str, Any]:
    """innertube 请求的 client 上下文."""
    return {"client": {"clientName": "WEB", "clientVersion": CLIENT_VERSION, "hl": "zh-CN"}}


@dataclass
class VideoEntry:
    """视频列表中的一条."""

    video_id: str
    title: str
    published: str
    author_name: str
    description: str


@dataclass
class CaptionResult:
    """字幕抓取结果."""

    text: str
    lang: str
    is_auto: bool

    @property
    def subtitle_type(self) -> SubtitleType:
        """字幕来源标记."""
        is_zh = self.lang.startswith("zh")
        if self.is_auto:
            return "ai-zh" if is_zh else "ai-en"
        return "zh-CN" if is_zh else "en"


def _child_text(entry: Any, name: str) -> str:
    node = entry.find(name)
    return node.get_text().strip() if node is not None else ""


def parse_video_feed(xml: str) -> list[VideoEntry]:
    """解析 YouTube Atom 订阅源."""
    entries: list[VideoEntry] = []
    for entry in xml_entries(xml, "entry"):
        author = entry.find("author")
        video = VideoEntry(
            video_id=_child_text(entry, "videoId"),
            title=_child_text(entry, "title"),
            published=_child_text(entry, "published"),
            author_name=_child_text(author, "name") if author is not None else "",
            description=_child_text(entry, "description"),
        )
        if video.video_id:
            entries.append(video)
    return entries


def parse_browse_videos(data: JsonValue) -> list[VideoEntry]:
    """从 browse 接口返回的对象图中找出所有 videoRenderer."""
    videos: list[VideoEntry] = []
    for renderer in find_renderers(data, "videoRenderer"):
        video_id = renderer.get("videoId")
        if not isinstance(video_id, str) or not video_id:
            continue
        videos.append(
            VideoEntry(
                video_id=video_id,
                title=first_run_text(renderer.get("title")),
                # browse 接口不提供精确发布时间
                published="",
                author_name=first_run_text(renderer.get("ownerText")),
                description=text_of(renderer.get("descriptionSnippet")),
            )
        )
    return videos


def parse_caption_xml(xml: str) -> str:
    """timedtext XML 转文本：去掉连续重复行，按标点断句."""
    lines = [
        node.get_text().replace("\n", " ").strip() for node in xml_entries(xml, "text")
    ]
    return format_subtitle_lines([line for line in lines if line])


def choose_caption_track(tracks: list[dict[str, Any]]) -> dict[str, Any] | None:
    """优先中文 > 英文 > 第一条."""
    if not tracks:
        return None
    for track in tracks:
        if str(track.get("languageCode", "")).startswith("zh"):
            return track
    for track in tracks:
        if track.get("languageCode") == "en":
            return track
    return tracks[0]


class YouTubeCollector(BaseCollector):
    """频道优先走 RSS，404 时回退到 innertube browse；字幕需要登录 Cookie."""

    source_type = SourceType.YOUTUBE

    async def fetch_items(self) -> list[CollectedItem]:
        """抓取视频列表并补充字幕."""
        entries = await self.fetch_entries()
        cookie = await self.context.credentials.get_credential(SourceType.YOUTUBE)
        items: list[CollectedItem] = []

        for entry in entries:
            if await self.content_exists(entry.video_id):
                break
            if self.limit_reached(len(items)):
                break

            content = entry.description
            subtitle_type: SubtitleType = "description" if content else "none"

            try:
                captions = await self.fetch_captions(entry.video_id, cookie)
            except Exception as e:
                logger.warning(f"[youtube] {entry.video_id} 字幕获取失败，使用简介: {e}")
                captions = None

            if captions:
                content = captions.text
                subtitle_type = captions.subtitle_type

            items.append(
                CollectedItem(
                    external_id=entry.video_id,
                    title=entry.title or f"YouTube 视频 {entry.video_id}",
                    author=entry.author_name or self.source.name,
                    url=f"{YOUTUBE_ORIGIN}/watch?v={entry.video_id}",
                    content=content,
                    source_type=SourceType.YOUTUBE,
                    tags=["youtube"],
                    published_at=normalize_iso(entry.published),
                    subtitle_type=subtitle_type,
                )
            )

        logger.info(f"[youtube] {self.source.name} 新视频 {len(items)} 个")
        return items

    async def fetch_entries(self) -> list[VideoEntry]:
        """视频列表：播放列表只走 RSS；频道先走 RSS，404 时回退 browse 接口."""
        channel_id = str(self.source.config.get("channel_id") or "").strip()
        playlist_id = str(self.source.config.get("playlist_id") or "").strip()
        if not channel_id and not playlist_id:
            msg = "请配置 channel_id 或 playlist_id"
            raise CollectorError(msg)

        if playlist_id:
            response = await self.http.get(FEED_URL, params={"playlist_id": playlist_id})
            if response.status_code == 404:
                msg = f"YouTube 播放列表 RSS 失败: 404（{playlist_id}）"
                raise CollectorError(msg)
            return parse_video_feed(response.text)

        response = await self.http.get(FEED_URL, params={"channel_id": channel_id})
        if response.status_code != 404:
            return parse_video_feed(response.text)

        # 部分频道的 RSS 被禁用了，回退到 innertube
        logger.info(f"[youtube] 频道 {channel_id} RSS 404，回退到 browse 接口")
        entries = await self.fetch_browse_entries(channel_id)
        if not entries:
            msg = f"频道 {channel_id} 无法获取视频（RSS 404 且 innertube 无结果）"
            raise CollectorError(msg)
        return entries

    async def fetch_browse_entries(self, channel_id: str) -> list[VideoEntry]:
        """通过 innertube browse 接口获取频道视频."""
        response = await self.http.post(
            BROWSE_URL,
            json={
                "context": innertube_context(),
                "browseId": channel_id,
                "params": VIDEOS_TAB_PARAMS,
            },
            headers={"Content-Type": "application/json"},
        )
        if response.status_code == 404:
            return []
        try:
            data = response.json()
        except ValueError:
            logger.warning(f"[youtube] browse 接口返回非 JSON: {channel_id}")
            return []
        return parse_browse_videos(data)

    async def fetch_captions(self, video_id: str, cookie: str | None) -> CaptionResult | None:
        """通过 innertube player 接口获取字幕，没有可用 Cookie 时直接跳过."""
        if not cookie or build_sapisid_hash(cookie) is None:
            return None

        response = await self.http.post(
            PLAYER_URL,
            json={"context": innertube_context(), "videoId": video_id},
            headers=youtube_auth_headers(cookie),
        )
        if response.status_code == 404:
            return None

        data = response.json()
        tracks = (
            ((data.get("captions") or {}).get("playerCaptionsTracklistRenderer") or {})
            .get("captionTracks")
        )
        if not isinstance(tracks, list):
            return None
        track = choose_caption_track([t for t in tracks if isinstance(t, dict)])
        if not track or not track.get("baseUrl"):
            return None

        caption_response = await self.http.get(track["baseUrl"], headers={"Cookie": cookie})
        if caption_response.status_code == 404:
            return None

        text = parse_caption_xml(caption_response.text)
        if not text:
            return None
        return CaptionResult(
            text=text,
            lang=str(track.get("languageCode") or "unknown"),
            is_auto=track.get("kind") == "asr",
        )
