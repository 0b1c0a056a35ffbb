"""测试 YouTube 采集器."""

import json

import httpx

from datacollector.collectors.youtube import (
    BROWSE_URL,
    FEED_URL,
    PLAYER_URL,
    CaptionResult,
    YouTubeCollector,
    choose_caption_track,
    parse_browse_videos,
    parse_caption_xml,
    parse_video_feed,
)
from datacollector.models.source import SourceType

TIMEDTEXT_URL = "https://www.youtube.com/api/timedtext"

FEED_XML = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns:yt="http://www.youtube.com/xml/schemas/2015"
      xmlns:media="http://search.yahoo.com/mrss/" xmlns="http://www.w3.org/2005/Atom">
 <title>频道名</title>
 <author><name>频道作者</name></author>
 <entry>
  <id>yt:video:vid001</id>
  <yt:videoId>vid001</yt:videoId>
  <title>第一个视频</title>
  <author><name>作者 A</name></author>
  <published>2024-01-02T03:04:05+00:00</published>
  <media:group>
   <media:title>第一个视频</media:title>
   <media:description>视频简介一</media:description>
  </media:group>
 </entry>
 <entry>
  <id>yt:video:vid002</id>
  <yt:videoId>vid002</yt:videoId>
  <title>第二个视频</title>
  <author><name>作者 A</name></author>
  <published>2024-01-01T00:00:00+00:00</published>
  <media:group>
   <media:description>视频简介二</media:description>
  </media:group>
 </entry>
</feed>
"""

CAPTION_XML = """<?xml version="1.0" encoding="utf-8" ?>
<transcript>
 <text start="0.1" dur="1.5">大家好</text>
 <text start="1.6" dur="1.0">大家好</text>
 <text start="2.6" dur="2.0">今天讲字幕。下次再见</text>
</transcript>
"""


def browse_response() -> dict:
    """嵌套很深的 browse 响应，videoRenderer 分散在不同层级."""
    return {
        "contents": {
            "twoColumnBrowseResultsRenderer": {
                "tabs": [
                    {
                        "tabRenderer": {
                            "content": {
                                "richGridRenderer": {
                                    "contents": [
                                        {
                                            "richItemRenderer": {
                                                "content": {
                                                    "videoRenderer": {
                                                        "videoId": "b1",
                                                        "title": {"runs": [{"text": "浏览一"}]},
                                                        "ownerText": {"runs": [{"text": "频道主"}]},
                                                        "descriptionSnippet": {
                                                            "runs": [{"text": "简"}, {"text": "介"}]
                                                        },
                                                    }
                                                }
                                            }
                                        },
                                        {
                                            "richItemRenderer": {
                                                "content": {
                                                    "videoRenderer": {
                                                        "videoId": "b2",
                                                        "title": {"simpleText": "浏览二"},
                                                    }
                                                }
                                            }
                                        },
                                    ]
                                }
                            }
                        }
                    }
                ]
            }
        }
    }


def player_response() -> dict:
    """带英文人工字幕和中文自动字幕的 player 响应."""
    return {
        "captions": {
            "playerCaptionsTracklistRenderer": {
                "captionTracks": [
                    {"languageCode": "en", "baseUrl": f"{TIMEDTEXT_URL}?lang=en"},
                    {"languageCode": "zh-Hans", "kind": "asr", "baseUrl": f"{TIMEDTEXT_URL}?lang=zh"},
                ]
            }
        }
    }


class TestParsers:
    """测试解析函数."""

    def test_parse_video_feed(self) -> None:
        """解析 Atom 订阅源中的视频."""
        entries = parse_video_feed(FEED_XML)
        assert [e.video_id for e in entries] == ["vid001", "vid002"]
        assert entries[0].title == "第一个视频"
        assert entries[0].author_name == "作者 A"
        assert entries[0].description == "视频简介一"
        assert entries[0].published == "2024-01-02T03:04:05+00:00"

    def test_parse_empty_feed(self) -> None:
        """空文档返回空列表."""
        assert parse_video_feed("") == []

    def test_parse_browse_videos(self) -> None:
        """按形状查找 videoRenderer，不依赖具体路径."""
        videos = parse_browse_videos(browse_response())
        assert [v.video_id for v in videos] == ["b1", "b2"]
        assert videos[0].title == "浏览一"
        assert videos[0].author_name == "频道主"
        assert videos[0].description == "简介"
        assert videos[1].title == "浏览二"

    def test_parse_caption_xml(self) -> None:
        """连续重复行去掉，按标点断句."""
        assert parse_caption_xml(CAPTION_XML) == "大家好\n今天讲字幕。\n下次再见"

    def test_choose_caption_track(self) -> None:
        """中文优先，其次英文，最后第一条."""
        zh = {"languageCode": "zh-Hant"}
        en = {"languageCode": "en"}
        ja = {"languageCode": "ja"}
        assert choose_caption_track([en, zh]) is zh
        assert choose_caption_track([ja, en]) is en
        assert choose_caption_track([ja]) is ja
        assert choose_caption_track([]) is None

    def test_subtitle_type(self) -> None:
        """自动字幕标为 ai-*."""
        assert CaptionResult("x", "zh-Hans", True).subtitle_type == "ai-zh"
        assert CaptionResult("x", "en", True).subtitle_type == "ai-en"
        assert CaptionResult("x", "zh-CN", False).subtitle_type == "zh-CN"
        assert CaptionResult("x", "en", False).subtitle_type == "en"


class TestYouTubeCollector:
    """测试视频列表和字幕."""

    async def test_channel_feed_without_cookie(self, context, upstream, make_source) -> None:
        """没有 Cookie 时不请求字幕，用简介."""
        source = await make_source(SourceType.YOUTUBE, {"channel_id": "UC1"})
        upstream.text(FEED_URL, FEED_XML)

        result = await YouTubeCollector(source, context).fetch()

        assert result.ok
        assert [i.external_id for i in result.items] == ["vid001", "vid002"]
        item = result.items[0]
        assert item.content == "视频简介一"
        assert item.subtitle_type == "description"
        assert item.url == "https://www.youtube.com/watch?v=vid001"
        assert item.published_at == "2024-01-02T03:04:05.000Z"
        assert item.tags == ["youtube"]
        assert upstream.calls(PLAYER_URL) == []
        assert upstream.calls(FEED_URL)[0].url.params["channel_id"] == "UC1"

    async def test_channel_rss_404_falls_back_to_browse(self, context, upstream, make_source) -> None:
        """频道 RSS 404 时走 browse 接口."""
        source = await make_source(SourceType.YOUTUBE, {"channel_id": "UC1"})
        upstream.json(BROWSE_URL, browse_response(), method="POST")

        result = await YouTubeCollector(source, context).fetch()

        assert result.ok
        assert [i.external_id for i in result.items] == ["b1", "b2"]
        assert result.items[0].content == "简介"
        assert result.items[1].subtitle_type == "none"
        body = json.loads(upstream.calls(BROWSE_URL)[0].content)
        assert body["browseId"] == "UC1"

    async def test_browse_without_videos_is_error(self, context, upstream, make_source) -> None:
        """RSS 404 且 browse 没有结果时报错."""
        source = await make_source(SourceType.YOUTUBE, {"channel_id": "UC1"})
        upstream.json(BROWSE_URL, {"contents": {}}, method="POST")

        result = await YouTubeCollector(source, context).fetch()

        assert not result.ok
        assert "UC1" in (result.error or "")

    async def test_playlist_404_is_error(self, context, upstream, make_source) -> None:
        """播放列表 RSS 404 不回退."""
        source = await make_source(SourceType.YOUTUBE, {"playlist_id": "PL1"})

        result = await YouTubeCollector(source, context).fetch()

        assert not result.ok
        assert "PL1" in (result.error or "")
        assert upstream.calls(BROWSE_URL) == []

    async def test_missing_config_is_error(self, context, make_source) -> None:
        """channel_id 和 playlist_id 都没有时报错."""
        source = await make_source(SourceType.YOUTUBE, {})
        result = await YouTubeCollector(source, context).fetch()
        assert not result.ok

    async def test_captions_with_cookie(self, context, upstream, storage, make_source) -> None:
        """有 Cookie 时取中文自动字幕，请求带 SAPISIDHASH."""
        await storage.set_setting("youtube_cookie", "SID=1; SAPISID=secret")
        source = await make_source(SourceType.YOUTUBE, {"playlist_id": "PL1", "max_items": 1})
        upstream.text(FEED_URL, FEED_XML)
        upstream.json(PLAYER_URL, player_response(), method="POST")

        def timedtext(request: httpx.Request) -> httpx.Response:
            if request.url.params["lang"] == "zh":
                return httpx.Response(200, text=CAPTION_XML)
            return httpx.Response(200, text="<transcript><text>english</text></transcript>")

        upstream.add(TIMEDTEXT_URL, timedtext)

        result = await YouTubeCollector(source, context).fetch()

        assert len(result.items) == 1
        item = result.items[0]
        assert item.content == "大家好\n今天讲字幕。\n下次再见"
        assert item.subtitle_type == "ai-zh"
        player_request = upstream.calls(PLAYER_URL)[0]
        assert player_request.headers["Authorization"].startswith("SAPISIDHASH ")
        assert json.loads(player_request.content)["videoId"] == "vid001"

    async def test_caption_failure_falls_back(self, context, upstream, storage, make_source) -> None:
        """字幕接口失败时用简介，不影响采集."""
        await storage.set_setting("youtube_cookie", "SAPISID=secret")
        source = await make_source(SourceType.YOUTUBE, {"channel_id": "UC1"})
        upstream.text(FEED_URL, FEED_XML)
        upstream.add(PLAYER_URL, lambda request: httpx.Response(500), method="POST")

        result = await YouTubeCollector(source, context).fetch()

        assert result.ok
        assert [i.content for i in result.items] == ["视频简介一", "视频简介二"]
