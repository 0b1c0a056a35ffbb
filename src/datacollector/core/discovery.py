"""从已登录账号发现可订阅的数据源（关注的 UP 主、订阅的频道、加入的星球）."""

import logging
from typing import Any

from pydantic import BaseModel

from datacollector.collectors.bilibili import NAV_URL, bilibili_headers
from datacollector.collectors.youtube import BROWSE_URL, CLIENT_VERSION, innertube_context
from datacollector.collectors.zsxq import API_BASE as ZSXQ_API_BASE
from datacollector.collectors.zsxq import zsxq_headers
from datacollector.core.credentials import CredentialStore
from datacollector.core.errors import CollectorError, CredentialError
from datacollector.fetcher.http import HttpFetcher
from datacollector.fetcher.signing import build_sapisid_hash, youtube_auth_headers
from datacollector.models.source import SourceType
from datacollector.utils.json_tree import find_renderers, first_run_text

logger = logging.getLogger(__name__)

FOLLOWINGS_URL = "https://api.bilibili.com/x/relation/followings"
FOLLOWINGS_PAGE_SIZE = 50
FOLLOWINGS_MAX_PAGES = 3


class YouTubeChannel(BaseModel):
    """订阅的 YouTube 频道."""

    channel_id: str
    name: str
    avatar: str = ""
    subscriber_count: str = ""


class BilibiliUser(BaseModel):
    """关注的 B站 UP 主."""

    mid: int
    name: str
    avatar: str = ""
    sign: str = ""
    tag: str | None = None


class ZsxqGroup(BaseModel):
    """已加入的知识星球."""

    group_id: str
    name: str
    description: str = ""
    member_count: int = 0
    topic_count: int = 0
    owner_name: str = ""


def parse_channel_renderers(data: Any) -> list[YouTubeChannel]:
    """从 browse 返回中提取所有 channelRenderer."""
    channels: list[YouTubeChannel] = []
    for renderer in find_renderers(data, "channelRenderer"):
        channel_id = renderer.get("channelId")
        if not isinstance(channel_id, str) or not channel_id:
            continue
        thumbnails = (renderer.get("thumbnail") or {}).get("thumbnails") or []
        subscriber = (renderer.get("subscriberCountText") or {}).get("simpleText") or (
            renderer.get("videoCountText") or {}
        ).get("simpleText")
        channels.append(
            YouTubeChannel(
                channel_id=channel_id,
                name=first_run_text(renderer.get("title")) or channel_id,
                avatar=thumbnails[0].get("url", "") if thumbnails else "",
                subscriber_count=subscriber or "",
            )
        )
    return channels


async def youtube_subscriptions(
    http: HttpFetcher,
    credentials: CredentialStore,
) -> list[YouTubeChannel]:
    """获取已订阅的 YouTube 频道."""
    cookie = await credentials.get_credential(SourceType.YOUTUBE)
    if not cookie:
        msg = "请先在设置页面登录 YouTube"
        raise CredentialError(msg)
    if build_sapisid_hash(cookie) is None:
        msg = "Cookie 缺少 SAPISID，请重新登录 YouTube"
        raise CredentialError(msg)

    headers = youtube_auth_headers(cookie)
    headers["X-Youtube-Client-Name"] = "1"
    headers["X-Youtube-Client-Version"] = CLIENT_VERSION
    response = await http.post(
        BROWSE_URL,
        json={"context": innertube_context(), "browseId": "FEchannels"},
        headers=headers,
    )
    if response.status_code == 404:
        msg = "YouTube API 请求失败: 404"
        raise CollectorError(msg)
    return parse_channel_renderers(response.json())


async def bilibili_followings(
    http: HttpFetcher,
    credentials: CredentialStore,
) -> list[BilibiliUser]:
    """获取当前登录账号关注的 UP 主（最多 3 页）."""
    cookie = await credentials.get_credential(SourceType.BILIBILI)
    if not cookie or "SESSDATA" not in cookie:
        msg = "未登录 B站，请先在设置中登录"
        raise CredentialError(msg)

    headers = bilibili_headers(cookie)
    nav = await http.get_json(NAV_URL, headers=headers) or {}
    my_mid = (nav.get("data") or {}).get("mid") if nav.get("code") == 0 else None
    if not my_mid:
        msg = "Cookie 已失效，请重新登录 B站"
        raise CredentialError(msg)

    users: list[BilibiliUser] = []
    for page in range(1, FOLLOWINGS_MAX_PAGES + 1):
        data = await http.get_json(
            FOLLOWINGS_URL,
            params={
                "vmid": my_mid,
                "pn": page,
                "ps": FOLLOWINGS_PAGE_SIZE,
                "order": "desc",
                "order_type": "attention",
            },
            headers=headers,
        ) or {}
        if data.get("code") != 0:
            if page == 1:
                msg = f"获取关注列表失败: {data.get('message') or data.get('code')}"
                raise CollectorError(msg)
            break

        followings = (data.get("data") or {}).get("list") or []
        for user in followings:
            tags = user.get("tag") or []
            users.append(
                BilibiliUser(
                    mid=user["mid"],
                    name=user.get("uname") or "",
                    avatar=user.get("face") or "",
                    sign=(user.get("sign") or "")[:60],
                    tag=tags[0].get("name") if tags else None,
                )
            )
        if len(followings) < FOLLOWINGS_PAGE_SIZE:
            break

    logger.info(f"[bilibili] 关注列表 {len(users)} 人")
    return users


async def zsxq_groups(
    http: HttpFetcher,
    credentials: CredentialStore,
) -> list[ZsxqGroup]:
    """获取已加入的知识星球."""
    cookie = await credentials.get_credential(SourceType.ZSXQ)
    if not cookie:
        msg = "未登录知识星球，请先在设置中登录"
        raise CredentialError(msg)

    response = await http.get(
        f"{ZSXQ_API_BASE}/groups", params={"type": "mine"}, headers=zsxq_headers(cookie)
    )
    if response.status_code == 404:
        msg = "知识星球 API 错误: 404"
        raise CollectorError(msg)

    data = response.json()
    if not data.get("succeeded"):
        msg = (data.get("resp_data") or {}).get("err_msg") or "Cookie 已失效，请重新登录知识星球"
        raise CredentialError(msg)

    groups = (data.get("resp_data") or {}).get("groups") or []
    return [
        ZsxqGroup(
            group_id=str(g["group_id"]),
            name=g.get("name") or "",
            description=(g.get("description") or "")[:80],
            member_count=(g.get("stat") or {}).get("member_cnt") or 0,
            topic_count=(g.get("stat") or {}).get("topic_cnt") or 0,
            owner_name=(g.get("owner") or {}).get("name") or "",
        )
        for g in groups
        if g.get("group_id") is not None
    ]
