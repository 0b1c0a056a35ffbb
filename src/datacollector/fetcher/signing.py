"""平台请求签名.

- B站 wbi 签名：用 img_key + sub_key 混淆出 mixin key，对排序后的查询串取 MD5；
- YouTube SAPISIDHASH：从 Cookie 中取 SAPISID，SHA1 后作为 Authorization 头。
"""

import hashlib
import logging
import re
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from urllib.parse import quote

logger = logging.getLogger(__name__)

# wbi 签名用的混淆表
MIXIN_KEY_ENC_TAB = [
    46, 47, 18, 2, 53, 8, 23, 32, 15, 50, 10, 31, 58, 3, 45, 35,
    27, 43, 5, 49, 33, 9, 42, 19, 29, 28, 14, 39, 12, 38, 41, 13,
    37, 48, 7, 16, 24, 55, 40, 61, 26, 17, 0, 1, 60, 51, 30, 4,
    22, 25, 54, 21, 56, 59, 6, 63, 57, 62, 11, 36, 20, 34, 44, 52,
]  # fmt: skip

WBI_STRIP_CHARS = re.compile(r"[!'()*]")

YOUTUBE_ORIGIN = "https://www.youtube.com"
SAPISID_PATTERN = re.compile(r"(?:^|;\s*)SAPISID=([^;]+)")


def get_mixin_key(orig: str) -> str:
    """按混淆表重排 img_key + sub_key，取前 32 位."""
    return "".join(orig[i] for i in MIXIN_KEY_ENC_TAB if i < len(orig))[:32]


def enc_wbi(
    params: Mapping[str, str | int],
    img_key: str,
    sub_key: str,
    wts: int | None = None,
) -> str:
    """生成带 ``wts`` 和 ``w_rid`` 的查询串.

    Args:
        params: 原始查询参数
        img_key: nav 接口返回的 img_key
        sub_key: nav 接口返回的 sub_key
        wts: Unix 秒级时间戳，默认取当前时间

    Returns:
        ``a=1&b=2&wts=...&w_rid=...``
    """
    mixin_key = get_mixin_key(img_key + sub_key)
    all_params: dict[str, str | int] = dict(params)
    all_params["wts"] = round(time.time()) if wts is None else wts

    query = "&".join(
        f"{quote(key, safe='')}="
        f"{quote(WBI_STRIP_CHARS.sub('', str(all_params[key])), safe='')}"
        for key in sorted(all_params)
    )
    w_rid = hashlib.md5((query + mixin_key).encode("utf-8")).hexdigest()  # noqa: S324
    return f"{query}&w_rid={w_rid}"


def key_from_url(url: str) -> str:
    """``https://i0.hdslb.com/bfs/wbi/7cd0...png`` -> ``7cd0...``."""
    return url.rsplit("/", 1)[-1].split(".", 1)[0]


@dataclass
class WbiKeys:
    """wbi 密钥对."""

    img_key: str
    sub_key: str
    fetched_at: float


class WbiSigner:
    """wbi 签名器，密钥带过期缓存.

    缓存是实例字段，没有加锁：同一进程内的采集是串行执行的。
    """

    def __init__(
        self,
        fetch_keys: Callable[[], Awaitable[tuple[str, str]]],
        ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._fetch_keys = fetch_keys
        self._ttl = ttl_seconds
        self._clock = clock
        self._keys: WbiKeys | None = None

    def invalidate(self) -> None:
        """清除缓存的密钥."""
        self._keys = None

    async def get_keys(self) -> WbiKeys:
        """获取密钥，过期或首次使用时重新拉取."""
        now = self._clock()
        if self._keys and now - self._keys.fetched_at < self._ttl:
            return self._keys

        img_key, sub_key = await self._fetch_keys()
        self._keys = WbiKeys(img_key=img_key, sub_key=sub_key, fetched_at=now)
        logger.info("wbi 密钥已刷新")
        return self._keys

    async def sign(self, params: Mapping[str, str | int]) -> str:
        """对参数签名，返回完整查询串."""
        keys = await self.get_keys()
        return enc_wbi(params, keys.img_key, keys.sub_key, wts=round(self._clock()))


def extract_sapisid(cookie: str) -> str | None:
    """从 Cookie 字符串中提取 SAPISID."""
    match = SAPISID_PATTERN.search(cookie or "")
    if not match:
        return None
    return match.group(1).strip() or None


def build_sapisid_hash(
    cookie: str,
    origin: str = YOUTUBE_ORIGIN,
    epoch: int | None = None,
) -> str | None:
    """构造 ``SAPISIDHASH {epoch}_{sha1}`` 授权头，Cookie 缺少 SAPISID 时返回 None."""
    sapisid = extract_sapisid(cookie)
    if not sapisid:
        return None
    ts = int(time.time()) if epoch is None else epoch
    digest = hashlib.sha1(f"{ts} {sapisid} {origin}".encode()).hexdigest()  # noqa: S324
    return f"SAPISIDHASH {ts}_{digest}"


def youtube_auth_headers(cookie: str | None) -> dict[str, str]:
    """带 Cookie + SAPISIDHASH 的 YouTube 请求头，无法认证时只返回基础头."""
    headers = {"Content-Type": "application/json"}
    if not cookie or not cookie.strip():
        return headers

    headers["Cookie"] = cookie
    auth = build_sapisid_hash(cookie)
    if auth:
        headers["Authorization"] = auth
        headers["X-Origin"] = YOUTUBE_ORIGIN
        headers["Origin"] = YOUTUBE_ORIGIN
        headers["Referer"] = f"{YOUTUBE_ORIGIN}/"
    return headers
