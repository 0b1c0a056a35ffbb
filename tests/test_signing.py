"""测试请求签名."""

import hashlib
from urllib.parse import parse_qs

from datacollector.fetcher.signing import (
    WbiSigner,
    build_sapisid_hash,
    enc_wbi,
    extract_sapisid,
    get_mixin_key,
    key_from_url,
    youtube_auth_headers,
)

IMG_KEY = "7cd084941338484aae1ad9425b84077c"
SUB_KEY = "4932caff0ff746eab6f01bf08b70ac45"


class TestWbi:
    """测试 B站 wbi 签名."""

    def test_mixin_key(self) -> None:
        """混淆表重排后取 32 位."""
        assert get_mixin_key(IMG_KEY + SUB_KEY) == "ea1db124af3c7062474693fa704f4ff8"

    def test_known_signature(self) -> None:
        """与公开文档中的示例一致."""
        query = enc_wbi({"foo": "114", "bar": "514", "zab": 1919810}, IMG_KEY, SUB_KEY, wts=1702204169)
        assert query == (
            "bar=514&foo=114&wts=1702204169&zab=1919810"
            "&w_rid=8f6f2b5b3d485fe1886cec6a0be8c5d4"
        )

    def test_deterministic(self) -> None:
        """固定密钥、参数和时间戳时结果完全一致."""
        params = {"mid": 123, "ps": 50, "pn": 1}
        first = enc_wbi(params, IMG_KEY, SUB_KEY, wts=1700000000)
        second = enc_wbi(dict(params), IMG_KEY, SUB_KEY, wts=1700000000)
        assert first == second

    def test_strips_special_chars_and_sorts(self) -> None:
        """值中的 !'()* 被去掉，参数按键排序."""
        query = enc_wbi({"z": "a(b)!", "a": "x y"}, IMG_KEY, SUB_KEY, wts=1)
        assert query.startswith("a=x%20y&wts=1&z=ab&w_rid=")

    def test_w_rid_is_md5_of_query_and_mixin(self) -> None:
        """w_rid = md5(排序后的查询串 + mixin key)."""
        query = enc_wbi({"a": 1}, IMG_KEY, SUB_KEY, wts=2)
        base, w_rid = query.rsplit("&w_rid=", 1)
        mixin = get_mixin_key(IMG_KEY + SUB_KEY)
        assert w_rid == hashlib.md5((base + mixin).encode()).hexdigest()
        assert len(w_rid) == 32

    def test_key_from_url(self) -> None:
        """从图片地址取文件名作为密钥."""
        url = f"https://i0.hdslb.com/bfs/wbi/{IMG_KEY}.png"
        assert key_from_url(url) == IMG_KEY


class TestWbiSigner:
    """测试密钥缓存."""

    async def test_keys_cached_within_ttl(self) -> None:
        """有效期内只拉取一次."""
        calls = []
        now = [1000.0]

        async def fetch_keys() -> tuple[str, str]:
            calls.append(now[0])
            return IMG_KEY, SUB_KEY

        signer = WbiSigner(fetch_keys, ttl_seconds=3600, clock=lambda: now[0])
        await signer.sign({"a": 1})
        now[0] += 1800
        await signer.sign({"a": 1})
        assert len(calls) == 1

    async def test_keys_refreshed_after_ttl(self) -> None:
        """过期后重新拉取."""
        calls = []
        now = [1000.0]

        async def fetch_keys() -> tuple[str, str]:
            calls.append(now[0])
            return IMG_KEY, SUB_KEY

        signer = WbiSigner(fetch_keys, ttl_seconds=3600, clock=lambda: now[0])
        await signer.sign({"a": 1})
        now[0] += 3601
        await signer.sign({"a": 1})
        assert len(calls) == 2

    async def test_invalidate(self) -> None:
        """invalidate 后下次使用重新拉取."""
        calls = []

        async def fetch_keys() -> tuple[str, str]:
            calls.append(1)
            return IMG_KEY, SUB_KEY

        signer = WbiSigner(fetch_keys, clock=lambda: 5000.0)
        await signer.get_keys()
        signer.invalidate()
        await signer.get_keys()
        assert len(calls) == 2

    async def test_sign_uses_clock_timestamp(self) -> None:
        """签名时间戳来自时钟."""

        async def fetch_keys() -> tuple[str, str]:
            return IMG_KEY, SUB_KEY

        signer = WbiSigner(fetch_keys, clock=lambda: 1702204169.4)
        query = await signer.sign({"foo": "114", "bar": "514", "zab": 1919810})
        assert parse_qs(query)["wts"] == ["1702204169"]
        assert query.endswith("w_rid=8f6f2b5b3d485fe1886cec6a0be8c5d4")


class TestSapisidHash:
    """测试 YouTube SAPISIDHASH."""

    def test_extract_sapisid(self) -> None:
        """从 Cookie 中提取 SAPISID."""
        assert extract_sapisid("SID=1; SAPISID=abc/def; HSID=2") == "abc/def"
        assert extract_sapisid("SAPISID=first") == "first"

    def test_does_not_match_suffixed_names(self) -> None:
        """__Secure-3PAPISID 之类的名字不算."""
        assert extract_sapisid("__Secure-3PAPISID=zzz") is None

    def test_hash_format(self) -> None:
        """SAPISIDHASH {epoch}_{sha1(epoch sapisid origin)}."""
        header = build_sapisid_hash("SAPISID=secret", epoch=1700000000)
        expected = hashlib.sha1(b"1700000000 secret https://www.youtube.com").hexdigest()
        assert header == f"SAPISIDHASH 1700000000_{expected}"

    def test_missing_sapisid_returns_none(self) -> None:
        """没有 SAPISID 时不生成授权头."""
        assert build_sapisid_hash("SID=1; HSID=2") is None

    def test_auth_headers(self) -> None:
        """带认证的请求头."""
        headers = youtube_auth_headers("SAPISID=secret")
        assert headers["Authorization"].startswith("SAPISIDHASH ")
        assert headers["Origin"] == "https://www.youtube.com"
        assert headers["Cookie"] == "SAPISID=secret"

    def test_auth_headers_without_credential(self) -> None:
        """没有 Cookie 时不带认证头."""
        headers = youtube_auth_headers(None)
        assert "Authorization" not in headers
        assert "Cookie" not in headers
