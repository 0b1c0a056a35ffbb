"""测试配置和 fixtures."""

from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from typing import Any

import httpx
import pytest
import pytest_asyncio

from datacollector.collectors.base import CollectorContext
from datacollector.config import Settings
from datacollector.core.credentials import CredentialStore
from datacollector.core.migrations import run_migrations
from datacollector.core.storage import StorageService
from datacollector.fetcher.extractor import FullTextExtractor
from datacollector.fetcher.http import HttpFetcher
from datacollector.fetcher.signing import WbiSigner
from datacollector.models.source import Source, SourceType
from datacollector.utils.dates import utc_now

# 固定的 wbi 密钥（测试里不走 nav 接口）
IMG_KEY = "7cd084941338484aae1ad9425b84077c"
SUB_KEY = "4932caff0ff746eab6f01bf08b70ac45"

Handler = Callable[[httpx.Request], httpx.Response]


class FakeUpstream:
    """按 ``scheme://host/path`` 路由的假上游，记录所有请求；未注册的地址返回 404."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Handler] = {}
        self.requests: list[httpx.Request] = []

    def add(self, url: str, handler: Handler, method: str = "GET") -> None:
        """注册一个地址."""
        self.routes[(method, url)] = handler

    def json(self, url: str, data: Any, method: str = "GET") -> None:
        """注册一个固定 JSON 响应."""
        self.add(url, lambda request: httpx.Response(200, json=data), method)

    def text(self, url: str, body: str, method: str = "GET") -> None:
        """注册一个固定文本响应."""
        self.add(url, lambda request: httpx.Response(200, text=body), method)

    def calls(self, url: str) -> list[httpx.Request]:
        """某个地址收到的请求."""
        return [r for r in self.requests if _route_key(r)[1] == url]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get(_route_key(request))
        if handler is None:
            return httpx.Response(404, text="not found")
        return handler(request)


def _route_key(request: httpx.Request) -> tuple[str, str]:
    url = request.url
    return request.method, f"{url.scheme}://{url.host}{url.path}"


def make_http(handler: Handler) -> HttpFetcher:
    """使用 MockTransport 的 HttpFetcher，重试不等待."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpFetcher(client, max_attempts=3, backoff_seconds=0)


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """临时数据目录."""
    return tmp_path / "data"


@pytest.fixture
def settings(data_dir: Path) -> Settings:
    """测试配置."""
    return Settings(
        data_dir=str(data_dir),
        scheduler_enabled=False,
        http_backoff_seconds=0,
    )


@pytest_asyncio.fixture
async def storage(data_dir: Path) -> AsyncGenerator[StorageService, None]:
    """临时 SQLite 数据库上的存储服务."""
    service = StorageService(on_open=run_migrations)
    await service.ensure_data_dir(data_dir)
    yield service
    await service.close()


@pytest.fixture
def upstream() -> FakeUpstream:
    """假上游."""
    return FakeUpstream()


@pytest_asyncio.fixture
async def http(upstream: FakeUpstream) -> AsyncGenerator[HttpFetcher, None]:
    """接到假上游的 HttpFetcher."""
    fetcher = make_http(upstream)
    yield fetcher
    await fetcher.close()


@pytest.fixture
def context(settings: Settings, storage: StorageService, http: HttpFetcher) -> CollectorContext:
    """采集器共享依赖."""

    async def fixed_keys() -> tuple[str, str]:
        return IMG_KEY, SUB_KEY

    return CollectorContext(
        settings=settings,
        storage=storage,
        credentials=CredentialStore(storage),
        http=http,
        wbi_signer=WbiSigner(fixed_keys),
        extractor=FullTextExtractor(),
    )


@pytest.fixture
def make_source(storage: StorageService) -> Callable[..., Any]:
    """创建数据源；``collected=True`` 表示已采集过（增量模式）."""

    async def _make(
        source_type: SourceType,
        config: dict[str, Any] | None = None,
        name: str = "测试源",
        collected: bool = False,
    ) -> Source:
        source = await storage.create_source(name=name, type=source_type, config=config or {})
        if collected:
            assert source.id is not None
            updated = await storage.update_source(source.id, last_collected_at=utc_now())
            assert updated is not None
            return updated
        return source

    return _make


@pytest_asyncio.fixture
async def http_factory() -> AsyncGenerator[Callable[[Handler], HttpFetcher], None]:
    """按处理器创建 HttpFetcher，测试结束时统一关闭."""
    created: list[HttpFetcher] = []

    def _factory(handler: Handler) -> HttpFetcher:
        fetcher = make_http(handler)
        created.append(fetcher)
        return fetcher

    yield _factory
    for fetcher in created:
        await fetcher.close()
