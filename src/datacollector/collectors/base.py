"""采集器抽象基类."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import ClassVar, Literal

from datacollector.config import Settings
from datacollector.core.credentials import CredentialStore
from datacollector.core.errors import CollectorError
from datacollector.core.storage import StorageService
from datacollector.fetcher.extractor import FullTextExtractor
from datacollector.fetcher.http import HttpFetcher
from datacollector.fetcher.signing import WbiSigner
from datacollector.models.source import Source, SourceType

logger = logging.getLogger(__name__)

SubtitleType = Literal["ai-zh", "zh-CN", "ai-en", "en", "description", "none"]


@dataclass
class CollectedItem:
    """采集器产出的统一条目（入库前，仅在内存中）."""

    external_id: str
    title: str
    author: str
    url: str
    content: str
    source_type: SourceType
    tags: list[str] = field(default_factory=list)
    published_at: str = ""
    duration: str | None = None
    subtitle_type: SubtitleType | None = None
    parts: int | None = None


@dataclass
class FetchResult:
    """采集结果：``error`` 为空表示成功（即使没有新条目）."""

    items: list[CollectedItem] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        """是否成功."""
        return self.error is None


@dataclass
class CollectorContext:
    """采集器共享的长生命周期依赖."""

    settings: Settings
    storage: StorageService
    credentials: CredentialStore
    http: HttpFetcher
    wbi_signer: WbiSigner
    extractor: FullTextExtractor


class BaseCollector(ABC):
    """采集器基类.

    增量策略：
    - 首次采集（``last_collected_at`` 为空）：最多 ``max_items`` 条、``first_run_max_pages`` 页；
    - 之后的采集：条数不限，但遇到第一条已入库的条目立即停止翻页。

    这依赖上游按时间倒序返回、且不会在已见过的条目之后补发旧条目；
    被补发的旧条目不会再被采集到。
    """

    source_type: ClassVar[SourceType]

    def __init__(self, source: Source, context: CollectorContext) -> None:
        self.source = source
        self.context = context
        self.http = context.http
        self.settings = context.settings

    @property
    def is_first_collect(self) -> bool:
        """是否首次采集."""
        return self.source.is_first_collect

    @property
    def max_items(self) -> int:
        """首次采集的条数上限."""
        try:
            value = int(self.source.config.get("max_items") or 0)
        except (TypeError, ValueError):
            value = 0
        return value if value > 0 else self.settings.default_max_items

    @property
    def item_limit(self) -> int | None:
        """本次采集的条数上限，None 表示不限."""
        return self.max_items if self.is_first_collect else None

    @property
    def max_pages(self) -> int:
        """本次采集的翻页上限."""
        if self.is_first_collect:
            return self.settings.first_run_max_pages
        return self.settings.incremental_max_pages

    def limit_reached(self, count: int) -> bool:
        """是否已达到条数上限."""
        limit = self.item_limit
        return limit is not None and count >= limit

    def config_value(self, key: str) -> str:
        """读取必填配置项."""
        value = self.source.config.get(key)
        if value is None or str(value).strip() == "":
            msg = f"数据源「{self.source.name}」缺少配置项 {key}"
            raise CollectorError(msg)
        return str(value).strip()

    async def content_exists(self, external_id: str) -> bool:
        """该条目是否已入库."""
        assert self.source.id is not None
        return await self.context.storage.content_exists(self.source.id, external_id)

    @abstractmethod
    async def fetch_items(self) -> list[CollectedItem]:
        """抓取新条目，整体失败时抛出异常."""
        ...

    async def fetch(self) -> FetchResult:
        """抓取新条目，不向外抛异常."""
        try:
            items = await self.fetch_items()
        except CollectorError as e:
            logger.warning(f"[{self.source_type}] {self.source.name} 采集失败: {e}")
            return FetchResult(error=str(e))
        except Exception as e:
            logger.exception(f"[{self.source_type}] {self.source.name} 采集异常: {e}")
            return FetchResult(error=str(e) or e.__class__.__name__)
        return FetchResult(items=items)
