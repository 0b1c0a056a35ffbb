"""采集编排：逐个数据源执行采集、记录任务、更新状态."""

import logging
from dataclasses import dataclass, field

from datacollector.collectors.base import BaseCollector, CollectorContext, FetchResult
from datacollector.collectors.bilibili import fetch_wbi_keys
from datacollector.collectors.factory import create_collector
from datacollector.config import Settings
from datacollector.core.credentials import CredentialStore
from datacollector.core.errors import SourceNotFoundError
from datacollector.core.files import FileStore
from datacollector.core.maintenance import generate_index
from datacollector.core.migrations import run_migrations
from datacollector.core.persistence import PersistenceGateway
from datacollector.core.storage import StorageService
from datacollector.fetcher.extractor import FullTextExtractor
from datacollector.fetcher.http import HttpFetcher
from datacollector.fetcher.signing import WbiSigner
from datacollector.models.source import Source
from datacollector.models.task import TaskStatus
from datacollector.utils.dates import utc_now

logger = logging.getLogger(__name__)


@dataclass
class SourceResult:
    """单个数据源的采集结果."""

    source_id: int
    name: str
    task_id: int
    found: int = 0
    new: int = 0
    failed: int = 0
    error: str | None = None


@dataclass
class CollectSummary:
    """一次采集的汇总."""

    found: int = 0
    new: int = 0
    results: list[SourceResult] = field(default_factory=list)

    def add(self, result: SourceResult) -> None:
        """累加单个数据源的结果."""
        self.results.append(result)
        self.found += result.found
        self.new += result.new


class CollectionService:
    """采集服务.

    进程内只创建一个实例，持有存储、HTTP 客户端和 wbi 密钥缓存。
    数据源按顺序串行采集；两次采集之间的互斥由调用方保证。
    """

    def __init__(
        self,
        settings: Settings,
        storage: StorageService | None = None,
        http: HttpFetcher | None = None,
        extractor: FullTextExtractor | None = None,
    ) -> None:
        self.settings = settings
        self.storage = storage or StorageService(on_open=run_migrations)
        self.http = http or HttpFetcher(
            timeout=settings.http_timeout_seconds,
            max_attempts=settings.http_max_attempts,
            backoff_seconds=settings.http_backoff_seconds,
            user_agent=settings.user_agent,
        )
        self.credentials = CredentialStore(self.storage)
        self.wbi_signer = WbiSigner(
            lambda: fetch_wbi_keys(self.http, self.credentials),
            ttl_seconds=settings.wbi_key_ttl_seconds,
        )
        self.context = CollectorContext(
            settings=settings,
            storage=self.storage,
            credentials=self.credentials,
            http=self.http,
            wbi_signer=self.wbi_signer,
            extractor=extractor or FullTextExtractor(),
        )

    @property
    def files(self) -> FileStore:
        """当前数据目录的文件存储."""
        return FileStore(self.storage.data_dir)

    async def start(self) -> None:
        """打开数据目录（首次打开时执行迁移）."""
        await self.storage.ensure_data_dir(self.settings.data_path)

    async def close(self) -> None:
        """释放资源."""
        await self.http.close()
        await self.storage.close()

    def create_collector(self, source: Source) -> BaseCollector:
        """创建数据源对应的采集器."""
        return create_collector(source, self.context)

    async def collect_all(self) -> CollectSummary:
        """采集所有启用的数据源."""
        await self.start()
        sources = await self.storage.list_sources(active_only=True)
        logger.info(f"开始采集 {len(sources)} 个数据源")
        return await self._collect(sources)

    async def collect_one(self, source_id: int) -> CollectSummary:
        """
        采集单个数据源.

        Raises:
            SourceNotFoundError: 数据源不存在
        """
        await self.start()
        source = await self.storage.get_source(source_id)
        if source is None:
            raise SourceNotFoundError(source_id)
        return await self._collect([source])

    async def _collect(self, sources: list[Source]) -> CollectSummary:
        summary = CollectSummary()
        for source in sources:
            summary.add(await self.collect_source(source))

        # 即使没有数据源也要刷新索引
        try:
            await generate_index(self.storage, self.files)
        except OSError as e:
            logger.exception(f"索引生成失败: {e}")

        logger.info(f"采集完成: 共 {summary.found} 条，新增 {summary.new} 条")
        return summary

    async def collect_source(self, source: Source) -> SourceResult:
        """执行一次单数据源采集：pending -> running -> completed | failed."""
        assert source.id is not None
        task_id = await self.storage.insert_task(source.id)
        result = SourceResult(source_id=source.id, name=source.name, task_id=task_id)
        await self.storage.update_task(
            task_id, status=TaskStatus.RUNNING, started_at=utc_now()
        )

        try:
            fetched = await self.create_collector(source).fetch()
            if not fetched.ok:
                result.error = fetched.error
            else:
                await self._persist(source.id, fetched, result)
        except Exception as e:
            logger.exception(f"[{source.type}] {source.name} 采集异常: {e}")
            result.error = str(e) or e.__class__.__name__

        if result.error is not None:
            await self.storage.update_task(
                task_id,
                status=TaskStatus.FAILED,
                error=result.error,
                completed_at=utc_now(),
            )
            # 失败时不更新 last_collected_at，下次从同一位置重试
            await self.storage.update_source(source.id, last_error=result.error)
            logger.warning(f"[{source.type}] {source.name} 采集失败: {result.error}")
            return result

        await self.storage.update_task(
            task_id,
            status=TaskStatus.COMPLETED,
            items_found=result.found,
            items_new=result.new,
            completed_at=utc_now(),
        )
        await self.storage.update_source(
            source.id, last_error=None, last_collected_at=utc_now()
        )
        logger.info(
            f"[{source.type}] {source.name} 采集完成: 共 {result.found} 条，新增 {result.new} 条"
        )
        return result

    async def _persist(self, source_id: int, fetched: FetchResult, result: SourceResult) -> None:
        gateway = PersistenceGateway(self.storage, self.files)
        saved = await gateway.save_items(source_id, fetched.items)
        result.found = saved.found
        result.new = saved.new
        result.failed = saved.failed
