"""定时任务定义."""

import asyncio
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from datacollector.config import Settings
from datacollector.core.collect import CollectionService

logger = logging.getLogger(__name__)

_scheduler: AsyncIOScheduler | None = None


async def collect_task(service: CollectionService, lock: asyncio.Lock) -> None:
    """定时采集任务：采集所有启用的数据源."""
    # 已有采集在运行（手动触发或上一轮未结束）
    if lock.locked():
        logger.info("已有采集任务在运行，跳过本次调度")
        return

    async with lock:
        logger.info("开始定时采集...")
        try:
            summary = await service.collect_all()
        except Exception as e:
            logger.exception(f"定时采集失败: {e}")
            return

    logger.info(f"定时采集完成: 共 {summary.found} 条，新增 {summary.new} 条")


def create_scheduler(
    settings: Settings,
    service: CollectionService,
    lock: asyncio.Lock,
) -> AsyncIOScheduler:
    """创建并启动定时任务调度器."""
    global _scheduler

    _scheduler = AsyncIOScheduler()
    _scheduler.add_job(
        collect_task,
        "interval",
        minutes=settings.collect_interval_minutes,
        args=[service, lock],
        id="collect_task",
        name="定时采集",
        replace_existing=True,
        max_instances=1,
    )
    _scheduler.start()
    logger.info(f"定时任务调度器已启动，采集间隔: {settings.collect_interval_minutes} 分钟")

    return _scheduler


async def shutdown_scheduler() -> None:
    """关闭定时任务调度器."""
    global _scheduler
    if _scheduler:
        _scheduler.shutdown(wait=False)
        logger.info("定时任务调度器已关闭")
        _scheduler = None
