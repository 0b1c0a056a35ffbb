"""DataCollector 主应用入口."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from datacollector.api import collect, contents, discovery, maintenance, settings, sources, tasks
from datacollector.config import get_settings
from datacollector.core.collect import CollectionService
from datacollector.scheduler import create_scheduler, shutdown_scheduler

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """应用生命周期管理."""
    app_settings = get_settings()

    logger.info(f"正在打开数据目录: {app_settings.data_path}")
    service = CollectionService(app_settings)
    await service.start()

    app.state.service = service
    app.state.collect_lock = asyncio.Lock()

    if app_settings.scheduler_enabled:
        logger.info("正在启动定时任务...")
        create_scheduler(app_settings, service, app.state.collect_lock)

    logger.info("DataCollector 启动完成！")
    yield

    logger.info("正在关闭...")
    await shutdown_scheduler()
    await service.close()
    logger.info("DataCollector 已关闭")


app = FastAPI(
    title="DataCollector",
    description="个人内容采集 - B站 / 知识星球 / YouTube / RSS / 网页",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册路由
app.include_router(collect.router)
app.include_router(sources.router)
app.include_router(tasks.router)
app.include_router(contents.router)
app.include_router(settings.router)
app.include_router(maintenance.router)
app.include_router(discovery.router)


@app.get("/")
async def root() -> dict:
    """根路径."""
    return {
        "name": "DataCollector",
        "version": "0.1.0",
        "description": "个人内容采集",
    }


@app.get("/health")
async def health() -> dict:
    """健康检查."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "datacollector.main:app",
        host="127.0.0.1",
        port=8000,
        reload=False,
    )
