"""数据维护 API."""

import asyncio
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException

from datacollector.api.deps import get_collect_lock, get_service
from datacollector.core.collect import CollectionService
from datacollector.core.maintenance import generate_index, migrate_storage

router = APIRouter(prefix="/api", tags=["maintenance"])


@router.post("/migrate")
async def trigger_migrate(
    service: CollectionService = Depends(get_service),
    lock: asyncio.Lock = Depends(get_collect_lock),
) -> dict:
    """整理已落盘的 Markdown 文件并重建索引."""
    if lock.locked():
        raise HTTPException(status_code=409, detail="已有采集任务在运行")

    async with lock:
        result = await migrate_storage(service.storage, service.files)
    return asdict(result)


@router.post("/index")
async def rebuild_index(
    service: CollectionService = Depends(get_service),
) -> dict:
    """重新生成 _index.md."""
    path = await generate_index(service.storage, service.files)
    return {"path": path}
