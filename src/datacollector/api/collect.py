"""采集 API."""

import asyncio

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from datacollector.api.deps import get_collect_lock, get_service
from datacollector.core.collect import CollectionService, CollectSummary
from datacollector.core.errors import SourceNotFoundError

router = APIRouter(prefix="/api/collect", tags=["collect"])


class CollectRequest(BaseModel):
    """采集请求，不指定数据源时采集全部."""

    source_id: int | None = None


def summary_to_dict(summary: CollectSummary) -> dict:
    """采集汇总转响应."""
    return {
        "found": summary.found,
        "new": summary.new,
        "results": [
            {
                "source_id": r.source_id,
                "name": r.name,
                "task_id": r.task_id,
                "found": r.found,
                "new": r.new,
                "failed": r.failed,
                "error": r.error,
            }
            for r in summary.results
        ],
    }


@router.post("")
async def trigger_collect(
    body: CollectRequest | None = None,
    service: CollectionService = Depends(get_service),
    lock: asyncio.Lock = Depends(get_collect_lock),
) -> dict:
    """立即采集."""
    if lock.locked():
        raise HTTPException(status_code=409, detail="已有采集任务在运行")

    source_id = body.source_id if body else None
    async with lock:
        try:
            if source_id is None:
                summary = await service.collect_all()
            else:
                summary = await service.collect_one(source_id)
        except SourceNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e

    return summary_to_dict(summary)
