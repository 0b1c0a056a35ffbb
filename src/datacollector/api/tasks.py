"""采集任务 API."""

from fastapi import APIRouter, Depends, Query

from datacollector.api.deps import get_storage
from datacollector.core.storage import StorageService

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@router.get("")
async def list_tasks(
    source_id: int | None = Query(default=None, description="按数据源过滤"),
    limit: int = Query(default=50, ge=1, le=500),
    storage: StorageService = Depends(get_storage),
) -> dict:
    """获取最近的采集任务."""
    tasks = await storage.list_tasks(source_id=source_id)
    return {
        "total": len(tasks),
        "items": [
            {
                "id": t.id,
                "source_id": t.source_id,
                "status": t.status,
                "items_found": t.items_found,
                "items_new": t.items_new,
                "error": t.error,
                "started_at": t.started_at.isoformat() if t.started_at else None,
                "completed_at": t.completed_at.isoformat() if t.completed_at else None,
            }
            for t in tasks[:limit]
        ],
    }
