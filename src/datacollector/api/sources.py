"""数据源 API."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from datacollector.api.deps import get_storage
from datacollector.core.storage import StorageService
from datacollector.models.source import Source, SourceType

router = APIRouter(prefix="/api/sources", tags=["sources"])


class SourceCreate(BaseModel):
    """新建数据源."""

    name: str
    type: SourceType
    config: dict[str, Any] = {}
    is_active: bool = True


class SourceUpdate(BaseModel):
    """修改数据源（只更新传入的字段）."""

    name: str | None = None
    type: SourceType | None = None
    config: dict[str, Any] | None = None
    is_active: bool | None = None


def source_to_dict(source: Source) -> dict:
    """数据源转响应."""
    return {
        "id": source.id,
        "name": source.name,
        "type": source.type,
        "config": source.config,
        "is_active": source.is_active,
        "last_collected_at": (
            source.last_collected_at.isoformat() if source.last_collected_at else None
        ),
        "last_error": source.last_error,
        "created_at": source.created_at.isoformat(),
    }


@router.get("")
async def list_sources(
    active_only: bool = Query(default=False, description="只返回启用的数据源"),
    storage: StorageService = Depends(get_storage),
) -> dict:
    """获取数据源列表."""
    sources = await storage.list_sources(active_only=active_only)
    return {"total": len(sources), "items": [source_to_dict(s) for s in sources]}


@router.post("", status_code=201)
async def create_source(
    body: SourceCreate,
    storage: StorageService = Depends(get_storage),
) -> dict:
    """新建数据源."""
    source = await storage.create_source(
        name=body.name,
        type=body.type,
        config=body.config,
        is_active=body.is_active,
    )
    return source_to_dict(source)


@router.get("/{source_id}")
async def get_source(
    source_id: int,
    storage: StorageService = Depends(get_storage),
) -> dict:
    """获取数据源详情."""
    source = await storage.get_source(source_id)
    if not source:
        raise HTTPException(status_code=404, detail="数据源不存在")
    return source_to_dict(source)


@router.patch("/{source_id}")
async def update_source(
    source_id: int,
    body: SourceUpdate,
    storage: StorageService = Depends(get_storage),
) -> dict:
    """修改数据源."""
    fields = body.model_dump(exclude_none=True)
    source = await storage.update_source(source_id, **fields)
    if not source:
        raise HTTPException(status_code=404, detail="数据源不存在")
    return source_to_dict(source)


@router.delete("/{source_id}")
async def delete_source(
    source_id: int,
    storage: StorageService = Depends(get_storage),
) -> dict:
    """删除数据源（已采集的内容保留）."""
    if not await storage.delete_source(source_id):
        raise HTTPException(status_code=404, detail="数据源不存在")
    return {"id": source_id, "deleted": True}
