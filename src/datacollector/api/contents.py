"""已采集内容 API."""

from fastapi import APIRouter, Depends, HTTPException, Query

from datacollector.api.deps import get_service, get_storage
from datacollector.core.collect import CollectionService
from datacollector.core.storage import StorageService
from datacollector.models.content import Content

router = APIRouter(prefix="/api/contents", tags=["contents"])


def content_to_dict(content: Content) -> dict:
    """内容记录转响应."""
    return {
        "id": content.id,
        "source_id": content.source_id,
        "external_id": content.external_id,
        "title": content.title,
        "author": content.author,
        "url": content.url,
        "tags": content.tags,
        "file_path": content.file_path,
        "published_at": content.published_at,
        "collected_at": content.collected_at.isoformat(),
    }


@router.get("")
async def list_contents(
    source_type: str | None = Query(default=None, description="按平台过滤"),
    source_id: int | None = Query(default=None, description="按数据源过滤"),
    search: str | None = Query(default=None, description="按标题或作者模糊搜索"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=200),
    storage: StorageService = Depends(get_storage),
) -> dict:
    """分页获取内容列表."""
    filters = {"source_type": source_type, "source_id": source_id, "search": search}
    total = await storage.count_contents(**filters)
    rows = await storage.list_contents(**filters, offset=(page - 1) * limit, limit=limit)
    return {
        "total": total,
        "page": page,
        "items": [
            {
                **content_to_dict(row.content),
                "source_type": row.source_type,
                "source_name": row.source_name,
            }
            for row in rows
        ],
    }


@router.get("/authors")
async def list_authors(
    source_type: str | None = Query(default=None, description="按平台过滤"),
    storage: StorageService = Depends(get_storage),
) -> dict:
    """作者列表."""
    return {"authors": await storage.list_authors(source_type=source_type)}


@router.get("/{content_id}")
async def get_content(
    content_id: int,
    service: CollectionService = Depends(get_service),
) -> dict:
    """获取内容详情（含 Markdown 文件内容）."""
    content = await service.storage.get_content_by_id(content_id)
    if not content:
        raise HTTPException(status_code=404, detail="内容不存在")
    return {
        **content_to_dict(content),
        "markdown": service.files.read(content.file_path),
    }


@router.delete("/{content_id}")
async def delete_content(
    content_id: int,
    service: CollectionService = Depends(get_service),
) -> dict:
    """删除内容记录和对应的 Markdown 文件."""
    content = await service.storage.get_content_by_id(content_id)
    if not content:
        raise HTTPException(status_code=404, detail="内容不存在")

    service.files.delete(content.file_path)
    await service.storage.delete_content(content_id)
    return {"id": content_id, "deleted": True}
