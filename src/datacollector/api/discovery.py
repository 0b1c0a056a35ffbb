"""数据源发现 API：从已登录账号列出可添加的数据源."""

from fastapi import APIRouter, Depends, HTTPException

from datacollector.api.deps import get_service
from datacollector.core.collect import CollectionService
from datacollector.core.discovery import (
    bilibili_followings,
    youtube_subscriptions,
    zsxq_groups,
)
from datacollector.core.errors import CollectorError, CredentialError

router = APIRouter(prefix="/api", tags=["discovery"])


def _http_error(error: CollectorError) -> HTTPException:
    """未登录返回 401，上游错误返回 502."""
    status_code = 401 if isinstance(error, CredentialError) else 502
    return HTTPException(status_code=status_code, detail=str(error))


@router.get("/youtube/subscriptions")
async def list_youtube_subscriptions(
    service: CollectionService = Depends(get_service),
) -> dict:
    """已订阅的 YouTube 频道."""
    try:
        channels = await youtube_subscriptions(service.http, service.credentials)
    except CollectorError as e:
        raise _http_error(e) from e
    return {"channels": [c.model_dump() for c in channels]}


@router.get("/bilibili/followings")
async def list_bilibili_followings(
    service: CollectionService = Depends(get_service),
) -> dict:
    """关注的 B站 UP 主."""
    try:
        users = await bilibili_followings(service.http, service.credentials)
    except CollectorError as e:
        raise _http_error(e) from e
    return {"users": [u.model_dump() for u in users], "total": len(users)}


@router.get("/zsxq/groups")
async def list_zsxq_groups(
    service: CollectionService = Depends(get_service),
) -> dict:
    """已加入的知识星球."""
    try:
        groups = await zsxq_groups(service.http, service.credentials)
    except CollectorError as e:
        raise _http_error(e) from e
    return {"groups": [g.model_dump() for g in groups]}
