"""路由共享的依赖."""

import asyncio

from fastapi import Request

from datacollector.core.collect import CollectionService
from datacollector.core.storage import StorageService


def get_service(request: Request) -> CollectionService:
    """应用启动时创建的采集服务."""
    return request.app.state.service


def get_storage(request: Request) -> StorageService:
    """采集服务持有的存储."""
    return get_service(request).storage


def get_collect_lock(request: Request) -> asyncio.Lock:
    """手动采集和定时采集共用的锁."""
    return request.app.state.collect_lock
