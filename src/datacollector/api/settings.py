"""设置 API（平台登录 Cookie 等键值配置）."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from datacollector.api.deps import get_service
from datacollector.core.collect import CollectionService
from datacollector.core.credentials import CredentialStore
from datacollector.models.source import SourceType

router = APIRouter(prefix="/api/settings", tags=["settings"])

CREDENTIAL_PLATFORMS = (SourceType.BILIBILI, SourceType.ZSXQ, SourceType.YOUTUBE)


class SettingsUpdate(BaseModel):
    """批量写入配置项."""

    values: dict[str, str]


async def settings_response(service: CollectionService) -> dict:
    """所有配置项 + 各平台是否已登录."""
    settings = await service.storage.get_all_settings()
    logged_in = {
        str(platform): await service.credentials.get_credential(platform) is not None
        for platform in CREDENTIAL_PLATFORMS
    }
    return {"settings": settings, "logged_in": logged_in}


@router.get("")
async def get_all_settings(
    service: CollectionService = Depends(get_service),
) -> dict:
    """获取所有配置项."""
    return await settings_response(service)


@router.put("")
async def update_settings(
    body: SettingsUpdate,
    service: CollectionService = Depends(get_service),
) -> dict:
    """写入配置项（Cookie 更新后下次采集生效）."""
    for key, value in body.values.items():
        await service.storage.set_setting(key, value)

    # B站 Cookie 变了，wbi 密钥要重新拉
    if CredentialStore.setting_key(SourceType.BILIBILI) in body.values:
        service.wbi_signer.invalidate()

    return await settings_response(service)
