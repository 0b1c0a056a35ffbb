"""登录凭证读取."""

from datacollector.core.storage import StorageService
from datacollector.models.source import SourceType


class CredentialStore:
    """平台 Cookie 存在配置表里（``bilibili_cookie`` 等），由外部登录流程写入，这里只读."""

    def __init__(self, storage: StorageService) -> None:
        self.storage = storage

    @staticmethod
    def setting_key(platform: SourceType | str) -> str:
        """平台对应的配置键."""
        return f"{SourceType(platform).value}_cookie"

    async def get_credential(self, platform: SourceType | str) -> str | None:
        """读取平台凭证，空字符串视为未登录."""
        value = await self.storage.get_setting(self.setting_key(platform))
        if value is None or not value.strip():
            return None
        return value.strip()
