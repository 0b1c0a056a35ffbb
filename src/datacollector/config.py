"""应用配置管理."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class Settings(BaseSettings):
    """应用配置（环境变量）."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # 数据目录：数据库、Markdown 文件、索引都放在这里
    data_dir: str = "./data"

    # 定时采集
    scheduler_enabled: bool = True
    collect_interval_minutes: int = 60

    # 网络请求
    http_timeout_seconds: float = 30.0
    http_max_attempts: int = 3
    http_backoff_seconds: float = 1.0
    user_agent: str = DEFAULT_USER_AGENT

    # 增量采集
    default_max_items: int = 50
    first_run_max_pages: int = 5
    incremental_max_pages: int = 10

    # B站 wbi 密钥缓存时间
    wbi_key_ttl_seconds: int = 3600

    @property
    def data_path(self) -> Path:
        """数据目录的绝对路径."""
        return Path(self.data_dir).expanduser().resolve()


@lru_cache
def get_settings() -> Settings:
    """获取应用配置（带缓存）."""
    return Settings()
