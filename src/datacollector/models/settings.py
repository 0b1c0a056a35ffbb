"""Settings 键值存储模型（登录凭证、迁移标记等）."""

from sqlmodel import Field, SQLModel


class SettingItem(SQLModel, table=True):
    """配置项."""

    __tablename__ = "settings"  # type: ignore[assignment]

    key: str = Field(primary_key=True, description="配置键，如 bilibili_cookie")
    value: str = Field(description="配置值")
