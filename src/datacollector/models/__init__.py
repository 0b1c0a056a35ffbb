"""数据模型."""

from datacollector.models.content import Content
from datacollector.models.settings import SettingItem
from datacollector.models.source import Source, SourceType
from datacollector.models.task import Task, TaskStatus

__all__ = [
    "Content",
    "SettingItem",
    "Source",
    "SourceType",
    "Task",
    "TaskStatus",
]
