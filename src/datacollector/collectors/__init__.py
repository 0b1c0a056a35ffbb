"""各平台采集器."""

from datacollector.collectors.base import (
    BaseCollector,
    CollectedItem,
    CollectorContext,
    FetchResult,
)
from datacollector.collectors.factory import create_collector

__all__ = [
    "BaseCollector",
    "CollectedItem",
    "CollectorContext",
    "FetchResult",
    "create_collector",
]
