"""采集器工厂."""

from datacollector.collectors.base import BaseCollector, CollectorContext
from datacollector.collectors.bilibili import BilibiliCollector
from datacollector.collectors.rss import RssCollector
from datacollector.collectors.web import WebCollector
from datacollector.collectors.youtube import YouTubeCollector
from datacollector.collectors.zsxq import ZsxqCollector
from datacollector.models.source import Source, SourceType

COLLECTORS: dict[SourceType, type[BaseCollector]] = {
    SourceType.BILIBILI: BilibiliCollector,
    SourceType.YOUTUBE: YouTubeCollector,
    SourceType.ZSXQ: ZsxqCollector,
    SourceType.RSS: RssCollector,
    SourceType.WEB: WebCollector,
}


def create_collector(source: Source, context: CollectorContext) -> BaseCollector:
    """
    根据数据源类型创建采集器.

    Args:
        source: 数据源
        context: 共享依赖

    Returns:
        采集器实例

    Raises:
        ValueError: 不支持的数据源类型
    """
    try:
        kind = SourceType(source.type)
    except ValueError as e:
        msg = f"不支持的数据源类型: {source.type}"
        raise ValueError(msg) from e
    return COLLECTORS[kind](source, context)
