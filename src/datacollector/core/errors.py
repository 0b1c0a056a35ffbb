"""采集相关异常."""


class CollectorError(Exception):
    """采集错误基类."""


class CredentialError(CollectorError):
    """登录凭证缺失或失效，需要用户重新登录."""


class TransientNetworkError(CollectorError):
    """网络错误，重试耗尽后抛出."""


class ResponseShapeError(CollectorError):
    """上游返回结构与预期不符."""


class SourceNotFoundError(Exception):
    """数据源不存在."""

    def __init__(self, source_id: int) -> None:
        super().__init__(f"数据源不存在: {source_id}")
        self.source_id = source_id
