"""带重试和超时的 HTTP 客户端."""

import logging
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from datacollector.config import DEFAULT_USER_AGENT
from datacollector.core.errors import (
    CollectorError,
    CredentialError,
    TransientNetworkError,
)

logger = logging.getLogger(__name__)


class RetryableStatusError(Exception):
    """5xx 响应，可重试."""

    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"HTTP {response.status_code} {response.reason_phrase}")
        self.response = response


class HttpFetcher:
    """异步 HTTP 客户端.

    - 每次请求最多尝试 ``max_attempts`` 次，指数退避（1s, 2s, ...）；
    - 只有超时、连接错误和 5xx 会重试；
    - 404 不重试，直接返回给调用方（用于触发回退策略）；
    - 401/403 立即抛出 ``CredentialError``，其他 4xx 立即抛出 ``CollectorError``；
    - 重试耗尽后抛出 ``TransientNetworkError``。
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = 30.0,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
        )
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.user_agent = user_agent

    async def close(self) -> None:
        """关闭客户端."""
        await self._client.aclose()

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            f"请求失败，第 {retry_state.attempt_number} 次重试前等待: {exc}"
        )

    async def request(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """发送请求，返回 2xx 或 404 响应."""
        headers = {"User-Agent": self.user_agent}
        headers.update(kwargs.pop("headers", None) or {})

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_seconds, max=30),
            retry=retry_if_exception_type((httpx.TransportError, RetryableStatusError)),
            before_sleep=self._log_retry,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._client.request(
                        method, url, headers=headers, **kwargs
                    )
                    if response.is_success or response.status_code == 404:
                        return response
                    if response.status_code >= 500:
                        raise RetryableStatusError(response)
                    self._raise_client_error(response, url)
        except RetryableStatusError as e:
            msg = f"{e} ({url})"
            raise TransientNetworkError(msg) from e
        except httpx.TransportError as e:
            msg = f"网络请求失败（重试 {self.max_attempts} 次）: {e!r} ({url})"
            raise TransientNetworkError(msg) from e

        msg = f"请求失败: {url}"
        raise TransientNetworkError(msg)

    @staticmethod
    def _raise_client_error(response: httpx.Response, url: str) -> None:
        status = f"HTTP {response.status_code} {response.reason_phrase}"
        if response.status_code in (401, 403):
            msg = f"{status}: 登录凭证缺失或已失效，请重新登录 ({url})"
            raise CredentialError(msg)
        msg = f"{status} ({url})"
        raise CollectorError(msg)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """GET 请求."""
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        """POST 请求."""
        return await self.request("POST", url, **kwargs)

    async def get_json(self, url: str, **kwargs: Any) -> Any:
        """GET 请求并解析 JSON，404 返回 None."""
        response = await self.get(url, **kwargs)
        if response.status_code == 404:
            return None
        return response.json()
