"""基于 httpx 的传输层。

HttpTransport 是调用方显式构造并传给客户端的值，不存在模块级单例。
它只负责三件事：发请求、把 httpx 异常和非 2xx 状态映射为 TransportError、
以及把流式响应体按到达顺序交出原始字节块。
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

import httpx

from chat_stream.config.settings import settings
from chat_stream.domain.exceptions import ApiError, NetworkError, RateLimitError
from chat_stream.infrastructure.logging.logger import log_event


class HttpTransport:
    def __init__(self, cfg=settings, transport: Optional[httpx.BaseTransport] = None):
        self._settings = cfg
        self._transport = transport

    @property
    def settings(self):
        return self._settings

    def url(self, path: str) -> str:
        base = getattr(self._settings, "api_base_url", None) or "http://localhost:3001"
        return f"{base.rstrip('/')}{path}"

    # ---- 非流式 ----

    def request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        resp = self.request(method, path, **kwargs)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            log_event(logging.ERROR, "Service returned invalid JSON", {"endpoint": path}, error=str(e))
            raise ApiError(
                code="INVALID_RESPONSE",
                message=f"Invalid JSON response: {e}",
                http_status=502,
                endpoint=path,
            )

    def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = self.url(path)
        try:
            with self._client() as client:
                resp = client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            self._log_failure(method, path, e)
            raise NetworkError(code="NETWORK_ERROR", message=str(e), endpoint=path)
        self.raise_for_status(resp, path)
        return resp

    # ---- 流式 ----

    def stream(self, path: str, payload: Dict[str, Any]) -> Iterator[bytes]:
        """POST 并逐块产出响应体字节；连接或读流失败时抛出 NetworkError。"""

        url = self.url(path)
        try:
            with self._client() as client:
                with client.stream(
                    "POST",
                    url,
                    json=payload,
                    headers={"Content-Type": "application/json", "Accept": "text/event-stream"},
                ) as resp:
                    self.raise_for_status(resp, path, streamed=True)
                    for chunk in resp.iter_bytes():
                        if chunk:
                            yield chunk
        except httpx.RequestError as e:
            self._log_failure("POST", path, e)
            raise NetworkError(code="NETWORK_ERROR", message=str(e), endpoint=path)

    # ---- 辅助方法 ----

    @contextmanager
    def _client(self) -> Iterator[httpx.Client]:
        kwargs: Dict[str, Any] = {"timeout": self._settings.http_timeout, "trust_env": False}
        if self._transport is not None:
            kwargs["transport"] = self._transport
        with httpx.Client(**kwargs) as client:
            yield client

    def raise_for_status(self, resp: httpx.Response, path: str, streamed: bool = False) -> None:
        if resp.status_code < 400:
            return
        if streamed:
            resp.read()
        detail = self._error_detail(resp)
        log_event(
            logging.ERROR,
            "Service returned error status",
            {"endpoint": path},
            http_status=resp.status_code,
            error=detail,
        )
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message=detail, http_status=429, endpoint=path)
        raise ApiError(
            code="API_ERROR",
            message=f"API Error: {detail}",
            http_status=resp.status_code,
            endpoint=path,
        )

    @staticmethod
    def _error_detail(resp: httpx.Response) -> str:
        try:
            data = resp.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and data.get("error"):
            return str(data["error"])
        return getattr(resp, "reason_phrase", "") or f"HTTP {resp.status_code}"

    @staticmethod
    def _log_failure(method: str, path: str, error: Exception) -> None:
        log_event(
            logging.ERROR,
            "Transport failure",
            {"endpoint": path},
            method=method,
            error_type=type(error).__name__,
            error=str(error),
        )
