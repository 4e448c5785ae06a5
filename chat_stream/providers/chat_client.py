"""普通对话客户端。

- 非流式: POST {base}/api/chat，响应为 {id, model, content: [{type, text}], stop_reason, usage}。
- 流式: POST {base}/api/chat/stream，响应为 "data: {json}" 帧序列，
  payload 形如 {"type": "text", "text": "..."}，以 "data: [DONE]" 结束。

请求体只依赖公共字段：messages/system/temperature/max_tokens。
"""

import logging
from typing import Any, Dict, Iterable, Optional, Union

from chat_stream.config.settings import settings
from chat_stream.domain.models import (
    ChatMessage,
    ChatRequest,
    ChatResult,
    ChatUsage,
    ContentBlock,
    Message,
)
from chat_stream.infrastructure.logging.logger import log_event
from chat_stream.providers.registry import CHAT_ENDPOINT, EndpointConfig
from chat_stream.providers.transport import HttpTransport
from chat_stream.streaming.cursor import EventCursor


class ChatClient:
    """生成服务的普通对话客户端。"""

    name = "chat"

    def __init__(self, cfg=settings, http: Optional[HttpTransport] = None, endpoint: EndpointConfig = CHAT_ENDPOINT):
        self._settings = cfg
        self._http = http or HttpTransport(cfg)
        self._endpoint = endpoint

    # ---- 非流式 ----

    def send_message(self, req: ChatRequest) -> ChatResult:
        payload = self._build_payload(req)
        log_event(logging.INFO, "Calling service", {"endpoint": self._endpoint.path}, message_count=len(req.messages))
        data = self._http.request_json("POST", self._endpoint.path, json=payload) or {}
        return self._parse_response(data)

    # ---- 流式 ----

    def stream_message(self, req: ChatRequest) -> EventCursor:
        """打开一次流式调用，返回普通模式的事件游标。

        请求在第一次拉取事件时才真正发出，传输错误从 next_event() 抛出。
        """

        payload = self._build_payload(req)
        log_event(
            logging.INFO,
            "Calling service (stream)",
            {"endpoint": self._endpoint.stream_path},
            message_count=len(req.messages),
        )
        return EventCursor(
            self._http.stream(self._endpoint.stream_path, payload),
            self._endpoint.mode,
            sentinel=getattr(self._settings, "stream_sentinel", "[DONE]"),
            require_terminator=getattr(self._settings, "require_terminator", False),
        )

    # ---- 辅助方法 ----

    def build_request(
        self,
        messages: Iterable[Union[ChatMessage, Message]],
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ChatRequest:
        return ChatRequest(
            messages=[ChatMessage(role=m.role, content=m.content) for m in messages],
            system=system_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    def _build_payload(self, req: ChatRequest) -> Dict[str, Any]:
        temperature = req.temperature
        if temperature is None:
            temperature = getattr(self._settings, "default_temperature", 0.7)
        max_tokens = req.max_tokens or getattr(self._settings, "default_max_tokens", 4096)
        payload: Dict[str, Any] = {
            "messages": [{"role": m.role, "content": m.content} for m in req.messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if req.system:
            payload["system"] = req.system
        return payload

    @staticmethod
    def _parse_response(data: Dict[str, Any]) -> ChatResult:
        blocks = []
        for raw in data.get("content") or []:
            if not isinstance(raw, dict):
                continue
            blocks.append(ContentBlock(type=str(raw.get("type") or ""), text=str(raw.get("text") or "")))
        usage_raw = data.get("usage") or {}
        usage = None
        if usage_raw:
            usage = ChatUsage(
                input_tokens=usage_raw.get("input_tokens", 0),
                output_tokens=usage_raw.get("output_tokens", 0),
            )
        return ChatResult(
            id=str(data.get("id") or ""),
            model=str(data.get("model") or ""),
            content=blocks,
            stop_reason=data.get("stop_reason"),
            usage=usage,
            raw=data,
        )
