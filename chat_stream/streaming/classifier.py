"""事件分类器：把单帧 payload 映射为零个或一个事件。

两种线上格式共用一个分类器，按请求类型配置：

- SIMPLE（普通生成）: {"type": "text", "text": "..."}
- TYPED（检索增强生成）: {"type": "sources", "data": [...]}、
  {"type": "answer", "data": "..."}、{"type": "done"}

规则依次为：
1. payload 等于哨兵（默认 "[DONE]"）时返回 STOP，不产生事件；
2. JSON 解析失败时记录日志并返回 None，流继续；
3. 按 type 字段映射到事件，形状不认识时返回 None（失败即关闭，不抛异常）。
"""

import json
import logging
from enum import Enum
from typing import Any, Optional, Union

from chat_stream.domain.events import (
    STOP,
    AnswerDelta,
    SourcesPayload,
    StreamEnd,
    StreamEvent,
    TextDelta,
)
from chat_stream.domain.exceptions import DecodeError
from chat_stream.domain.models import SearchResult
from chat_stream.infrastructure.logging.logger import log_event

SENTINEL = "[DONE]"

Classified = Union[StreamEvent, None, type(STOP)]


class StreamMode(str, Enum):
    SIMPLE = "simple"
    TYPED = "typed"


class EventClassifier:
    def __init__(self, mode: StreamMode, sentinel: str = SENTINEL):
        self.mode = StreamMode(mode)
        self.sentinel = sentinel
        self.malformed = 0
        self.ignored = 0

    def classify(self, payload: str) -> Classified:
        if payload == self.sentinel:
            return STOP
        try:
            data = self._decode(payload)
        except DecodeError as e:
            self.malformed += 1
            log_event(
                logging.WARNING,
                "Dropped malformed stream frame",
                {"mode": self.mode.value},
                code=e.code,
                error=e.message,
                frame=payload[:200],
            )
            return None
        if self.mode is StreamMode.SIMPLE:
            event = self._classify_simple(data)
        else:
            event = self._classify_typed(data)
        if event is None:
            self.ignored += 1
        return event

    @staticmethod
    def _decode(payload: str) -> Any:
        try:
            return json.loads(payload)
        except json.JSONDecodeError as e:
            raise DecodeError(code="MALFORMED_FRAME", message=str(e))

    @staticmethod
    def _classify_simple(data: Any) -> Optional[StreamEvent]:
        if not isinstance(data, dict) or data.get("type") != "text":
            return None
        text = data.get("text")
        if isinstance(text, str) and text:
            return TextDelta(text)
        return None

    @staticmethod
    def _classify_typed(data: Any) -> Optional[StreamEvent]:
        if not isinstance(data, dict):
            return None
        kind = data.get("type")
        if kind == "done":
            return StreamEnd()
        if kind == "answer":
            text = data.get("data")
            if isinstance(text, str) and text:
                return AnswerDelta(text)
            return None
        if kind == "sources":
            raw = data.get("data")
            if not isinstance(raw, list):
                return None
            return SourcesPayload(
                tuple(SearchResult.from_payload(item) for item in raw if isinstance(item, dict))
            )
        return None
