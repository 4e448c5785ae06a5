"""流式事件模型。

事件是由单帧 payload 分类得到的封闭变体集合：

- TextDelta: 普通模式的文本增量，按到达顺序拼接。
- SourcesPayload: 带类型模式的来源列表，后到的整体替换先到的。
- AnswerDelta: 带类型模式的回答增量，按到达顺序拼接。
- StreamEnd: 带类型模式的显式结束标记，之后的帧一律忽略。
"""

from dataclasses import dataclass
from typing import Tuple, Union

from chat_stream.domain.models import SearchResult


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class SourcesPayload:
    sources: Tuple[SearchResult, ...]


@dataclass(frozen=True)
class AnswerDelta:
    text: str


@dataclass(frozen=True)
class StreamEnd:
    pass


StreamEvent = Union[TextDelta, SourcesPayload, AnswerDelta, StreamEnd]


class _Marker:
    """流控制标记，不是事件。"""

    def __init__(self, name: str):
        self._name = name

    def __repr__(self) -> str:
        return self._name


# 分类器见到哨兵 payload 时返回，表示调用方应停止读取后续帧
STOP = _Marker("STOP")

# EventCursor.next_event() 在流自然结束时返回
END_OF_STREAM = _Marker("END_OF_STREAM")
