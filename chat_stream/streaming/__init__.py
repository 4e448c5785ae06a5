"""流式协议层。

- frames: 把任意切分的字节/文本块还原成完整帧。
- classifier: 把帧 payload 分类为事件。
- cursor: 帧解码 + 分类的显式拉取游标。
- aggregator: 把一次请求的事件序列聚合成结果。
"""

from chat_stream.streaming.aggregator import RagAggregator, TextAggregator
from chat_stream.streaming.classifier import SENTINEL, EventClassifier, StreamMode
from chat_stream.streaming.cursor import EventCursor
from chat_stream.streaming.frames import FrameDecoder, iter_frames

__all__ = [
    "SENTINEL",
    "EventClassifier",
    "EventCursor",
    "FrameDecoder",
    "RagAggregator",
    "StreamMode",
    "TextAggregator",
    "iter_frames",
]
