"""事件游标：帧解码 + 事件分类的显式拉取接口。

调用方每次 next_event() 拉取一个事件，游标按需从底层块序列读取，
整条链路是严格顺序的，没有后台执行。返回值只有三种可能：

- 一个 StreamEvent；
- END_OF_STREAM：流自然结束、见到哨兵或已经返回过 StreamEnd；
- 抛出 TransportError：底层传输失败。

见到哨兵或 StreamEnd 之后不再读取任何帧，并关闭底层块序列。
"""

from collections import deque
from typing import Deque, Iterable, Iterator, Optional, Union

from chat_stream.domain.events import END_OF_STREAM, STOP, StreamEnd, StreamEvent
from chat_stream.domain.exceptions import TransportError
from chat_stream.streaming.classifier import SENTINEL, EventClassifier, StreamMode
from chat_stream.streaming.frames import Chunk, FrameDecoder


class EventCursor:
    def __init__(
        self,
        chunks: Iterable[Chunk],
        mode: StreamMode,
        sentinel: str = SENTINEL,
        require_terminator: bool = False,
    ):
        self._source = chunks
        self._chunks: Iterator[Chunk] = iter(chunks)
        self._decoder = FrameDecoder()
        self._classifier = EventClassifier(mode, sentinel)
        self._pending: Deque[str] = deque()
        self._require_terminator = require_terminator
        self._done = False
        self.saw_terminator = False
        self.events_emitted = 0

    @property
    def mode(self) -> StreamMode:
        return self._classifier.mode

    @property
    def malformed_frames(self) -> int:
        return self._classifier.malformed

    @property
    def exhausted(self) -> bool:
        return self._done

    def next_event(self) -> Union[StreamEvent, object]:
        while not self._done:
            while self._pending:
                result = self._classifier.classify(self._pending.popleft())
                if result is None:
                    continue
                if result is STOP:
                    self._terminate()
                    return END_OF_STREAM
                if isinstance(result, StreamEnd):
                    self._terminate()
                self.events_emitted += 1
                return result
            chunk = self._read_chunk()
            if chunk is None:
                break
            self._pending.extend(self._decoder.feed(chunk))
        return END_OF_STREAM

    def close(self) -> None:
        self._done = True
        self._pending.clear()
        close = getattr(self._source, "close", None)
        if callable(close):
            close()

    def __iter__(self) -> "EventCursor":
        return self

    def __next__(self) -> StreamEvent:
        event = self.next_event()
        if event is END_OF_STREAM:
            raise StopIteration
        return event

    def __enter__(self) -> "EventCursor":
        return self

    def __exit__(self, *exc) -> bool:
        self.close()
        return False

    def _read_chunk(self) -> Optional[Chunk]:
        try:
            return next(self._chunks)
        except StopIteration:
            self._done = True
            self._decoder.finish()
            if self._require_terminator and not self.saw_terminator:
                raise TransportError(
                    code="STREAM_TRUNCATED",
                    message="Stream ended before its terminator",
                    http_status=502,
                    mode=self.mode.value,
                )
            return None
        except BaseException:
            self._done = True
            raise

    def _terminate(self) -> None:
        self.saw_terminator = True
        self.close()
