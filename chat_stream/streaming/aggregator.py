"""流聚合器：把一次请求的事件序列驱动到结束。

- TextAggregator（普通模式）: 按到达顺序拼接 TextDelta，并对每个增量同步回调 on_chunk。
- RagAggregator（带类型模式）: 来源列表后到者整体替换，回答文本按顺序拼接，
  见到 StreamEnd 立即结束，之后的事件忽略。

传输失败时异常原样向上抛出，聚合器不再做任何修改；回滚由调用方负责。
调用方也可以随时停止拉取，已累积的部分状态保持一致，可供检查。
"""

from typing import Callable, Iterable, List, Optional, Sequence

from chat_stream.domain.events import AnswerDelta, SourcesPayload, StreamEnd, StreamEvent, TextDelta
from chat_stream.domain.models import RagStreamResult, SearchResult


class TextAggregator:
    def __init__(self, on_chunk: Optional[Callable[[str], None]] = None):
        self._on_chunk = on_chunk
        self._pieces: List[str] = []

    @property
    def text(self) -> str:
        return "".join(self._pieces)

    @property
    def chunk_count(self) -> int:
        return len(self._pieces)

    def apply(self, event: StreamEvent) -> bool:
        if isinstance(event, TextDelta):
            self._pieces.append(event.text)
            if self._on_chunk is not None:
                self._on_chunk(event.text)
        return True

    def run(self, events: Iterable[StreamEvent]) -> str:
        for event in events:
            self.apply(event)
        return self.text


class RagAggregator:
    def __init__(
        self,
        on_sources: Optional[Callable[[Sequence[SearchResult]], None]] = None,
        on_answer: Optional[Callable[[str], None]] = None,
    ):
        self._on_sources = on_sources
        self._on_answer = on_answer
        self._answer: List[str] = []
        self.sources: List[SearchResult] = []
        self.finished = False

    @property
    def answer(self) -> str:
        return "".join(self._answer)

    def apply(self, event: StreamEvent) -> bool:
        """应用一个事件；返回 False 表示已见到 StreamEnd，不应再继续。"""

        if self.finished:
            return False
        if isinstance(event, StreamEnd):
            self.finished = True
            return False
        if isinstance(event, SourcesPayload):
            self.sources = list(event.sources)
            if self._on_sources is not None:
                self._on_sources(event.sources)
        elif isinstance(event, AnswerDelta):
            self._answer.append(event.text)
            if self._on_answer is not None:
                self._on_answer(event.text)
        return True

    def run(self, events: Iterable[StreamEvent]) -> RagStreamResult:
        for event in events:
            if not self.apply(event):
                break
        return self.result()

    def result(self) -> RagStreamResult:
        return RagStreamResult(answer=self.answer, sources=list(self.sources), completed=self.finished)
