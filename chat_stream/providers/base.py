"""Provider 抽象接口。

会话层不直接依赖 httpx，而是依赖下面两个协议：

- ChatProvider: 普通对话（非流式 + 普通模式流式）。
- RagProvider: 检索增强查询（非流式 + 带类型模式流式）以及文档管理。

流式方法返回 EventCursor，调用方按需拉取事件；测试里可以用任何
返回相同形状对象的假实现替换。
"""

from pathlib import Path
from typing import Iterable, List, Optional, Protocol, Tuple, Union

from chat_stream.domain.models import (
    ChatMessage,
    ChatRequest,
    ChatResult,
    DocumentInfo,
    Message,
    RagResult,
    UploadResult,
)
from chat_stream.streaming.cursor import EventCursor


class ChatProvider(Protocol):
    name: str

    def send_message(self, req: ChatRequest) -> ChatResult:
        ...

    def stream_message(self, req: ChatRequest) -> EventCursor:
        """打开一次流式调用，事件按到达顺序从游标中拉取。"""

        ...

    def build_request(
        self,
        messages: Iterable[Union[ChatMessage, Message]],
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ChatRequest:
        ...


class RagProvider(Protocol):
    name: str

    def upload_document(self, path: Union[str, Path]) -> UploadResult:
        ...

    def get_documents(self) -> Tuple[List[DocumentInfo], int]:
        ...

    def clear_documents(self) -> None:
        ...

    def query(self, question: str) -> RagResult:
        ...

    def stream_query(self, question: str) -> EventCursor:
        ...
