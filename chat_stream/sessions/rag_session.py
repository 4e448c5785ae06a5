"""RAG 会话。

RagSession 维护一段带来源的问答会话和服务端文档列表：

- ask_question: 追加问题、打开助手消息，按带类型模式消费流：
  sources 整体替换消息来源，answer 追加到消息内容，done 结束本轮。
  任何失败都先移除未完成的助手消息再抛出。
- upload_document / load_documents / clear_all_documents: 文档管理。
"""

import logging
from pathlib import Path
from typing import Iterator, List, Optional, Union

from chat_stream.domain.conversation import Conversation
from chat_stream.domain.events import StreamEvent
from chat_stream.domain.exceptions import BusinessError
from chat_stream.domain.models import DocumentInfo, Message, UploadResult
from chat_stream.infrastructure.logging.logger import log_event
from chat_stream.providers.base import RagProvider
from chat_stream.streaming.aggregator import RagAggregator


class RagSession:
    def __init__(self, client: RagProvider, conversation: Optional[Conversation] = None):
        self._client = client
        self.conversation = conversation if conversation is not None else Conversation()
        self.uploaded_files: List[DocumentInfo] = []
        self.is_uploading = False
        self.is_querying = False
        self.error: Optional[str] = None

    @property
    def messages(self):
        return self.conversation.messages

    @property
    def has_documents(self) -> bool:
        return len(self.uploaded_files) > 0

    @property
    def total_chunks(self) -> int:
        return sum(f.chunks for f in self.uploaded_files)

    # ---- 文档管理 ----

    def upload_document(self, path: Union[str, Path]) -> UploadResult:
        self.is_uploading = True
        self.error = None
        try:
            result = self._client.upload_document(path)
            self.load_documents()
            return result
        except Exception as e:
            self._fail("Upload failed", e)
            raise
        finally:
            self.is_uploading = False

    def load_documents(self) -> List[DocumentInfo]:
        """刷新文档列表；失败只记录日志，保留原列表。"""

        try:
            files, _ = self._client.get_documents()
        except BusinessError as e:
            log_event(logging.ERROR, "Failed to load documents", {"session": "rag"}, code=e.code, error=e.message)
            return self.uploaded_files
        self.uploaded_files = files
        return files

    def clear_all_documents(self) -> None:
        try:
            self._client.clear_documents()
        except Exception as e:
            self._fail("Failed to clear documents", e)
            raise
        self.uploaded_files = []
        self.conversation.clear()

    def clear_messages(self) -> None:
        self.conversation.clear()

    # ---- 问答 ----

    def ask_question(self, question: str, stream: bool = True) -> Message:
        """跑完整的一轮问答并返回已提交的助手消息。"""

        if not stream:
            return self._ask_once(question)
        events = self.ask_question_stream(question)
        try:
            for _ in events:
                pass
        finally:
            events.close()
        return self.conversation.messages[-1]

    def ask_question_stream(self, question: str) -> Iterator[StreamEvent]:
        """逐个产出本轮已应用到会话上的事件；提前关闭生成器会回滚本轮。

        StreamEnd 在本轮提交之后才产出，调用方见到它时助手消息已不可变，
        此后关闭生成器不会再回滚。
        """

        conv = self.conversation
        conv.append_user(question)
        self.error = None
        self.is_querying = True
        log_ctx = {"session": "rag"}
        end_event: Optional[StreamEvent] = None
        try:
            with conv.assistant_turn() as msg:
                log_ctx["message_id"] = msg.id
                aggregator = RagAggregator(on_sources=conv.apply_sources, on_answer=conv.apply_delta)
                with self._client.stream_query(question) as cursor:
                    for event in cursor:
                        if not aggregator.apply(event):
                            end_event = event
                            break
                        yield event
            log_event(
                logging.INFO,
                "Turn committed",
                log_ctx,
                sources=len(aggregator.sources),
                completed=aggregator.finished,
            )
        except GeneratorExit:
            log_event(logging.WARNING, "Turn cancelled, rolled back", log_ctx)
            raise
        except Exception as e:
            self._fail("Query failed, rolled back", e, log_ctx)
            raise
        finally:
            self.is_querying = False
        if end_event is not None:
            yield end_event

    # ---- 辅助方法 ----

    def _ask_once(self, question: str) -> Message:
        conv = self.conversation
        conv.append_user(question)
        self.error = None
        self.is_querying = True
        try:
            with conv.assistant_turn():
                result = self._client.query(question)
                conv.apply_sources(result.sources)
                conv.apply_delta(result.answer)
        except Exception as e:
            self._fail("Query failed, rolled back", e)
            raise
        finally:
            self.is_querying = False
        return conv.messages[-1]

    def _fail(self, message: str, error: Exception, log_ctx: Optional[dict] = None) -> None:
        self.error = getattr(error, "message", None) or str(error) or "Unknown error"
        log_event(
            logging.ERROR,
            message,
            log_ctx or {"session": "rag"},
            error_type=type(error).__name__,
            code=getattr(error, "code", None),
            error=self.error,
        )
