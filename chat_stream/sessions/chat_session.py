"""普通对话会话。

ChatSession 把 ChatProvider 与 Conversation 组合起来：

- send_message / stream_message: 无状态调用，传入完整消息列表，返回回答文本。
- ask / ask_stream: 在 self.conversation 上跑完整的一轮：追加用户消息、打开助手消息、
  逐个应用增量、成功时提交；任何失败或提前关闭都回滚助手消息后再抛出。

is_loading / error 两个字段供 UI 展示使用。
"""

import logging
from typing import Callable, Iterable, Iterator, Optional, Union

from chat_stream.domain.conversation import Conversation
from chat_stream.domain.events import TextDelta
from chat_stream.domain.models import ChatMessage, Message
from chat_stream.infrastructure.logging.logger import log_event
from chat_stream.providers.base import ChatProvider
from chat_stream.streaming.aggregator import TextAggregator


class ChatSession:
    def __init__(
        self,
        client: ChatProvider,
        conversation: Optional[Conversation] = None,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ):
        self._client = client
        self.conversation = conversation if conversation is not None else Conversation()
        self.system_prompt = system_prompt
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.is_loading = False
        self.error: Optional[str] = None

    # ---- 无状态调用 ----

    def send_message(
        self,
        messages: Iterable[Union[ChatMessage, Message]],
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        req = self._client.build_request(
            messages,
            system_prompt=system_prompt or self.system_prompt,
            temperature=self._pick(temperature, self.temperature),
            max_tokens=max_tokens or self.max_tokens,
        )
        self.error = None
        self.is_loading = True
        try:
            return self._client.send_message(req).text
        except Exception as e:
            self._fail("Error sending message", e)
            raise
        finally:
            self.is_loading = False

    def stream_message(
        self,
        messages: Iterable[Union[ChatMessage, Message]],
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        on_chunk: Optional[Callable[[str], None]] = None,
    ) -> str:
        req = self._client.build_request(
            messages,
            system_prompt=system_prompt or self.system_prompt,
            temperature=self._pick(temperature, self.temperature),
            max_tokens=max_tokens or self.max_tokens,
        )
        self.error = None
        self.is_loading = True
        try:
            with self._client.stream_message(req) as cursor:
                return TextAggregator(on_chunk=on_chunk).run(cursor)
        except Exception as e:
            self._fail("Error streaming message", e)
            raise
        finally:
            self.is_loading = False

    # ---- 会话轮次 ----

    def ask(
        self,
        text: str,
        on_chunk: Optional[Callable[[str], None]] = None,
        stream: bool = True,
    ) -> Message:
        """跑完整的一轮并返回已提交的助手消息。"""

        if not stream:
            return self._ask_once(text)
        deltas = self.ask_stream(text)
        try:
            for delta in deltas:
                if on_chunk is not None:
                    on_chunk(delta)
        finally:
            # 回调抛错时生成器停在 yield 处，必须显式关闭以触发回滚
            deltas.close()
        return self.conversation.messages[-1]

    def ask_stream(self, text: str) -> Iterator[str]:
        """逐个产出助手回答的增量文本。

        生成器在第一次迭代时才追加用户消息；调用方提前关闭生成器视为取消，
        打开的助手消息会被回滚。
        """

        conv = self.conversation
        conv.append_user(text)
        req = self._build_turn_request()
        self.error = None
        self.is_loading = True
        log_ctx = {"session": "chat"}
        try:
            with conv.assistant_turn() as msg:
                log_ctx["message_id"] = msg.id
                with self._client.stream_message(req) as cursor:
                    aggregator = TextAggregator(on_chunk=conv.apply_delta)
                    for event in cursor:
                        aggregator.apply(event)
                        if isinstance(event, TextDelta):
                            yield event.text
            log_event(logging.INFO, "Turn committed", log_ctx, chunks=aggregator.chunk_count)
        except GeneratorExit:
            log_event(logging.WARNING, "Turn cancelled, rolled back", log_ctx)
            raise
        except Exception as e:
            self._fail("Turn failed, rolled back", e, log_ctx)
            raise
        finally:
            self.is_loading = False

    def clear(self) -> None:
        self.conversation.clear()
        self.error = None

    # ---- 辅助方法 ----

    def _ask_once(self, text: str) -> Message:
        conv = self.conversation
        conv.append_user(text)
        req = self._build_turn_request()
        self.error = None
        self.is_loading = True
        try:
            with conv.assistant_turn():
                conv.apply_delta(self._client.send_message(req).text)
        except Exception as e:
            self._fail("Turn failed, rolled back", e, {"session": "chat"})
            raise
        finally:
            self.is_loading = False
        return conv.messages[-1]

    def _build_turn_request(self):
        return self._client.build_request(
            self.conversation.history(),
            system_prompt=self.system_prompt,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

    def _fail(self, message: str, error: Exception, log_ctx: Optional[dict] = None) -> None:
        self.error = getattr(error, "message", None) or str(error) or "Unknown error"
        log_event(
            logging.ERROR,
            message,
            log_ctx or {"session": "chat"},
            error_type=type(error).__name__,
            code=getattr(error, "code", None),
            error=self.error,
        )

    @staticmethod
    def _pick(value: Optional[float], default: Optional[float]) -> Optional[float]:
        return default if value is None else value
