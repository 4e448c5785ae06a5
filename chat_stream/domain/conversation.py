"""会话状态机。

Conversation 独占一个有序消息列表，对外只暴露只读视图和下面几个写操作：

    append_user -> open_assistant -> apply_delta / apply_sources -> commit | rollback

每一轮的状态迁移为 NO_TURN -> USER_APPENDED -> ASSISTANT_OPEN -> {COMMITTED | ROLLED_BACK}。
同一时刻最多只有一条处于打开状态的助手消息；失败路径必须调用 rollback，
把这条消息整体移除，会话恢复到 open_assistant 之前的样子。
"""

import dataclasses
from contextlib import contextmanager
from enum import Enum
from typing import Iterator, List, Optional, Sequence, Tuple

from chat_stream.domain.exceptions import ProtocolViolationError, ValidationError
from chat_stream.domain.models import ChatMessage, Message, SearchResult


class TurnState(str, Enum):
    NO_TURN = "no_turn"
    USER_APPENDED = "user_appended"
    ASSISTANT_OPEN = "assistant_open"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class Conversation:
    def __init__(self, messages: Sequence[Message] = ()):
        self._messages: List[Message] = list(messages)
        self._state = TurnState.NO_TURN

    # ---- 只读视图 ----

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def last_message(self) -> Optional[Message]:
        return self._messages[-1] if self._messages else None

    @property
    def is_turn_open(self) -> bool:
        return self._state is TurnState.ASSISTANT_OPEN

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.messages)

    def history(self) -> List[ChatMessage]:
        """已完成消息的 role/content 列表，用作下一次请求的上下文。"""

        msgs = self._messages[:-1] if self.is_turn_open else self._messages
        return [ChatMessage(role=m.role, content=m.content) for m in msgs]

    # ---- 写操作 ----

    def append_user(self, text: str) -> Message:
        if not text or not text.strip():
            raise ValidationError(code="EMPTY_INPUT", message="Message text must not be empty")
        self._ensure_not_open("append_user")
        msg = Message.create("user", text)
        self._messages.append(msg)
        self._state = TurnState.USER_APPENDED
        return msg

    def open_assistant(self) -> Message:
        self._ensure_not_open("open_assistant")
        msg = Message.create("assistant")
        self._messages.append(msg)
        self._state = TurnState.ASSISTANT_OPEN
        return msg

    def apply_delta(self, text: str) -> Message:
        current = self._open_message("apply_delta")
        return self._replace_open(dataclasses.replace(current, content=current.content + text))

    def apply_sources(self, sources: Sequence[SearchResult]) -> Message:
        current = self._open_message("apply_sources")
        return self._replace_open(dataclasses.replace(current, sources=tuple(sources)))

    def commit(self) -> str:
        current = self._open_message("commit")
        self._state = TurnState.COMMITTED
        return current.content

    def rollback(self) -> Message:
        current = self._open_message("rollback")
        self._messages.pop()
        self._state = TurnState.ROLLED_BACK
        return current

    def clear(self) -> None:
        self._ensure_not_open("clear")
        self._messages.clear()
        self._state = TurnState.NO_TURN

    @contextmanager
    def assistant_turn(self) -> Iterator[Message]:
        """打开一轮助手回复：正常退出时提交，任何异常（含 GeneratorExit）都回滚后重新抛出。"""

        msg = self.open_assistant()
        try:
            yield msg
        except BaseException:
            if self.is_turn_open:
                self.rollback()
            raise
        if self.is_turn_open:
            self.commit()

    # ---- 内部 ----

    def _ensure_not_open(self, op: str) -> None:
        if self.is_turn_open:
            raise ProtocolViolationError(
                code="TURN_ALREADY_OPEN",
                message=f"{op} called while an assistant turn is open",
                operation=op,
            )

    def _open_message(self, op: str) -> Message:
        if not self.is_turn_open:
            raise ProtocolViolationError(
                code="NO_OPEN_TURN",
                message=f"{op} called without an open assistant turn",
                operation=op,
                state=self._state.value,
            )
        return self._messages[-1]

    def _replace_open(self, msg: Message) -> Message:
        self._messages[-1] = msg
        return msg
