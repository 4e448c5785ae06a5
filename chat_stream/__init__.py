"""chat_stream 顶层包。

该包实现文本生成服务的客户端核心：把分块到达的事件流解码为帧、
分类为事件、聚合为结果，并在会话状态机上完成一轮对话的
追加、提交与失败回滚。传输基于 httpx，配置与日志见 config / infrastructure。
"""

from chat_stream.domain.conversation import Conversation, TurnState
from chat_stream.providers import create_provider
from chat_stream.providers.chat_client import ChatClient
from chat_stream.providers.rag_client import RagClient
from chat_stream.sessions.chat_session import ChatSession
from chat_stream.sessions.rag_session import RagSession

__all__ = [
    "ChatClient",
    "ChatSession",
    "Conversation",
    "RagClient",
    "RagSession",
    "TurnState",
    "create_provider",
]
