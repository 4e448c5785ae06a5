"""生成服务集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护端点路径与流式协议模式 (registry)。
- 基于 httpx 的传输与错误映射 (transport)。
- 普通对话与 RAG 的具体客户端 (chat_client、rag_client)。
"""

from typing import Optional, Union

import httpx

from chat_stream.config.settings import settings
from chat_stream.providers.base import ChatProvider, RagProvider
from chat_stream.providers.chat_client import ChatClient
from chat_stream.providers.rag_client import RagClient
from chat_stream.providers.registry import get_endpoint
from chat_stream.providers.transport import HttpTransport
from chat_stream.streaming.classifier import StreamMode


def create_provider(
    name: str = "chat",
    cfg=None,
    transport: Optional[httpx.BaseTransport] = None,
) -> Union[ChatProvider, RagProvider]:
    """根据逻辑端点名创建客户端实例；cfg 默认取全局配置。

    端点的流式协议模式决定客户端类型：带类型模式对应 RagClient，普通模式对应 ChatClient。
    未注册的名称抛出 KeyError。
    """

    endpoint = get_endpoint(name)
    cfg = cfg or settings
    http = HttpTransport(cfg, transport=transport)
    if endpoint.mode is StreamMode.TYPED:
        return RagClient(cfg, http=http, endpoint=endpoint)
    return ChatClient(cfg, http=http, endpoint=endpoint)
