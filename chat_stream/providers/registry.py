"""服务端点配置。

把“逻辑端点名”与具体 URL 路径、流式协议模式解耦：

- 逻辑名（name）：代码里使用的统一名称，例如 "chat"、"rag"。
- path / stream_path：非流式与流式调用的路径，挂在 settings.api_base_url 之下。
- mode：流式响应使用的协议模式，决定分类器如何解释帧。

上层只关心逻辑名，路径或协议变化集中在这里修改。"""

from dataclasses import dataclass
from typing import Mapping

from chat_stream.streaming.classifier import StreamMode


@dataclass(frozen=True)
class EndpointConfig:
    """单个逻辑端点的配置。"""

    name: str
    path: str
    stream_path: str
    mode: StreamMode


CHAT_ENDPOINT = EndpointConfig(
    name="chat",
    path="/api/chat",
    stream_path="/api/chat/stream",
    mode=StreamMode.SIMPLE,
)

RAG_ENDPOINT = EndpointConfig(
    name="rag",
    path="/api/rag/query",
    stream_path="/api/rag/query/stream",
    mode=StreamMode.TYPED,
)

# RAG 文档管理
RAG_UPLOAD_PATH = "/api/rag/upload"
RAG_DOCUMENTS_PATH = "/api/rag/documents"


ENDPOINT_REGISTRY: Mapping[str, EndpointConfig] = {
    "chat": CHAT_ENDPOINT,
    "rag": RAG_ENDPOINT,
}


def get_endpoint(name: str) -> EndpointConfig:
    """根据名称获取 EndpointConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in ENDPOINT_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown endpoint: {name!r}")
