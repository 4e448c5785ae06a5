"""统一的消息与请求/响应数据模型。

- Message: 会话中的一条消息（user/assistant），由 Conversation 独占。
- SearchResult: RAG 检索命中，作为助手消息的来源列表。
- ChatMessage / ChatRequest: 发给生成服务的请求体。
- ChatResult / RagResult: 非流式调用解析后的统一结果。
- UploadResult / DocumentInfo: RAG 文档管理接口的返回值。

Provider 客户端只依赖这些模型，并负责在服务端 JSON 与模型之间做转换。
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Tuple
from uuid import uuid4


# 会话消息角色
Role = Literal["user", "assistant"]


def new_message_id() -> str:
    return f"m-{uuid4().hex}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SearchMetadata:
    """检索命中的来源信息。"""

    source: str
    filename: str
    uploaded_at: str = ""
    page: Optional[int] = None


@dataclass(frozen=True)
class SearchResult:
    """一条检索命中。

    - content: 命中的文本片段。
    - metadata: 来源文件信息。
    - score: 相关度得分。
    - extra: 服务端返回但本模型未建模的字段，原样保留。
    """

    content: str
    metadata: SearchMetadata
    score: float
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "SearchResult":
        meta_raw = payload.get("metadata") or {}
        page = meta_raw.get("page")
        metadata = SearchMetadata(
            source=str(meta_raw.get("source") or ""),
            filename=str(meta_raw.get("filename") or ""),
            uploaded_at=str(meta_raw.get("uploadedAt") or meta_raw.get("uploaded_at") or ""),
            page=page if isinstance(page, int) else None,
        )
        score = payload.get("score")
        known = {"content", "metadata", "score"}
        return cls(
            content=str(payload.get("content") or ""),
            metadata=metadata,
            score=float(score) if isinstance(score, (int, float)) else 0.0,
            extra={k: v for k, v in payload.items() if k not in known},
        )


@dataclass(frozen=True)
class Message:
    """会话中的一条消息。

    消息本身不可变：助手消息流式增长时，Conversation 用更新后的副本
    替换末尾元素，而不是原地修改，因此轮次提交后任何持有者看到的内容都不会再变。
    """

    id: str
    role: Role
    content: str
    timestamp: datetime
    sources: Optional[Tuple[SearchResult, ...]] = None

    @classmethod
    def create(cls, role: Role, content: str = "") -> "Message":
        return cls(id=new_message_id(), role=role, content=content, timestamp=utc_now())


@dataclass
class ChatMessage:
    """请求体中的一条消息，只包含服务端关心的 role/content。"""

    role: Role
    content: str


@dataclass
class ChatRequest:
    """一次完整的聊天请求。"""

    messages: List[ChatMessage]
    system: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


@dataclass
class ChatUsage:
    """服务端返回的 token 统计信息（统一格式）。"""

    input_tokens: int
    output_tokens: int


@dataclass
class ContentBlock:
    type: str
    text: str = ""


@dataclass
class ChatResult:
    """非流式聊天调用的结果。

    - content: 内容块列表，只有 type 为 "text" 的块参与拼接。
    - raw: 原始响应 JSON，用于调试或日志记录。
    """

    id: str
    model: str
    content: List[ContentBlock]
    stop_reason: Optional[str] = None
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = None

    @property
    def text(self) -> str:
        return "".join(block.text for block in self.content if block.type == "text")


@dataclass
class RagResult:
    """非流式 RAG 查询结果。"""

    answer: str
    sources: List[SearchResult]
    usage: Optional[ChatUsage] = None


@dataclass
class RagStreamResult:
    """流式 RAG 查询聚合后的结果。"""

    answer: str
    sources: List[SearchResult]
    completed: bool


@dataclass
class UploadResult:
    success: bool
    filename: str
    chunks: int
    total_documents: int


@dataclass
class DocumentInfo:
    """服务端已索引的一份文档。"""

    filename: str
    chunks: int
    uploaded_at: str
