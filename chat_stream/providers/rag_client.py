"""检索增强生成（RAG）客户端。

端点（均挂在 settings.api_base_url 之下）：
- POST   /api/rag/upload         multipart 上传文档，返回 {success, filename, chunks, totalDocuments}
- POST   /api/rag/query          {question} -> {answer, sources, tokensUsed}
- POST   /api/rag/query/stream   {question} -> 带类型模式的帧序列（sources/answer/done）
- GET    /api/rag/documents      -> {files: [{filename, chunks, uploadedAt}], totalChunks}
- DELETE /api/rag/documents
"""

import logging
import mimetypes
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from chat_stream.config.settings import settings
from chat_stream.domain.exceptions import ApiError, ValidationError
from chat_stream.domain.models import ChatUsage, DocumentInfo, RagResult, SearchResult, UploadResult
from chat_stream.infrastructure.logging.logger import log_event
from chat_stream.providers.registry import RAG_DOCUMENTS_PATH, RAG_ENDPOINT, RAG_UPLOAD_PATH, EndpointConfig
from chat_stream.providers.transport import HttpTransport
from chat_stream.streaming.cursor import EventCursor


class RagClient:
    """RAG 服务客户端。"""

    name = "rag"

    def __init__(self, cfg=settings, http: Optional[HttpTransport] = None, endpoint: EndpointConfig = RAG_ENDPOINT):
        self._settings = cfg
        self._http = http or HttpTransport(cfg)
        self._endpoint = endpoint

    # ---- 文档管理 ----

    def upload_document(self, path: Union[str, Path]) -> UploadResult:
        file_path = Path(path)
        if not file_path.is_file():
            raise ValidationError(code="FILE_NOT_FOUND", message=f"No such file: {file_path}")
        content_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
        log_event(logging.INFO, "Uploading document", {"endpoint": RAG_UPLOAD_PATH}, filename=file_path.name)
        with file_path.open("rb") as fh:
            data = _as_mapping(self._http.request_json(
                "POST",
                RAG_UPLOAD_PATH,
                files={"file": (file_path.name, fh, content_type)},
            ), RAG_UPLOAD_PATH)
        return UploadResult(
            success=bool(data.get("success", False)),
            filename=str(data.get("filename") or file_path.name),
            chunks=_as_int(data.get("chunks"), "chunks", RAG_UPLOAD_PATH),
            total_documents=_as_int(data.get("totalDocuments"), "totalDocuments", RAG_UPLOAD_PATH),
        )

    def get_documents(self) -> Tuple[List[DocumentInfo], int]:
        data = _as_mapping(self._http.request_json("GET", RAG_DOCUMENTS_PATH), RAG_DOCUMENTS_PATH)
        files = [
            DocumentInfo(
                filename=str(f.get("filename") or ""),
                chunks=_as_int(f.get("chunks"), "chunks", RAG_DOCUMENTS_PATH),
                uploaded_at=str(f.get("uploadedAt") or ""),
            )
            for f in data.get("files") or []
            if isinstance(f, dict)
        ]
        return files, _as_int(data.get("totalChunks"), "totalChunks", RAG_DOCUMENTS_PATH)

    def clear_documents(self) -> None:
        self._http.request("DELETE", RAG_DOCUMENTS_PATH)

    # ---- 查询 ----

    def query(self, question: str) -> RagResult:
        log_event(logging.INFO, "Calling service", {"endpoint": self._endpoint.path})
        data = _as_mapping(self._http.request_json("POST", self._endpoint.path, json={"question": question}), self._endpoint.path)
        return self._parse_result(data)

    def stream_query(self, question: str) -> EventCursor:
        """打开一次流式查询，返回带类型模式的事件游标。"""

        log_event(logging.INFO, "Calling service (stream)", {"endpoint": self._endpoint.stream_path})
        return EventCursor(
            self._http.stream(self._endpoint.stream_path, {"question": question}),
            self._endpoint.mode,
            sentinel=getattr(self._settings, "stream_sentinel", "[DONE]"),
            require_terminator=getattr(self._settings, "require_terminator", False),
        )

    # ---- 辅助方法 ----

    @staticmethod
    def _parse_result(data: Dict[str, Any]) -> RagResult:
        sources = [SearchResult.from_payload(s) for s in data.get("sources") or [] if isinstance(s, dict)]
        usage_raw = data.get("tokensUsed") or {}
        usage = None
        if usage_raw:
            usage = ChatUsage(
                input_tokens=usage_raw.get("input", 0),
                output_tokens=usage_raw.get("output", 0),
            )
        return RagResult(answer=str(data.get("answer") or ""), sources=sources, usage=usage)


def _as_mapping(data: Any, path: str) -> Dict[str, Any]:
    """响应体为空时视为 {}，其他非对象 JSON 视为服务端协议错误。"""

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ApiError(
            code="INVALID_RESPONSE",
            message=f"Expected a JSON object, got {type(data).__name__}",
            http_status=502,
            endpoint=path,
        )
    return data


def _as_int(value: Any, field: str, path: str) -> int:
    if value is None or value == "":
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ApiError(
            code="INVALID_RESPONSE",
            message=f"Field {field!r} is not an integer: {value!r}",
            http_status=502,
            endpoint=path,
        )
