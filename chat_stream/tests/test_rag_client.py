import json

import httpx
import pytest

from chat_stream.domain.events import AnswerDelta, SourcesPayload, StreamEnd
from chat_stream.domain.exceptions import ApiError, ValidationError
from chat_stream.providers.rag_client import RagClient
from chat_stream.providers.transport import HttpTransport
from chat_stream.sessions.rag_session import RagSession


class SettingsStub:
    api_base_url = "http://svc.local/"
    http_timeout = 1.0
    stream_sentinel = "[DONE]"
    require_terminator = False


def _client(handler) -> RagClient:
    cfg = SettingsStub()
    return RagClient(cfg, http=HttpTransport(cfg, transport=httpx.MockTransport(handler)))


def test_rag_query():
    def handler(request):
        assert request.url.path == "/api/rag/query"
        assert json.loads(request.content) == {"question": "what?"}
        return httpx.Response(
            200,
            json={
                "answer": "this",
                "sources": [{"content": "c", "metadata": {"source": "s", "filename": "f.txt"}, "score": 0.3}],
                "tokensUsed": {"input": 10, "output": 2},
            },
        )

    res = _client(handler).query("what?")
    assert res.answer == "this"
    assert res.sources[0].metadata.filename == "f.txt"
    assert res.usage.input_tokens == 10


def test_rag_stream_query_typed_events():
    body = (
        'data: {"type":"sources","data":[{"content":"c","metadata":{"source":"s","filename":"f"},"score":1}]}\n'
        'data: {"type":"answer","data":"A"}\n'
        'data: {"type":"answer","data":"B"}\n'
        'data: {"type":"done"}\n'
    ).encode("utf-8")

    def handler(request):
        assert request.url.path == "/api/rag/query/stream"
        return httpx.Response(200, content=iter([body[:17], body[17:90], body[90:]]))

    events = list(_client(handler).stream_query("q"))
    assert isinstance(events[0], SourcesPayload)
    assert events[1:] == [AnswerDelta("A"), AnswerDelta("B"), StreamEnd()]


def test_rag_documents():
    def handler(request):
        assert request.method == "GET"
        return httpx.Response(
            200,
            json={"files": [{"filename": "a.pdf", "chunks": 4, "uploadedAt": "t"}], "totalChunks": 4},
        )

    files, total = _client(handler).get_documents()
    assert [f.filename for f in files] == ["a.pdf"]
    assert files[0].chunks == 4
    assert total == 4


def test_rag_clear_documents():
    calls = []

    def handler(request):
        calls.append((request.method, request.url.path))
        return httpx.Response(200)

    _client(handler).clear_documents()
    assert calls == [("DELETE", "/api/rag/documents")]


def test_rag_upload(tmp_path):
    doc = tmp_path / "notes.txt"
    doc.write_text("hello", encoding="utf-8")

    def handler(request):
        assert request.url.path == "/api/rag/upload"
        assert b'filename="notes.txt"' in request.content
        return httpx.Response(200, json={"success": True, "filename": "notes.txt", "chunks": 1, "totalDocuments": 2})

    res = _client(handler).upload_document(doc)
    assert res.success
    assert res.total_documents == 2


def test_rag_upload_missing_file(tmp_path):
    def handler(request):
        raise AssertionError("no request expected")

    with pytest.raises(ValidationError):
        _client(handler).upload_document(tmp_path / "missing.txt")


def test_rag_query_error_message():
    def handler(request):
        return httpx.Response(400, json={"error": "Unsupported file type"})

    with pytest.raises(ApiError) as exc:
        _client(handler).query("q")
    assert "Unsupported file type" in exc.value.message


def test_rag_non_json_success_body():
    def handler(request):
        return httpx.Response(200, content=b"<html>gateway</html>")

    with pytest.raises(ApiError) as exc:
        _client(handler).query("q")
    assert exc.value.code == "INVALID_RESPONSE"


def test_rag_documents_with_bad_counts():
    def handler(request):
        return httpx.Response(200, json={"files": [{"filename": "a.pdf", "chunks": "many"}], "totalChunks": 1})

    with pytest.raises(ApiError) as exc:
        _client(handler).get_documents()
    assert exc.value.code == "INVALID_RESPONSE"


def test_rag_documents_non_object_body():
    def handler(request):
        return httpx.Response(200, json=["a.pdf"])

    with pytest.raises(ApiError):
        _client(handler).get_documents()


def test_rag_session_keeps_documents_on_bad_response():
    responses = [
        httpx.Response(200, json={"files": [{"filename": "a.pdf", "chunks": 2, "uploadedAt": "t"}], "totalChunks": 2}),
        httpx.Response(200, content=b"not json"),
        httpx.Response(200, json={"files": [{"filename": "b.pdf", "chunks": "x"}]}),
    ]

    def handler(request):
        return responses.pop(0)

    session = RagSession(_client(handler))
    session.load_documents()
    session.load_documents()
    session.load_documents()
    assert [f.filename for f in session.uploaded_files] == ["a.pdf"]
