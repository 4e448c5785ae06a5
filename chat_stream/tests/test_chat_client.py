import json

import httpx
import pytest

from chat_stream.domain.events import TextDelta
from chat_stream.domain.exceptions import ApiError, NetworkError, RateLimitError
from chat_stream.domain.models import ChatMessage, ChatRequest
from chat_stream.providers.chat_client import ChatClient
from chat_stream.providers.transport import HttpTransport
from chat_stream.streaming.aggregator import TextAggregator


class SettingsStub:
    api_base_url = "http://svc.local"
    http_timeout = 1.0
    default_temperature = 0.7
    default_max_tokens = 4096
    stream_sentinel = "[DONE]"
    require_terminator = False


def _client(handler) -> ChatClient:
    cfg = SettingsStub()
    return ChatClient(cfg, http=HttpTransport(cfg, transport=httpx.MockTransport(handler)))


def _req(**kw) -> ChatRequest:
    return ChatRequest(messages=[ChatMessage(role="user", content="hi")], **kw)


def test_chat_client_basic(monkeypatch):
    captured = {}

    class Resp:
        status_code = 200
        content = b"{}"

        def json(self):
            return {
                "id": "msg_1",
                "type": "message",
                "role": "assistant",
                "model": "m",
                "content": [{"type": "text", "text": "o"}, {"type": "tool_use"}, {"type": "text", "text": "k"}],
                "stop_reason": "end_turn",
                "usage": {"input_tokens": 3, "output_tokens": 1},
            }

    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def request(self, method, url, **kw):
            captured["method"] = method
            captured["url"] = url
            captured["json"] = kw.get("json")
            return Resp()

    monkeypatch.setattr("httpx.Client", Client)
    res = ChatClient(SettingsStub()).send_message(_req(system="be brief"))
    assert res.text == "ok"
    assert res.usage.output_tokens == 1
    assert captured["method"] == "POST"
    assert captured["url"] == "http://svc.local/api/chat"
    assert captured["json"] == {
        "messages": [{"role": "user", "content": "hi"}],
        "temperature": 0.7,
        "max_tokens": 4096,
        "system": "be brief",
    }


def test_chat_client_stream_chunks():
    body = [
        b'data: {"type":"text","text":"Hel"}\n',
        b'data: {"type":"text","text":"lo"}\ndata: [DONE]\n',
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/chat/stream"
        payload = json.loads(request.content)
        assert payload["temperature"] == 0.0
        assert payload["max_tokens"] == 128
        return httpx.Response(200, content=iter(body))

    cursor = _client(handler).stream_message(_req(temperature=0.0, max_tokens=128))
    assert list(cursor) == [TextDelta("Hel"), TextDelta("lo")]


def test_chat_client_stream_error_status():
    def handler(request):
        return httpx.Response(500, json={"error": "model overloaded"})

    cursor = _client(handler).stream_message(_req())
    with pytest.raises(ApiError) as exc:
        cursor.next_event()
    assert exc.value.http_status == 500
    assert "model overloaded" in exc.value.message


def test_chat_client_rate_limit():
    def handler(request):
        return httpx.Response(429, json={"error": "slow down"})

    with pytest.raises(RateLimitError):
        _client(handler).send_message(_req())


def test_chat_client_error_without_body_uses_reason():
    def handler(request):
        return httpx.Response(503, content=b"")

    with pytest.raises(ApiError) as exc:
        _client(handler).send_message(_req())
    assert exc.value.message == "API Error: Service Unavailable"


def test_chat_client_connection_error():
    def handler(request):
        raise httpx.ConnectError("refused")

    with pytest.raises(NetworkError):
        _client(handler).send_message(_req())
    with pytest.raises(NetworkError):
        _client(handler).stream_message(_req()).next_event()


def test_chat_client_mid_stream_read_error():
    def body():
        yield b'data: {"type":"text","text":"par"}\n'
        raise httpx.ReadError("connection reset")

    def handler(request):
        return httpx.Response(200, content=body())

    aggregator = TextAggregator()
    with pytest.raises(NetworkError):
        aggregator.run(_client(handler).stream_message(_req()))
    assert aggregator.text == "par"


def test_build_request_from_messages():
    client = ChatClient(SettingsStub())
    req = client.build_request([ChatMessage(role="user", content="a")], system_prompt="s", temperature=0.2)
    assert req.system == "s"
    assert req.temperature == 0.2
    assert req.messages[0].content == "a"
