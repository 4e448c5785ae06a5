import dataclasses

import pytest

from chat_stream.domain.conversation import Conversation, TurnState
from chat_stream.domain.exceptions import ProtocolViolationError, ValidationError
from chat_stream.domain.models import SearchMetadata, SearchResult


def _hit(name: str) -> SearchResult:
    return SearchResult(content=name, metadata=SearchMetadata(source=name, filename=name), score=0.5)


def test_full_turn_commits():
    conv = Conversation()
    user = conv.append_user("hello")
    assert conv.state is TurnState.USER_APPENDED
    opened = conv.open_assistant()
    assert conv.state is TurnState.ASSISTANT_OPEN
    assert opened.content == "" and opened.sources is None
    conv.apply_delta("Hi")
    conv.apply_delta(" there")
    assert conv.commit() == "Hi there"
    assert conv.state is TurnState.COMMITTED
    assert [m.role for m in conv.messages] == ["user", "assistant"]
    assert conv.messages[0] == user
    assert conv.messages[1].id == opened.id


def test_blank_user_text_is_rejected_without_mutation():
    conv = Conversation()
    for text in ("", "   ", "\n\t"):
        with pytest.raises(ValidationError) as exc:
            conv.append_user(text)
        assert exc.value.code == "EMPTY_INPUT"
    assert len(conv) == 0
    assert conv.state is TurnState.NO_TURN


def test_rollback_restores_previous_messages():
    conv = Conversation()
    conv.append_user("q1")
    conv.open_assistant()
    conv.apply_delta("a1")
    conv.commit()
    conv.append_user("q2")
    before = conv.messages
    conv.open_assistant()
    conv.apply_sources([_hit("s")])
    conv.apply_delta("partial")
    removed = conv.rollback()
    assert removed.content == "partial"
    assert conv.messages == before
    assert conv.state is TurnState.ROLLED_BACK


def test_second_open_is_a_protocol_violation():
    conv = Conversation()
    conv.append_user("q")
    conv.open_assistant()
    with pytest.raises(ProtocolViolationError) as exc:
        conv.open_assistant()
    assert exc.value.code == "TURN_ALREADY_OPEN"
    with pytest.raises(ProtocolViolationError):
        conv.append_user("another")
    with pytest.raises(ProtocolViolationError):
        conv.clear()
    assert len(conv) == 2


def test_mutations_without_open_turn_are_protocol_violations():
    conv = Conversation()
    for op in (lambda: conv.apply_delta("x"), lambda: conv.apply_sources([]), conv.commit, conv.rollback):
        with pytest.raises(ProtocolViolationError) as exc:
            op()
        assert exc.value.code == "NO_OPEN_TURN"
    conv.append_user("q")
    conv.open_assistant()
    conv.commit()
    with pytest.raises(ProtocolViolationError):
        conv.apply_delta("late")


def test_sources_replace_not_merge():
    conv = Conversation()
    conv.append_user("q")
    conv.open_assistant()
    conv.apply_sources([_hit("a"), _hit("b")])
    conv.apply_sources([_hit("c")])
    assert [s.content for s in conv.last_message.sources] == ["c"]


def test_committed_message_is_immutable():
    conv = Conversation()
    conv.append_user("q")
    conv.open_assistant()
    conv.apply_delta("done")
    conv.commit()
    with pytest.raises(dataclasses.FrozenInstanceError):
        conv.last_message.content = "changed"


def test_assistant_turn_rolls_back_on_error():
    conv = Conversation()
    conv.append_user("q")
    before = conv.messages
    with pytest.raises(RuntimeError):
        with conv.assistant_turn():
            conv.apply_delta("half")
            raise RuntimeError("boom")
    assert conv.messages == before
    assert not conv.is_turn_open


def test_assistant_turn_commits_on_success():
    conv = Conversation()
    conv.append_user("q")
    with conv.assistant_turn():
        conv.apply_delta("ok")
    assert conv.state is TurnState.COMMITTED
    assert conv.last_message.content == "ok"


def test_history_excludes_open_turn():
    conv = Conversation()
    conv.append_user("q")
    conv.open_assistant()
    conv.apply_delta("partial")
    assert [(m.role, m.content) for m in conv.history()] == [("user", "q")]


def test_clear_drops_everything():
    conv = Conversation()
    conv.append_user("q")
    conv.clear()
    assert len(conv) == 0
    assert conv.state is TurnState.NO_TURN
