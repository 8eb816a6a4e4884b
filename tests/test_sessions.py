"""Tests for duel/sessions.py."""

import pytest

from duel.models import Message
from duel.sessions import HandleSession, HistorySession, SessionStore
from tests.conftest import FakeChat


def _fill(session: HistorySession, pairs: int) -> None:
    for i in range(pairs):
        session.append(Message("user", f"q{i}"))
        session.append(Message("assistant", f"a{i}"))


# --- HistorySession ---

def test_history_session_starts_with_system_message():
    session = HistorySession("Be DeepSeek.", max_history=50)
    assert session.history_length() == 1
    assert session.system_message == Message("system", "Be DeepSeek.")


def test_history_session_cap_keeps_system_message():
    session = HistorySession("Be DeepSeek.", max_history=10)
    _fill(session, 30)
    messages = session.messages()
    assert len(messages) == 10
    assert messages[0] == Message("system", "Be DeepSeek.")
    # Oldest turns went first
    assert messages[-1] == Message("assistant", "a29")
    assert messages[1] == Message("assistant", "a25")


def test_history_session_cap_never_exceeded_during_growth():
    session = HistorySession("sys", max_history=5)
    for i in range(20):
        session.append(Message("user", str(i)))
        assert session.history_length() <= 5
        assert session.messages()[0].role == "system"


def test_history_session_truncate_never_removes_system():
    session = HistorySession("sys", max_history=50)
    _fill(session, 3)
    session.truncate(0)
    assert session.messages()[0].role == "system"
    assert session.history_length() == 7
    session.truncate(5)
    assert [m.content for m in session.messages()] == ["sys", "q2", "a2"]


def test_history_session_rejects_second_system_message():
    session = HistorySession("sys", max_history=50)
    with pytest.raises(ValueError):
        session.append(Message("system", "override"))


def test_history_session_invalidate_keeps_only_system():
    session = HistorySession("sys", max_history=50)
    _fill(session, 4)
    generation = session.generation
    session.invalidate()
    assert session.messages() == [Message("system", "sys")]
    assert session.generation == generation + 1
    assert not session.is_current(generation)


def test_history_session_payload_format():
    session = HistorySession("sys", max_history=50)
    session.append(Message("user", "hi"))
    assert session.as_payload() == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "hi"},
    ]


def test_session_rejects_tiny_cap():
    with pytest.raises(ValueError):
        HistorySession("sys", max_history=1)


# --- HandleSession ---

def test_handle_session_created_lazily():
    created: list[list] = []

    def factory(history):
        created.append(history)
        return FakeChat(history)

    session = HandleSession(factory, max_history=50)
    assert not session.active
    assert session.history_length() == 0
    assert created == []

    handle, generation = session.acquire()
    assert session.active
    assert created == [[]]
    assert generation == session.generation
    # Second acquire reuses the handle
    assert session.acquire()[0] is handle


async def test_handle_session_enforce_cap_rebuilds_with_newest_turns():
    session = HandleSession(FakeChat, max_history=4)
    chat, _ = session.acquire()
    for i in range(3):
        await chat.send_message(f"m{i}")
    assert session.history_length() == 6

    session.enforce_cap()

    assert session.history_length() == 4
    assert session.history()[0] == ("user", "m1")
    assert session.acquire()[0] is not chat


def test_handle_session_append_goes_through_factory():
    session = HandleSession(FakeChat, max_history=4)
    session.acquire()
    for turn in [("user", "a"), ("model", "b"), ("user", "c"), ("model", "d"), ("user", "e")]:
        session.append(turn)
    assert session.history() == [("user", "c"), ("model", "d"), ("user", "e")]


async def test_handle_session_odd_cap_evicts_whole_pairs():
    session = HandleSession(FakeChat, max_history=5)
    for i in range(3):
        chat, _ = session.acquire()
        await chat.send_message(f"p{i}")
        session.enforce_cap()
        history = session.history()
        assert len(history) <= 5
        assert history[0][0] == "user"
    assert session.history() == [("user", "p1"), ("model", "Gemini reply"), ("user", "p2"), ("model", "Gemini reply")]


def test_handle_session_truncate_without_handle_is_noop():
    session = HandleSession(FakeChat, max_history=4)
    session.truncate(2)
    assert not session.active


async def test_handle_session_invalidate_discards_handle():
    session = HandleSession(FakeChat, max_history=50)
    chat, generation = session.acquire()
    await chat.send_message("hello")

    session.invalidate()

    assert not session.active
    assert session.history_length() == 0
    assert not session.is_current(generation)
    fresh, _ = session.acquire()
    assert fresh is not chat
    assert fresh.get_history() == []


# --- SessionStore ---

def test_session_store_invalidate_all():
    history = HistorySession("sys", max_history=50)
    handle = HandleSession(FakeChat, max_history=50)
    handle.acquire()
    _fill(history, 2)
    store = SessionStore({"deepseek": history, "gemini": handle})

    store.invalidate_all()

    assert history.history_length() == 1
    assert not handle.active
    assert set(store.keys()) == {"deepseek", "gemini"}


def test_session_store_unknown_key():
    store = SessionStore({})
    with pytest.raises(KeyError):
        store.get("claude")
