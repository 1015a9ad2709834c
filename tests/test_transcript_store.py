"""Tests for TranscriptStore — per-session JSON files."""

import json
import os
from datetime import UTC, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from src.history.models import EMPTY_MESSAGE, Message
from src.history.store import (
    AppendOutcome,
    PersistError,
    SessionNotFoundError,
    SessionParseError,
    TranscriptStore,
    list_sessions,
    make_session_key,
)

T0 = datetime(2025, 8, 20, 14, 3, 7, 412345, tzinfo=timezone(timedelta(hours=2)))


def _msg(role: str, content: str) -> Message:
    return Message(role=role, content=content)


# ---------------------------------------------------------------------------
# Session keys
# ---------------------------------------------------------------------------


def test_session_key_has_millis_and_offset() -> None:
    assert make_session_key(T0) == "2025-08-20T14:03:07.412+02:00"


def test_session_key_utc_uses_z() -> None:
    now = datetime(2025, 1, 2, 3, 4, 5, 6000, tzinfo=UTC)
    assert make_session_key(now) == "2025-01-02T03:04:05.006Z"


def test_session_key_defaults_to_local_time() -> None:
    key = make_session_key()
    parsed = datetime.fromisoformat(key.replace("Z", "+00:00"))
    assert parsed.tzinfo is not None
    assert abs((datetime.now(UTC) - parsed).total_seconds()) < 5


# ---------------------------------------------------------------------------
# create / list
# ---------------------------------------------------------------------------


def test_create_makes_empty_file(history_dir) -> None:
    store = TranscriptStore.create(history_dir, now=T0)
    assert store.session_key == "2025-08-20T14:03:07.412+02:00"
    assert store.path.read_text() == ""
    assert len(store) == 0


def test_create_duplicate_key_fails(history_dir) -> None:
    TranscriptStore.create(history_dir, now=T0)
    with pytest.raises(PersistError, match="Could not create session"):
        TranscriptStore.create(history_dir, now=T0)


def test_create_fails_when_root_is_a_file(tmp_path) -> None:
    root = tmp_path / "not_a_dir"
    root.write_text("x")
    with pytest.raises(PersistError):
        TranscriptStore.create(root, now=T0)


def test_list_sessions_empty_directory(history_dir) -> None:
    history_dir.mkdir()
    assert list_sessions(history_dir) == []


def test_list_sessions_missing_directory(history_dir) -> None:
    assert list_sessions(history_dir) == []


def test_list_sessions_returns_keys_and_skips_hidden(history_dir) -> None:
    a = TranscriptStore.create(history_dir, now=T0)
    b = TranscriptStore.create(history_dir, now=T0 + timedelta(seconds=1))
    (history_dir / ".leftover.tmp").write_text("junk")
    assert sorted(list_sessions(history_dir)) == sorted([a.session_key, b.session_key])


# ---------------------------------------------------------------------------
# append / load
# ---------------------------------------------------------------------------


def test_append_persists_full_sequence(history_dir) -> None:
    store = TranscriptStore.create(history_dir, now=T0)
    assert store.append(_msg("user", "hello")) is AppendOutcome.PERSISTED
    assert store.append(_msg("assistant", "hi there")) is AppendOutcome.PERSISTED

    on_disk = json.loads(store.path.read_text())
    assert on_disk == [
        {"role": "user", "content": "hello"},
        {"role": "assistant", "content": "hi there"},
    ]


def test_append_then_reload_keeps_order_and_duplicates(history_dir) -> None:
    store = TranscriptStore.create(history_dir, now=T0)
    sent = [
        _msg("user", "one"),
        _msg("assistant", "same"),
        _msg("user", "two"),
        _msg("assistant", "same"),
        _msg("user", "héllo ✓"),
    ]
    for message in sent:
        store.append(message)

    reloaded = TranscriptStore.load(history_dir, store.session_key)
    assert reloaded.messages == sent
    assert reloaded.messages == store.messages


def test_messages_returns_a_copy(history_dir) -> None:
    store = TranscriptStore.create(history_dir, now=T0)
    store.append(_msg("user", "hello"))
    store.messages.clear()
    assert len(store) == 1


def test_load_empty_file_is_empty_transcript(history_dir) -> None:
    store = TranscriptStore.create(history_dir, now=T0)
    loaded = TranscriptStore.load(history_dir, store.session_key)
    assert loaded.messages == []


def test_load_strips_line_terminators(history_dir) -> None:
    store = TranscriptStore.create(history_dir, now=T0)
    store.append(_msg("user", "hello"))
    loaded = TranscriptStore.load(history_dir, store.session_key + "\r\n")
    assert loaded.session_key == store.session_key
    assert len(loaded) == 1


def test_load_missing_session(history_dir) -> None:
    history_dir.mkdir()
    with pytest.raises(SessionNotFoundError):
        TranscriptStore.load(history_dir, "2020-01-01T00:00:00.000Z")


@pytest.mark.parametrize("key", ["", "../secrets", "sub/dir", ".hidden"])
def test_load_rejects_non_session_names(history_dir, key) -> None:
    history_dir.mkdir()
    (history_dir / ".hidden").write_text("[]")
    with pytest.raises(SessionNotFoundError):
        TranscriptStore.load(history_dir, key)


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        '{"role": "user", "content": "hi"}',
        '[{"role": "user"}]',
        '[{"role": 1, "content": "hi"}]',
        "[1, 2, 3]",
        '[{"role": "system", "content": "x"}]',
        '[{"role": "user", "content": "hi"}, {"role": "", "content": ""}]',
    ],
)
def test_load_invalid_content(history_dir, content) -> None:
    history_dir.mkdir()
    (history_dir / "broken").write_text(content)
    with pytest.raises(SessionParseError):
        TranscriptStore.load(history_dir, "broken")


def test_failed_write_keeps_memory_and_prior_file(history_dir, monkeypatch) -> None:
    store = TranscriptStore.create(history_dir, now=T0)
    store.append(_msg("user", "hello"))
    before = store.path.read_text()

    def _fail(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr("src.history.store.os.replace", _fail)
    outcome = store.append(_msg("assistant", "hi there"))

    assert outcome is AppendOutcome.IN_MEMORY_ONLY
    assert len(store) == 2
    assert store.path.read_text() == before
    assert os.listdir(history_dir) == [store.session_key]


def test_append_recovers_after_failed_write(history_dir, monkeypatch) -> None:
    store = TranscriptStore.create(history_dir, now=T0)

    def _fail(*args, **kwargs):
        raise OSError("disk full")

    with monkeypatch.context() as m:
        m.setattr("src.history.store.os.replace", _fail)
        assert store.append(_msg("user", "first")) is AppendOutcome.IN_MEMORY_ONLY

    assert store.append(_msg("assistant", "second")) is AppendOutcome.PERSISTED
    reloaded = TranscriptStore.load(history_dir, store.session_key)
    assert [m.content for m in reloaded.messages] == ["first", "second"]


def test_load_overlong_key_is_not_found(history_dir) -> None:
    history_dir.mkdir()
    with pytest.raises(SessionNotFoundError):
        TranscriptStore.load(history_dir, "x" * 300)


def test_append_rejects_empty_message(history_dir) -> None:
    store = TranscriptStore.create(history_dir, now=T0)
    with pytest.raises(ValueError, match="without a role"):
        store.append(EMPTY_MESSAGE)
    assert len(store) == 0
    assert store.path.read_text() == ""


def test_blank_role_only_for_empty_message() -> None:
    with pytest.raises(ValidationError):
        Message(role="", content="orphan text")
    with pytest.raises(ValidationError):
        Message(role="system", content="be nice")
