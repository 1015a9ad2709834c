"""TranscriptStore — one chat session persisted as a JSON file."""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, TypeAdapter, ValidationError

from src.history.models import Message, Role

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


class _StoredMessage(BaseModel):
    """One entry of a session file. Only real turns are ever written."""

    role: Role
    content: str


_STORED_MESSAGES = TypeAdapter(list[_StoredMessage])


class TranscriptError(Exception):
    """Base class for session file errors."""


class SessionNotFoundError(TranscriptError):
    """No session file exists for the requested key."""


class SessionParseError(TranscriptError):
    """The session file is not a valid serialized message list."""


class PersistError(TranscriptError):
    """The session file could not be created or written."""


class AppendOutcome(Enum):
    """Result of ``TranscriptStore.append``."""

    PERSISTED = "persisted"
    IN_MEMORY_ONLY = "in_memory_only"


def make_session_key(now: datetime | None = None) -> str:
    """Format a session key such as ``2025-08-20T14:03:07.412+02:00``.

    Local time with millisecond precision and its UTC offset; a UTC
    timestamp renders with a ``Z`` suffix instead of ``+00:00``.
    """
    if now is None or now.tzinfo is None:
        now = (now or datetime.now()).astimezone()
    key = now.isoformat(timespec="milliseconds")
    if now.tzinfo is UTC:
        key = key.removesuffix("+00:00") + "Z"
    return key


def _has_separator(name: str) -> bool:
    return "/" in name or "\\" in name


def list_sessions(root: Path) -> list[str]:
    """Return the session keys stored under *root*.

    Order is whatever the filesystem enumerates; a missing directory
    has no sessions.
    """
    if not root.is_dir():
        return []
    return [p.name for p in root.iterdir() if p.is_file() and not p.name.startswith(".")]


class TranscriptStore:
    """Ordered messages of one session, mirrored to ``<root>/<session_key>``.

    Every append rewrites the whole file. The new content is written to a
    hidden temporary file next to it and moved into place, so a failed
    write leaves the previous content intact. The in-memory append is
    never rolled back: callers learn about a failed write from the
    returned ``AppendOutcome``.
    """

    def __init__(self, path: Path, messages: list[Message] | None = None) -> None:
        self._path = path
        self._messages: list[Message] = list(messages or [])

    @property
    def session_key(self) -> str:
        return self._path.name

    @property
    def path(self) -> Path:
        return self._path

    @property
    def messages(self) -> list[Message]:
        """A copy of the transcript, oldest first."""
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    # -- Construction ----------------------------------------------------------

    @classmethod
    def create(cls, root: Path, now: datetime | None = None) -> TranscriptStore:
        """Start a new session with an empty backing file.

        Raises ``PersistError`` if the file cannot be created, including
        when a session with the same key already exists.
        """
        session_key = make_session_key(now)
        path = root / session_key
        try:
            root.mkdir(parents=True, exist_ok=True)
            with path.open("x", encoding="utf-8"):
                pass
        except OSError as exc:
            msg = f"Could not create session {session_key}: {exc}"
            raise PersistError(msg) from exc
        logger.info("Created session %s", session_key)
        return cls(path)

    @classmethod
    def load(cls, root: Path, session_key: str) -> TranscriptStore:
        """Open an existing session.

        Raises ``SessionNotFoundError`` if there is no file for the key and
        ``SessionParseError`` if the file holds something other than a
        message list. An empty file is an empty transcript.
        """
        session_key = session_key.strip("\r\n")
        # Keys are bare file names; hidden files are write temporaries.
        if not session_key or session_key.startswith(".") or _has_separator(session_key):
            msg = f"Session not found: {session_key!r}"
            raise SessionNotFoundError(msg)

        path = root / session_key
        try:
            exists = path.is_file()
        except OSError as exc:
            # e.g. ENAMETOOLONG for a key longer than the filesystem allows
            msg = f"Session not found: {session_key!r}"
            raise SessionNotFoundError(msg) from exc
        if not exists:
            msg = f"Session not found: {session_key!r}"
            raise SessionNotFoundError(msg)

        try:
            raw = path.read_text("utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            msg = f"Could not read session {session_key}: {exc}"
            raise SessionParseError(msg) from exc

        if not raw.strip():
            messages: list[Message] = []
        else:
            try:
                stored = _STORED_MESSAGES.validate_json(raw)
            except ValidationError as exc:
                msg = f"Session {session_key} is not a valid transcript"
                raise SessionParseError(msg) from exc
            messages = [Message(role=m.role, content=m.content) for m in stored]

        logger.info("Loaded session %s (%d messages)", session_key, len(messages))
        return cls(path, messages)

    # -- Mutation --------------------------------------------------------------

    def append(self, message: Message) -> AppendOutcome:
        """Add *message* to the end and rewrite the session file.

        Raises ``ValueError`` for a message without a role; only real
        turns belong in a transcript.
        """
        if not message.role:
            msg = "Cannot append a message without a role"
            raise ValueError(msg)
        self._messages.append(message)
        try:
            self._write()
        except OSError:
            logger.exception("Failed to write session %s", self.session_key)
            return AppendOutcome.IN_MEMORY_ONLY
        return AppendOutcome.PERSISTED

    def _write(self) -> None:
        data = json.dumps([m.to_api() for m in self._messages], ensure_ascii=False)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self.session_key}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(data)
            os.replace(tmp_name, self._path)
        except OSError:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise
