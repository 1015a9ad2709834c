"""Top-level menu: pick a session, chat, come back."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from src.bot.conversation import ConversationLoop, normalize_input
from src.history.store import (
    PersistError,
    SessionNotFoundError,
    SessionParseError,
    TranscriptStore,
    list_sessions,
)
from src.llm.models import ModelManager

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from src.llm.client import CompletionClient

logger = logging.getLogger(__name__)

MENU_PROMPT = "Load session or new session?"
USAGE = (
    'Command not recognized. Please enter "load session", "new session", '
    '"list sessions", or "quit".'
)
LOAD_PROMPT = 'Please enter session start date/time. Enter "list sessions" to list all saved chats.'


class MenuState(Enum):
    MENU_ROOT = "menu_root"
    LOADING_SESSION = "loading_session"
    CREATING_SESSION = "creating_session"
    LISTING = "listing"
    QUIT = "quit"


_COMMANDS: dict[str, MenuState] = {
    "load session": MenuState.LOADING_SESSION,
    "new session": MenuState.CREATING_SESSION,
    "list sessions": MenuState.LISTING,
    "quit": MenuState.QUIT,
}


class SessionSelector:
    """Menu state machine that hands sessions to a ``ConversationLoop``.

    Each chat gets a fresh ``CompletionClient`` from *client_factory*; it is
    closed when the chat ends and control returns to the root menu.

    Loading keeps asking for a session key until one loads. There is no
    way back to the root menu from that prompt other than end of input.
    """

    def __init__(
        self,
        history_dir: Path,
        client_factory: Callable[[], CompletionClient],
        *,
        input_fn: Callable[[], str] = input,
        output_fn: Callable[[str], None] = print,
    ) -> None:
        self.history_dir = history_dir
        self._client_factory = client_factory
        self._input = input_fn
        self._output = output_fn
        self.state = MenuState.MENU_ROOT
        self._handlers: dict[MenuState, Callable[[], MenuState]] = {
            MenuState.MENU_ROOT: self._menu_root,
            MenuState.LOADING_SESSION: self._loading_session,
            MenuState.CREATING_SESSION: self._creating_session,
            MenuState.LISTING: self._listing,
        }

    def run(self) -> None:
        """Drive the menu until the user quits."""
        while self.state is not MenuState.QUIT:
            try:
                self.state = self._handlers[self.state]()
            except EOFError:
                logger.info("Input closed, quitting")
                self.state = MenuState.QUIT

    # -- States ----------------------------------------------------------------

    def _menu_root(self) -> MenuState:
        self._output(MENU_PROMPT)
        choice = normalize_input(self._input()).lower()
        next_state = _COMMANDS.get(choice)
        if next_state is None:
            self._output(USAGE)
            return MenuState.MENU_ROOT
        return next_state

    def _listing(self) -> MenuState:
        self.show_sessions()
        return MenuState.MENU_ROOT

    def _loading_session(self) -> MenuState:
        while True:
            self._output(LOAD_PROMPT)
            session_key = normalize_input(self._input())
            if session_key.lower() == "list sessions":
                self.show_sessions()
                continue

            try:
                store = TranscriptStore.load(self.history_dir, session_key)
            except SessionNotFoundError:
                self._output("Session could not be found.")
                continue
            except SessionParseError as exc:
                logger.warning("%s", exc)
                self._output(f"Session could not be read: {exc}")
                continue

            self._output(f"Session '{store.session_key}'\n")
            self._chat(store)
            return MenuState.MENU_ROOT

    def _creating_session(self) -> MenuState:
        try:
            store = TranscriptStore.create(self.history_dir)
        except PersistError as exc:
            logger.warning("%s", exc)
            self._output(f"Error starting session: {exc}")
            return MenuState.MENU_ROOT

        self._output(f"Session {store.session_key}\n")
        self._chat(store)
        return MenuState.MENU_ROOT

    # -- Helpers ---------------------------------------------------------------

    def show_sessions(self) -> list[str]:
        sessions = list_sessions(self.history_dir)
        self._output("Session Names: ")
        for name in sessions:
            self._output(name)
        self._output("")
        return sessions

    def _chat(self, store: TranscriptStore) -> None:
        models = ModelManager.get()
        self._output("Start Chatting!")
        with self._client_factory() as client:
            loop = ConversationLoop(
                store,
                client,
                model=models.get_chat_model(),
                max_tokens=models.get_max_tokens(),
                input_fn=self._input,
                output_fn=self._output,
            )
            loop.run()
        logger.info("Session %s ended with %d messages", store.session_key, len(store))
