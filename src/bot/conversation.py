"""Turn-taking loop for one chat session."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from src.history.models import USER, Message
from src.history.store import AppendOutcome

if TYPE_CHECKING:
    from collections.abc import Callable

    from src.history.store import TranscriptStore
    from src.llm.client import CompletionClient, ServiceError

logger = logging.getLogger(__name__)

END_SESSION_COMMAND = "end session"


class ChatState(Enum):
    AWAITING_INPUT = "awaiting_input"
    SENDING = "sending"
    ENDED = "ended"


def normalize_input(text: str) -> str:
    """Strip surrounding line terminators from a line of user input."""
    return text.strip("\r\n")


def is_end_command(text: str) -> bool:
    return normalize_input(text).lower() == END_SESSION_COMMAND


class ConversationLoop:
    """Reads user lines, sends the transcript, and records replies.

    A turn is recorded only when the service produces a non-empty reply:
    the user message and the reply are then appended together. Service
    errors and empty replies are shown and the turn is dropped, so the
    transcript never holds a question without its answer.
    """

    def __init__(
        self,
        store: TranscriptStore,
        client: CompletionClient,
        *,
        model: str,
        max_tokens: int,
        input_fn: Callable[[], str] = input,
        output_fn: Callable[[str], None] = print,
    ) -> None:
        self.store = store
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self._input = input_fn
        self._output = output_fn
        self.state = ChatState.AWAITING_INPUT

    def run(self) -> None:
        """Chat until the user types the end command or input runs out."""
        while self.state is not ChatState.ENDED:
            try:
                line = self._input()
            except EOFError:
                logger.info("Input closed, ending session %s", self.store.session_key)
                self.state = ChatState.ENDED
                break
            self.handle_input(line)

    def handle_input(self, line: str) -> ChatState:
        """Advance the state machine by one line of input."""
        text = normalize_input(line)
        if not text.strip():
            return self.state
        if is_end_command(text):
            self.state = ChatState.ENDED
            return self.state

        self.state = ChatState.SENDING
        self._send(Message(role=USER, content=text))
        self.state = ChatState.AWAITING_INPUT
        return self.state

    def _send(self, user_message: Message) -> None:
        context = [*self.store.messages, user_message]
        result = self.client.complete(context, self.model, self.max_tokens)

        if result.error is not None:
            self._show_error(result.error)
            return

        reply = result.message
        if reply is None or reply.is_empty:
            self._output("Response content empty.")
            return

        for message in (user_message, reply):
            if self.store.append(message) is AppendOutcome.IN_MEMORY_ONLY:
                self._output(
                    f"Warning: could not save to session file {self.store.session_key}; "
                    "this message exists only in memory."
                )

        self._output(f"\nBot Response: {reply.content}\n")

    def _show_error(self, error: ServiceError) -> None:
        if error.status is None:
            self._output(f"Could not reach server: {error.body}")
        else:
            self._output(f"Error code from server: {error.status}. Could not get response.")
            self._output(error.body)
