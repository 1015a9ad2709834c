"""Data models for chat transcripts."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, model_validator

USER = "user"
ASSISTANT = "assistant"

Role = Literal["user", "assistant"]


class Message(BaseModel):
    """A single conversation message."""

    model_config = ConfigDict(frozen=True)

    role: Role | Literal[""]  # blank only for EMPTY_MESSAGE
    content: str

    @model_validator(mode="after")
    def _blank_role_has_no_content(self) -> "Message":
        if not self.role and self.content:
            msg = "a message with content needs a user or assistant role"
            raise ValueError(msg)
        return self

    @property
    def is_empty(self) -> bool:
        return not self.content

    def to_api(self) -> dict[str, str]:
        """Format for the Messages API and for session files."""
        return {"role": self.role, "content": self.content}


# Returned when the service answers with no content blocks. Never persisted.
EMPTY_MESSAGE = Message(role="", content="")
