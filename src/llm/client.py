"""Synchronous client for the Anthropic Messages endpoint."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx
from pydantic import BaseModel, Field, ValidationError

from src.config import settings
from src.history.models import ASSISTANT, EMPTY_MESSAGE, Message

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


class ContentBlock(BaseModel):
    type: str = ""
    text: str = ""


class CompletionResponse(BaseModel):
    """The parts of a Messages API response this client reads."""

    role: str = ""
    content: list[ContentBlock] = Field(default_factory=list)


@dataclass
class ServiceError:
    """A request that produced no reply.

    ``status`` is the HTTP status code, or None when no response arrived.
    ``body`` is the raw response text (or the transport error message).
    """

    status: int | None
    body: str


@dataclass
class CompletionResult:
    """Outcome of ``CompletionClient.complete``.

    Exactly one of ``message`` and ``error`` is set. ``message`` may be
    ``EMPTY_MESSAGE`` when the service replied without any content.
    """

    message: Message | None = None
    error: ServiceError | None = None

    @property
    def success(self) -> bool:
        return self.error is None


class CompletionClient:
    """Sends the whole conversation to the Messages endpoint, one POST per call.

    No retries and no timeout beyond httpx's default. Failures are returned
    as ``ServiceError`` values, never raised.
    """

    def __init__(
        self,
        api_key: str | None,
        *,
        url: str | None = None,
        anthropic_version: str | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._url = url or settings.anthropic_api_url
        self._headers = {
            "anthropic-version": anthropic_version or settings.anthropic_version,
            "content-type": "application/json",
        }
        if api_key:
            self._headers["x-api-key"] = api_key
        self._http = http_client or httpx.Client()

    @property
    def headers(self) -> dict[str, str]:
        return dict(self._headers)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> CompletionClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @staticmethod
    def build_request(
        messages: Sequence[Message], model: str, max_tokens: int
    ) -> dict[str, object]:
        """Build the JSON body. Every message is sent; there is no window."""
        return {
            "model": model,
            "max_tokens": max_tokens,
            "messages": [m.to_api() for m in messages],
        }

    def complete(
        self, messages: Sequence[Message], model: str, max_tokens: int
    ) -> CompletionResult:
        """Ask the service for the next assistant message."""
        body = self.build_request(messages, model, max_tokens)
        logger.debug("POST %s: model=%s, %d message(s)", self._url, model, len(messages))

        try:
            resp = self._http.post(self._url, headers=self._headers, json=body)
        except httpx.HTTPError as exc:
            logger.warning("Request to %s failed: %s", self._url, exc)
            return CompletionResult(error=ServiceError(status=None, body=str(exc)))

        if not resp.is_success:
            logger.warning("Completion service returned %d", resp.status_code)
            return CompletionResult(error=ServiceError(status=resp.status_code, body=resp.text))

        try:
            parsed = CompletionResponse.model_validate_json(resp.content)
        except ValidationError:
            logger.warning("Unreadable completion response: %s", resp.text[:200])
            return CompletionResult(error=ServiceError(status=resp.status_code, body=resp.text))

        if not parsed.content:
            logger.info("Completion response had no content")
            return CompletionResult(message=EMPTY_MESSAGE)

        if parsed.role != ASSISTANT:
            logger.warning("Completion response has unexpected role %r", parsed.role)
            return CompletionResult(error=ServiceError(status=resp.status_code, body=resp.text))

        return CompletionResult(message=Message(role=ASSISTANT, content=parsed.content[0].text))
