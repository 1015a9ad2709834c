"""Shared test fixtures."""

import json
from collections.abc import Callable

import httpx
import pytest

from src.llm.client import CompletionClient
from src.llm.models import ModelManager

TEST_URL = "https://api.example.com/v1/messages"


@pytest.fixture(autouse=True)
def _reset_model_manager():
    ModelManager._reset()
    yield
    ModelManager._reset()


@pytest.fixture
def history_dir(tmp_path):
    """A session directory inside the test's temporary directory."""
    return tmp_path / "ChatHistory"


class FakeService:
    """Stands in for the Messages endpoint via ``httpx.MockTransport``.

    Records every request and answers with queued responses, falling back
    to a plain "hi there" reply.
    """

    def __init__(self) -> None:
        self.responses: list[httpx.Response | Exception] = []
        self.requests: list[httpx.Request] = []
        self.clients: list[CompletionClient] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            return httpx.Response(200, json=self.reply_body("hi there"))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    @staticmethod
    def reply_body(text: str | None, role: str = "assistant") -> dict:
        content = [] if text is None else [{"type": "text", "text": text}]
        return {"id": "msg_test", "type": "message", "role": role, "content": content}

    def queue_reply(self, text: str | None) -> None:
        """Queue a successful reply; None queues an empty content list."""
        self.responses.append(httpx.Response(200, json=self.reply_body(text)))

    def queue_status(self, status: int, body: str) -> None:
        self.responses.append(httpx.Response(status, text=body))

    def queue_exception(self, exc: Exception) -> None:
        self.responses.append(exc)

    def bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]

    def client(self, api_key: str | None = "test-key") -> CompletionClient:
        http = httpx.Client(transport=httpx.MockTransport(self))
        client = CompletionClient(api_key, url=TEST_URL, http_client=http)
        self.clients.append(client)
        return client


@pytest.fixture
def service() -> FakeService:
    return FakeService()


@pytest.fixture
def scripted() -> Callable[[list[str]], Callable[[], str]]:
    """Build an ``input()`` stand-in that raises EOFError once its lines run out."""

    def _make(lines: list[str]) -> Callable[[], str]:
        it = iter(lines)

        def _read() -> str:
            try:
                return next(it)
            except StopIteration:
                raise EOFError from None

        return _read

    return _make
