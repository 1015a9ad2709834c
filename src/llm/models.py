"""Model table and the active chat model for this process."""

import logging

from src.config import settings

logger = logging.getLogger(__name__)

MODEL_MAP: dict[str, str] = {
    "opus-4.1": "claude-opus-4-1-20250805",
    "opus-4": "claude-opus-4-20250514",
    "sonnet-4": "claude-sonnet-4-20250514",
    "sonnet-3.7": "claude-3-7-sonnet-latest",
    "haiku-3.5": "claude-3-5-haiku-latest",
    "haiku-3": "claude-3-haiku-20240307",
}

DEFAULT_MODEL = "opus-4.1"

# Reverse lookup: full model string → friendly name
FRIENDLY_NAMES: dict[str, str] = {v: k for k, v in MODEL_MAP.items()}


def _resolve(name_or_id: str) -> str | None:
    """Resolve a friendly name or full model ID. Returns full ID or None."""
    if name_or_id in MODEL_MAP:
        return MODEL_MAP[name_or_id]
    if name_or_id in FRIENDLY_NAMES:
        return name_or_id
    return None


def friendly(model_id: str) -> str:
    """Return the friendly name for a model ID, or the ID itself."""
    return FRIENDLY_NAMES.get(model_id, model_id)


class ModelManager:
    """Singleton that tracks the chat model and reply budget for new chats."""

    _instance: "ModelManager | None" = None

    def __init__(self) -> None:
        self._chat_model = _resolve(settings.default_chat_model) or MODEL_MAP[DEFAULT_MODEL]
        self._max_tokens = settings.max_tokens
        logger.info(
            "Model: %s, max_tokens=%d", friendly(self._chat_model), self._max_tokens
        )

    @classmethod
    def get(cls) -> "ModelManager":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Clear the singleton (for tests)."""
        cls._instance = None

    def get_chat_model(self) -> str:
        return self._chat_model

    def get_max_tokens(self) -> int:
        return self._max_tokens

    def set_chat_model(self, name: str) -> str | None:
        """Set chat model by friendly name or ID. Returns full ID or None if invalid."""
        model_id = _resolve(name)
        if model_id:
            self._chat_model = model_id
            logger.info("Chat model → %s", friendly(model_id))
        return model_id

    def set_max_tokens(self, max_tokens: int) -> None:
        if max_tokens < 1:
            msg = f"max_tokens must be positive, got {max_tokens}"
            raise ValueError(msg)
        self._max_tokens = max_tokens
