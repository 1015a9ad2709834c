"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """littlechat configuration. All values come from environment variables."""

    # Anthropic
    anthropic_api_key: str = Field(default="")
    anthropic_api_url: str = Field(default="https://api.anthropic.com/v1/messages")
    anthropic_version: str = Field(default="2023-06-01")
    api_key_file: Path = Field(default=Path("apiKey.txt"))

    # Chat
    default_chat_model: str = Field(default="opus-4.1")
    max_tokens: int = Field(default=50, ge=1)

    # Session files
    chat_history_dir: Path = Field(default=Path("ChatHistory"))

    # Logging
    log_level: str = Field(default="WARNING")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)


settings = Settings()
