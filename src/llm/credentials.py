"""API credential loading."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.config import settings

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


def load_api_key(path: Path | None = None) -> str | None:
    """Return the Anthropic API key, or None if it is not configured.

    ``ANTHROPIC_API_KEY`` wins when set. Otherwise the key is read from
    *path* (default ``settings.api_key_file``) with surrounding line
    terminators removed. A missing, empty or unreadable file only logs a
    warning: requests are then sent without an ``x-api-key`` header.
    """
    if settings.anthropic_api_key:
        return settings.anthropic_api_key

    key_file = path or settings.api_key_file
    try:
        raw = key_file.read_text("utf-8")
    except OSError:
        logger.warning("Error reading API key from %s", key_file)
        return None

    api_key = raw.strip("\r\n")
    if not api_key:
        logger.warning("Please add your API key to %s", key_file)
        return None
    return api_key
