"""littlechat entry point."""

import argparse
import logging
from functools import partial
from pathlib import Path

from src.bot.selector import SessionSelector
from src.config import settings
from src.llm.client import CompletionClient
from src.llm.credentials import load_api_key
from src.llm.models import MODEL_MAP, ModelManager, friendly

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Chat with Claude from the terminal.")
    parser.add_argument(
        "--model",
        help=f"Model name ({', '.join(MODEL_MAP)}) or full model ID",
    )
    parser.add_argument("--max-tokens", type=int, help="Reply length limit in tokens")
    parser.add_argument("--history-dir", type=Path, help="Directory holding session files")
    parser.add_argument("--api-key-file", type=Path, help="File containing the API key")
    return parser


def resolve_log_level(name: str) -> int:
    """Map a level name such as ``"debug"`` to its number; unknown names give WARNING."""
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.WARNING


def main(argv: list[str] | None = None) -> int:
    """Parse options, load the API key, and run the session menu."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=resolve_log_level(settings.log_level),
    )

    models = ModelManager.get()
    if args.model and models.set_chat_model(args.model) is None:
        logger.warning("Unknown model %r, using %s", args.model, friendly(models.get_chat_model()))
    if args.max_tokens is not None:
        try:
            models.set_max_tokens(args.max_tokens)
        except ValueError as exc:
            logger.warning("%s, using %d", exc, models.get_max_tokens())

    api_key = load_api_key(args.api_key_file)
    history_dir = args.history_dir or settings.chat_history_dir

    selector = SessionSelector(history_dir, partial(CompletionClient, api_key))
    try:
        selector.run()
    except KeyboardInterrupt:
        print()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
