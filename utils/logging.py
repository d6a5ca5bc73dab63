# utils/logging.py
from __future__ import annotations
import logging
import os

from rich.logging import RichHandler

ROOT_LOGGER = "crypto_portfolio"
LEVEL_ENV = "CRYPTO_PORTFOLIO_LOG_LEVEL"

_configured = False


def _configure_root() -> logging.Logger:
    global _configured
    root = logging.getLogger(ROOT_LOGGER)
    if _configured:
        return root
    handler = RichHandler(show_path=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root.addHandler(handler)
    try:
        root.setLevel(os.environ.get(LEVEL_ENV, "WARNING").upper())
    except ValueError:
        root.setLevel(logging.WARNING)
    _configured = True
    return root


def get_logger(name: str) -> logging.Logger:
    """Namespaced logger, e.g. get_logger("coingecko") -> crypto_portfolio.coingecko."""
    _configure_root()
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def set_level(level: int | str) -> None:
    _configure_root().setLevel(level)
