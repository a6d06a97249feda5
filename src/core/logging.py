"""Logging setup shared by the API server and the admin CLI."""

import logging
import sys

from src.core.config import get_config

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are noisy at DEBUG/INFO.
_QUIET_LOGGERS = ("httpx", "httpcore", "openai", "PIL")


def setup_logging(level: str | None = None) -> None:
    """
    Configure application logging.

    Invariants:
    - The root logger level comes from Settings.log_level unless level is given.
    - A single stdout handler is installed; existing root handlers are removed so
      repeated calls (e.g. uvicorn reload, tests) do not duplicate output.
    - HTTP client and image library loggers are capped at WARNING.
    """
    cfg_level = level or get_config().log_level
    resolved = logging.getLevelName(cfg_level.upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    root = logging.getLogger()
    root.setLevel(resolved)
    for h in root.handlers[:]:
        root.removeHandler(h)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(resolved)
    console.setFormatter(formatter)
    root.addHandler(console)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))
