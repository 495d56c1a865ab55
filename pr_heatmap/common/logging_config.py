from __future__ import annotations

import logging
from pathlib import Path
from typing import Final


DEFAULT_LOG_FORMAT: Final[str] = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def parse_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def configure_logging(level: str | int = logging.INFO, log_dir: str | None = None) -> None:
    """Configure standard library logging for the CLI.

    If log_dir is provided, logs are written to '<log_dir>/run.log' as well
    as stderr, so per-PR skip reasons survive the terminal session.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_dir is not None:
        Path(log_dir).expanduser().mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(Path(log_dir).expanduser() / "run.log", encoding="utf-8"))

    logging.basicConfig(level=parse_level(level), format=DEFAULT_LOG_FORMAT, handlers=handlers, force=True)
