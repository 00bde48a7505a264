"""Logging setup.

Log records go to a rotating file next to the database so they don't
interleave with the interactive console; only warnings and above reach stderr.
"""
import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_MAX_SIZE = 1024 * 1024
LOG_MAX_FILES = 3


def setup_logging(log_dir: str, level: str | None = None) -> None:
    resolved = getattr(logging, (level or os.getenv("STADE_LOG_LEVEL", "INFO")).upper(), logging.INFO)
    formatter = logging.Formatter(DEFAULT_FORMAT)

    root = logging.getLogger()
    root.setLevel(resolved)
    for h in list(root.handlers):
        root.removeHandler(h)

    Path(log_dir).mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        Path(log_dir) / "stade.log", maxBytes=LOG_MAX_SIZE, backupCount=LOG_MAX_FILES,
    )
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    console = logging.StreamHandler()
    console.setLevel(logging.WARNING)
    console.setFormatter(formatter)
    root.addHandler(console)

    # httpx logs every OpenAI request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
