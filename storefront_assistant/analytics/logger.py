"""Application logging."""

import logging
import sys
from pathlib import Path
from typing import Iterable, Optional
from storefront_assistant.utils.config import settings

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"

# Provider SDKs and the HTTP stack log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "anthropic", "openai")


def quiet_loggers(names: Iterable[str] = NOISY_LOGGERS, level: int = logging.WARNING):
    for name in names:
        logging.getLogger(name).setLevel(level)


def setup_logger(
    name: str = "storefront_assistant", log_file: Optional[str] = None, log_level: str = "INFO"
) -> logging.Logger:
    """Configure the named application logger.

    Always logs to stdout; ``log_file`` adds a file handler with call-site
    details. An empty ``log_file`` disables file logging.
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    logger.handlers.clear()
    # uvicorn configures the root logger too; avoid printing every line twice
    logger.propagate = False

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    quiet_loggers()
    return logger


# Global logger instance
logger = setup_logger(log_file=settings.log_file, log_level=settings.log_level)
