"""
Logger Configuration
Console logging for every entry point, with an optional file handler.
"""

import logging
from pathlib import Path
from typing import Optional, Union

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    level: Union[str, int] = "INFO",
    fmt: str = DEFAULT_FORMAT,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """Configure the ``usagemet`` logger hierarchy and return its root logger."""
    logger = logging.getLogger("usagemet")
    logger.setLevel(level)
    formatter = logging.Formatter(fmt)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
