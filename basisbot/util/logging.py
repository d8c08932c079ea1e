from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s :: %(message)s"

# third-party loggers that are too chatty at DEBUG
_QUIET_LOGGERS = ("httpx", "httpcore")


def setup_logging(level: int | str = logging.INFO) -> None:
    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter(LOG_FORMAT)
    handler.setFormatter(formatter)
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def log_banner(logger: logging.Logger, title: str, lines: list[str], *, width: int = 60) -> None:
    rule = "=" * width
    logger.info(rule)
    logger.info(title)
    logger.info(rule)
    for line in lines:
        logger.info(line)
    logger.info(rule)
