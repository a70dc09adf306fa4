import json
import logging
import os
import sys
import time

from vpnkeeper.core.config import Config

_FORMAT = json.dumps({
    "ts": "%(asctime)s",
    "level": "%(levelname)s",
    "name": "%(name)s",
    "msg": "%(message)s",
})


def _formatter() -> logging.Formatter:
    formatter = logging.Formatter(fmt=_FORMAT, datefmt="%Y-%m-%dT%H:%M:%SZ")
    formatter.converter = time.gmtime  # timestamps en UTC
    return formatter


def configure_logging(config: Config) -> logging.Logger:
    """
    Structured one-line JSON logging for the whole ``vpnkeeper`` package.

    The stdout handler is installed once per process; each configured
    ``log_file`` gets its own file handler, even when the logger was already
    set up by an earlier app.
    """
    logger = logging.getLogger("vpnkeeper")
    level = logging.DEBUG if config.debug else logging.getLevelName(config.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logger.setLevel(level)

    if not any(type(h) is logging.StreamHandler for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(_formatter())
        logger.addHandler(handler)

    if config.log_file:
        path = os.path.abspath(config.log_file)
        already = any(
            isinstance(h, logging.FileHandler) and h.baseFilename == path
            for h in logger.handlers
        )
        if not already:
            directory = os.path.dirname(path)
            os.makedirs(directory, exist_ok=True)
            file_handler = logging.FileHandler(path)
            file_handler.setFormatter(_formatter())
            logger.addHandler(file_handler)

    return logger
