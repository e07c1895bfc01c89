"""Module for logging utilities"""

import logging

BASE_LOGGER = "gateway"
LOG_FORMAT = "[%(asctime)s %(name)s %(levelname)s] %(message)s"
LEVEL_NAMES = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")

def to_level(level: str | int) -> int:
    """Turn a level name (any case) or number into a logging level, INFO if unknown."""
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return level

def setup_logging(level: str | int = "INFO") -> None:
    """Set up the gateway logger with a single stream handler"""
    level = to_level(level)
    logger = logging.getLogger(BASE_LOGGER)
    logger.propagate = False
    logger.setLevel(level)
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
    logger.handlers.clear()
    logger.addHandler(handler)

def get_logger(child: str | None = None) -> logging.Logger:
    """Get the gateway logger, optionally a child of it."""
    logger = logging.getLogger(BASE_LOGGER)
    if child:
        return logger.getChild(child)
    return logger

def peer_logger(kind: str, peer: tuple[str, int] | None) -> logging.Logger:
    """Child logger named after a connection's kind and peer address."""
    if peer is None:
        return get_logger(f"{kind}[unknown]")
    return get_logger(f"{kind}[{peer[0]}:{peer[1]}]")

def set_logger_level(level: str | int, name: str = BASE_LOGGER) -> None:
    """Set the logging level for the given logger and its handlers."""
    level = to_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)
