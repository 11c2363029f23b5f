"""Logging setup for the WHOOP MCP server."""

import logging
import sys


class PlainFormatter(logging.Formatter):
    """Plain text formatter for stderr output."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure the root logger with a single stderr handler.

    stdout is left untouched so the stdio transport stays clean.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())
    root_logger.handlers.clear()

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(PlainFormatter())
    root_logger.addHandler(stderr_handler)
    return root_logger


def redact_token(token: str | None) -> str | None:
    """Shorten a secret so logs show presence without leaking it."""
    if not token:
        return token
    if len(token) <= 8:
        return "*" * max(len(token), 4)
    return f"{token[:4]}…{token[-4:]}"
