"""Logging setup for the generator.

All modules log through children of the ``api_bindgen`` logger; the CLI
configures it once according to the requested verbosity.
"""

import logging
import sys

VERBOSITY_LEVELS = {
    "quiet": logging.WARNING,
    "basic": logging.INFO,
    "debug": logging.DEBUG,
}

_logger = logging.getLogger("api_bindgen")


class _PlainFormatter(logging.Formatter):
    """Prefix warnings and errors with their level, leave progress lines bare."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if record.levelno >= logging.WARNING:
            return f"{record.levelname.capitalize()}: {message}"
        if record.levelno == logging.DEBUG:
            return f"  {message}"
        return message


def setup_logging(verbosity: str = "basic") -> logging.Logger:
    """Configure and return the package logger.

    The handler is replaced on every call so that it writes to the current
    ``sys.stderr``.
    """
    _logger.setLevel(VERBOSITY_LEVELS.get(verbosity, logging.INFO))

    for handler in list(_logger.handlers):
        _logger.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_PlainFormatter())
    _logger.addHandler(handler)

    return _logger
