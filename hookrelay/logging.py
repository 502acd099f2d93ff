"""Logging from config and env.

Levels (inclusive):
- ERROR: critical errors only
- WARNING: rejected deliveries, failed forwards, failed commands, and ERROR
- INFO: one line per pipeline stage, WARNING, and ERROR
- DEBUG: debugging and all levels above

Configure via config.yaml (logging.level, logging.format) or env (LOGGING_LEVEL, LOGGING_FORMAT).
Secrets and computed signatures are never logged at any level.
"""

import logging

from hookrelay.config import LoggingConfig

# Supported levels only (DEBUG, INFO, WARNING, ERROR)
LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

DEFAULT_LEVEL = "INFO"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

REDACTED = "[SECRET REDACTED]"


def _resolve_level(level: str) -> int:
    """Map level name to logging constant.

    Falls back to DEFAULT_LEVEL if unknown.
    """
    return LEVELS.get(level.upper().strip(), LEVELS[DEFAULT_LEVEL])


def redact(text: str, *secrets: str | None) -> str:
    """Replace every non-empty secret occurring in text with a marker."""
    for secret in secrets:
        if secret:
            text = text.replace(secret, "***")
    return text


class RelayLogging:
    """Configures root logger from LoggingConfig (YAML + env LOGGING_*)."""

    def __init__(self, config: LoggingConfig) -> None:
        self._level = _resolve_level(config.level)
        self._format = config.format or DEFAULT_FORMAT

    def setup(self) -> None:
        """Apply level and format to the root logger."""
        logging.basicConfig(
            level=self._level,
            format=self._format,
            force=True,
        )
        # urllib3 logs full request URLs at DEBUG
        logging.getLogger("urllib3").setLevel(max(self._level, logging.INFO))

    def get_logger(self, name: str) -> logging.Logger:
        """Return a logger with the given name (uses root config)."""
        return logging.getLogger(name)
