"""Logging configuration for portfolio-live.

All modules in this package log to children of `.RELAY_LOGGER`, obtained
with ``logging.getLogger(__name__)``. A `.RelayServer` calls
`.configure_relay_logger` when it is created, so that signals and dropped
notifications show up on the console without further set-up.
"""

import logging

from .exceptions import LogConfigurationError

RELAY_LOGGER = logging.getLogger("portfolio_live")
"""The parent logger of every logger in this package."""

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class RelayLogHandler(logging.StreamHandler):
    """A `logging.StreamHandler` we can recognise on the package logger.

    Using a subclass means `.configure_relay_logger` can tell whether it has
    already added a handler, without disturbing handlers added by an
    application embedding the relay.
    """


def configure_relay_logger(level: str | int = logging.INFO) -> None:
    """Set up the package logger with a single console handler.

    This function is safe to call multiple times: the handler is added only
    once, and the level is updated every time.

    :param level: the logging level, either as a name (e.g. ``"DEBUG"``) or
        as one of the constants in `logging`.

    :raise LogConfigurationError: if ``level`` is not a valid logging level.
    """
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise LogConfigurationError(f"'{level}' is not a valid log level.")
        level = resolved
    RELAY_LOGGER.setLevel(level)
    if not any(isinstance(h, RelayLogHandler) for h in RELAY_LOGGER.handlers):
        handler = RelayLogHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        RELAY_LOGGER.addHandler(handler)
