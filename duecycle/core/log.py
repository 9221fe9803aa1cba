"""Logging setup for the command line."""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "duecycle"


def configure_logging(level: str = "WARNING", console: Console | None = None) -> logging.Logger:
    """Attach a rich handler to the package logger.

    Library modules only create loggers; handlers are installed here, once,
    by the CLI entry point. Calling it again replaces the handler.

    Args:
        level: Logging level name.
        console: Console to render to (default: stderr).

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False
    return logger
