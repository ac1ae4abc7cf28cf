"""Console logging — routes ``logging`` records through ``click.echo``."""

from __future__ import annotations

import logging

import click

LOGGER_NAME = "grpcgen"

_PREFIXES = {
    logging.DEBUG: ("[VERBOSE]", "bright_black"),
    logging.INFO: ("", None),
    logging.WARNING: ("[WARN]", "yellow"),
    logging.ERROR: ("[ERROR]", "red"),
    logging.CRITICAL: ("[ERROR]", "red"),
}


class ClickHandler(logging.Handler):
    """Write records to stderr with a coloured level prefix."""

    def __init__(self, color: bool | None = None) -> None:
        super().__init__()
        self.color = color

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            prefix, fg = _PREFIXES.get(record.levelno, ("", None))
            if prefix:
                msg = f"{click.style(prefix, fg=fg)} {msg}"
            click.echo(msg, err=True, color=self.color)
        except Exception:
            self.handleError(record)


def setup_logging(verbose: bool = False, color: bool | None = None) -> logging.Logger:
    """Configure the ``grpcgen`` logger. Safe to call more than once."""
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if isinstance(handler, ClickHandler):
            logger.removeHandler(handler)
    handler = ClickHandler(color=color)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    return logger
