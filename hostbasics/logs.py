import logging

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER = "hostbasics"


def configure_logging(enabled: bool) -> logging.Logger:
    """Installs a stderr RichHandler on the package logger when enabled; otherwise keeps it quiet."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    if enabled:
        handler = RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
    else:
        logger.addHandler(logging.NullHandler())
        logger.setLevel(logging.WARNING)
    logger.propagate = False
    return logger
