import logging
import os

from rich.logging import RichHandler


class AlignedNameFormatter(logging.Formatter):
    """
    Pads logger names to the widest name seen so far, so messages line up
    across modules.
    """

    widest_name = 12

    def format(self, record):
        AlignedNameFormatter.widest_name = max(
            AlignedNameFormatter.widest_name, len(record.name)
        )
        record.name = record.name.ljust(AlignedNameFormatter.widest_name)
        return super().format(record)


def _log_level() -> int:
    if os.getenv("DEBUG") or os.getenv("STOREFRONT_DEBUG"):
        return logging.DEBUG
    return logging.INFO


def get_logger(name=None) -> logging.Logger:
    """
    Creates and returns a logger configured with RichHandler for rich output.
    """
    logger = logging.getLogger(name or "storefront")
    level = _log_level()
    logger.setLevel(level)

    if not logger.handlers:
        handler = RichHandler(
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            log_time_format="[%X]",
        )
        handler.setFormatter(AlignedNameFormatter("[%(name)s]  %(message)s"))
        handler.setLevel(level)
        logger.addHandler(handler)

        logger.propagate = False
        logger.debug(f"Logger for '{logger.name}' initialized.")

    return logger
