import logging
import sys


APP_LOGGER = "task_tracker"


def get_logger(name: str) -> logging.Logger:
    """Child of the ``task_tracker`` logger, e.g. ``task_tracker.task_service``."""
    return logging.getLogger(f"{APP_LOGGER}.{name}")


class _ThirdPartyFilter(logging.Filter):
    """Keep our own records, let library chatter through only from WARNING up."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name == APP_LOGGER or record.name.startswith(APP_LOGGER + "."):
            return True
        return record.levelno >= logging.WARNING


def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger with a single stderr handler.

    Call once at startup; repeated calls replace the handler instead of
    stacking duplicates.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    handler.addFilter(_ThirdPartyFilter())
    root.addHandler(handler)

    logging.captureWarnings(True)
