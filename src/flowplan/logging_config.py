import logging
import sys
from typing import Optional

from flowplan.config import load_settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: Optional[str] = None, stream=None) -> logging.Logger:
    """
    Attach a console handler to the "flowplan" logger.

    Level comes from the argument, else FLOWPLAN_LOG_LEVEL, else INFO.
    Calling it twice does not stack handlers.
    """
    level_name = (level or load_settings().log_level).upper()
    numeric = getattr(logging, level_name, logging.INFO)

    logger = logging.getLogger("flowplan")
    logger.setLevel(numeric)

    for h in list(logger.handlers):
        if getattr(h, "_flowplan_handler", False):
            logger.removeHandler(h)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    handler.setLevel(numeric)
    handler._flowplan_handler = True
    logger.addHandler(handler)

    logger.debug("Logging initialized at %s", level_name)
    return logger
