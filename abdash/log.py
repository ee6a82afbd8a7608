import logging
import sys
from typing import Optional


LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def setup_logging(log_level: str = "INFO", log_filename: Optional[str] = None) -> None:
    formatter = logging.Formatter(LOG_FORMAT)

    handlers = [
        # console (standard output)
        logging.StreamHandler(sys.stdout),
    ]
    if log_filename:
        handlers.append(logging.FileHandler(log_filename, mode="a"))

    for handler in handlers:
        handler.setFormatter(formatter)

    level = logging.getLevelName(str(log_level).upper())
    if not isinstance(level, int):
        level = logging.INFO

    # force=True so a second call (e.g. CLI flag after env config) replaces handlers
    logging.basicConfig(level=level, handlers=handlers, force=True)
