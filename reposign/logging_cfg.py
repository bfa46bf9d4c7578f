from __future__ import annotations

"""reposign.logging_cfg - logging setup for the reposign command line.

Operator messages ("signed successfully ...", "Initialized signed repository
...") go to stderr as plain lines.  ``--verbose`` switches to DEBUG, which
adds the skip notices and the reconcile reasons, and prefixes every line with
time, level and logger name.  The default level comes from the ``log_level``
config key.
"""

from pathlib import Path
import logging
from datetime import datetime

from . import config
from .errors import ConfigError

LOGGER_NAME = "reposign"

VERBOSE_FMT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
PLAIN_FMT = "%(message)s"
DATEFMT = "%H:%M:%S"


def _level(name: str | int) -> int:
    if isinstance(name, int):
        return name
    level = logging.getLevelName(str(name).upper())
    if not isinstance(level, int):
        raise ConfigError(f"unknown log_level '{name}'")
    return level


def setup_logging(verbose: bool = False, log_dir: str | Path | None = None) -> Path | None:
    """Attach console (and optional file) handlers to the ``reposign`` logger.

    Calling it again replaces the handlers of a previous call.  Returns the
    path of the log file if one is written, else None.
    """
    level = logging.DEBUG if verbose else _level(config.get("log_level", "INFO"))

    logger = logging.getLogger(LOGGER_NAME)
    for h in logger.handlers[:]:
        logger.removeHandler(h)
        h.close()
    logger.setLevel(level)
    logger.propagate = False

    console = logging.StreamHandler()
    console.setFormatter(
        logging.Formatter(VERBOSE_FMT, DATEFMT) if verbose else logging.Formatter(PLAIN_FMT)
    )
    logger.addHandler(console)

    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = Path(log_dir) / f"reposign_{ts}.log"
        fh = logging.FileHandler(log_path)
        # The file always records the full detail.
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(VERBOSE_FMT, DATEFMT))
        logger.setLevel(logging.DEBUG)
        console.setLevel(level)
        logger.addHandler(fh)
        return log_path
    return None
