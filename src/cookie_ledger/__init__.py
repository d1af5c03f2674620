"""Cookie sale reconciliation for a single troop.

Importing the package configures the shared ``log`` used by every module.
Log files go to ``.logs/`` at the project root unless the
``COOKIE_LEDGER_LOG_DIR`` environment variable names another directory.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[2]
LOG_DIR = Path(os.environ.get("COOKIE_LEDGER_LOG_DIR") or PROJECT_ROOT / ".logs")
LOG_FILE = LOG_DIR / "cookie_ledger.log"
LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"


def _configure_logging(name: str = __name__, log_file: Path = LOG_FILE) -> logging.Logger:
    """Attach a rotating file handler and a stderr handler to logger ``name``.

    The file receives INFO and above; the console only WARNING and above so
    that per-import progress stays out of a caller's terminal. Calling this
    again for a logger that already has handlers changes nothing.
    """

    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=1_000_000,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    except OSError as exc:
        print(
            f"Warning: unable to initialize log file at '{log_file}': {exc}",
            file=sys.stderr,
        )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


log = _configure_logging()
log.debug("Logger initialized for the 'cookie_ledger' package.")

from .pipeline import populate_store, run_pipeline  # noqa: E402
from .unified import build_unified_dataset  # noqa: E402

__all__ = [
    "log",
    "build_unified_dataset",
    "populate_store",
    "run_pipeline",
]
