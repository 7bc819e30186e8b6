"""
Logging for PixFrog AI.

Everything goes through the "pixfrog" logger. `setup_logging()` is only
called by the CLI: it adds a per-run log file under the data directory and a
stderr handler, and routes uncaught exceptions into the log. Library use
(and the test suite) never touches the filesystem.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from .config import APP_NAME, APP_VERSION, DATA_DIR


LOGGER_NAME = "pixfrog"
LOG_FILE_NAME = "pixfrog.log"

_FILE_FORMAT = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
_CONSOLE_FORMAT = logging.Formatter("%(levelname)s - %(message)s")

_log_file: Optional[Path] = None


def _open_file_handler(log_dir: Path) -> Optional[logging.Handler]:
    """File handler that truncates the previous run's log; None if the directory is unusable."""
    global _log_file
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_dir / LOG_FILE_NAME, mode="w", encoding="utf-8")
    except OSError as e:
        print(f"[WARN] File logging disabled: {e}")
        return None
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(_FILE_FORMAT)
    _log_file = log_dir / LOG_FILE_NAME
    return handler


def setup_logging(verbose: bool = False, log_dir: Optional[Path] = None) -> logging.Logger:
    """
    Configure the "pixfrog" logger for an interactive run.

    Safe to call more than once; handlers are replaced, not stacked.

    Args:
        verbose: Show INFO on stderr instead of WARNING and up.
        log_dir: Where pixfrog.log goes (default: <data dir>/logs).
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    file_handler = _open_file_handler(log_dir or DATA_DIR / "logs")
    if file_handler is not None:
        logger.addHandler(file_handler)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.INFO if verbose else logging.WARNING)
    console.setFormatter(_CONSOLE_FORMAT)
    logger.addHandler(console)

    logger.debug(f"{APP_NAME} v{APP_VERSION} on Python {sys.version.split()[0]}")
    if _log_file:
        logger.debug(f"Logging to {_log_file}")

    _install_excepthook(logger)
    return logger


def _install_excepthook(logger: logging.Logger) -> None:
    previous = sys.excepthook
    if getattr(previous, "_pixfrog_hook", False):
        return

    def hook(exc_type, exc_value, exc_traceback):
        if not issubclass(exc_type, KeyboardInterrupt):
            logger.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))
        previous(exc_type, exc_value, exc_traceback)

    hook._pixfrog_hook = True
    sys.excepthook = hook


def get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)


def get_log_file_path() -> Optional[Path]:
    """Path of the current run's log file, or None when file logging is off."""
    return _log_file


# Shorthands used across the package
def log_debug(message: str) -> None:
    get_logger().debug(message)


def log_info(message: str) -> None:
    get_logger().info(message)


def log_warning(message: str) -> None:
    get_logger().warning(message)


def log_error(message: str, detail: str = "", exc_info: bool = False) -> None:
    """Log `message`, with `detail` appended after a colon when given."""
    get_logger().error(f"{message}: {detail}" if detail else message, exc_info=exc_info)


def log_exception(message: str) -> None:
    """Log at ERROR with the active exception's traceback."""
    get_logger().exception(message)


def log_api_call(endpoint: str, success: bool, details: str = "") -> None:
    """
    One line per Gemini request.

    Successes go to INFO, failures to ERROR, so a quiet console still shows
    every call that went wrong.
    """
    line = f"Gemini {'OK' if success else 'FAILED'} {endpoint}"
    if details:
        line = f"{line} - {details}"
    get_logger().log(logging.INFO if success else logging.ERROR, line)


def log_retry(context: str, reason: str, delay: float, retries_left: int) -> None:
    get_logger().warning(f"{context}: {reason}, waiting {delay:g}s before retrying ({retries_left} left)")


def log_generation_start(kind: str, mode: str) -> None:
    get_logger().info(f"[{mode}] {kind} started")


def log_generation_complete(kind: str, success: bool, details: str = "") -> None:
    """Close out a generation started with log_generation_start."""
    line = f"{kind} {'finished' if success else 'failed'}"
    if details:
        line = f"{line} ({details})"
    get_logger().log(logging.INFO if success else logging.WARNING, line)
