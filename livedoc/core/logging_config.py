import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Iterable, List

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "livedoc.log"
LOG_FILE_SIZE = 10 * 1024 * 1024  # 10 MB
LOG_BACKUP_COUNT = 5

# Per-request and per-frame chatter from the servers and the file watcher
NOISY_LOGGERS = ("werkzeug", "websockets", "watchfiles")

# Marks handlers installed here, so a second setup replaces only those
HANDLER_MARKER = "_livedoc_handler"


def _mark(handler: logging.Handler) -> logging.Handler:
    setattr(handler, HANDLER_MARKER, True)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    return handler


def build_file_handler(log_file: Path) -> logging.Handler:
    """Rotating log file; always records DEBUG."""
    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=LOG_FILE_SIZE,
        backupCount=LOG_BACKUP_COUNT,
        encoding='utf-8'
    )
    handler.setLevel(logging.DEBUG)
    return _mark(handler)


def build_console_handler(debug_mode: bool = False) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.DEBUG if debug_mode else logging.INFO)
    return _mark(handler)


def livedoc_handlers(logger: logging.Logger) -> List[logging.Handler]:
    return [h for h in logger.handlers if getattr(h, HANDLER_MARKER, False)]


def quiet_loggers(names: Iterable[str] = NOISY_LOGGERS, level: int = logging.WARNING) -> None:
    for name in names:
        logging.getLogger(name).setLevel(level)


def setup_logging(log_dir: Path, debug_mode: bool = False) -> Path:
    """
    Route all livedoc logging to ``<log_dir>/livedoc.log`` and stdout.

    Safe to call again (a new config or ``--debug``): handlers from an
    earlier call are closed and replaced, while handlers installed by the
    host process, such as an editor or a test runner, are left alone.
    Returns the path of the log file.
    """
    log_dir = Path(log_dir).expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug_mode else logging.INFO)

    for handler in livedoc_handlers(root_logger):
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.addHandler(build_file_handler(log_file))
    root_logger.addHandler(build_console_handler(debug_mode))
    quiet_loggers()

    logging.getLogger(__name__).info(
        f"Logging initialized ({'debug' if debug_mode else 'info'}). Log file: {log_file}"
    )
    return log_file
