"""
Logging configuration.

Console output for operators plus a rotating file under ./logs. Gateway usage
recording failures are only ever reported here.
"""
import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler

from apihub.core.config import settings

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"

# Third-party loggers that are too chatty at INFO
NOISY_LOGGERS = ("sqlalchemy.engine", "multipart", "passlib")


def setup_logging(log_dir: str = "logs"):
    """Configure application logging."""
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    log_path = Path(log_dir)
    log_path.mkdir(exist_ok=True)

    root = logging.getLogger()
    root.setLevel(log_level)

    # setup_logging may run more than once per process (reloads, test imports)
    for handler in list(root.handlers):
        if getattr(handler, "name", None) in ("apihub-console", "apihub-file"):
            root.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.set_name("apihub-console")
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))

    file_handler = RotatingFileHandler(
        log_path / "apihub.log",
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5
    )
    file_handler.set_name("apihub-file")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))

    root.addHandler(console_handler)
    root.addHandler(file_handler)

    if not settings.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(max(log_level, logging.WARNING))
