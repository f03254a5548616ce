import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Optional

APP_LOGGER_NAME = "ledger"

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries whose chatter is held at THIRD_PARTY_LOG_LEVEL
THIRD_PARTY_LOGGERS = (
    "sqlalchemy.engine",
    "sqlalchemy.dialects",
    "sqlalchemy.pool",
    "sqlalchemy.orm",
    "uvicorn.access",
    "uvicorn.error",
)


def _resolve_level(value: Optional[str], env_var: str, default: int) -> int:
    name = value or os.getenv(env_var)
    if not name:
        return default
    return getattr(logging, name.upper(), default)


def _file_handler(log_file: str, max_bytes: int, backup_count: int) -> logging.Handler:
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count)


def setup_logging(
    app_log_level: Optional[str] = None,
    third_party_log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    max_file_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
) -> logging.Logger:
    """
    Configure the "ledger" logger used by the API, the CRUD layer and the
    subscription sync job.

    Levels come from the arguments, then APP_LOG_LEVEL / THIRD_PARTY_LOG_LEVEL,
    then INFO / WARNING. Records go to stdout and, when LOG_FILE (or log_file)
    is set, to a rotating file as well. Calling it again replaces the handlers.
    """
    app_level = _resolve_level(app_log_level, "APP_LOG_LEVEL", logging.INFO)
    third_party_level = _resolve_level(third_party_log_level, "THIRD_PARTY_LOG_LEVEL", logging.WARNING)
    log_file = log_file or os.getenv("LOG_FILE")

    formatter = logging.Formatter(fmt=os.getenv("LOG_FORMAT", DEFAULT_FORMAT), datefmt=DEFAULT_DATE_FORMAT)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(_file_handler(log_file, max_file_size, backup_count))

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    app_logger.setLevel(app_level)
    app_logger.handlers.clear()
    for handler in handlers:
        handler.setLevel(app_level)
        handler.setFormatter(formatter)
        app_logger.addHandler(handler)
    app_logger.propagate = False

    for logger_name in THIRD_PARTY_LOGGERS:
        logging.getLogger(logger_name).setLevel(third_party_level)

    return app_logger


def get_logger(name: str = APP_LOGGER_NAME) -> logging.Logger:
    """Logger namespaced under "ledger", e.g. ledger.src.crud.crud_subscription."""
    if name == APP_LOGGER_NAME or name.startswith(f"{APP_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{APP_LOGGER_NAME}.{name}")
