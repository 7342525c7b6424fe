import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import Settings


def setup_logging(settings: Settings) -> None:
    """Send index logs to the console and to a rotating log file"""
    log_path = Path(settings.logging.file_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    file_handler = RotatingFileHandler(
        settings.logging.file_path,
        maxBytes=settings.logging.max_size_mb * 1024 * 1024,
        backupCount=settings.logging.backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.logging.level.upper()))

    # Calling this twice must not duplicate output
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    # SQL echo goes through the sqlalchemy.engine logger
    if settings.database.echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """Module logger; handlers come from setup_logging."""
    return logging.getLogger(name)
