from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from doneo.config import PROJECT_ROOT, SETTINGS, Settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def log_file_path(settings: Settings = SETTINGS) -> Path:
    log_dir = Path(settings.log_dir)
    if not log_dir.is_absolute():
        log_dir = PROJECT_ROOT / log_dir
    return log_dir / settings.log_file


def setup_logging(settings: Settings = SETTINGS) -> Path:
    log_file = log_file_path(settings)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: list[logging.Handler] = [
        RotatingFileHandler(log_file, maxBytes=2_000_000, backupCount=3, encoding="utf-8"),
        logging.StreamHandler(),
    ]
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=settings.log_level.upper(), handlers=handlers)
    # echo=True on the engine already logs SQL; keep it quiet otherwise
    if not settings.sql_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logging.getLogger(__name__).info("Logging initialized (%s); file: %s", settings.app_env, log_file)
    return log_file
