from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[1]

_TRUTHY = {"1", "true", "yes", "on"}


def load_env(app_env: str) -> None:
    """Load `.env`, then `.env.<app_env>` on top of it.

    Each file is looked up in the working directory first, then in the
    project root.
    """
    search = (Path.cwd(), PROJECT_ROOT)
    for name, override in ((".env", False), (f".env.{app_env}", True)):
        found = next((base / name for base in search if (base / name).exists()), None)
        if found is not None:
            load_dotenv(found, override=override)


@dataclass(frozen=True)
class Settings:
    database_url: str
    app_env: str = "development"
    log_level: str = "INFO"
    log_dir: str = "logs"
    log_file: str = "doneo.log"
    sql_echo: bool = False


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ
    database_url = env.get("DATABASE_URL", "").strip()
    if not database_url:
        raise RuntimeError("DATABASE_URL is not set. Create a .env file with your connection string.")

    return Settings(
        database_url=database_url,
        app_env=env.get("APP_ENV", "development"),
        log_level=env.get("LOG_LEVEL", "INFO"),
        log_dir=env.get("LOG_DIR", "logs"),
        log_file=env.get("LOG_FILE", "doneo.log"),
        sql_echo=env.get("SQL_ECHO", "0").strip().lower() in _TRUTHY,
    )


load_env(os.getenv("APP_ENV", "development"))

SETTINGS = load_settings()
