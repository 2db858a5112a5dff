from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from doneo.config import SETTINGS

Base = declarative_base()


def build_engine(url: str, **kwargs) -> Engine:
    engine = create_engine(url, echo=SETTINGS.sql_echo, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(bind=bind, autoflush=False, autocommit=False, expire_on_commit=False)


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


engine = build_engine(SETTINGS.database_url, pool_pre_ping=True)
SessionLocal = build_session_factory(engine)


def init_db() -> None:
    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))
