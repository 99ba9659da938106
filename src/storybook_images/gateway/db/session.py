from collections.abc import Generator
from pathlib import Path
from typing import Any

from alembic import command
from alembic.config import Config
from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from storybook_images.gateway.db.models import Base
from storybook_images.gateway.log_config import logger

ALEMBIC_DIR = Path(__file__).resolve().parent.parent / "alembic"

_SessionLocal: sessionmaker[Session] | None = None


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _run_migrations(engine: Engine) -> None:
    alembic_cfg = Config()
    alembic_cfg.set_main_option("script_location", str(ALEMBIC_DIR))
    with engine.begin() as connection:
        alembic_cfg.attributes["connection"] = connection
        command.upgrade(alembic_cfg, "head")


def init_db(database_url: str, auto_migrate: bool = True) -> Engine:
    """Create the engine and session factory, then bring the schema up to date.

    With ``auto_migrate`` the alembic migrations run; otherwise tables are
    created straight from the models.
    """
    global _SessionLocal  # noqa: PLW0603

    is_sqlite = database_url.startswith("sqlite")
    connect_args = {"check_same_thread": False} if is_sqlite else {}
    engine = create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)
    if is_sqlite:
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)

    if auto_migrate:
        logger.info("Running database migrations")
        _run_migrations(engine)
    else:
        Base.metadata.create_all(bind=engine)

    _SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    return engine


def get_session_factory() -> sessionmaker[Session]:
    if _SessionLocal is None:
        msg = "Database not initialized. Call init_db() first."
        raise RuntimeError(msg)
    return _SessionLocal


def get_db() -> Generator[Session, None, None]:
    """Yield a database session for one request."""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()
