# backend/database.py
from contextlib import contextmanager
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Owns the engine and session factory for one process.

    Created at application startup and disposed at shutdown; request handlers
    and services only ever see the sessions it hands out.
    """

    def __init__(self, url: str, *, echo: bool = False):
        self.url = url
        # Configuration depends on the backend
        if url.startswith("sqlite"):
            connect_args = {"check_same_thread": False, "timeout": 30}
            # In-memory databases must share a single connection across threads
            poolclass = StaticPool if ":memory:" in url or url == "sqlite://" else None
        else:
            connect_args = {}
            poolclass = None

        engine_kwargs = {"connect_args": connect_args, "echo": echo, "future": True}
        if poolclass is not None:
            engine_kwargs["poolclass"] = poolclass
        self.engine: Engine = create_engine(url, **engine_kwargs)

        if url.startswith("sqlite"):
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False, expire_on_commit=False)

    def session(self) -> Session:
        return self.SessionLocal()

    def create_all(self) -> None:
        # Importing the models registers every table on Base.metadata
        import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        import models  # noqa: F401

        Base.metadata.drop_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_db(request: Request) -> Iterator[Session]:
    db = get_database(request).session()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """Run a block of statements as one unit of work.

    Commits when the block returns normally, rolls back and re-raises on any
    exception. The session stays usable afterwards either way.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def init_db(database: Database) -> None:
    database.create_all()
