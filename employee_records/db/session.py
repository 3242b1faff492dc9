from __future__ import annotations

from collections.abc import Generator

from fastapi import Request
from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool


def build_engine(db_url: str) -> Engine:
    """
    Create the engine for `db_url`.

    In-memory SQLite gets a StaticPool so every session sees the same database;
    SQLite connections also get foreign key enforcement switched on.
    """

    if not db_url.startswith("sqlite"):
        return create_engine(db_url)

    kwargs: dict = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in db_url or db_url in ("sqlite://", "sqlite+pysqlite://"):
        kwargs["poolclass"] = StaticPool
    engine = create_engine(db_url, **kwargs)

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False, class_=Session)


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Main DB dependency.

    The session factory is built by `create_app` and kept on `app.state`;
    there is no module-level engine.
    """

    factory = getattr(request.app.state, "session_factory", None)
    if factory is None:
        raise RuntimeError("Session factory not configured. Did create_app run?")

    db = factory()
    try:
        yield db
    finally:
        db.close()
