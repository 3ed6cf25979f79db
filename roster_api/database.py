"""Database engine handle and session helpers.

The `Database` object wraps a SQLModel/SQLAlchemy engine and is owned by
whoever creates it: the FastAPI lifespan for the web app, the CLI script
for command-line imports, and fixtures in tests. Nothing here opens a
connection at import time.
"""

from contextlib import contextmanager
from typing import Iterator

from fastapi import Request
from sqlmodel import Session, SQLModel, create_engine

from . import models  # noqa: F401  registers tables on SQLModel.metadata


class Database:
    """Explicit store handle with an init/close lifecycle."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        connect_args = {}
        if url.startswith("sqlite"):
            # requests are served from FastAPI's threadpool
            connect_args["check_same_thread"] = False
        self.engine = create_engine(url, echo=echo, connect_args=connect_args)

    def create_db_and_tables(self):
        """Create tables from SQLModel metadata.

        Enough for the single `classroster` table; a schema change would
        want a proper migration tool (alembic) instead.
        """
        SQLModel.metadata.create_all(self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        with Session(self.engine) as session:
            yield session

    def close(self):
        """Release pooled connections."""
        self.engine.dispose()


def get_session(request: Request):
    """Yield a database `Session` for FastAPI dependency injection.

    The session comes from the `Database` stored on `app.state.db` by the
    application lifespan and is closed when the request scope finishes.
    """
    db: Database = request.app.state.db
    with db.session() as session:
        yield session
