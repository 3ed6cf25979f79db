import pytest
from fastapi.testclient import TestClient

from roster_api.database import Database
from roster_api.main import create_app


@pytest.fixture()
def db_url(tmp_path):
    """A fresh SQLite database file per test."""
    return f"sqlite:///{tmp_path / 'roster_test.db'}"


@pytest.fixture()
def client(db_url):
    # entering the client runs the app lifespan (create tables / dispose)
    with TestClient(create_app(database_url=db_url)) as c:
        yield c


@pytest.fixture()
def db(db_url):
    database = Database(db_url)
    database.create_db_and_tables()
    yield database
    database.close()


@pytest.fixture()
def session(db):
    with db.session() as s:
        yield s
