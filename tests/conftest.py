import pytest

import database


@pytest.fixture
def db(tmp_path):
    """Пустая SQLite база на время теста"""
    database.configure(f"sqlite:///{tmp_path / 'barcut_test.db'}")
    database.init_db()
    yield database
    database.engine.dispose()


@pytest.fixture
def client(db):
    from fastapi.testclient import TestClient
    from api import app

    return TestClient(app)
