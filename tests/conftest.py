from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from pingstats import main, storage

PEPPER = "test-pepper"


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def db(tmp_path, monkeypatch):
    monkeypatch.setattr(storage, "DB_PATH", tmp_path / "pings.sqlite3")
    storage.init_db()
    return storage.DB_PATH


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 1, 10, 12, 0, 0))


@pytest.fixture
def client(db, clock):
    main.app.dependency_overrides[main.get_pepper] = lambda: PEPPER
    main.app.dependency_overrides[main.get_now] = clock
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()


@pytest.fixture
def add_ping(db):
    def _add(identifier: str, at: datetime):
        storage.register_if_absent(identifier, now=at)
        storage.insert_ping(identifier, at)
    return _add
