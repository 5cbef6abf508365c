"""
Pytest fixtures: a throwaway SQLite database per test.
"""
import pytest

from azan_alarm.core.db import dispose_db, init_db


@pytest.fixture(scope="function")
def db(tmp_path):
    """Fresh database for each test"""
    dispose_db()
    init_db(db_url=f"sqlite:///{tmp_path / 'test.db'}")
    try:
        yield
    finally:
        dispose_db()
