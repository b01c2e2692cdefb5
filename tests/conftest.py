"""Shared fixtures: a temp-file SQLite store per test and a CSV export builder."""

import pytest

from db.session import Database, init_db
from factories import write_csv


@pytest.fixture
def database(tmp_path):
    db = init_db(Database(f"sqlite:///{tmp_path / 'sales.db'}"))
    yield db
    db.dispose()


@pytest.fixture
def make_csv(tmp_path):
    counter = {"n": 0}

    def _make(rows, name=None, **kwargs):
        counter["n"] += 1
        path = tmp_path / (name or f"export_{counter['n']}.csv")
        return write_csv(path, rows, **kwargs)

    return _make
