"""Shared fixtures: a throwaway database per test and a controllable clock."""

from datetime import datetime, timedelta, timezone

import pytest

from context_memory.storage import MemoryStore
from context_memory.storage import sqlite_store
from context_memory.utils import to_utc_iso


class FakeClock:
    """Returns a strictly increasing timestamp on every call."""

    def __init__(self, start=None, step=timedelta(seconds=1)):
        self.current = start or datetime(2026, 1, 1, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> str:
        self.current += self.step
        return to_utc_iso(self.current)

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)


@pytest.fixture()
def db_path(tmp_path):
    return tmp_path / "nested" / "dir" / "memories.db"


@pytest.fixture()
def memory_store(db_path):
    store = MemoryStore(db_path)
    yield store
    store.close()


@pytest.fixture()
def clock(monkeypatch):
    fake = FakeClock()
    monkeypatch.setattr(sqlite_store, "utc_now_iso", fake)
    return fake
