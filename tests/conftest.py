from datetime import datetime

import pytest

import datespan


@pytest.fixture(autouse=True)
def restore_default_formats():
    before = datespan.default_formats()
    yield
    datespan._install(before)


@pytest.fixture
def frozen_now(monkeypatch):
    """Freeze the clock at 2023-10-09 12:00:00"""
    now = datetime(2023, 10, 9, 12)
    monkeypatch.setattr(datespan, "_now", lambda: now)
    return now
