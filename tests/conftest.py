"""
Shared fixtures.

- In-memory SQLite engine and session factory
- Sleep recorder so retry tests never wait
"""

import pytest

from storage.database import create_all_tables, create_database_engine, get_session_factory
from tests.helpers import SleepRecorder


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def engine():
    engine = create_database_engine("sqlite://")
    create_all_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return get_session_factory(engine)
