# tests/conftest.py
import pytest
import tempfile
from datetime import datetime, timedelta
from pathlib import Path

from sqlalchemy import Column, DateTime, Integer, MetaData, Table, Unicode, create_engine

from dashboard_sync.db_sync.connections import ConnectionManager
from dashboard_sync.db_sync.models import DatabaseConfig, RetryPolicy, Role, SourceRecord
from dashboard_sync.storage.sql_storage import SQLMirrorStore, SQLSourceReader

BASE_TIME = datetime(2026, 10, 19, 6, 0, 0)


class RecordingEvent:
    """Stand-in stop event that records retry waits instead of sleeping"""

    def __init__(self, stopped=False):
        self.waits = []
        self.stopped = stopped

    def wait(self, timeout=None):
        self.waits.append(timeout)
        return self.stopped

    def set(self):
        self.stopped = True

    def is_set(self):
        return self.stopped


def make_rows(count, start_id=1):
    return [
        {
            'ID': i,
            'Status': 'Running' if i % 2 else 'Down',
            'DateTime': BASE_TIME + timedelta(minutes=i),
        }
        for i in range(start_id, start_id + count)
    ]


def make_record(record_id, status='Running', minutes=0):
    return SourceRecord(id=record_id, status=status, date_time=BASE_TIME + timedelta(minutes=minutes))


@pytest.fixture
def db_dir():
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


@pytest.fixture
def source_db(db_dir):
    url = f"sqlite:///{db_dir / 'production.db'}"
    engine = create_engine(url)
    metadata = MetaData()
    Table(
        'ProductionTable', metadata,
        Column('ID', Integer, primary_key=True, autoincrement=False),
        Column('Status', Unicode(255)),
        Column('DateTime', DateTime),
    )
    metadata.create_all(engine)
    engine.dispose()
    return DatabaseConfig(table='ProductionTable', url=url)


@pytest.fixture
def dashboard_db(db_dir):
    return DatabaseConfig(table='DashboardTable', url=f"sqlite:///{db_dir / 'dashboard.db'}")


@pytest.fixture
def populate_source(source_db):
    def _populate(rows):
        engine = create_engine(source_db.url)
        metadata = MetaData()
        production = Table('ProductionTable', metadata, autoload_with=engine)
        with engine.begin() as conn:
            conn.execute(production.insert(), rows)
        engine.dispose()
    return _populate


@pytest.fixture
def fast_retry():
    return RetryPolicy(max_attempts=5, delay=0)


@pytest.fixture
def connections(source_db, dashboard_db, fast_retry):
    manager = ConnectionManager(source_db, dashboard_db, retry=fast_retry)
    yield manager
    manager.close_all()


@pytest.fixture
def mirror_store(connections):
    connections.connect(Role.DESTINATION)
    store = SQLMirrorStore(connections, 'DashboardTable')
    store.ensure_schema()
    return store


@pytest.fixture
def source_reader(connections):
    connections.connect(Role.SOURCE)
    return SQLSourceReader(connections, 'ProductionTable')
