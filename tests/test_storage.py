# tests/test_storage.py
from datetime import timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy.dialects import mssql

from conftest import BASE_TIME, make_record, make_rows
from dashboard_sync.db_sync.errors import UnsupportedDialectError


def test_upsert_creates_new_row(mirror_store):
    record = make_record(7, status='Running', minutes=5)
    mirror_store.upsert(record)

    rows = mirror_store.fetch_recent(50)
    assert len(rows) == 1
    assert rows[0].id == 7
    assert rows[0].status == 'Running'
    assert rows[0].date_time == record.date_time
    assert rows[0].last_updated is not None


def test_upsert_updates_existing_row(mirror_store):
    mirror_store.upsert(make_record(1, status='Running', minutes=1))
    mirror_store.upsert(make_record(2, status='Running', minutes=2))

    mirror_store.upsert(make_record(1, status='Down', minutes=3))

    assert mirror_store.count() == 2
    updated = {row.id: row for row in mirror_store.fetch_recent(50)}[1]
    assert updated.status == 'Down'
    assert updated.date_time == BASE_TIME + timedelta(minutes=3)


def test_upsert_is_idempotent(mirror_store):
    record = make_record(3, status='Idle', minutes=10)

    mirror_store.upsert(record)
    first = mirror_store.fetch_recent(50)[0]
    stale = BASE_TIME - timedelta(days=365)
    with mirror_store.engine.begin() as conn:
        conn.execute(mirror_store.mirror.update().values(LastUpdated=stale))

    mirror_store.upsert(record)
    second = mirror_store.fetch_recent(50)[0]

    assert mirror_store.count() == 1
    assert (second.status, second.date_time) == (first.status, first.date_time)
    assert second.last_updated > stale


def test_mirror_reads_newest_first(mirror_store):
    for minutes, record_id in [(1, 10), (30, 11), (15, 12)]:
        mirror_store.upsert(make_record(record_id, minutes=minutes))

    assert [row.id for row in mirror_store.fetch_recent(50)] == [11, 12, 10]
    assert [row.id for row in mirror_store.fetch_recent(2)] == [11, 12]


def test_source_window_is_bounded_and_ordered(source_reader, populate_source):
    populate_source(make_rows(150))

    records = source_reader.fetch_recent(100)

    assert len(records) == 100
    assert records[0].id == 150
    assert records[-1].id == 51
    times = [record.date_time for record in records]
    assert times == sorted(times, reverse=True)


def test_source_ties_break_on_id(source_reader, populate_source):
    rows = [{'ID': i, 'Status': 'Running', 'DateTime': BASE_TIME} for i in (4, 9, 2)]
    populate_source(rows)

    assert [record.id for record in source_reader.fetch_recent(100)] == [9, 4, 2]


def test_mssql_upsert_uses_locked_merge(mirror_store):
    engine = SimpleNamespace(dialect=mssql.dialect())
    statement = mirror_store._upsert_statement(engine, make_record(1))

    sql = str(statement)
    assert 'MERGE [DashboardTable] WITH (HOLDLOCK)' in sql
    assert 'WHEN NOT MATCHED THEN' in sql
    assert 'GETDATE()' in sql


def test_unsupported_dialect_is_rejected(mirror_store):
    engine = SimpleNamespace(dialect=SimpleNamespace(name='oracle'))
    with pytest.raises(UnsupportedDialectError):
        mirror_store._upsert_statement(engine, make_record(1))
