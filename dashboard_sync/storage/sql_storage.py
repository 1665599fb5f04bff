# dashboard_sync/storage/sql_storage.py
import logging
from typing import List

from sqlalchemy import DateTime, Integer, Unicode, bindparam, func, select, text
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .base import MirrorStore, SourceReader
from ..db_sync.connections import ConnectionManager
from ..db_sync.errors import UnsupportedDialectError
from ..db_sync.models import MirrorRecord, Role, SourceRecord
from ..db_sync.schema import build_mirror_table, build_source_table, ensure_destination_schema

logger = logging.getLogger(__name__)

# HOLDLOCK keeps the match and the insert in one serializable range lock
MSSQL_MERGE = '''
    MERGE {table} WITH (HOLDLOCK) AS target
    USING (SELECT :id AS ID, :status AS Status, :date_time AS [DateTime]) AS source
    ON target.ID = source.ID
    WHEN MATCHED THEN
        UPDATE SET
            Status = source.Status,
            [DateTime] = source.[DateTime],
            LastUpdated = GETDATE()
    WHEN NOT MATCHED THEN
        INSERT (ID, Status, [DateTime], LastUpdated)
        VALUES (source.ID, source.Status, source.[DateTime], GETDATE());
'''


class SQLSourceReader(SourceReader):
    def __init__(self, connections: ConnectionManager, table_name: str = 'ProductionTable'):
        self.connections = connections
        self.source = build_source_table(table_name)

    def fetch_recent(self, limit: int) -> List[SourceRecord]:
        query = (
            select(self.source.c.ID, self.source.c.Status, self.source.c.DateTime)
            .order_by(self.source.c.DateTime.desc(), self.source.c.ID.desc())
            .limit(limit)
        )
        try:
            engine = self.connections.get_engine(Role.SOURCE)
            with engine.connect() as conn:
                rows = conn.execute(query).all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to read from {self.source.name}: {str(e)}")
            raise

        return [SourceRecord(id=row.ID, status=row.Status, date_time=row.DateTime) for row in rows]


class SQLMirrorStore(MirrorStore):
    def __init__(self, connections: ConnectionManager, table_name: str = 'DashboardTable'):
        self.connections = connections
        self.mirror = build_mirror_table(table_name)

    @property
    def engine(self) -> Engine:
        return self.connections.get_engine(Role.DESTINATION)

    def ensure_schema(self) -> bool:
        return ensure_destination_schema(self.engine, self.mirror)

    def upsert(self, record: SourceRecord) -> None:
        engine = self.engine
        statement = self._upsert_statement(engine, record)
        with engine.begin() as conn:
            conn.execute(statement)
        logger.debug(f"Upserted ID {record.id} into {self.mirror.name}")

    def _upsert_statement(self, engine: Engine, record: SourceRecord):
        dialect = engine.dialect.name
        values = {'ID': record.id, 'Status': record.status, 'DateTime': record.date_time}

        if dialect == 'mssql':
            table_name = engine.dialect.identifier_preparer.quote_identifier(self.mirror.name)
            return text(MSSQL_MERGE.format(table=table_name)).bindparams(
                bindparam('id', record.id, type_=Integer),
                bindparam('status', record.status, type_=Unicode),
                bindparam('date_time', record.date_time, type_=DateTime),
            )

        if dialect in ('sqlite', 'postgresql'):
            insert = sqlite_insert if dialect == 'sqlite' else postgresql_insert
            stmt = insert(self.mirror).values(LastUpdated=func.now(), **values)
            return stmt.on_conflict_do_update(
                index_elements=[self.mirror.c.ID],
                set_={
                    'Status': stmt.excluded.Status,
                    'DateTime': stmt.excluded.DateTime,
                    'LastUpdated': func.now(),
                },
            )

        if dialect in ('mysql', 'mariadb'):
            stmt = mysql_insert(self.mirror).values(LastUpdated=func.now(), **values)
            return stmt.on_duplicate_key_update(
                Status=stmt.inserted.Status,
                DateTime=stmt.inserted.DateTime,
                LastUpdated=func.now(),
            )

        raise UnsupportedDialectError(f"No atomic upsert available for dialect '{dialect}'")

    def fetch_recent(self, limit: int) -> List[MirrorRecord]:
        query = (
            select(self.mirror)
            .order_by(self.mirror.c.DateTime.desc(), self.mirror.c.ID.desc())
            .limit(limit)
        )
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(query).all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to read from {self.mirror.name}: {str(e)}")
            raise

        return [
            MirrorRecord(id=row.ID, status=row.Status, date_time=row.DateTime,
                         last_updated=row.LastUpdated)
            for row in rows
        ]

    def count(self) -> int:
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(self.mirror)).scalar_one()
