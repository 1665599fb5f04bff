# dashboard_sync/db_sync/schema.py
import logging

from sqlalchemy import (Column, DateTime, Index, Integer, MetaData, Table, Unicode,
                        column, func, inspect, table)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.expression import TableClause

logger = logging.getLogger(__name__)


def build_mirror_table(name: str, metadata: MetaData = None) -> Table:
    """Dashboard mirror table: one row per production ID"""
    metadata = metadata if metadata is not None else MetaData()
    mirror = Table(
        name, metadata,
        Column('ID', Integer, primary_key=True, autoincrement=False),
        Column('Status', Unicode(255)),
        Column('DateTime', DateTime),
        Column('LastUpdated', DateTime, server_default=func.now()),
    )
    Index('idx_datetime', mirror.c.DateTime.desc())
    return mirror


def build_source_table(name: str) -> TableClause:
    # Production schema is owned elsewhere; only the three columns we read
    return table(
        name,
        column('ID', Integer),
        column('Status', Unicode),
        column('DateTime', DateTime),
    )


def ensure_destination_schema(engine: Engine, mirror: Table) -> bool:
    """
    Create the mirror table and its DateTime index if the table is missing

    Returns:
        True when the table was created, False when it already existed
    """
    try:
        if inspect(engine).has_table(mirror.name):
            logger.info(f"{mirror.name} already exists")
            return False

        with engine.begin() as conn:
            mirror.create(conn, checkfirst=True)
        logger.info(f"{mirror.name} created successfully")
        return True
    except SQLAlchemyError as e:
        logger.error(f"Error initializing dashboard table: {str(e)}")
        raise
