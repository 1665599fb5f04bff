# dashboard_sync/db_sync/models.py
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy.engine import URL, make_url


class Role(Enum):
    SOURCE = "production"
    DESTINATION = "dashboard"


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass
class SourceRecord:
    """Row read from the production table"""
    id: int
    status: str
    date_time: datetime


@dataclass
class MirrorRecord:
    """Row stored in the dashboard mirror table"""
    id: int
    status: str
    date_time: datetime
    last_updated: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ID': self.id,
            'Status': self.status,
            'DateTime': self.date_time.isoformat() if self.date_time else None,
            'LastUpdated': self.last_updated.isoformat() if self.last_updated else None,
        }


@dataclass
class SyncResult:
    started_at: datetime
    finished_at: Optional[datetime] = None
    rows_fetched: int = 0
    rows_synced: int = 0
    rows_failed: int = 0
    failed_ids: List[int] = field(default_factory=list)
    status: str = 'success'
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'started_at': self.started_at.isoformat(),
            'finished_at': self.finished_at.isoformat() if self.finished_at else None,
            'rows_fetched': self.rows_fetched,
            'rows_synced': self.rows_synced,
            'rows_failed': self.rows_failed,
            'failed_ids': list(self.failed_ids),
            'status': self.status,
            'error_message': self.error_message,
        }


def _known_fields(cls, values: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in (values or {}).items() if k in names}


@dataclass
class PoolConfig:
    size: int = 10
    max_overflow: int = 0
    timeout: int = 30  # seconds
    recycle: int = 1800  # seconds
    pre_ping: bool = True

    @classmethod
    def from_dict(cls, values: Optional[Dict[str, Any]]) -> 'PoolConfig':
        return cls(**_known_fields(cls, values))


@dataclass
class DatabaseConfig:
    """Connection settings for one of the two stores"""
    table: str
    url: Optional[str] = None
    driver: str = 'mssql+pyodbc'
    host: Optional[str] = None
    port: Optional[int] = None
    database: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    odbc_driver: str = 'ODBC Driver 18 for SQL Server'
    encrypt: bool = True
    trust_server_certificate: bool = True

    @classmethod
    def from_dict(cls, values: Optional[Dict[str, Any]]) -> 'DatabaseConfig':
        return cls(**_known_fields(cls, values))

    def sqlalchemy_url(self) -> URL:
        """Build the SQLAlchemy URL, preferring an explicit url"""
        if self.url:
            return make_url(self.url)

        query = {}
        if self.driver == 'mssql+pyodbc':
            query = {
                'driver': self.odbc_driver,
                'Encrypt': 'yes' if self.encrypt else 'no',
                'TrustServerCertificate': 'yes' if self.trust_server_certificate else 'no',
            }
        return URL.create(
            self.driver,
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
            query=query,
        )

    def engine_options(self, pool: PoolConfig) -> Dict[str, Any]:
        return {
            'pool_size': pool.size,
            'max_overflow': pool.max_overflow,
            'pool_timeout': pool.timeout,
            'pool_recycle': pool.recycle,
            'pool_pre_ping': pool.pre_ping,
        }

    def describe(self) -> str:
        """Connection target without credentials, for logging"""
        return self.sqlalchemy_url().render_as_string(hide_password=True)


@dataclass
class RetryPolicy:
    max_attempts: int = 5
    delay: float = 5.0  # seconds, flat

    @classmethod
    def from_dict(cls, values: Optional[Dict[str, Any]]) -> 'RetryPolicy':
        return cls(**_known_fields(cls, values))


@dataclass
class SyncConfig:
    interval: float = 10.0  # seconds
    window_size: int = 100
    upsert_workers: int = 1
    overlap_policy: str = 'allow'

    @classmethod
    def from_dict(cls, values: Optional[Dict[str, Any]]) -> 'SyncConfig':
        return cls(**_known_fields(cls, values))


@dataclass
class ApiConfig:
    host: str = '0.0.0.0'
    port: int = 5000
    prefix: str = '/api'
    read_limit: int = 50
    cors_origin: Optional[str] = '*'

    @classmethod
    def from_dict(cls, values: Optional[Dict[str, Any]]) -> 'ApiConfig':
        return cls(**_known_fields(cls, values))
