# dashboard_sync/service.py
import logging
import threading
from typing import Any, Callable, Dict

from flask import Flask
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from .db_sync.connections import ConnectionManager
from .db_sync.models import (ApiConfig, DatabaseConfig, PoolConfig, RetryPolicy, Role,
                             SyncConfig, SyncResult)
from .db_sync.scheduler import SyncScheduler
from .db_sync.sync_service import DatabaseSyncService
from .storage.sql_storage import SQLMirrorStore, SQLSourceReader
from .web.app import create_app

logger = logging.getLogger(__name__)


class DashboardSyncService:
    """
    Long-lived owner of both connection pools and everything built on them

    Startup order: production connection, dashboard connection, mirror schema,
    one synchronous sync tick, then the fixed-rate scheduler.
    """

    def __init__(self, source_db: DatabaseConfig, dashboard_db: DatabaseConfig,
                 pool: PoolConfig = None, retry: RetryPolicy = None,
                 sync_config: SyncConfig = None, api_config: ApiConfig = None,
                 engine_factory: Callable[..., Engine] = create_engine):
        self.sync_config = sync_config or SyncConfig()
        self.api_config = api_config or ApiConfig()
        self._stop_event = threading.Event()
        self.connections = ConnectionManager(
            source_db, dashboard_db, pool=pool, retry=retry,
            engine_factory=engine_factory, stop_event=self._stop_event,
        )
        self.source = SQLSourceReader(self.connections, source_db.table)
        self.mirror = SQLMirrorStore(self.connections, dashboard_db.table)
        self.sync_service = DatabaseSyncService(
            self.connections, self.source, self.mirror, self.sync_config
        )
        self.scheduler = SyncScheduler(
            self.sync_service.sync_once,
            self.sync_config.interval,
            overlap_policy=self.sync_config.overlap_policy,
        )
        self._closed = False

    @classmethod
    def from_config(cls, config: Dict[str, Any], **kwargs) -> 'DashboardSyncService':
        return cls(
            source_db=DatabaseConfig.from_dict(config['production_db']),
            dashboard_db=DatabaseConfig.from_dict(config['dashboard_db']),
            pool=PoolConfig.from_dict(config.get('pool')),
            retry=RetryPolicy.from_dict(config.get('connection_retry')),
            sync_config=SyncConfig.from_dict(config.get('sync')),
            api_config=ApiConfig.from_dict(config.get('api')),
            **kwargs
        )

    def connect(self) -> None:
        """Connect both roles; ConnectionFailedError here is fatal for the caller"""
        self.connections.connect(Role.SOURCE)
        self.connections.connect(Role.DESTINATION)

    def initialize(self) -> bool:
        self.connections.connect(Role.DESTINATION)
        return self.mirror.ensure_schema()

    def start(self) -> SyncResult:
        self.connect()
        self.mirror.ensure_schema()
        result = self.sync_service.sync_once()
        self.scheduler.start()
        return result

    def create_app(self) -> Flask:
        return create_app(self.connections, self.mirror, self.api_config, self.sync_service)

    def shutdown(self) -> None:
        """Stop the scheduler and release both pools; safe to call twice"""
        if self._closed:
            return
        self._closed = True
        self.scheduler.stop()
        self.connections.close_all()
        logger.info("Dashboard sync service stopped")

    def __enter__(self) -> 'DashboardSyncService':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
