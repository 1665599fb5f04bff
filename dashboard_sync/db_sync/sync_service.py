# dashboard_sync/db_sync/sync_service.py
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import List, Optional, Tuple

from .connections import ConnectionManager
from .errors import ConnectionFailedError, is_connection_error
from .models import Role, SourceRecord, SyncConfig, SyncResult
from ..storage.base import MirrorStore, SourceReader

logger = logging.getLogger(__name__)


class DatabaseSyncService:
    """Mirrors the most recent production rows into the dashboard table"""

    def __init__(self, connections: ConnectionManager, source: SourceReader,
                 mirror: MirrorStore, config: Optional[SyncConfig] = None):
        self.connections = connections
        self.source = source
        self.mirror = mirror
        self.config = config or SyncConfig()
        self._validate_config()
        self.last_result: Optional[SyncResult] = None

    def _validate_config(self) -> None:
        """Validate configuration parameters"""
        if self.config.window_size < 1:
            raise ValueError("Window size must be at least 1")

        if self.config.upsert_workers < 1:
            raise ValueError("Upsert workers must be at least 1")

    def sync_once(self) -> SyncResult:
        """Perform a single synchronization tick; never raises"""
        result = SyncResult(started_at=datetime.now())
        try:
            self._run(result)
        except Exception as e:
            logger.error(f"Unexpected error during data sync: {str(e)}")
            result.status = 'error'
            result.error_message = str(e)

        result.finished_at = datetime.now()
        self.last_result = result
        return result

    def _run(self, result: SyncResult) -> None:
        logger.info("Starting data sync")

        try:
            self._ensure_connected()
        except ConnectionFailedError as e:
            logger.error(f"Skipping sync tick: {str(e)}")
            result.status = 'skipped'
            result.error_message = str(e)
            return

        try:
            records = self.source.fetch_recent(self.config.window_size)
        except Exception as e:
            logger.error(f"Error fetching rows from production database: {str(e)}")
            result.status = 'error'
            result.error_message = str(e)
            if is_connection_error(e):
                self._reconnect_all()
            return

        result.rows_fetched = len(records)
        logger.info(f"Fetched {len(records)} rows from production database")
        if not records:
            logger.info("No data to sync")
            result.status = 'empty'
            return

        failures, connection_lost = self._upsert_all(records)
        result.rows_failed = len(failures)
        result.failed_ids = [record_id for record_id, _ in failures]
        result.rows_synced = len(records) - len(failures)

        if failures:
            result.status = 'error' if result.rows_synced == 0 else 'partial'
            result.error_message = failures[-1][1]
            logger.warning(f"Synced {result.rows_synced}/{len(records)} rows, "
                           f"failed IDs: {result.failed_ids}")
        else:
            logger.info(f"Successfully synced {result.rows_synced} rows to dashboard database")

        if connection_lost:
            self._reconnect_all()

    def _ensure_connected(self) -> None:
        for role in Role:
            if not self.connections.is_alive(role):
                logger.info(f"{role.value} database connection lost, reconnecting")
                self.connections.connect(role)

    def _upsert_all(self, records: List[SourceRecord]) -> Tuple[List[Tuple[int, str]], bool]:
        """Upsert every record, returning (failed id and message) pairs and whether the connection dropped"""
        if self.config.upsert_workers > 1:
            with ThreadPoolExecutor(max_workers=self.config.upsert_workers) as pool:
                outcomes = list(pool.map(self._upsert_one, records))
            failures = [(record.id, error) for record, (error, _) in zip(records, outcomes) if error]
            return failures, any(lost for _, lost in outcomes)

        failures = []
        for index, record in enumerate(records):
            error, lost = self._upsert_one(record)
            if error:
                failures.append((record.id, error))
            if lost:
                # Remaining rows would fail on the same dead connection
                failures.extend((r.id, error) for r in records[index + 1:])
                return failures, True
        return failures, False

    def _upsert_one(self, record: SourceRecord) -> Tuple[Optional[str], bool]:
        try:
            self.mirror.upsert(record)
            return None, False
        except Exception as e:
            logger.error(f"Failed to upsert ID {record.id}: {str(e)}")
            return str(e), is_connection_error(e)

    def _reconnect_all(self) -> None:
        logger.info("Attempting to reconnect databases")
        for role in Role:
            try:
                self.connections.reconnect(role)
            except ConnectionFailedError as e:
                logger.error(f"Failed to reconnect: {str(e)}")
