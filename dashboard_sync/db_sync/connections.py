# dashboard_sync/db_sync/connections.py
import logging
import threading
from typing import Callable, Dict, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from .errors import ConnectionFailedError, SyncError
from .models import ConnectionState, DatabaseConfig, PoolConfig, RetryPolicy, Role

logger = logging.getLogger(__name__)


class ConnectionHandle:
    """Pooled engine for one role plus its last known state"""

    def __init__(self, role: Role, db_config: DatabaseConfig, pool: PoolConfig,
                 engine_factory: Callable[..., Engine] = create_engine):
        self.role = role
        self.db_config = db_config
        self.pool = pool
        self._engine_factory = engine_factory
        self.engine: Optional[Engine] = None
        self.state = ConnectionState.DISCONNECTED

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED and self.engine is not None

    def open(self) -> Engine:
        """Create the engine and check out one connection to prove it works"""
        self.state = ConnectionState.CONNECTING
        engine = None
        try:
            engine = self._engine_factory(
                self.db_config.sqlalchemy_url(),
                **self.db_config.engine_options(self.pool)
            )
            with engine.connect() as conn:
                conn.execute(text('SELECT 1'))
        except Exception:
            if engine is not None:
                engine.dispose()
            self.state = ConnectionState.DISCONNECTED
            raise

        self.engine = engine
        self.state = ConnectionState.CONNECTED
        return engine

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None
        self.state = ConnectionState.DISCONNECTED


class ConnectionManager:
    """Owns the production and dashboard connection pools"""

    def __init__(self, source: DatabaseConfig, destination: DatabaseConfig,
                 pool: Optional[PoolConfig] = None,
                 retry: Optional[RetryPolicy] = None,
                 engine_factory: Callable[..., Engine] = create_engine,
                 stop_event: Optional[threading.Event] = None):
        pool = pool or PoolConfig()
        self.retry = retry or RetryPolicy()
        self.stop_event = stop_event or threading.Event()
        self._handles: Dict[Role, ConnectionHandle] = {
            Role.SOURCE: ConnectionHandle(Role.SOURCE, source, pool, engine_factory),
            Role.DESTINATION: ConnectionHandle(Role.DESTINATION, destination, pool, engine_factory),
        }
        # Reentrant: a signal handler on the connecting thread may close the role
        self._locks = {role: threading.RLock() for role in Role}

    def handle(self, role: Role) -> ConnectionHandle:
        return self._handles[role]

    def is_alive(self, role: Role) -> bool:
        """Local liveness check; does not touch the database"""
        return self._handles[role].connected

    def connect(self, role: Role) -> Engine:
        """
        Connect the role, retrying with a flat delay

        Returns the existing engine when the role is already connected.

        Raises:
            ConnectionFailedError: all attempts failed or shutdown was requested
        """
        handle = self._handles[role]
        with self._locks[role]:
            if handle.connected:
                return handle.engine

            target = handle.db_config.describe()
            last_error = None
            for attempt in range(1, self.retry.max_attempts + 1):
                if self.stop_event.is_set():
                    logger.warning(f"Shutdown requested, giving up on {role.value} connection")
                    raise ConnectionFailedError(role.value, attempt - 1, last_error)

                try:
                    logger.info(f"Connecting to {role.value} database {target} "
                                f"(attempt {attempt}/{self.retry.max_attempts})")
                    engine = handle.open()
                    logger.info(f"Connected to {role.value} database")
                    return engine
                except Exception as e:
                    last_error = e
                    logger.error(f"Failed to connect to {role.value} database "
                                 f"(attempt {attempt}/{self.retry.max_attempts}): {str(e)}")

                if attempt < self.retry.max_attempts:
                    logger.info(f"Retrying {role.value} connection in {self.retry.delay} seconds")
                    self.stop_event.wait(self.retry.delay)

            logger.error(f"Max retries reached for {role.value} database connection")
            raise ConnectionFailedError(role.value, self.retry.max_attempts, last_error)

    def reconnect(self, role: Role) -> Engine:
        """Drop the current pool for the role and connect again"""
        self.mark_disconnected(role)
        return self.connect(role)

    def mark_disconnected(self, role: Role) -> None:
        with self._locks[role]:
            handle = self._handles[role]
            if handle.state is not ConnectionState.DISCONNECTED:
                logger.warning(f"Marking {role.value} database as disconnected")
            handle.close()

    def get_engine(self, role: Role) -> Engine:
        handle = self._handles[role]
        engine = handle.engine
        if engine is None or not handle.connected:
            raise SyncError(f"Connection is closed for {role.value} database")
        return engine

    def status(self) -> Dict[str, str]:
        return {
            role.value: 'connected' if self.is_alive(role) else 'disconnected'
            for role in Role
        }

    def close(self, role: Role) -> None:
        with self._locks[role]:
            self._handles[role].close()
        logger.info(f"Closed {role.value} database pool")

    def close_all(self) -> None:
        """Release both pools; interrupts any retry wait in progress"""
        self.stop_event.set()
        for role in Role:
            try:
                self.close(role)
            except Exception as e:
                logger.error(f"Error closing {role.value} database pool: {str(e)}")
