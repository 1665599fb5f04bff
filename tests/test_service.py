# tests/test_service.py
import pytest

from conftest import make_rows
from dashboard_sync.config.config_loader import ConfigLoader
from dashboard_sync.db_sync.errors import ConnectionFailedError
from dashboard_sync.db_sync.models import DatabaseConfig, RetryPolicy, SyncConfig
from dashboard_sync.service import DashboardSyncService


@pytest.fixture
def service(source_db, dashboard_db, fast_retry):
    svc = DashboardSyncService(source_db, dashboard_db, retry=fast_retry,
                               sync_config=SyncConfig(interval=60))
    yield svc
    svc.shutdown()


def test_start_runs_initial_sync_and_scheduler(service, populate_source):
    populate_source(make_rows(4))

    result = service.start()

    assert result.status == 'success'
    assert service.mirror.count() == 4
    assert service.scheduler.is_running
    assert service.connections.status() == {'production': 'connected', 'dashboard': 'connected'}


def test_shutdown_releases_both_pools(service):
    service.start()

    service.shutdown()
    service.shutdown()

    assert service.connections.status() == {'production': 'disconnected', 'dashboard': 'disconnected'}
    assert not service.scheduler.is_running


def test_start_fails_when_dashboard_unreachable(source_db, db_dir):
    unreachable = DatabaseConfig(table='DashboardTable',
                                 url=f"sqlite:///{db_dir / 'missing' / 'dashboard.db'}")
    with DashboardSyncService(source_db, unreachable,
                              retry=RetryPolicy(max_attempts=2, delay=0)) as svc:
        with pytest.raises(ConnectionFailedError):
            svc.start()
        assert not svc.scheduler.is_running


def test_from_config(monkeypatch, source_db, dashboard_db):
    monkeypatch.setenv('PROD_DB_URL', source_db.url)
    monkeypatch.setenv('LOCAL_DB_URL', dashboard_db.url)
    monkeypatch.setenv('SYNC_INTERVAL', '30')
    cfg = ConfigLoader().load()

    with DashboardSyncService.from_config(cfg) as svc:
        assert svc.scheduler.interval == 30
        assert svc.sync_service.config.window_size == 100
        assert svc.api_config.port == int(cfg['api']['port'])
        assert svc.connections.retry.max_attempts == 5
        assert svc.create_app().url_map is not None
