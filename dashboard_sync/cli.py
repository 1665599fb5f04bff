import click
import logging

from .config.config_loader import ConfigLoader
from .db_sync.errors import ConnectionFailedError
from .lifecycle import ShutdownHandler
from .logging_config import setup_logging
from .service import DashboardSyncService

logger = logging.getLogger(__name__)

config_option = click.option('--config', '-c', type=click.Path(exists=True),
                             help='Path to configuration file')


def _load(config_path):
    cfg = ConfigLoader(config_path).load()
    setup_logging(cfg)
    return cfg


@click.group()
def cli():
    """Production to dashboard database sync bridge"""
    pass


@cli.command()
@config_option
def serve(config):
    """Run the sync loop and the dashboard read API"""
    cfg = _load(config)
    service = DashboardSyncService.from_config(cfg)
    shutdown = ShutdownHandler()
    shutdown.on_shutdown(service.shutdown)
    shutdown.register()

    try:
        try:
            service.start()
        except ConnectionFailedError as e:
            logger.critical(f"Failed to start server: {str(e)}")
            raise click.ClickException(str(e))

        api = service.api_config
        base_url = f"http://localhost:{api.port}{api.prefix or ''}"
        logger.info(f"Server running on port {api.port}")
        logger.info(f"Dashboard API: {base_url}/data")
        logger.info(f"Health check: {base_url}/health")
        logger.info(f"Auto-sync interval: {service.sync_config.interval} seconds")

        app = service.create_app()
        app.run(host=api.host, port=api.port, threaded=True, use_reloader=False)
    finally:
        shutdown.run_callbacks()
        shutdown.unregister()


@cli.command('sync-once')
@config_option
def sync_once(config):
    """Run a single sync tick and report the result"""
    cfg = _load(config)
    with DashboardSyncService.from_config(cfg) as service:
        try:
            service.connect()
            service.mirror.ensure_schema()
        except ConnectionFailedError as e:
            raise click.ClickException(str(e))

        result = service.sync_service.sync_once()

    click.echo(f"status={result.status} fetched={result.rows_fetched} "
               f"synced={result.rows_synced} failed={result.rows_failed}")
    if result.status not in ('success', 'empty'):
        raise click.ClickException(result.error_message or f"Sync finished with status {result.status}")


@cli.command('init-schema')
@config_option
def init_schema(config):
    """Create the dashboard mirror table if it does not exist"""
    cfg = _load(config)
    with DashboardSyncService.from_config(cfg) as service:
        try:
            created = service.initialize()
        except ConnectionFailedError as e:
            raise click.ClickException(str(e))

    table = cfg['dashboard_db']['table']
    click.echo(f"Created {table}" if created else f"{table} already exists")


if __name__ == '__main__':
    cli()
