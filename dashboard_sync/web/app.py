# dashboard_sync/web/app.py
from datetime import datetime, timezone
from typing import Optional
import logging

from flask import Blueprint, Flask, current_app, jsonify

from ..db_sync.connections import ConnectionManager
from ..db_sync.errors import is_connection_error
from ..db_sync.models import ApiConfig, Role
from ..db_sync.sync_service import DatabaseSyncService
from ..storage.base import MirrorStore

logger = logging.getLogger(__name__)

api = Blueprint('api', __name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


@api.route('/data')
def data():
    """Most recent mirror rows, newest first"""
    connections = current_app.connections
    try:
        if not connections.is_alive(Role.DESTINATION):
            logger.info("Dashboard database connection lost, reconnecting")
            connections.connect(Role.DESTINATION)

        records = current_app.mirror_store.fetch_recent(current_app.api_config.read_limit)
        return jsonify({
            'success': True,
            'count': len(records),
            'data': [record.to_dict() for record in records],
            'timestamp': _timestamp(),
        })
    except Exception as e:
        logger.error(f"Error fetching dashboard data: {str(e)}")
        if is_connection_error(e):
            connections.mark_disconnected(Role.DESTINATION)
        return jsonify({
            'success': False,
            'error': 'Failed to fetch dashboard data',
            'message': str(e),
        }), 500


@api.route('/health')
def health():
    """Report last known connection state without querying either database"""
    connections = current_app.connections
    statuses = connections.status()
    healthy = all(state == 'connected' for state in statuses.values())

    sync_service = current_app.sync_service
    last_result = sync_service.last_result if sync_service else None

    body = {
        'status': 'ok' if healthy else 'degraded',
        'timestamp': _timestamp(),
        'connections': statuses,
        'last_sync': last_result.to_dict() if last_result else None,
    }
    return jsonify(body), 200 if healthy else 503


def create_app(connections: ConnectionManager, mirror_store: MirrorStore,
               api_config: Optional[ApiConfig] = None,
               sync_service: Optional[DatabaseSyncService] = None) -> Flask:
    app = Flask(__name__)
    app.connections = connections
    app.mirror_store = mirror_store
    app.api_config = api_config or ApiConfig()
    app.sync_service = sync_service
    app.register_blueprint(api, url_prefix=app.api_config.prefix or None)

    if app.api_config.cors_origin:
        @app.after_request
        def add_cors_headers(response):
            response.headers['Access-Control-Allow-Origin'] = app.api_config.cors_origin
            return response

    return app
