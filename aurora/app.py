"""
Aurora Flask Application.

Main entry point for the web application. Initializes:
- Database schema
- Authorized modem list
- Flight assigner and flight cache
- API routes

Usage:
    python -m aurora.app

Or with gunicorn:
    gunicorn 'aurora.app:create_app()'
"""

import logging
import os
from datetime import datetime, timezone
from typing import Callable, Optional

from flask import Flask
from flask_cors import CORS

from aurora.api import assign_bp, flights_bp, meta_bp
from aurora.cache import FlightCache, flight_cache
from aurora.config import config
from aurora.ingestion import ModemList, ModemLoadError, SqlFlightStore
from aurora.models import init_db
from aurora.services import ElevationService, elevation_service
from aurora.tracking import FlightAssigner

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
)
logger = logging.getLogger(__name__)


def create_app(
    store: Optional[SqlFlightStore] = None,
    modems: Optional[ModemList] = None,
    cache: Optional[FlightCache] = None,
    elevation: Optional[ElevationService] = None,
    clock: Optional[Callable[[], datetime]] = None,
    init_database: bool = True,
) -> Flask:
    """
    Application factory for Flask.

    Args:
        store: Flight store. Defaults to the store behind the global cache.
        modems: Pre-loaded modem list. When omitted, modems are loaded
                from MODEMS_CSV with database fallback.
        cache: Flight cache. Defaults to the global cache, or a new cache
               over `store` when one is given.
        elevation: Elevation service. Defaults to the global service.
        clock: Current time source for assignment and activity windows.
        init_database: Whether to create missing tables. Set to False for
                       testing with an externally prepared database.

    Returns:
        Configured Flask application instance.
    """
    app = Flask(__name__)

    # Configuration
    app.config['SECRET_KEY'] = config.secret_key

    # Enable CORS for API endpoints
    CORS(app, resources={r'/api/*': {'origins': '*'}})

    if init_database:
        logger.info('Initializing database...')
        init_db()

    if cache is None:
        cache = flight_cache if store is None else FlightCache(store=store)
    store = store or cache.store

    if modems is None:
        modems = ModemList()
        try:
            modems.load_modems()
        except ModemLoadError as e:
            logger.error(f'No authorized modems available, all points will be rejected: {e}')

    app.config['CLOCK'] = clock or (lambda: datetime.now(timezone.utc))
    app.config['FLIGHT_STORE'] = store
    app.config['FLIGHT_CACHE'] = cache
    app.config['MODEM_LIST'] = modems
    app.config['ELEVATION_SERVICE'] = elevation or elevation_service
    app.config['FLIGHT_ASSIGNER'] = FlightAssigner(
        store,
        modems,
        tracking=config.tracking,
        clock=app.config['CLOCK'],
    )

    # Register API blueprints
    app.register_blueprint(assign_bp)
    app.register_blueprint(flights_bp)
    app.register_blueprint(meta_bp)

    @app.route('/health')
    def health():
        """Simple health check endpoint."""
        return {'status': 'ok', 'modems': len(modems), 'cache': cache.get_stats()}

    # -------------------------------------------------------------------------
    # Error handlers
    # -------------------------------------------------------------------------

    @app.errorhandler(404)
    def not_found(e):
        return {'error': 'Not found'}, 404

    @app.errorhandler(500)
    def server_error(e):
        logger.error(f'Server error: {e}')
        return {'error': 'Internal server error'}, 500

    return app


def run_development_server():
    """Run the development server."""
    app = create_app()

    # Get port from environment or default
    port = int(os.environ.get('PORT', 5000))

    logger.info(f'Starting Aurora on http://localhost:{port}')

    app.run(
        host='0.0.0.0',
        port=port,
        debug=config.debug,
        use_reloader=False,
    )


if __name__ == '__main__':
    run_development_server()
