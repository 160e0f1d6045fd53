# Load environment variables FIRST before any other imports
from dotenv import load_dotenv
load_dotenv()

import os
import time
import uuid
from typing import Optional

from flask import Flask, jsonify, request, g


def create_app(manager=None):
    """Create and configure an instance of the Flask application.

    Args:
        manager: Optional SearchManager to install instead of one built from
            the environment (used by tests).
    """
    app = Flask(__name__, instance_relative_config=True)

    # =============================================================================
    # CONFIGURATION
    # =============================================================================
    app.config.from_mapping(
        MAX_CONTENT_LENGTH=32 * 1024 * 1024,
    )
    app.json.ensure_ascii = False
    app.json.sort_keys = False

    try:
        os.makedirs(app.instance_path)
    except OSError:
        pass

    # =============================================================================
    # LOGGING
    # =============================================================================
    from .log import log, debug_log_event

    @app.before_request
    def assign_request_id():
        g.request_id = uuid.uuid4().hex[:12]
        g.request_start = time.time()

    @app.after_request
    def debug_request_log(response):
        duration_ms: Optional[int] = None
        start_time = getattr(g, 'request_start', None)
        if start_time:
            duration_ms = int((time.time() - start_time) * 1000)
        debug_log_event({
            'event': 'request',
            'request_id': getattr(g, 'request_id', None),
            'method': request.method,
            'path': request.path,
            'status': response.status_code,
            'duration_ms': duration_ms,
            'remote_addr': request.remote_addr,
        })
        return response

    @app.teardown_request
    def debug_exception_log(error=None):
        if not error:
            return
        debug_log_event({
            'event': 'exception',
            'request_id': getattr(g, 'request_id', None),
            'path': request.path if request else None,
            'error_type': error.__class__.__name__,
            'error': str(error)
        })

    @app.errorhandler(500)
    def internal_error(error):
        original = getattr(error, 'original_exception', None) or error
        log(f"💥 Unexpected error: {original.__class__.__name__}: {original}")
        return jsonify({
            'error': f'An unexpected error occurred: {original}',
            'code': 'internal_error',
            'isError': True,
        }), 500

    # =============================================================================
    # BLUEPRINTS & ROUTES
    # =============================================================================
    from .routes.main_api import main_bp
    from .routes.search_api import search_bp
    from .routes.sources_api import sources_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(search_bp)
    app.register_blueprint(sources_bp)

    # =============================================================================
    # INITIALIZATION
    # =============================================================================
    with app.app_context():
        # Register logging callback for sources
        from sources.base import set_log_callback
        set_log_callback(log)

        from sources import get_search_manager, set_search_manager
        if manager is not None:
            set_search_manager(manager)
        manager = get_search_manager()

        app.config['HOST'] = os.environ.get('FLASK_HOST', '127.0.0.1')
        app.config['PORT'] = int(os.environ.get('FLASK_PORT', '5000'))
        app.config['DEBUG'] = os.environ.get('FLASK_DEBUG', 'false').lower() in ('true', '1', 'yes')

        log(f"🔎 SauceSearch ready with {len(manager.sources)} backends: "
            f"{', '.join(s.name for s in manager.sources.values())}")
        log(f"🌐 ascii2d mirrors: {', '.join(manager.rotator.hosts)}")

    return app
