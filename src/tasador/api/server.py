"""
Flask Application Factory

Creates and configures the Flask application around one ValuationSession.
"""

import atexit
from typing import Optional

from flask import Flask
from flask_cors import CORS

from tasador.api.routes import EXTENSION_KEY, register_routes
from tasador.api.runner import SessionRunner
from tasador.config import get_config
from tasador.logging_config import get_logger, setup_logging
from tasador.valuation.session import ValuationSession

logger = get_logger(__name__)


def create_app(test_config=None, session: Optional[ValuationSession] = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        test_config: Optional test configuration dict.
        session: Session to serve; built from configuration when omitted.

    Returns:
        Configured Flask application. Its session runner is started and
        available as ``app.extensions["tasador"]``.
    """
    config = get_config()

    # Setup logging
    setup_logging()

    app = Flask(__name__)

    # Apply configuration
    app.config["DEBUG"] = config.api.debug
    app.json.ensure_ascii = False

    if test_config:
        app.config.update(test_config)

    # Enable CORS
    CORS(app)

    runner = SessionRunner(session or ValuationSession.from_config())
    app.extensions[EXTENSION_KEY] = runner.start()

    # Register API routes
    register_routes(app)

    logger.info("Flask app created for agent %s", runner.session.agent_id)
    return app


def run_server(
    host: str = None,
    port: int = None,
    debug: bool = None,
    session: Optional[ValuationSession] = None,
):
    """Run the Flask development server.

    Args:
        host: Host to bind to.
        port: Port to bind to.
        debug: Enable debug mode.
        session: Session to serve; built from configuration when omitted.
    """
    config = get_config()

    host = host or config.api.host
    port = port or config.api.port
    debug = debug if debug is not None else config.api.debug

    app = create_app(session=session)
    atexit.register(app.extensions[EXTENSION_KEY].stop)

    logger.info("Starting server on %s:%d", host, port)
    # The reloader would start a second session in a child process
    app.run(host=host, port=port, debug=debug, use_reloader=False)
