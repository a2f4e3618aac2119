from typing import Optional

import httpx
from flask import Flask, jsonify
from sqlalchemy.orm import sessionmaker

from maintenance_gate import __version__
from maintenance_gate.config import Settings, settings
from maintenance_gate.database import SessionLocal, create_session_factory, init_db
from maintenance_gate.api.auth_middleware import init_auth_middleware
from maintenance_gate.api.dependencies import EXTENSION_KEY, build_services
from maintenance_gate.api.gate_middleware import init_gate_middleware
from maintenance_gate.api.middleware import register_error_handlers
from maintenance_gate.api.routes import license as license_routes, maintenance as maintenance_routes
from maintenance_gate.scheduler import start_scheduler
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_app(
    app_settings: Optional[Settings] = None,
    session_factory: Optional[sessionmaker] = None,
    license_transport: Optional[httpx.BaseTransport] = None,
    start_jobs: Optional[bool] = None,
) -> Flask:
    """Build the Flask app with the maintenance gate installed.

    ``session_factory`` and ``license_transport`` are injection points for
    tests; by default the configured database and the real licensing service
    are used.
    """
    app_settings = app_settings or settings
    if session_factory is None:
        if app_settings is settings:
            session_factory = SessionLocal
        else:
            session_factory = create_session_factory(app_settings.database_url)

    app = Flask(__name__)
    app.config["SECRET_KEY"] = app_settings.secret_key
    app.config["SESSION_COOKIE_NAME"] = app_settings.session_cookie_name

    init_db(session_factory.kw["bind"])
    services = build_services(app_settings, session_factory, license_transport=license_transport)
    services.store.seed_defaults()
    app.extensions[EXTENSION_KEY] = services

    # Order matters: identity first, then the gate.
    init_auth_middleware(app)
    init_gate_middleware(app)
    register_error_handlers(app)

    app.register_blueprint(maintenance_routes.bp)
    app.register_blueprint(license_routes.bp)

    @app.route("/")
    def root():
        return jsonify({"message": app_settings.site_name, "version": __version__})

    @app.route("/health")
    def health():
        return jsonify({"status": "healthy"})

    if start_jobs is None:
        start_jobs = app_settings.license_scheduler_enabled
    if start_jobs:
        try:
            app.extensions["maintenance_gate.scheduler"] = start_scheduler(services.license_manager, app_settings)
        except Exception as e:
            logger.error(f"Error starting scheduler: {e}")
            raise

    logger.info(f"Maintenance gate initialized for {app_settings.site_name}")
    return app
