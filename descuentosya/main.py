# descuentosya/main.py
import logging
import time
from typing import Optional

from flask import Flask, g, jsonify, request

from descuentosya.blueprints.admin import admin_bp
from descuentosya.blueprints.business import business_bp
from descuentosya.blueprints.common import LOCKS_EXTENSION, NOTIFICATIONS_EXTENSION
from descuentosya.blueprints.deals import deals_bp
from descuentosya.config import Config
from descuentosya.database import (
    SessionLocal,
    build_engine,
    build_session_factory,
    close_db,
    engine as default_engine,
    init_database,
)
from descuentosya.observability import (
    check_database_health,
    configure_logging,
    increment_counter,
    observe_latency,
)
from descuentosya.observability.logging_config import ensure_request_id
from descuentosya.services.locking import EntityLockRegistry
from descuentosya.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

ENGINE_EXTENSION = "descuentosya.engine"


def create_app(database_url: Optional[str] = None, config: type[Config] = Config) -> Flask:
    """
    Build the marketplace app.

    ``database_url`` overrides the configured catalog store, which is how
    tests point each app at its own database. Tables are created on start.
    """
    app = Flask(__name__)
    config.configure_app(app)
    configure_logging(app)

    if database_url:
        bind = build_engine(database_url)
        session_factory = build_session_factory(bind)
        app.config["SQLALCHEMY_DATABASE_URI"] = database_url
    else:
        bind = default_engine
        session_factory = SessionLocal
    app.config["SESSION_FACTORY"] = session_factory
    app.config["MARKETPLACE_CONFIG"] = config

    # Shared across requests: per-entity locks and the notification store
    app.extensions[ENGINE_EXTENSION] = bind
    app.extensions[LOCKS_EXTENSION] = EntityLockRegistry()
    app.extensions[NOTIFICATIONS_EXTENSION] = NotificationService(config.NOTIFICATIONS_MAX_PER_USER)

    try:
        init_database(bind)
    except Exception:
        logger.exception("Error initializing database")
        raise

    app.register_blueprint(deals_bp)
    app.register_blueprint(business_bp)
    app.register_blueprint(admin_bp)

    @app.before_request
    def before_request_logging():
        g.request_started_at = time.perf_counter()
        g.request_id = ensure_request_id()
        increment_counter(
            "http_requests_total",
            labels={
                "method": request.method,
                "endpoint": request.endpoint or request.path,
            },
        )

    @app.after_request
    def after_request_logging(response):
        started = getattr(g, "request_started_at", None)
        if started is not None:
            duration_ms = (time.perf_counter() - started) * 1000
            observe_latency(
                "http_request_latency_ms",
                duration_ms,
                labels={
                    "method": request.method,
                    "endpoint": request.endpoint or request.path,
                    "status": str(response.status_code),
                },
            )
        response.headers[config.REQUEST_ID_HEADER] = getattr(g, "request_id", "")
        if response.status_code >= 500:
            increment_counter(
                "http_errors_total",
                labels={
                    "method": request.method,
                    "endpoint": request.endpoint or request.path,
                    "status": str(response.status_code),
                },
            )
            logger.error("Request finished with error status %s", response.status_code)
        else:
            logger.info("Request finished", extra={"status_code": response.status_code})
        return response

    @app.teardown_appcontext
    def teardown_db(exception):
        g.pop("marketplace", None)
        close_db(exception)

    @app.route("/health", methods=["GET"])
    def health():
        db_status = check_database_health(app.extensions[ENGINE_EXTENSION])
        overall = "UP" if db_status.get("status") == "UP" else "DEGRADED"
        status_code = 200 if overall == "UP" else 503
        return jsonify({
            "status": overall,
            "components": {
                "database": db_status
            }
        }), status_code

    return app
