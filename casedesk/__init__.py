import os
import logging
from pathlib import Path
from logging.handlers import RotatingFileHandler
from flask import Flask, jsonify
from .extensions import mail
from .config import Config
from .storage import select_backend
from .services import SweepScheduler, build_services


# Optional: Sentry
def _init_sentry(app):
    dsn = app.config.get("SENTRY_DSN")
    if not dsn:
        return
    try:
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration
        from sentry_sdk.integrations.pymongo import PyMongoIntegration

        sentry_sdk.init(
            dsn=dsn,
            integrations=[FlaskIntegration(), PyMongoIntegration()],
            traces_sample_rate=app.config.get("SENTRY_TRACES_SAMPLE_RATE", 0.0),
            environment=os.getenv("ENV", "development"),
            release=os.getenv("GIT_COMMIT", None),
            send_default_pii=False,
        )
        app.logger.info("Sentry initialized.")
    except Exception as e:
        app.logger.warning(f"Sentry init failed: {e}")

def _init_logging(app):
    # app.logger is the "casedesk" logger; module loggers propagate into it
    level_name = app.config.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    app.logger.setLevel(level)

    # Formatter: text or JSON
    if app.config.get("LOG_JSON", False):
        try:
            import json_log_formatter
            formatter = json_log_formatter.JSONFormatter()
        except Exception:
            formatter = logging.Formatter("[%(asctime)s] %(levelname)s in %(module)s: %(message)s")
    else:
        formatter = logging.Formatter("[%(asctime)s] %(levelname)s in %(module)s: %(message)s")

    # Drop handlers left by an earlier factory call in the same process
    for handler in list(app.logger.handlers):
        if getattr(handler, "_casedesk", False):
            app.logger.removeHandler(handler)
            handler.close()

    handlers = []
    if app.config.get("LOG_TO_FILE", True):
        log_dir = Path(app.config.get("LOG_DIR", "logs"))
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / app.config.get("LOG_FILENAME", "casedesk.log")
        # Rotating file handler (5MB x 5)
        handlers.append(RotatingFileHandler(
            log_path, maxBytes=5_000_000, backupCount=5, encoding="utf-8"
        ))

    # Stream to stdout as well (useful on dev/docker)
    handlers.append(logging.StreamHandler())

    for handler in handlers:
        handler._casedesk = True
        handler.setLevel(level)
        handler.setFormatter(formatter)
        app.logger.addHandler(handler)

    app.logger.info("Logging initialized.")

def create_app(config_object=None, store=None, email_channel=None, sms_channel=None):
    """Build the app. `store` and the channels can be injected (tests do)."""
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)
    app.config.setdefault("SECRET_KEY", "change-me")

    # Logging must come before the store so the backend choice is captured
    _init_logging(app)
    _init_sentry(app)

    # Extensions
    mail.init_app(app)

    # Decided once; nothing re-probes MongoDB for the life of the process
    if store is None:
        store = select_backend(app.config)
    services = build_services(app, store, email_channel=email_channel, sms_channel=sms_channel)
    app.extensions["casedesk"] = services
    app.logger.info("Storage backend: %s (durable=%s)", store.name, store.durable)

    if app.config.get("SCHEDULER_ENABLED") and not app.config.get("TESTING"):
        scheduler = SweepScheduler(
            services.sweeper,
            auto_status_hours=app.config.get("AUTO_STATUS_INTERVAL_HOURS", 24),
            alerts_hours=app.config.get("INACTIVITY_ALERT_INTERVAL_HOURS", 6),
        )
        scheduler.start()
        app.extensions["casedesk_scheduler"] = scheduler

    from .cli import register_cli
    register_cli(app)

    @app.route("/health")
    def health():
        return jsonify(
            status="ok",
            version=app.config.get("APP_VERSION"),
            storage=store.name,
            durable=store.durable,
            reachable=store.ping(),
        )

    return app
