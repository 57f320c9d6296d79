import logging
import os

from flask import Flask, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from crickpool.config import Config
from crickpool.errors import NotFoundError, SettlementError, ValidationError
from crickpool.extensions import cors, db, migrate


def create_app(config_overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    env = app.config["CRICKPOOL_ENV"]

    # Production safety checks
    if env in ("prod", "production"):
        secret = (app.config.get("SECRET_KEY") or "").strip()
        if not secret or len(secret) < 16 or secret == "dev-secret":
            raise RuntimeError("SECRET_KEY must be set and at least 16 chars in production")
        for key in ("ADMIN_API_TOKEN", "CRON_SECRET"):
            if not (app.config.get(key) or "").strip():
                raise RuntimeError(f"{key} must be set in production")
        if not (os.getenv("DATABASE_URL") or "").strip() and not (os.getenv("SQLALCHEMY_DATABASE_URI") or "").strip():
            if not (config_overrides or {}).get("SQLALCHEMY_DATABASE_URI"):
                raise RuntimeError("DATABASE_URL (or SQLALCHEMY_DATABASE_URI) must be set in production")

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL") or "INFO").upper(), logging.INFO))

    # Ensure instance dir exists for SQLite paths
    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:///" + Config.INSTANCE_DIR.replace("\\", "/")):
        os.makedirs(Config.INSTANCE_DIR, exist_ok=True)

    # CORS configuration
    cors_origins = (app.config.get("CORS_ORIGINS") or "").strip()
    origins = [o.strip() for o in cors_origins.split(",") if o.strip()]
    if not origins and env not in ("prod", "production"):
        origins = ["*"]
    cors.init_app(app, resources={r"/api/*": {"origins": origins}})

    # Init extensions
    db.init_app(app)
    migrate.init_app(app, db, directory=os.path.join(Config.BACKEND_DIR, "migrations"))

    from crickpool import models  # noqa: F401
    from crickpool.segments.segment_contests import contests_bp
    from crickpool.segments.segment_cron import cron_bp
    from crickpool.segments.segment_reconciliation_admin import recon_bp

    app.register_blueprint(contests_bp)
    app.register_blueprint(recon_bp)
    app.register_blueprint(cron_bp)

    @app.errorhandler(ValidationError)
    def _validation_error(e):
        return jsonify({"ok": False, "message": str(e)}), 400

    @app.errorhandler(NotFoundError)
    def _not_found(e):
        return jsonify({"ok": False, "message": str(e)}), 404

    # Health check
    @app.get("/api/health")
    def health():
        db_state = "ok"
        try:
            db.session.execute(text("SELECT 1"))
        except SQLAlchemyError:
            db.session.rollback()
            db_state = "fail"
        return jsonify({
            "ok": True,
            "service": "crickpool-backend",
            "env": env,
            "db": db_state,
        })

    # -------------------------
    # Autopilot: run a settle + reconcile tick on requests (lease-throttled)
    # -------------------------
    if app.config.get("AUTOPILOT_ENABLED"):
        from crickpool.jobs.autopilot import tick as _autopilot_tick_hook

        @app.before_request
        def _crickpool_autopilot_before_request():
            try:
                _autopilot_tick_hook()
            except (SettlementError, SQLAlchemyError) as e:
                db.session.rollback()
                app.logger.warning("autopilot tick failed: %s", e)

    from crickpool.cli import register_cli

    register_cli(app)

    return app
