# backend/garment_erp/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    # Engines are built in db.init_app, so overrides must land first
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.sequences import sequences_bp
    from .routes.orders import orders_bp
    from .routes.purchases import purchases_bp
    from .routes.productions import productions_bp
    from .routes.store_entries import store_entries_bp
    from .routes.store_logs import store_logs_bp
    from .routes.purchase_returns import purchase_returns_bp
    from .routes.documents import documents_bp
    from .routes.notes import notes_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(sequences_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(purchases_bp)
    app.register_blueprint(productions_bp)
    app.register_blueprint(store_entries_bp)
    app.register_blueprint(store_logs_bp)
    app.register_blueprint(purchase_returns_bp)
    app.register_blueprint(documents_bp)
    app.register_blueprint(notes_bp)

    from .errors import register_error_handlers
    register_error_handlers(app)

    allowed_origins = set(app.config.get("CORS_ALLOWED_ORIGINS") or [])

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
