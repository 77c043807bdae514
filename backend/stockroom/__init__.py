# backend/stockroom/__init__.py
from __future__ import annotations
from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)
    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.dashboard import dashboard_bp
    from .routes.products import products_bp
    from .routes.sales import sales_bp
    from .routes.restock import restock_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(restock_bp)

    # Deferred change signals are delivered once the request is done
    from .services.workspace_service import drain_change_feed
    app.teardown_request(drain_change_feed)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
