"""
Flask application factory.

Creates and configures the Flask app, registers all blueprints.
"""
from flask import Flask


def create_app():
    """Create and configure the Flask application."""
    from leadsignal.logging_config import configure_logging

    app = Flask(__name__)

    configure_logging(app)

    app.json.ensure_ascii = False

    # Register blueprints
    from leadsignal.routes.dashboard import bp as dashboard_bp
    from leadsignal.routes.leads import bp as leads_bp
    from leadsignal.routes.reprocess import bp as reprocess_bp

    app.register_blueprint(dashboard_bp)
    app.register_blueprint(leads_bp)
    app.register_blueprint(reprocess_bp)

    # Import models so Base.metadata knows about them (required for SQLAlchemy).
    # Schema is managed by Alembic — no create_all() call.
    import importlib
    importlib.import_module('leadsignal.models')

    return app
