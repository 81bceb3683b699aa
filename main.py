"""
Main application entry point for the certification progress service.
"""
from flask import Flask
import logging
from flask_injector import FlaskInjector

from config.injection import ServiceModule
from routes.health import health_bp
from routes.progress import progress_bp
from routes.third_party import third_party_bp
from routes.verification import verification_bp
from routes.forms import forms_bp
from database.connection import init_database
import config.settings as settings

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_app(modules=None):
    """
    Create and configure the Flask application.

    Args:
        modules: Extra injector modules, applied after ServiceModule so
            they can override its bindings
    """
    app = Flask(__name__)

    # Configure Flask settings
    app.config['DEBUG'] = settings.DEBUG

    # Initialize database tables
    init_database()

    # Register blueprints
    app.register_blueprint(health_bp)
    app.register_blueprint(progress_bp)
    app.register_blueprint(third_party_bp)
    app.register_blueprint(verification_bp)
    app.register_blueprint(forms_bp)

    # Configure dependency injection
    FlaskInjector(app=app, modules=[ServiceModule] + list(modules or []))

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(
        host=settings.HOST,
        port=settings.PORT,
        debug=settings.DEBUG
    )
