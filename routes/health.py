"""
Health check routes for the application.
"""
from flask import Blueprint, jsonify
import logging

from database.connection import health_check as database_health_check
from services.mailbox import resolve_imap_config

logger = logging.getLogger(__name__)

health_bp = Blueprint('health', __name__, url_prefix='/api/v1')


@health_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    database_available = database_health_check()

    return jsonify({
        "status": "healthy" if database_available else "degraded",
        "version": "1.0.0",
        "api_version": "v1",
        "database_available": database_available,
        "inbox_reconciler_enabled": resolve_imap_config() is not None
    }), 200 if database_available else 503
