"""
Application progress routes.
"""
from flask import Blueprint, request, jsonify
import logging
from injector import inject

from database.connection import get_db_session
from services.exceptions import ServiceError
from services.progress_service import ProgressService
from routes.errors import service_error_response

logger = logging.getLogger(__name__)

progress_bp = Blueprint('progress', __name__, url_prefix='/api/v1/applications')


@progress_bp.route('/<int:application_id>/progress', methods=['GET'])
@inject
def get_progress(application_id: int, progress_service: ProgressService):
    """
    Get the computed progress of an application.

    Query parameters:
    - view: student, assessor or admin (default: admin)

    Returns:
        JSON with steps, current step, totals and overall status
    """
    view = request.args.get('view', 'admin')
    try:
        with get_db_session() as session:
            progress = progress_service.compute_progress(session, application_id, view=view)
            return jsonify({'success': True, 'data': progress})

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error computing progress for application {application_id}: {e}")
        return jsonify({
            'success': False,
            'error': 'Failed to compute application progress'
        }), 500


@progress_bp.route('/<int:application_id>/progress/recalculate', methods=['POST'])
@inject
def recalculate_progress(application_id: int, progress_service: ProgressService):
    """
    Recompute progress and store the current step and overall status.

    Returns:
        JSON with the recomputed progress
    """
    try:
        with get_db_session() as session:
            progress = progress_service.update_application_progress(session, application_id)

        logger.info(f"Recalculated progress for application {application_id}")
        return jsonify({
            'success': True,
            'message': 'Application progress updated',
            'data': progress
        })

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error recalculating progress for application {application_id}: {e}")
        return jsonify({
            'success': False,
            'error': 'Failed to update application progress'
        }), 500
