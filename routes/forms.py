"""
Form submission routes for students and assessors.
"""
from flask import Blueprint, request, jsonify
import logging
from injector import inject

from database.connection import get_db_session
from services.exceptions import ServiceError
from services.form_submission_service import FormSubmissionService
from routes.errors import service_error_response

logger = logging.getLogger(__name__)

forms_bp = Blueprint('forms', __name__, url_prefix='/api/v1/forms')


@forms_bp.route('/application/<int:application_id>/template/<int:form_template_id>', methods=['POST'])
@inject
def save_form(application_id: int, form_template_id: int, form_submission_service: FormSubmissionService):
    """
    Save a draft or submit a form.

    Required fields:
    - filled_by: user, assessor or mapping
    - form_data: Object of field values

    Optional fields:
    - submit: true to submit instead of saving a draft
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({'success': False, 'error': 'No JSON data provided'}), 400

    try:
        with get_db_session() as session:
            submission = form_submission_service.save_form(
                session,
                application_id,
                form_template_id,
                data.get('filled_by', 'user'),
                data.get('form_data') or {},
                submit=bool(data.get('submit'))
            )
            return jsonify({'success': True, 'data': submission.to_dict()})

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error saving form {form_template_id} for application {application_id}: {e}")
        return jsonify({'success': False, 'error': 'Error saving form'}), 500


@forms_bp.route('/submissions/<int:submission_id>/assess', methods=['POST'])
@inject
def assess_submission(submission_id: int, form_submission_service: FormSubmissionService):
    """
    Record an assessment outcome.

    Required fields:
    - outcome: approved or requires_changes

    Optional fields:
    - feedback: Assessor feedback
    """
    data = request.get_json(silent=True) or {}
    try:
        with get_db_session() as session:
            submission = form_submission_service.assess(
                session, submission_id, data.get('outcome'), data.get('feedback')
            )
            return jsonify({'success': True, 'data': submission.to_dict()})

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error assessing submission {submission_id}: {e}")
        return jsonify({'success': False, 'error': 'Error assessing submission'}), 500
