"""
Third-party form routes: initiation by the student, public access by token.
"""
from flask import Blueprint, request, jsonify
import logging
from injector import inject

from database.connection import get_db_session
from services.exceptions import ServiceError
from services.third_party_form_service import ThirdPartyFormService
from routes.errors import service_error_response

logger = logging.getLogger(__name__)

third_party_bp = Blueprint('third_party', __name__, url_prefix='/api/v1/third-party')


@third_party_bp.route('/application/<int:application_id>/form/<int:form_template_id>/initiate', methods=['POST'])
@inject
def initiate_third_party_form(
    application_id: int,
    form_template_id: int,
    third_party_service: ThirdPartyFormService
):
    """
    Create a third-party request and email the access links.

    Required fields:
    - employer_name, employer_email
    - reference_name, reference_email

    Returns:
        JSON with the request ID and which emails were sent
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({'success': False, 'error': 'No JSON data provided'}), 400

    try:
        with get_db_session() as session:
            tpr = third_party_service.initiate(
                session,
                application_id,
                form_template_id,
                employer={'name': data.get('employer_name'), 'email': data.get('employer_email')},
                reference={'name': data.get('reference_name'), 'email': data.get('reference_email')}
            )
            return jsonify({
                'success': True,
                'message': 'Third-party form initiated successfully',
                'data': {
                    'id': tpr.id,
                    'status': tpr.status,
                    'is_same_email': tpr.is_same_email,
                    'employer_email_sent': tpr.employer_email_sent,
                    'reference_email_sent': tpr.reference_email_sent,
                    'combined_email_sent': tpr.combined_email_sent
                }
            }), 201

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error initiating third-party form for application {application_id}: {e}")
        return jsonify({'success': False, 'error': 'Error initiating third-party form'}), 500


@third_party_bp.route('/application/<int:application_id>/form/<int:form_template_id>/status', methods=['GET'])
@inject
def get_third_party_status(
    application_id: int,
    form_template_id: int,
    third_party_service: ThirdPartyFormService
):
    """Get the status of the latest request for an application and template."""
    try:
        with get_db_session() as session:
            status = third_party_service.get_status(session, application_id, form_template_id)
            return jsonify({'success': True, 'data': status})

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error getting third-party status for application {application_id}: {e}")
        return jsonify({'success': False, 'error': 'Error fetching status'}), 500


@third_party_bp.route('/application/<int:application_id>/form/<int:form_template_id>/resend', methods=['POST'])
@inject
def resend_third_party_emails(
    application_id: int,
    form_template_id: int,
    third_party_service: ThirdPartyFormService
):
    """Send the access links of the live request again."""
    try:
        with get_db_session() as session:
            status = third_party_service.resend(session, application_id, form_template_id)
            return jsonify({'success': True, 'message': 'Emails resent successfully', 'data': status})

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error resending third-party emails for application {application_id}: {e}")
        return jsonify({'success': False, 'error': 'Error resending emails'}), 500


@third_party_bp.route('/form/<token>', methods=['GET'])
@inject
def get_third_party_form(token: str, third_party_service: ThirdPartyFormService):
    """
    Get the form behind an access token.

    Returns:
        JSON with the template, access type and any saved data for the slot
    """
    try:
        with get_db_session() as session:
            form = third_party_service.get_form(session, token)
            return jsonify({'success': True, 'data': form})

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error fetching third-party form: {e}")
        return jsonify({'success': False, 'error': 'Error fetching form'}), 500


@third_party_bp.route('/form/<token>', methods=['POST'])
@inject
def submit_third_party_form(token: str, third_party_service: ThirdPartyFormService):
    """
    Submit a party's form.

    Required fields:
    - form_data: Object of field values

    Returns:
        JSON with the request status and completion flag
    """
    data = request.get_json(silent=True)
    if not data or 'form_data' not in data:
        return jsonify({'success': False, 'error': 'form_data is required'}), 400

    try:
        with get_db_session() as session:
            result = third_party_service.submit(
                session,
                token,
                data['form_data'],
                ip_address=request.remote_addr,
                user_agent=request.headers.get('User-Agent')
            )
            return jsonify({'success': True, 'message': 'Form submitted successfully', 'data': result})

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error submitting third-party form: {e}")
        return jsonify({'success': False, 'error': 'Error submitting form'}), 500
