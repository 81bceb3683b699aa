"""
Third-party verification routes and the inbox poll triggers.
"""
from flask import Blueprint, request, jsonify
import logging
from injector import inject

from database.connection import get_db_session
from services.exceptions import ServiceError
from services.tpr_verification_service import TPRVerificationService
from services.tpr_reconciler import TPRReconciler
from routes.errors import service_error_response

logger = logging.getLogger(__name__)

verification_bp = Blueprint('verification', __name__, url_prefix='/api/v1/tpr')


@verification_bp.route('/<int:tpr_id>/verification/send', methods=['POST'])
@inject
def send_verification(tpr_id: int, verification_service: TPRVerificationService):
    """
    Send verification emails for a third-party request.

    Optional fields:
    - target: employer, reference or both (default: both)
    """
    data = request.get_json(silent=True) or {}
    try:
        with get_db_session() as session:
            result = verification_service.send_verification(session, tpr_id, data.get('target') or 'both')
            return jsonify({'success': True, 'message': 'Verification email(s) sent', 'data': result})

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error sending verification for request {tpr_id}: {e}")
        return jsonify({'success': False, 'error': 'Error sending verification'}), 500


@verification_bp.route('/<int:tpr_id>/verification/<party>/response', methods=['POST'])
@inject
def record_verification_response(tpr_id: int, party: str, verification_service: TPRVerificationService):
    """
    Record a party's response and optionally decide it.

    Optional fields:
    - response_content: Free-text response
    - decision: verified, rejected or pending
    """
    data = request.get_json(silent=True) or {}
    try:
        with get_db_session() as session:
            result = verification_service.record_response(
                session,
                tpr_id,
                party,
                response_content=data.get('response_content'),
                decision=data.get('decision')
            )
            return jsonify({'success': True, 'data': result})

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error saving verification response for request {tpr_id}: {e}")
        return jsonify({'success': False, 'error': 'Error saving response'}), 500


@verification_bp.route('/verify', methods=['POST'])
@inject
def verify_by_token(verification_service: TPRVerificationService):
    """Public confirmation link: decide a verification by its token."""
    data = request.get_json(silent=True) or {}
    token = data.get('token')
    decision = data.get('decision')
    if not token or not decision:
        return jsonify({'success': False, 'error': 'token and decision required'}), 400

    try:
        with get_db_session() as session:
            result = verification_service.verify_by_token(session, token, decision)
            return jsonify({'success': True, 'data': result})

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error verifying by token: {e}")
        return jsonify({'success': False, 'error': 'Error verifying'}), 500


@verification_bp.route('/<int:tpr_id>/verification', methods=['GET'])
@inject
def get_verification(tpr_id: int, verification_service: TPRVerificationService):
    """Get per-party and aggregate verification status."""
    try:
        with get_db_session() as session:
            return jsonify({'success': True, 'data': verification_service.get_verification(session, tpr_id)})

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error fetching verification for request {tpr_id}: {e}")
        return jsonify({'success': False, 'error': 'Error fetching status'}), 500


@verification_bp.route('/poll', methods=['POST'])
@inject
def poll_inbox(reconciler: TPRReconciler):
    """
    Run one inbox reconciliation pass.

    Returns:
        JSON with scanned, matched, processed and match_breakdown
    """
    try:
        summary = reconciler.poll_inbox()
        return jsonify({'success': True, 'data': summary})

    except Exception as e:
        logger.error(f"Error polling verification inbox: {e}")
        return jsonify({'success': False, 'error': 'Error polling inbox'}), 500


@verification_bp.route('/application/<int:application_id>/poll', methods=['POST'])
@inject
def poll_for_application(application_id: int, reconciler: TPRReconciler):
    """Check the newest inbox messages for a reply to one application's request."""
    try:
        return jsonify({'success': True, 'data': reconciler.poll_for_application(application_id)})

    except Exception as e:
        logger.error(f"Error polling inbox for application {application_id}: {e}")
        return jsonify({'success': False, 'error': 'Error polling inbox'}), 500
