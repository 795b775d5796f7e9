"""HR API routes: employee history and account setup."""

import logging
from flask import jsonify, request
from flask_login import login_required, current_user

from . import hr_bp
from core.approvals.config import ApprovalConfig
from core.approvals.exceptions import ApprovalError
from core.approvals.guard import AuthorizationGuard
from core.organization.repositories import DivisionRepository
from core.utils.api_helpers import get_json_or_error, error_response
from hr.employees.repositories import EmployeeRepository
from hr.history.repositories import EmployeeHistoryRepository
from hr.onboarding.service import AccountSetupService

logger = logging.getLogger('atlas.hr.routes')

_employee_repo = EmployeeRepository()
_history_repo = EmployeeHistoryRepository()
_guard = AuthorizationGuard(ApprovalConfig.from_env().hierarchy(), DivisionRepository())
_setup_service = AccountSetupService()


# ============== EMPLOYEE HISTORY ==============

@hr_bp.route('/api/employees/<int:user_id>/history', methods=['GET'])
@login_required
def api_employee_history(user_id):
    """Employee history, newest first."""
    employee = _employee_repo.get_by_id(user_id)
    if not employee:
        return error_response('Employee not found', 404)
    if not _guard.can_view_employee(current_user, employee):
        return error_response('Access denied', 403)

    limit = min(request.args.get('limit', 50, type=int), 200)
    offset = max(request.args.get('offset', 0, type=int), 0)
    result = _history_repo.get_for_user(
        user_id, limit=limit, offset=offset, event_type=request.args.get('event_type'))
    return jsonify({
        'success': True,
        'history': result['history'],
        'total': result['total'],
        'has_more': offset + len(result['history']) < result['total'],
    })


# ============== ACCOUNT SETUP (public) ==============

@hr_bp.route('/api/account-setup/<token>', methods=['GET'])
def api_verify_setup_token(token):
    try:
        return jsonify({'success': True, 'account': _setup_service.verify(token)})
    except ApprovalError as e:
        return error_response(e.message, e.status_code, code=e.code)


@hr_bp.route('/api/account-setup/<token>', methods=['POST'])
def api_complete_setup(token):
    data, error = get_json_or_error()
    if error:
        return error
    try:
        result = _setup_service.complete(token, data)
        return jsonify({'success': True, **result}), 201
    except ApprovalError as e:
        return error_response(e.message, e.status_code, code=e.code)
    except Exception as e:
        logger.exception(f'Account setup failed: {e}')
        return error_response('Failed to complete account setup', 500)
