"""API routes for HR approval requests."""

import logging
from flask import jsonify, request
from flask_login import login_required, current_user

from . import approvals_bp
from .engine import ApprovalEngine
from .exceptions import ApprovalError
from .templates import REQUEST_TYPES
from core.utils.api_helpers import get_json_or_error, get_pagination, error_response

logger = logging.getLogger('atlas.core.approvals.routes')

_engine = ApprovalEngine()


def _approval_error(e: ApprovalError):
    return error_response(e.message or str(e), e.status_code, code=e.code)


# ════════════════════════════════════════════
# Requests
# ════════════════════════════════════════════

@approvals_bp.route('/api/requests', methods=['POST'])
@login_required
def api_submit_request():
    """Submit an HR request. The approval chain is resolved immediately."""
    data, error = get_json_or_error()
    if error:
        return error

    try:
        result = _engine.submit(data, current_user)
        return jsonify({'success': True, **result}), 201
    except ApprovalError as e:
        return _approval_error(e)
    except Exception as e:
        logger.exception(f'Submit request failed: {e}')
        return error_response('Failed to submit request', 500)


@approvals_bp.route('/api/requests', methods=['GET'])
@login_required
def api_list_requests():
    """List requests visible to the caller."""
    page, limit, offset = get_pagination()
    division_id = request.args.get('division_id', type=int)

    result = _engine.list_requests(
        current_user,
        status=request.args.get('status'),
        request_type=request.args.get('request_type'),
        division_id=division_id,
        search=(request.args.get('search') or '').strip() or None,
        limit=limit, offset=offset,
    )
    total = result['total']
    return jsonify({
        'success': True,
        'requests': result['requests'],
        'pagination': {
            'page': page,
            'limit': limit,
            'total': total,
            'pages': (total + limit - 1) // limit,
        },
    })


@approvals_bp.route('/api/requests/<int:request_id>', methods=['GET'])
@login_required
def api_get_request(request_id):
    """Request detail with its approval ledger."""
    try:
        return jsonify({'success': True, **_engine.get_request(request_id, current_user)})
    except ApprovalError as e:
        return _approval_error(e)


# ════════════════════════════════════════════
# Decisions
# ════════════════════════════════════════════

def _comments():
    data = request.get_json(silent=True) or {}
    comments = data.get('comments')
    return comments.strip() if isinstance(comments, str) and comments.strip() else None


@approvals_bp.route('/api/steps/<int:step_id>/approve', methods=['POST'])
@login_required
def api_approve_step(step_id):
    try:
        result = _engine.approve(step_id, current_user, comment=_comments())
        return jsonify({'success': True, **result})
    except ApprovalError as e:
        return _approval_error(e)
    except Exception as e:
        logger.exception(f'Approve step {step_id} failed: {e}')
        return error_response('Failed to approve step', 500)


@approvals_bp.route('/api/steps/<int:step_id>/reject', methods=['POST'])
@login_required
def api_reject_step(step_id):
    try:
        result = _engine.reject(step_id, current_user, comment=_comments())
        return jsonify({'success': True, **result})
    except ApprovalError as e:
        return _approval_error(e)
    except Exception as e:
        logger.exception(f'Reject step {step_id} failed: {e}')
        return error_response('Failed to reject step', 500)


# ════════════════════════════════════════════
# Approver inbox
# ════════════════════════════════════════════

@approvals_bp.route('/api/my-queue', methods=['GET'])
@login_required
def api_my_queue():
    """Steps the caller can act on right now."""
    _, limit, offset = get_pagination(default_limit=50)
    items = _engine.pending_for_user(current_user, limit=limit, offset=offset)
    return jsonify({'success': True, 'items': items, 'count': len(items)})


@approvals_bp.route('/api/my-queue/count', methods=['GET'])
@login_required
def api_my_queue_count():
    return jsonify({'success': True, 'count': _engine.queue_count(current_user)})


# ════════════════════════════════════════════
# Workflow preview
# ════════════════════════════════════════════

@approvals_bp.route('/api/request-types', methods=['GET'])
@login_required
def api_request_types():
    supported = _engine.templates.request_types()
    return jsonify({
        'success': True,
        'request_types': [{'name': t, 'supported': t in supported} for t in REQUEST_TYPES],
    })


@approvals_bp.route('/api/workflows/<request_type>', methods=['GET'])
@login_required
def api_workflow_preview(request_type):
    try:
        steps = _engine.preview_workflow(request_type)
    except ApprovalError as e:
        return _approval_error(e)
    return jsonify({'success': True, 'request_type': request_type, 'steps': steps})


# ════════════════════════════════════════════
# Workflow analytics
# ════════════════════════════════════════════

@approvals_bp.route('/api/analytics/overview', methods=['GET'])
@login_required
def api_analytics_overview():
    """Counts by status and request type across the caller's visible requests."""
    return jsonify({'success': True, **_engine.analytics.overview(current_user)})


@approvals_bp.route('/api/analytics/details', methods=['GET'])
@login_required
def api_analytics_details():
    """Request page with per-request workflow progress."""
    page, limit, offset = get_pagination()
    result = _engine.analytics.details(
        current_user,
        status=request.args.get('status'),
        request_type=request.args.get('request_type'),
        division_id=request.args.get('division_id', type=int),
        search=(request.args.get('search') or '').strip() or None,
        limit=limit, offset=offset,
    )
    total = result['total']
    return jsonify({
        'success': True,
        'items': result['items'],
        'pagination': {
            'page': page,
            'limit': limit,
            'total': total,
            'pages': (total + limit - 1) // limit,
        },
    })


@approvals_bp.route('/api/analytics/requests/<int:request_id>/timeline', methods=['GET'])
@login_required
def api_analytics_timeline(request_id):
    try:
        return jsonify({'success': True, **_engine.analytics.timeline(request_id, current_user)})
    except ApprovalError as e:
        return _approval_error(e)


@approvals_bp.route('/api/analytics/statistics', methods=['GET'])
@login_required
def api_analytics_statistics():
    """Approval rates and mean approval time, optionally per creation-date window."""
    try:
        stats = _engine.analytics.statistics(
            current_user,
            request_type=request.args.get('request_type'),
            start_date=request.args.get('start_date'),
            end_date=request.args.get('end_date'),
        )
    except ApprovalError as e:
        return _approval_error(e)
    return jsonify({'success': True, **stats})
