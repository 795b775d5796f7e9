"""In-app notification center routes.

Every route reads or updates the caller's own notifications only.
"""
from flask import jsonify, request
from flask_login import login_required, current_user

from . import notifications_bp
from .repositories import InAppNotificationRepository
from core.utils.api_helpers import get_json_or_error, get_pagination, error_response

_in_app_repo = InAppNotificationRepository()


@notifications_bp.route('/api/notifications', methods=['GET'])
@login_required
def api_get_notifications():
    """Caller's notifications, newest first, with the unread count."""
    page, limit, offset = get_pagination()
    unread_only = request.args.get('unread_only', 'false').lower() == 'true'

    notifications = _in_app_repo.get_for_user(
        current_user.id, limit=limit, offset=offset, unread_only=unread_only)
    total = _in_app_repo.count_for_user(current_user.id, unread_only=unread_only)
    return jsonify({
        'success': True,
        'notifications': notifications,
        'unread_count': _in_app_repo.get_unread_count(current_user.id),
        'pagination': {
            'page': page,
            'limit': limit,
            'total': total,
            'pages': (total + limit - 1) // limit,
        },
    })


@notifications_bp.route('/api/notifications/unread-count', methods=['GET'])
@login_required
def api_get_unread_count():
    return jsonify({'success': True, 'count': _in_app_repo.get_unread_count(current_user.id)})


@notifications_bp.route('/api/notifications/mark-read', methods=['POST'])
@login_required
def api_mark_read():
    """Mark one notification ({'notification_id'}) or all of them ({'mark_all': true}) as read."""
    data, error = get_json_or_error()
    if error:
        return error

    if data.get('mark_all') is True:
        count = _in_app_repo.mark_all_read(current_user.id)
        return jsonify({'success': True, 'count': count})

    notification_id = data.get('notification_id')
    if isinstance(notification_id, bool) or not isinstance(notification_id, int):
        return error_response('notification_id is required', 400, code='validation_error')

    notification = _in_app_repo.mark_read(notification_id, current_user.id)
    if not notification:
        return error_response('Notification not found', 404, code='not_found')
    return jsonify({'success': True, 'notification': notification})
